"""Logging setup and console helpers.

Core modules log through ``logging.getLogger(__name__)``; the terminal front
end uses the ``log_*`` helpers below. Every handler installed here carries a
RedactingFilter so tokens and PKCE verifiers never reach the console or the
log file.
"""

import logging
import re
from typing import Optional

APP_LOGGER_NAME = "spotify_insights.app"

CONSOLE_LOG_FORMAT = "[%(levelname)s] %(message)s"
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

_REDACTED = "<redacted>"
_SECRET_PATTERNS = [
    re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"((?:access_token|refresh_token|code_verifier)[\"']?\s*[:=]\s*[\"']?)[^\"'&\s,}]+"),
    re.compile(r"([?&]code=)[^&\s]+"),
]


def redact(text: str) -> str:
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(lambda m: m.group(1) + _REDACTED, text)
    return text


class RedactingFilter(logging.Filter):
    """Masks bearer tokens and token/verifier values in formatted messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Configure the root logger once: console always, file when log_file is set."""

    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level or "INFO").upper(), logging.INFO))

    for handler in list(root.handlers):
        if getattr(handler, "_spotify_insights", False):
            root.removeHandler(handler)
            handler.close()

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(CONSOLE_LOG_FORMAT))
    console.addFilter(RedactingFilter())
    console._spotify_insights = True
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
        file_handler.addFilter(RedactingFilter())
        file_handler._spotify_insights = True
        root.addHandler(file_handler)

    # httpx logs full request URLs at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logging.getLogger(APP_LOGGER_NAME)


def _app_logger() -> logging.Logger:
    return logging.getLogger(APP_LOGGER_NAME)


def log_debug(message: str) -> None:
    _app_logger().debug(message)


def log_info(message: str) -> None:
    _app_logger().info(message)


def log_success(message: str) -> None:
    _app_logger().log(SUCCESS, message)


def log_warning(message: str) -> None:
    _app_logger().warning(message)


def log_error(message: str) -> None:
    _app_logger().error(message)
