# Utils module exports
from utils.formatting import format_duration, format_number, format_percentage, get_time_range_label
from utils.logger import log_debug, log_error, log_info, log_success, log_warning, setup_logging

__all__ = [
    # Formatting
    "format_duration",
    "format_number",
    "format_percentage",
    "get_time_range_label",
    # Logging
    "log_debug",
    "log_error",
    "log_info",
    "log_success",
    "log_warning",
    "setup_logging",
]
