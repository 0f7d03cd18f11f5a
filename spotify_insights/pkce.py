import base64
import hashlib
import secrets
import urllib.parse
from dataclasses import dataclass
from typing import Callable, Dict

from .errors import ChallengeError

# RFC 7636: verifier length 43-128 chars.
VERIFIER_MIN_LENGTH = 43
VERIFIER_MAX_LENGTH = 128

# 64 random bytes encode to 86 URL-safe characters.
VERIFIER_ENTROPY_BYTES = 64


def _base64url_no_pad(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def code_challenge_from_verifier(verifier: str, *, digest: Callable = hashlib.sha256) -> str:
    """Compute PKCE S256 code_challenge from code_verifier."""

    return _base64url_no_pad(digest((verifier or "").encode("utf-8")).digest())


@dataclass(frozen=True)
class PKCEPair:
    code_verifier: str
    code_challenge: str


class ChallengeGenerator:
    """Produces PKCE verifier/challenge pairs.

    ``entropy`` must return exactly ``n`` cryptographically random bytes and
    ``digest`` is a hashlib-style constructor; both can be swapped for
    deterministic stand-ins in tests.
    """

    def __init__(
        self,
        entropy: Callable[[int], bytes] = secrets.token_bytes,
        digest: Callable = hashlib.sha256,
        *,
        entropy_bytes: int = VERIFIER_ENTROPY_BYTES,
    ):
        self.entropy = entropy
        self.digest = digest
        self.entropy_bytes = int(entropy_bytes)

    def create_verifier(self) -> str:
        try:
            raw = self.entropy(self.entropy_bytes)
        except Exception as e:
            raise ChallengeError(f"Secure random source unavailable: {e}") from e

        if not isinstance(raw, (bytes, bytearray)) or len(raw) < self.entropy_bytes:
            raise ChallengeError("Secure random source returned too few bytes")

        verifier = _base64url_no_pad(bytes(raw[: self.entropy_bytes]))[:VERIFIER_MAX_LENGTH]
        if len(verifier) < VERIFIER_MIN_LENGTH:
            raise ChallengeError(
                f"PKCE verifier must be at least {VERIFIER_MIN_LENGTH} characters, got {len(verifier)}"
            )
        return verifier

    def create_challenge(self) -> PKCEPair:
        """Generate a PKCE verifier + challenge."""

        verifier = self.create_verifier()
        return PKCEPair(
            code_verifier=verifier,
            code_challenge=code_challenge_from_verifier(verifier, digest=self.digest),
        )


def create_challenge() -> PKCEPair:
    return ChallengeGenerator().create_challenge()


def extract_code_from_redirect_url(redirect_url: str) -> Dict[str, str]:
    """Parse a redirect URL and return {"code": ..., "state": ..., "error": ...} (missing keys omitted)."""

    parsed = urllib.parse.urlparse(str(redirect_url or "").strip())
    qs = urllib.parse.parse_qs(parsed.query)
    out: Dict[str, str] = {}
    for key in ("code", "state", "error"):
        if qs.get(key):
            out[key] = str(qs[key][0])
    return out
