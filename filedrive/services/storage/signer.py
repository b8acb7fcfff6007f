"""
Stateless signatures for private file URLs.

A token carries its own expiry and an HMAC-SHA256 digest over
``[disk, path, expires_at]``, so verification needs nothing but the secret.
Token wire format: ``"{expires_at}.{hexdigest}"``.
"""

import hashlib
import hmac
import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from filedrive.core.exceptions import InvalidSignatureError

# Unix seconds fit in 12 digits until the year 33658
MAX_EXPIRY_DIGITS = 12


@dataclass(frozen=True)
class SignedURLToken:
    """A verified signed URL token."""

    path: str
    disk: str
    expires_at: int  # Unix timestamp in seconds
    signature: str  # Hex digest

    @property
    def expires(self) -> datetime:
        """Get the expiry as an aware datetime."""
        return datetime.fromtimestamp(self.expires_at, tz=timezone.utc)

    def __str__(self) -> str:
        return f"{self.expires_at}.{self.signature}"


class Signer:
    """Signs and verifies URL tokens for one disk."""

    def __init__(
        self,
        secret: str,
        disk: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the signer.

        Args:
            secret: Server held secret key.
            disk: Name of the disk tokens are bound to.
            clock: Returns the current unix time, replaceable in tests.
        """
        if not secret:
            raise ValueError("Signer requires a non-empty secret")

        self._secret = secret.encode("utf-8")
        self.disk = disk
        self._clock = clock

    def _message(self, path: str, expires_at: int) -> bytes:
        return json.dumps([self.disk, path, expires_at], separators=(",", ":")).encode(
            "utf-8"
        )

    def sign(self, path: str, expires_at: int) -> str:
        """Compute the hex digest for a path and expiry."""
        return hmac.new(
            self._secret, self._message(path, expires_at), hashlib.sha256
        ).hexdigest()

    def make_token(self, path: str, expires_in: int | timedelta) -> SignedURLToken:
        """
        Create a token for a path that expires after ``expires_in``.

        Args:
            path: Normalized disk key.
            expires_in: Lifetime in seconds or as a timedelta.

        Returns:
            The signed token; ``str(token)`` is the query string value.
        """
        if isinstance(expires_in, timedelta):
            expires_in = int(expires_in.total_seconds())
        if expires_in <= 0:
            raise ValueError("expires_in must be positive")

        expires_at = int(self._clock()) + expires_in
        return SignedURLToken(
            path=path,
            disk=self.disk,
            expires_at=expires_at,
            signature=self.sign(path, expires_at),
        )

    def unsign(self, path: str, token: str | None) -> SignedURLToken:
        """
        Verify a token against a path.

        Raises:
            InvalidSignatureError: If the token is missing, malformed, does not
                match the path and disk, or has expired.
        """
        if not token:
            raise InvalidSignatureError("missing signature", path)

        expires_part, sep, signature = token.partition(".")
        well_formed = (
            expires_part.isascii()
            and expires_part.isdigit()
            and len(expires_part) <= MAX_EXPIRY_DIGITS
        )
        if not sep or not well_formed or not signature:
            raise InvalidSignatureError("malformed signature", path)

        expires_at = int(expires_part)
        expected = self.sign(path, expires_at)
        if not hmac.compare_digest(expected.encode(), signature.encode("utf-8")):
            raise InvalidSignatureError("signature mismatch", path)

        if expires_at <= self._clock():
            raise InvalidSignatureError("signature expired", path)

        return SignedURLToken(
            path=path, disk=self.disk, expires_at=expires_at, signature=signature
        )

    def verify(self, path: str, token: str | None) -> bool:
        """Check a token against a path without raising."""
        try:
            self.unsign(path, token)
        except InvalidSignatureError:
            return False
        return True
