"""HMAC signing primitives shared by request verification and response signing."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac

ALGORITHM = "hmac-sha256"
HEADER_PREFIX = f"{ALGORITHM} "


def build_message(timestamp: str, endpoint: str, body: bytes | None = None) -> bytes:
    """Build the canonical message: timestamp + endpoint + body, no separators.

    Text parts are encoded as UTF-8. Surrogate escapes left by decoding
    non-UTF-8 header bytes turn back into those bytes.
    """
    return b"".join(
        [
            timestamp.encode("utf-8", "surrogateescape"),
            endpoint.encode("utf-8", "surrogateescape"),
            body or b"",
        ]
    )


def compute(secret: bytes, message: bytes) -> bytes:
    """Compute the raw HMAC-SHA256 tag."""
    return hmac.new(secret, message, hashlib.sha256).digest()


def format_header(digest: bytes) -> str:
    """Format a tag as an X-Signature header value."""
    return HEADER_PREFIX + base64.b64encode(digest).decode("ascii")


def split_header(value: str) -> tuple[str, str]:
    """Split an X-Signature header value into (algorithm, encoded signature).

    The algorithm is the token before the first space. A value without a
    space yields the whole value as algorithm and an empty signature.
    """
    algorithm, _, encoded = value.partition(" ")
    return algorithm, encoded


def b64decode_strict(value: str) -> bytes:
    """Decode standard base64, raising ValueError on malformed input."""
    try:
        return base64.b64decode(value, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Invalid base64: {exc}") from exc


def constant_time_equals(left: bytes, right: bytes) -> bool:
    """Compare two byte strings in time independent of where they differ."""
    return hmac.compare_digest(left, right)
