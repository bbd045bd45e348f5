"""Inbound webhook signature verification."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from starlette.datastructures import Headers

from cardhook.common import hmac as signing
from cardhook.common.logging import get_logger
from cardhook.common.tracing import span
from cardhook.signature.credentials import CredentialStore, resolve_credential

logger = get_logger(__name__)

ENDPOINT_HEADER = "x-endpoint"
TIMESTAMP_HEADER = "x-timestamp"
SIGNATURE_HEADER = "x-signature"
API_KEY_HEADER = "x-api-key"

REQUIRED_HEADERS = (ENDPOINT_HEADER, TIMESTAMP_HEADER, SIGNATURE_HEADER, API_KEY_HEADER)


class VerificationError(Exception):
    """Request signature could not be verified.

    ``reason`` is a stable code for logs and metrics. It must never be sent
    back to the caller.
    """

    reason = "verification_failed"


class MissingHeader(VerificationError):
    reason = "missing_header"

    def __init__(self, name: str) -> None:
        super().__init__(f"Missing required header: {name}")
        self.name = name


class UnsupportedAlgorithm(VerificationError):
    reason = "unsupported_algorithm"

    def __init__(self, received: str) -> None:
        super().__init__(f"Unsupported signature algorithm, expecting {signing.ALGORITHM}, got {received!r}")
        self.received = received


class UnknownApiKey(VerificationError):
    reason = "unknown_api_key"

    def __init__(self, api_key_id: str) -> None:
        super().__init__("Unknown API key")
        self.api_key_id = api_key_id


class MalformedSignature(VerificationError):
    reason = "malformed_signature"


class SignatureMismatch(VerificationError):
    reason = "signature_mismatch"


@dataclass(frozen=True)
class SignedRequestContext:
    """Signature material extracted from a single inbound request."""

    endpoint: str
    timestamp_raw: str
    signature_algorithm: str
    signature_bytes: bytes
    api_key_id: str
    raw_body: bytes

    @property
    def canonical_message(self) -> bytes:
        return signing.build_message(self.timestamp_raw, self.endpoint, self.raw_body)


@dataclass(frozen=True)
class VerifiedContext:
    """Outcome of a successful verification, needed again to sign the response."""

    endpoint: str
    timestamp_raw: str
    api_key_id: str
    raw_body: bytes = b""


def _header_values(headers: Mapping[str, str]) -> dict[str, str]:
    """Lowercased header names to text values, first occurrence wins.

    Values taken from Starlette are rebuilt from the raw header bytes as
    UTF-8, so the canonical message hashes exactly the bytes that were sent.
    """
    values: dict[str, str] = {}
    if isinstance(headers, Headers):
        for key, value in headers.raw:
            values.setdefault(key.decode("latin-1").lower(), value.decode("utf-8", "surrogateescape"))
    else:
        for key, value in headers.items():
            values.setdefault(key.lower(), value)
    return values


class SignatureVerifier:
    """Validates inbound request signatures against partner shared secrets."""

    def __init__(self, credentials: CredentialStore) -> None:
        self._credentials = credentials

    def _read_headers(self, headers: Mapping[str, str]) -> tuple[dict[str, str], str, str]:
        lookup = _header_values(headers)
        values: dict[str, str] = {}
        for name in REQUIRED_HEADERS:
            value = lookup.get(name)
            if value is None:
                raise MissingHeader(name)
            values[name] = value

        algorithm, encoded = signing.split_header(values[SIGNATURE_HEADER])
        if not values[SIGNATURE_HEADER].startswith(signing.HEADER_PREFIX):
            raise UnsupportedAlgorithm(algorithm)
        return values, algorithm, encoded

    def _build_context(
        self,
        values: dict[str, str],
        algorithm: str,
        encoded: str,
        raw_body: bytes,
    ) -> SignedRequestContext:
        try:
            signature_bytes = signing.b64decode_strict(encoded)
        except ValueError as exc:
            raise MalformedSignature("Signature is not valid base64") from exc

        return SignedRequestContext(
            endpoint=values[ENDPOINT_HEADER],
            timestamp_raw=values[TIMESTAMP_HEADER],
            signature_algorithm=algorithm,
            signature_bytes=signature_bytes,
            api_key_id=values[API_KEY_HEADER],
            raw_body=raw_body,
        )

    def parse(self, headers: Mapping[str, str], raw_body: bytes) -> SignedRequestContext:
        """
        Extract the signature material of a request without checking it.

        Args:
            headers: Request headers (looked up case-insensitively)
            raw_body: Exact request body bytes as received

        Raises:
            MissingHeader: If a required header is absent
            UnsupportedAlgorithm: If x-signature is not hmac-sha256
            MalformedSignature: If the signature is not valid base64
        """
        values, algorithm, encoded = self._read_headers(headers)
        return self._build_context(values, algorithm, encoded, raw_body)

    def verify(self, headers: Mapping[str, str], raw_body: bytes) -> VerifiedContext:
        """
        Verify a request signature.

        The HMAC covers x-timestamp + x-endpoint + body, concatenated as bytes
        with no separators. The body must be the untouched bytes read from
        the wire, never a re-serialized form. The credential is resolved
        before the signature is decoded.

        Returns:
            VerifiedContext for signing the response

        Raises:
            VerificationError: One of its subclasses, naming the failure
        """
        with span("signature.verify") as current_span:
            values, algorithm, encoded = self._read_headers(headers)
            api_key_id = values[API_KEY_HEADER]
            current_span.set_attribute("signature.api_key_id", api_key_id)

            credential = resolve_credential(self._credentials, api_key_id)
            if credential is None:
                raise UnknownApiKey(api_key_id)

            context = self._build_context(values, algorithm, encoded, raw_body)
            expected = signing.compute(credential.shared_secret, context.canonical_message)
            if not signing.constant_time_equals(context.signature_bytes, expected):
                logger.debug("Signature mismatch", api_key_id=api_key_id)
                raise SignatureMismatch("Signature mismatch")

            return VerifiedContext(
                endpoint=context.endpoint,
                timestamp_raw=context.timestamp_raw,
                api_key_id=context.api_key_id,
                raw_body=context.raw_body,
            )

    def is_valid(self, headers: Mapping[str, str], raw_body: bytes) -> bool:
        """Return True if the request signature verifies."""
        try:
            self.verify(headers, raw_body)
        except VerificationError as exc:
            logger.warning("Request signature rejected", reason=exc.reason, error=str(exc))
            return False
        return True
