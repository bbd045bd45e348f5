"""Outbound response signing."""

from __future__ import annotations

from cardhook.common import hmac as signing
from cardhook.common.http import wire_header
from cardhook.common.logging import get_logger
from cardhook.common.tracing import span
from cardhook.signature.credentials import CredentialStore, resolve_credential
from cardhook.signature.verifier import VerifiedContext

logger = get_logger(__name__)

JSON_CONTENT_TYPE = "application/json"


class SigningError(Exception):
    """Response could not be signed.

    Raised for integration faults such as a credential disappearing after
    the request verified. Never caused by client input.
    """

    pass


class ResponseSigner:
    """Signs response bodies with the partner's shared secret."""

    def __init__(self, credentials: CredentialStore) -> None:
        self._credentials = credentials

    def sign(
        self,
        api_key_id: str,
        timestamp_raw: str,
        endpoint: str,
        body: bytes | None = None,
    ) -> str:
        """
        Compute the X-Signature header value for a response.

        Args:
            api_key_id: Partner API key id from the verified request
            timestamp_raw: x-timestamp of the request, echoed verbatim
            endpoint: x-endpoint of the request, echoed verbatim
            body: Exact response body bytes, or None for an empty body

        Returns:
            "hmac-sha256 <base64 signature>"

        Raises:
            SigningError: If no credential resolves for api_key_id
        """
        with span("signature.sign", {"signature.api_key_id": api_key_id}):
            credential = resolve_credential(self._credentials, api_key_id)
            if credential is None:
                raise SigningError(f"No credential for API key {api_key_id!r}")

            message = signing.build_message(timestamp_raw, endpoint, body)
            return signing.format_header(signing.compute(credential.shared_secret, message))

    def response_headers(self, context: VerifiedContext, body: bytes | None = None) -> dict[str, str]:
        """Build the full header set to write before the response body."""
        return {
            "X-Signature": self.sign(
                context.api_key_id,
                context.timestamp_raw,
                context.endpoint,
                body,
            ),
            "X-Timestamp": wire_header(context.timestamp_raw),
            "X-Endpoint": wire_header(context.endpoint),
            "Content-Type": JSON_CONTENT_TYPE,
        }
