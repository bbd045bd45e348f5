"""Signature authentication middleware."""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from cardhook.common.errors import ErrorCode, error_response, rejection_response
from cardhook.common.http import set_api_key_id
from cardhook.common.logging import get_logger
from cardhook.common.metrics import record_verification
from cardhook.common.settings import Settings
from cardhook.signature.credentials import CredentialConfigError
from cardhook.signature.verifier import SignatureVerifier, VerificationError, VerifiedContext

logger = get_logger(__name__)


def get_verified_context(request: Request) -> VerifiedContext:
    """Get the verified signature context attached by SignatureAuthMiddleware."""
    context = getattr(request.state, "verified", None)
    if context is None:
        raise RuntimeError("Request did not pass through SignatureAuthMiddleware")
    return context


class SignatureAuthMiddleware(BaseHTTPMiddleware):
    """Rejects requests whose partner signature does not verify."""

    def __init__(self, app: ASGIApp, settings: Settings, verifier: SignatureVerifier) -> None:
        super().__init__(app)
        self._settings = settings
        self._verifier = verifier
        self._exempt_paths = set(settings.signature_exempt_paths)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in self._exempt_paths:
            return await call_next(request)

        # Read the raw bytes once, before anything parses them.
        body = await request.body()

        try:
            context = self._verifier.verify(request.headers, body)
        except VerificationError as exc:
            record_verification("rejected", exc.reason)
            logger.warning(
                "Request signature rejected",
                path=request.url.path,
                reason=exc.reason,
                error=str(exc),
            )
            return rejection_response(self._settings.rejection_status_code)
        except CredentialConfigError as exc:
            record_verification("error", ErrorCode.CREDENTIALS_MISCONFIGURED)
            logger.error(
                "Stored credential is unusable",
                path=request.url.path,
                error=str(exc),
            )
            return error_response(
                ErrorCode.CREDENTIALS_MISCONFIGURED,
                "Server credentials are misconfigured",
                500,
            )

        record_verification("verified")
        request.state.verified = context
        set_api_key_id(context.api_key_id)
        return await call_next(request)
