"""Webhook service - Receives signed card-transaction events from the partner."""

import json
from contextlib import asynccontextmanager
from typing import Any, Protocol

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route
import uvicorn

from cardhook.common.auth import SignatureAuthMiddleware, get_verified_context
from cardhook.common.errors import ErrorCode, error_response
from cardhook.common.http import RequestIdMiddleware
from cardhook.common.logging import get_logger, setup_logging
from cardhook.common.metrics import (
    MetricsMiddleware,
    metrics_endpoint,
    record_signed_response,
    record_signing_failure,
)
from cardhook.common.settings import Settings, get_settings
from cardhook.common.tracing import DEFAULT_SERVICE_NAME, setup_tracing
from cardhook.signature.credentials import (
    CredentialConfigError,
    CredentialStore,
    load_credential_store,
)
from cardhook.signature.signer import ResponseSigner, SigningError
from cardhook.signature.verifier import SignatureVerifier, VerifiedContext

logger = get_logger(__name__)

AUTHORIZATIONS_PATH = "/transactions/authorizations"
ADJUSTMENTS_PATH = "/transactions/adjustments"


class TransactionProcessor(Protocol):
    """Business logic for verified transaction events."""

    async def authorize(self, context: VerifiedContext) -> dict[str, Any]:
        ...

    async def adjust(self, context: VerifiedContext) -> dict[str, Any] | None:
        ...


class ApprovingProcessor:
    """Default processor that approves every authorization."""

    async def authorize(self, context: VerifiedContext) -> dict[str, Any]:
        logger.info("Authorization processed", endpoint=context.endpoint)
        return {
            "Status": "APPROVED",
            "StatusDetail": "APPROVED",
            "Message": "OK",
        }

    async def adjust(self, context: VerifiedContext) -> dict[str, Any] | None:
        logger.info("Adjustment processed", endpoint=context.endpoint)
        return None


def encode_body(payload: dict[str, Any] | None) -> bytes:
    """Serialize a response payload to the exact bytes that get signed and sent."""
    if payload is None:
        return b""
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


class WebhookServer:
    """HTTP handlers for the partner transaction webhooks."""

    def __init__(
        self,
        settings: Settings,
        credentials: CredentialStore,
        processor: TransactionProcessor | None = None,
    ):
        self._settings = settings
        self.verifier = SignatureVerifier(credentials)
        self.signer = ResponseSigner(credentials)
        self._processor = processor or ApprovingProcessor()

    async def startup(self) -> None:
        logger.info("Starting webhook service...")

    async def shutdown(self) -> None:
        logger.info("Webhook service stopped")

    def _signed_response(
        self,
        route: str,
        context: VerifiedContext,
        payload: dict[str, Any] | None,
    ) -> Response:
        """Sign the serialized body, then build the response with headers set first."""
        body = encode_body(payload)
        try:
            headers = self.signer.response_headers(context, body)
        except (SigningError, CredentialConfigError) as exc:
            record_signing_failure()
            logger.error(
                "Unable to sign response for verified request",
                api_key_id=context.api_key_id,
                error=str(exc),
            )
            return error_response(ErrorCode.SIGNING_FAILED, "Response could not be signed", 500)

        record_signed_response(route)
        return Response(content=body, status_code=200, headers=headers)

    async def handle_authorization(self, request: Request) -> Response:
        """Handle a card authorization event."""
        context = get_verified_context(request)
        payload = await self._processor.authorize(context)
        return self._signed_response(AUTHORIZATIONS_PATH, context, payload)

    async def handle_adjustment(self, request: Request) -> Response:
        """Handle a transaction adjustment event."""
        context = get_verified_context(request)
        payload = await self._processor.adjust(context)
        return self._signed_response(ADJUSTMENTS_PATH, context, payload)

    async def handle_health(self, request: Request) -> JSONResponse:
        """Health check."""
        return JSONResponse({"status": "healthy"})


def create_app(
    settings: Settings | None = None,
    credentials: CredentialStore | None = None,
    processor: TransactionProcessor | None = None,
) -> Starlette:
    """Create the Starlette application."""
    settings = settings or get_settings()
    if credentials is None:
        credentials = load_credential_store(settings)
    server = WebhookServer(settings, credentials, processor)

    @asynccontextmanager
    async def lifespan(app: Starlette):
        await server.startup()
        yield
        await server.shutdown()

    routes = [
        Route(AUTHORIZATIONS_PATH, server.handle_authorization, methods=["POST"]),
        Route(ADJUSTMENTS_PATH, server.handle_adjustment, methods=["POST"]),
        Route("/health", server.handle_health, methods=["GET"]),
        Route("/metrics", metrics_endpoint, methods=["GET"]),
    ]

    app = Starlette(routes=routes, lifespan=lifespan)

    app.add_middleware(
        SignatureAuthMiddleware,
        settings=settings,
        verifier=server.verifier,
    )
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        MetricsMiddleware,
        exclude_paths=["/health", "/metrics"],
    )

    return app


def main() -> None:
    """Entry point for the webhook service."""
    settings = get_settings()
    setup_logging(settings.log_level, json_logs=settings.log_json)
    if settings.tracing_enabled or settings.tracing_otlp_endpoint or settings.tracing_console:
        setup_tracing(
            service_name=settings.tracing_service_name or DEFAULT_SERVICE_NAME,
            otlp_endpoint=settings.tracing_otlp_endpoint,
            enable_console=settings.tracing_console,
        )
    app = create_app(settings)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
