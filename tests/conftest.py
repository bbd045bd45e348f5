"""Pytest configuration and fixtures."""

import base64
import hashlib
import hmac

import pytest

from cardhook.common.settings import Settings
from cardhook.signature.credentials import InMemoryCredentialStore
from cardhook.signature.signer import ResponseSigner
from cardhook.signature.verifier import SignatureVerifier

API_KEY_ID = "sKQq91g4ctRkLElI86vMeRNIPbhUc2qyEWxgbt6CGP8="
SECRET_B64 = base64.b64encode(b"a" * 32).decode("ascii")
TIMESTAMP = "1700000000"
AUTHORIZATIONS = "/transactions/authorizations"
ADJUSTMENTS = "/transactions/adjustments"
APPROVED_BODY = b'{"Status":"APPROVED","StatusDetail":"APPROVED","Message":"OK"}'


def reference_signature(secret_b64: str, timestamp: str, endpoint: str, body: bytes) -> str:
    """Signature computed independently of cardhook."""
    digest = hmac.new(
        base64.b64decode(secret_b64),
        timestamp.encode("utf-8") + endpoint.encode("utf-8") + body,
        hashlib.sha256,
    ).digest()
    return "hmac-sha256 " + base64.b64encode(digest).decode("ascii")


def signed_headers(
    body: bytes = APPROVED_BODY,
    endpoint: str = AUTHORIZATIONS,
    timestamp: str = TIMESTAMP,
    api_key_id: str = API_KEY_ID,
    secret_b64: str = SECRET_B64,
) -> dict[str, str]:
    """Request headers as the partner would send them."""
    return {
        "x-endpoint": endpoint,
        "x-timestamp": timestamp,
        "x-signature": reference_signature(secret_b64, timestamp, endpoint, body),
        "x-api-key": api_key_id,
    }


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    """Store holding the single test partner."""
    return InMemoryCredentialStore({API_KEY_ID: SECRET_B64})


@pytest.fixture
def verifier(credential_store: InMemoryCredentialStore) -> SignatureVerifier:
    return SignatureVerifier(credential_store)


@pytest.fixture
def signer(credential_store: InMemoryCredentialStore) -> ResponseSigner:
    return ResponseSigner(credential_store)


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(
        credentials={API_KEY_ID: SECRET_B64},
        credentials_file=None,
        rejection_status_code=401,
    )
