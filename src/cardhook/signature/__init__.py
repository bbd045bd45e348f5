"""Webhook signature verification and response signing."""

from cardhook.signature.credentials import (
    Credential,
    CredentialConfigError,
    CredentialStore,
    InMemoryCredentialStore,
    load_credential_store,
)
from cardhook.signature.signer import ResponseSigner, SigningError
from cardhook.signature.verifier import (
    MalformedSignature,
    MissingHeader,
    SignatureMismatch,
    SignatureVerifier,
    SignedRequestContext,
    UnknownApiKey,
    UnsupportedAlgorithm,
    VerificationError,
    VerifiedContext,
)

__all__ = [
    "Credential",
    "CredentialConfigError",
    "CredentialStore",
    "InMemoryCredentialStore",
    "load_credential_store",
    "ResponseSigner",
    "SigningError",
    "SignatureVerifier",
    "SignedRequestContext",
    "VerifiedContext",
    "VerificationError",
    "MissingHeader",
    "UnsupportedAlgorithm",
    "UnknownApiKey",
    "MalformedSignature",
    "SignatureMismatch",
]
