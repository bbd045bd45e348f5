"""Partner credentials and the stores that resolve them."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Protocol

from cardhook.common.hmac import b64decode_strict
from cardhook.common.logging import get_logger
from cardhook.common.settings import Settings

logger = get_logger(__name__)


class CredentialConfigError(Exception):
    """A configured credential is unusable."""

    pass


@dataclass(frozen=True)
class Credential:
    """Shared HMAC secret for one partner API key."""

    api_key_id: str
    shared_secret: bytes

    @classmethod
    def from_base64(cls, api_key_id: str, secret_b64: str) -> Credential:
        try:
            secret = b64decode_strict(secret_b64)
        except ValueError as exc:
            raise CredentialConfigError(
                f"Secret for API key {api_key_id!r} is not valid base64"
            ) from exc
        if not secret:
            raise CredentialConfigError(f"Secret for API key {api_key_id!r} is empty")
        return cls(api_key_id=api_key_id, shared_secret=secret)


class CredentialStore(Protocol):
    """Read-only lookup of base64 shared secrets by API key id."""

    def lookup(self, api_key_id: str) -> str | None:
        ...


class InMemoryCredentialStore:
    """Credential store backed by an immutable in-process mapping."""

    def __init__(self, secrets: Mapping[str, str] | None = None) -> None:
        entries = dict(secrets or {})
        for api_key_id, secret_b64 in entries.items():
            Credential.from_base64(api_key_id, secret_b64)
        self._secrets = MappingProxyType(entries)

    def lookup(self, api_key_id: str) -> str | None:
        return self._secrets.get(api_key_id)

    def __len__(self) -> int:
        return len(self._secrets)

    def __contains__(self, api_key_id: object) -> bool:
        return api_key_id in self._secrets


def resolve_credential(store: CredentialStore, api_key_id: str) -> Credential | None:
    """Look up and decode the credential for an API key id."""
    secret_b64 = store.lookup(api_key_id)
    if secret_b64 is None:
        return None
    return Credential.from_base64(api_key_id, secret_b64)


def _read_credentials_file(path: str) -> dict[str, str]:
    file_path = Path(path).expanduser()
    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise CredentialConfigError(f"Credentials file not found: {file_path}") from exc
    except json.JSONDecodeError as exc:
        raise CredentialConfigError(f"Credentials file is not valid JSON: {file_path}") from exc

    if not isinstance(data, dict) or not all(
        isinstance(key, str) and isinstance(value, str) for key, value in data.items()
    ):
        raise CredentialConfigError(
            f"Credentials file must map API key ids to base64 secrets: {file_path}"
        )
    return data


def load_credential_store(settings: Settings) -> InMemoryCredentialStore:
    """
    Build the credential store from settings.

    Entries from ``credentials_file`` override inline ``credentials`` with
    the same API key id.

    Raises:
        CredentialConfigError: If the file is unreadable or a secret is malformed
    """
    secrets = dict(settings.credentials)
    if settings.credentials_file:
        secrets.update(_read_credentials_file(settings.credentials_file))

    store = InMemoryCredentialStore(secrets)
    if not len(store):
        logger.warning("No partner credentials configured; every request will be rejected")
    else:
        logger.info("Loaded partner credentials", count=len(store))
    return store
