"""cardhook CLI - Partner-side signing and verification tools."""

import asyncio
import base64
import secrets
import sys
import time
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any, ParamSpec, TypeVar
from urllib.parse import urlparse

import aiohttp
import click
from rich.console import Console
from rich.table import Table

from cardhook.signature.credentials import CredentialConfigError, InMemoryCredentialStore
from cardhook.signature.signer import ResponseSigner
from cardhook.signature.verifier import (
    API_KEY_HEADER,
    ENDPOINT_HEADER,
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    SignatureVerifier,
    VerificationError,
)

console = Console()

P = ParamSpec("P")
R = TypeVar("R")

_LOCAL_KEY_ID = "cli"


def async_command(f: Callable[P, Coroutine[Any, Any, R]]) -> Callable[P, R]:
    """Decorator to run async commands."""

    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        return asyncio.run(f(*args, **kwargs))

    return wrapper


def _read_body(path: str | None) -> bytes:
    if not path:
        return b""
    return Path(path).expanduser().read_bytes()


def _local_store(api_key_id: str, secret: str) -> InMemoryCredentialStore:
    try:
        return InMemoryCredentialStore({api_key_id: secret})
    except CredentialConfigError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)


secret_option = click.option(
    "--secret",
    envvar="CARDHOOK_SECRET",
    required=True,
    help="Base64 shared secret (or CARDHOOK_SECRET)",
)
body_option = click.option(
    "--body-file",
    type=click.Path(exists=True, dir_okay=False),
    help="File holding the exact body bytes",
)


@click.group()
def cli() -> None:
    """cardhook CLI - Sign and verify card-transaction webhooks."""


@cli.command("sign")
@secret_option
@click.option("--timestamp", default=None, help="x-timestamp value (default: now)")
@click.option("--endpoint", required=True, help="x-endpoint value")
@body_option
def sign(secret: str, timestamp: str | None, endpoint: str, body_file: str | None) -> None:
    """Print the x-signature header value for a message."""
    timestamp = timestamp or str(int(time.time()))
    signer = ResponseSigner(_local_store(_LOCAL_KEY_ID, secret))
    click.echo(signer.sign(_LOCAL_KEY_ID, timestamp, endpoint, _read_body(body_file)))


@cli.command("verify")
@secret_option
@click.option("--timestamp", required=True, help="x-timestamp value")
@click.option("--endpoint", required=True, help="x-endpoint value")
@click.option("--signature", required=True, help="x-signature header value")
@body_option
def verify(
    secret: str,
    timestamp: str,
    endpoint: str,
    signature: str,
    body_file: str | None,
) -> None:
    """Check an x-signature header value against a message."""
    verifier = SignatureVerifier(_local_store(_LOCAL_KEY_ID, secret))
    headers = {
        ENDPOINT_HEADER: endpoint,
        TIMESTAMP_HEADER: timestamp,
        SIGNATURE_HEADER: signature,
        API_KEY_HEADER: _LOCAL_KEY_ID,
    }
    try:
        verifier.verify(headers, _read_body(body_file))
    except VerificationError as exc:
        console.print(f"[red]Invalid signature ({exc.reason}): {exc}[/red]")
        sys.exit(1)
    console.print("[green]Signature valid[/green]")


@cli.command("send")
@click.argument("url")
@click.option("--api-key", required=True, help="Partner API key id (x-api-key)")
@secret_option
@click.option("--endpoint", default=None, help="x-endpoint value (default: URL path)")
@click.option("--timestamp", default=None, help="x-timestamp value (default: now)")
@body_option
@click.option("--timeout", default=10.0, show_default=True, help="Request timeout in seconds")
@async_command
async def send(
    url: str,
    api_key: str,
    secret: str,
    endpoint: str | None,
    timestamp: str | None,
    body_file: str | None,
    timeout: float,
) -> None:
    """POST a signed webhook to URL and verify the signed response."""
    store = _local_store(api_key, secret)
    body = _read_body(body_file)
    endpoint = endpoint or urlparse(url).path or "/"
    timestamp = timestamp or str(int(time.time()))

    headers = {
        ENDPOINT_HEADER: endpoint,
        TIMESTAMP_HEADER: timestamp,
        SIGNATURE_HEADER: ResponseSigner(store).sign(api_key, timestamp, endpoint, body),
        API_KEY_HEADER: api_key,
        "Content-Type": "application/json",
    }

    client_timeout = aiohttp.ClientTimeout(total=timeout)
    async with aiohttp.ClientSession(timeout=client_timeout) as session:
        try:
            async with session.post(url, data=body, headers=headers) as response:
                status = response.status
                response_headers = {key.lower(): value for key, value in response.headers.items()}
                response_body = await response.read()
        except aiohttp.ClientError as exc:
            console.print(f"[red]Error: {exc}[/red]")
            sys.exit(1)

    # Responses carry no x-api-key; the secret is the one used for the request.
    response_headers[API_KEY_HEADER] = api_key
    verifier = SignatureVerifier(store)
    try:
        verifier.verify(response_headers, response_body)
        verdict = "[green]valid[/green]"
        ok = True
    except VerificationError as exc:
        verdict = f"[red]invalid ({exc.reason})[/red]"
        ok = False

    table = Table(title="Webhook Response")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Status", str(status))
    table.add_row("X-Signature", response_headers.get("x-signature", "-"))
    table.add_row("Response signature", verdict)
    table.add_row("Body", response_body.decode("utf-8", errors="replace") or "(empty)")
    console.print(table)

    if status != 200 or not ok:
        sys.exit(1)


@cli.command("generate-key")
def generate_key() -> None:
    """Generate a new API key id and 32-byte shared secret."""
    api_key_id = base64.b64encode(secrets.token_bytes(32)).decode("ascii")
    secret = base64.b64encode(secrets.token_bytes(32)).decode("ascii")

    table = Table(title="New Partner Credential")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("API key id", api_key_id)
    table.add_row("Shared secret", secret)
    console.print(table)
    console.print(f"[dim]CARDHOOK_CREDENTIALS='{{\"{api_key_id}\": \"{secret}\"}}'[/dim]", soft_wrap=True)


def main() -> None:
    """CLI entry point."""
    cli()


if __name__ == "__main__":
    main()
