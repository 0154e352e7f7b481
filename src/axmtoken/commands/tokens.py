"""Token commands -- register configurations and manage their tokens.

Typical workflow::

    axmtoken add "Acme ABM" --client-id BUSINESSAPI.1234 \\
        --key-id d136aa66-... --key-file AuthKey.pem
    axmtoken list
    axmtoken token "Acme ABM"          # print the access token
    axmtoken refresh-expiring          # refresh tokens about to expire

Every command accepts a configuration's display name or its id.
"""

from __future__ import annotations

import asyncio
import json
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import typer

from axmtoken.commands import get_services, hint_for, reporting_errors
from axmtoken.exceptions import AxmTokenError, ConfigurationNotFoundError, InvalidUsageError
from axmtoken.exit_codes import EXIT_GENERIC_FAILURE
from axmtoken.lifecycle import GenerationOutcome, GenerationResult
from axmtoken.models import ServiceVariant, TokenConfiguration, TokenStatus
from axmtoken.output import (
    OutputFormat,
    error,
    format_response,
    get_output,
    info,
    mask_secret,
    print_data,
    print_table,
    success,
    suggest,
    warning,
)

_STATUS_LABELS = {
    TokenStatus.NOT_CONFIGURED: "Not configured",
    TokenStatus.ACTIVE: "Active",
    TokenStatus.EXPIRING: "Expiring soon",
    TokenStatus.EXPIRED: "Expired",
    TokenStatus.UNKNOWN: "Unknown",
}


def _read_key(key_file: str) -> bytes:
    if key_file == "-":
        return sys.stdin.buffer.read()
    try:
        return Path(key_file).expanduser().read_bytes()
    except OSError as exc:
        raise InvalidUsageError(f"Cannot read key file '{key_file}': {exc.strerror}") from exc


def _format_time(value: Optional[datetime]) -> str:
    if value is None:
        return "-"
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")


def _exit_code(result: GenerationResult) -> int:
    if isinstance(result.error, AxmTokenError):
        return result.error.exit_code
    return EXIT_GENERIC_FAILURE


def _report(result: GenerationResult, name: str) -> None:
    if result.outcome is GenerationOutcome.SUCCEEDED:
        expiry = result.configuration.token_expiry if result.configuration else None
        success(f'Token generated for "{name}" (expires {_format_time(expiry)}).')
    elif result.outcome is GenerationOutcome.CANCELLED:
        warning(f'Token generation for "{name}" was cancelled.')
    else:
        error(f'Token generation for "{name}" failed: {result.error}')
        if isinstance(result.error, AxmTokenError):
            hint = hint_for(result.error)
            if hint:
                suggest(hint)


def add_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Display name for the configuration."),
    client_id: str = typer.Option(..., "--client-id", help="OAuth client id (BUSINESSAPI.xxx)."),
    key_id: str = typer.Option(..., "--key-id", help="Identifier of the private key."),
    key_file: str = typer.Option(
        ..., "--key-file", "-k", help="Private key file, or '-' to read stdin."
    ),
    email: str = typer.Option("", "--email", help="Apple Account that owns the key."),
    service: ServiceVariant = typer.Option(
        ServiceVariant.BUSINESS, "--service", "-s", help="business or school."
    ),
    generate: bool = typer.Option(
        True, "--generate/--no-generate", help="Generate a token right away."
    ),
) -> None:
    """Register a configuration and store its private key.

    The key may be PKCS#8 PEM, SEC1 PEM, DER, or the raw 32-byte scalar.

    Example::

        axmtoken add "Acme ABM" --client-id BUSINESSAPI.1234 --key-id KID1 -k AuthKey.pem
        axmtoken add "District" --service school --client-id SCHOOLAPI.9 --key-id KID2 -k - < key.pem
    """
    services = get_services(ctx)
    with reporting_errors():
        config = TokenConfiguration(
            name=name,
            email=email,
            client_id=client_id,
            key_id=key_id,
            service=service,
        )
        services.manager.register(config, _read_key(key_file))
    success(f'Configuration "{name}" saved ({config.id}).')

    if not generate:
        suggest(f'Generate a token: axmtoken generate "{name}"')
        return

    async def _generate() -> GenerationResult:
        task = services.manager.start_generate(config.id, lambda r: _report(r, name))
        return await task.wait()

    result = asyncio.run(_generate())
    if not result.ok:
        raise typer.Exit(code=_exit_code(result))


def list_command(ctx: typer.Context) -> None:
    """List configurations with their token status.

    Example::

        axmtoken list
        axmtoken --json list
    """
    services = get_services(ctx)
    configs = services.store.list_all()
    if not configs:
        info("No configurations.")
        suggest("Add one: axmtoken add --help")
        return

    rows = []
    for config in configs:
        status = services.manager.status(config)
        rows.append([
            config.name,
            config.service.display_name,
            config.client_id,
            _STATUS_LABELS[status],
            _format_time(config.token_expiry),
            config.id,
        ])
    print_table(
        ["Name", "Service", "Client ID", "Status", "Expires", "ID"],
        rows,
        title="Token configurations",
    )


def show_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Configuration name or id."),
) -> None:
    """Show one configuration, its status and its masked token."""
    services = get_services(ctx)
    with reporting_errors():
        config = services.store.find(name)
        status = services.manager.status(config)
        data = config.model_dump(mode="json")
        data["service"] = config.service.display_name
        data["status"] = status.value
        if status not in (TokenStatus.NOT_CONFIGURED, TokenStatus.UNKNOWN):
            data["access_token"] = mask_secret(services.manager.access_token(config.id))
    format_response(data)


def generate_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Configuration name or id."),
) -> None:
    """Sign a new assertion and exchange it for an access token."""
    services = get_services(ctx)
    with reporting_errors():
        config = services.store.find(name)
        updated = asyncio.run(services.manager.generate(config.id))
    success(f'Token generated for "{config.name}" (expires {_format_time(updated.token_expiry)}).')


def refresh_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Configuration name or id."),
) -> None:
    """Replace the access token of one configuration."""
    services = get_services(ctx)
    with reporting_errors():
        config = services.store.find(name)
        updated = asyncio.run(services.manager.refresh(config.id))
    success(f'Token refreshed for "{config.name}" (expires {_format_time(updated.token_expiry)}).')


def refresh_expiring_command(
    ctx: typer.Context,
    minutes: Optional[int] = typer.Option(
        None, "--within", "-w", help="Lookahead in minutes (default from config)."
    ),
) -> None:
    """Refresh every token that expires within the lookahead window.

    Example::

        axmtoken refresh-expiring
        axmtoken refresh-expiring --within 60
    """
    services = get_services(ctx)
    threshold = timedelta(minutes=minutes) if minutes is not None else None
    names = {c.id: c.name for c in services.store.list_all()}
    results = asyncio.run(
        services.manager.refresh_expiring(
            threshold=threshold,
            on_complete=lambda r: _report(r, names.get(r.config_id, r.config_id)),
        )
    )
    if not results:
        info("No tokens are about to expire.")
        return
    failed = [r for r in results if not r.ok]
    if failed:
        raise typer.Exit(code=_exit_code(failed[0]))


def token_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Configuration name or id."),
    assertion: bool = typer.Option(
        False, "--assertion", help="Print the client assertion instead."
    ),
    masked: bool = typer.Option(False, "--masked", help="Print only the ends of the value."),
) -> None:
    """Print the stored access token (or client assertion) to stdout.

    Example::

        curl -H "Authorization: Bearer $(axmtoken token 'Acme ABM')" ...
    """
    services = get_services(ctx)
    with reporting_errors():
        config = services.store.find(name)
        if assertion:
            value = services.manager.assertion(config.id)
        else:
            value = services.manager.access_token(config.id)
            if services.manager.status(config) is TokenStatus.EXPIRED:
                warning(f'The token for "{config.name}" has expired.')
                suggest(f'Refresh it: axmtoken refresh "{config.name}"')
    print_data(mask_secret(value) if masked else value)


def decode_command(
    ctx: typer.Context,
    target: str = typer.Argument(help="A compact JWT, or a configuration name or id."),
    access_token: bool = typer.Option(
        False, "--access-token", help="Decode the stored access token instead of the assertion."
    ),
) -> None:
    """Decode a JWT's header and claims.

    Given a configuration, its stored assertion is decoded and the
    signature is verified against the configuration's key.
    """
    from axmtoken.assertion import decode_assertion

    public_key = None
    with reporting_errors():
        services = get_services(ctx)
        try:
            config = services.store.find(target)
        except ConfigurationNotFoundError:
            if access_token or target.count(".") != 2:
                raise
            config = None
        if config is None:
            token = target
        elif access_token:
            token = services.manager.access_token(config.id)
        else:
            token = services.manager.assertion(config.id)
            public_key = services.manager.signing_key(config).public_key()
        decoded = decode_assertion(token, public_key)

    output = get_output()
    if output.format == OutputFormat.JSON:
        data = decoded.model_dump(mode="json")
        data["header"] = json.loads(decoded.header)
        data["payload"] = json.loads(decoded.payload)
        format_response(data)
        return
    info("Header:")
    print_data(decoded.header)
    info("Payload:")
    print_data(decoded.payload)
    info(f"Signature: {decoded.signature}")
    if decoded.signature_valid is True:
        success("Signature verified with the stored key.")
    elif decoded.signature_valid is False:
        warning("Signature does not match the stored key.")


def delete_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Configuration name or id."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Delete a configuration and every secret stored for it."""
    services = get_services(ctx)
    with reporting_errors():
        config = services.store.find(name)
    if not force and not typer.confirm(f'Delete "{config.name}" and its stored secrets?'):
        info("Aborted.")
        raise typer.Exit()
    services.manager.delete(config.id)
    success(f'Deleted "{config.name}".')


COMMANDS = [
    ("add", add_command),
    ("list", list_command),
    ("show", show_command),
    ("generate", generate_command),
    ("refresh", refresh_command),
    ("refresh-expiring", refresh_expiring_command),
    ("token", token_command),
    ("decode", decode_command),
    ("delete", delete_command),
]
