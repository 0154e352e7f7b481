"""Built-in commands and the helpers they share.

:func:`get_services` builds the :class:`~axmtoken.services.Services` set on
first use and caches it in ``ctx.obj``. Tests may pre-populate
``ctx.obj["transport"]`` (an :class:`httpx.MockTransport`) or
``ctx.obj["services"]`` through ``CliRunner.invoke(..., obj=...)``.

:func:`reporting_errors` turns an :class:`~axmtoken.exceptions.AxmTokenError`
into an error line, an optional hint and the error's exit code.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import typer

from axmtoken.exceptions import (
    AxmTokenError,
    ConfigurationNotFoundError,
    CredentialsInvalidError,
    ExchangeFailureError,
    HttpStatusError,
    user_message_for_status,
)
from axmtoken.output import error, suggest
from axmtoken.services import Services, create_services


def get_services(ctx: typer.Context) -> Services:
    obj = ctx.ensure_object(dict)
    services = obj.get("services")
    if services is None:
        from axmtoken.config import resolve_config

        config = resolve_config(
            cli_token_url=obj.get("token_url"),
            cli_timeout=obj.get("timeout"),
        )
        services = create_services(config, transport=obj.get("transport"))
        obj["services"] = services
    return services


def hint_for(exc: AxmTokenError) -> str | None:
    """Return a follow-up suggestion for *exc*, if there is a useful one."""
    status = None
    if isinstance(exc, ExchangeFailureError):
        status = exc.status_code
    elif isinstance(exc, HttpStatusError):
        status = exc.status_code
    if status is not None:
        return user_message_for_status(status)
    if isinstance(exc, ConfigurationNotFoundError):
        return "List configurations: axmtoken list"
    if isinstance(exc, CredentialsInvalidError):
        return "Run 'axmtoken generate <name>', or add the configuration again with a valid key"
    return None


@contextmanager
def reporting_errors() -> Iterator[None]:
    try:
        yield
    except AxmTokenError as exc:
        error(str(exc))
        hint = hint_for(exc)
        if hint:
            suggest(hint)
        raise typer.Exit(code=exc.exit_code) from None
