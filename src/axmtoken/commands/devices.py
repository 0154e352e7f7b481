"""List organisation devices with a configuration's access token."""

from __future__ import annotations

import asyncio
from typing import Optional

import typer

from axmtoken.commands import get_services, reporting_errors
from axmtoken.exceptions import TokenRejectedError
from axmtoken.models import Device, DevicePage, TokenStatus
from axmtoken.output import info, print_table, suggest, warning


def _row(device: Device) -> list[str]:
    return [
        device.serial_number,
        device.display_name,
        device.product_family or "-",
        device.status or "-",
        device.added_to_org_date_time or "-",
    ]


def devices_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Configuration name or id."),
    limit: Optional[int] = typer.Option(
        None, "--limit", "-l", min=1, max=1000, help="Devices per page."
    ),
    cursor: Optional[str] = typer.Option(None, "--cursor", help="Continue from a cursor."),
    fetch_all: bool = typer.Option(False, "--all", "-a", help="Follow every page."),
) -> None:
    """List devices enrolled in the organisation.

    Example::

        axmtoken devices "Acme ABM"
        axmtoken devices "Acme ABM" --all --json
    """
    services = get_services(ctx)
    page_limit = limit or services.config.device_page_limit

    with reporting_errors():
        config = services.store.find(name)
        if services.manager.status(config) is TokenStatus.EXPIRED:
            warning(f'The token for "{config.name}" has expired; the request will likely fail.')
        access_token = services.manager.access_token(config.id)
        client = services.device_client

        async def _fetch() -> DevicePage:
            if not fetch_all:
                return await client.list_devices(
                    access_token, config.service, cursor=cursor, limit=page_limit
                )
            devices = [
                device
                async for device in client.iter_devices(
                    access_token, config.service, limit=page_limit
                )
            ]
            return DevicePage(devices=devices)

        try:
            page = asyncio.run(_fetch())
        except TokenRejectedError:
            suggest(f'Refresh the token: axmtoken refresh "{config.name}"')
            raise

    if not page.devices:
        info("No devices found.")
        return
    print_table(
        ["Serial", "Model", "Family", "Status", "Added"],
        [_row(device) for device in page.devices],
        title=f"{config.service.display_name} devices",
    )
    if page.has_more and page.cursor:
        info(f"{len(page.devices)} devices shown; more are available.")
        suggest(f'Next page: axmtoken devices "{config.name}" --cursor {page.cursor}')
