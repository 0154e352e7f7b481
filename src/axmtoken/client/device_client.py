"""Paginated listing of organisation devices with a bearer access token.

``GET {service base}/v1/orgDevices?limit=N[&cursor=C]``. A 401 is raised as
:class:`~axmtoken.exceptions.TokenRejectedError` so callers can refresh the
token and retry, distinct from every other HTTP failure.
"""

from __future__ import annotations

from typing import AsyncIterator, Optional

from axmtoken.client.base import ApiClient
from axmtoken.exceptions import HttpStatusError, TokenRejectedError
from axmtoken.models import Device, DevicePage, DeviceResponse, ServiceVariant

DEVICES_PATH = "/v1/orgDevices"
DEFAULT_PAGE_LIMIT = 100


class DeviceClient(ApiClient):
    """Read-only client for the ``orgDevices`` collection."""

    async def list_devices(
        self,
        access_token: str,
        service: ServiceVariant,
        cursor: Optional[str] = None,
        limit: int = DEFAULT_PAGE_LIMIT,
    ) -> DevicePage:
        """Fetch one page of devices.

        Raises:
            TokenRejectedError: If the access token is expired or invalid.
            HttpStatusError: On any other non-2xx status.
            ExchangeError: On transport or decoding failures.
        """
        params: dict[str, str] = {"limit": str(limit)}
        if cursor:
            params["cursor"] = cursor
        response = await self._send(
            "GET",
            f"{service.api_base_url}{DEVICES_PATH}",
            params=params,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
        )
        error_cls = TokenRejectedError if response.status_code == 401 else HttpStatusError
        self._raise_for_status(response, error_cls)
        return DevicePage.from_response(self._parse(response, DeviceResponse))

    async def iter_devices(
        self,
        access_token: str,
        service: ServiceVariant,
        limit: int = DEFAULT_PAGE_LIMIT,
        max_pages: Optional[int] = None,
    ) -> AsyncIterator[Device]:
        """Yield devices across pages until the server reports no more."""
        cursor: Optional[str] = None
        pages = 0
        while True:
            page = await self.list_devices(access_token, service, cursor=cursor, limit=limit)
            pages += 1
            for device in page.devices:
                yield device
            if not page.has_more or not page.cursor:
                return
            if max_pages is not None and pages >= max_pages:
                return
            cursor = page.cursor
