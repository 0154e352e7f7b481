"""Shared httpx plumbing for Apple's OAuth and organisation APIs.

:class:`ApiClient` owns the transport settings and turns every way an HTTP
call can go wrong into one of the :class:`~axmtoken.exceptions.ExchangeError`
subclasses:

======================================  ===============================
Condition                               Raised
======================================  ===============================
URL cannot be built / bad scheme        :class:`InvalidURLError`
DNS, TLS, refused, timeout              :class:`NetworkError`
broken HTTP framing, bad encoding       :class:`InvalidResponseError`
non-2xx status                          :class:`HttpStatusError`
2xx with empty body                     :class:`NoDataError`
2xx with malformed or incomplete JSON   :class:`DecodingError`
======================================  ===============================

Cancellation is not an error here: :class:`asyncio.CancelledError`
propagates unchanged so the caller's task ends up cancelled.

A fresh :class:`httpx.AsyncClient` is opened per call, so one client object
can be reused across event loops (each CLI command runs its own).
"""

from __future__ import annotations

import logging
from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from axmtoken import __version__
from axmtoken.exceptions import (
    DecodingError,
    HttpStatusError,
    InvalidResponseError,
    InvalidURLError,
    NetworkError,
    NoDataError,
)
from axmtoken.models import TokenErrorResponse

logger = logging.getLogger(__name__)

USER_AGENT = f"axmtoken/{__version__}"
DEFAULT_TIMEOUT = 30.0

ModelT = TypeVar("ModelT", bound=BaseModel)


def _build_url(url: str) -> httpx.URL:
    try:
        target = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as exc:
        raise InvalidURLError(f"Invalid URL '{url}': {exc}") from exc
    if target.scheme not in ("https", "http") or not target.host:
        raise InvalidURLError(f"Invalid URL '{url}': expected an absolute http(s) URL")
    return target


def error_detail(response: httpx.Response) -> Optional[str]:
    """Best-effort description of a failed response body."""
    if not response.content:
        return None
    try:
        return str(TokenErrorResponse.model_validate(response.json()))
    except ValueError:
        text = response.text.strip()
        return text[:200] if text else None


class ApiClient:
    """Base class holding timeout, TLS and transport settings.

    Args:
        timeout: Per-request timeout in seconds.
        verify_ssl: Verify server certificates.
        transport: Optional httpx transport; tests pass an
            :class:`httpx.MockTransport`.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        verify_ssl: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._verify_ssl = verify_ssl
        self._transport = transport

    @property
    def timeout(self) -> float:
        return self._timeout

    def _open(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._timeout,
            verify=self._verify_ssl,
            transport=self._transport,
            headers={"User-Agent": USER_AGENT},
        )

    async def _send(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        """Send one request and map transport failures.

        Raises:
            InvalidURLError: If *url* is malformed.
            InvalidResponseError: If the server's reply cannot be parsed as HTTP.
            NetworkError: On any other transport failure.
        """
        target = _build_url(url)
        try:
            async with self._open() as client:
                response = await client.request(method, target, params=params, headers=headers)
                await response.aread()
        except (httpx.UnsupportedProtocol, httpx.InvalidURL) as exc:
            raise InvalidURLError(f"Invalid URL '{url}': {exc}") from exc
        except (httpx.RemoteProtocolError, httpx.DecodingError, httpx.TooManyRedirects) as exc:
            raise InvalidResponseError(f"Invalid response from {target.host}: {exc}") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(exc) from exc
        logger.debug("%s %s -> %s", method, target, response.status_code)
        return response

    @staticmethod
    def _raise_for_status(
        response: httpx.Response,
        error_cls: type[HttpStatusError] = HttpStatusError,
    ) -> None:
        if response.is_success:
            return
        detail = error_detail(response)
        logger.warning("HTTP %s from %s: %s", response.status_code, response.url.host, detail)
        raise error_cls(response.status_code, detail)

    @staticmethod
    def _parse(response: httpx.Response, model: type[ModelT]) -> ModelT:
        if not response.content.strip():
            raise NoDataError(f"Empty response body from {response.url.host}")
        try:
            data = response.json()
        except ValueError as exc:
            raise DecodingError(f"Response is not valid JSON: {exc}") from exc
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise DecodingError(
                f"Unexpected response shape for {model.__name__}: "
                f"{exc.error_count()} validation error(s)"
            ) from exc
