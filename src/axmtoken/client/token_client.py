"""OAuth2 token exchange for the JWT-bearer client-credentials grant.

Apple's endpoint takes the grant parameters in the query string of a POST
with a form content type (:rfc:`7523` section 2.2 client authentication)::

    POST https://account.apple.com/auth/oauth2/token
        ?grant_type=client_credentials
        &client_id=<client id>
        &client_assertion_type=urn:ietf:params:oauth:client-assertion-type:jwt-bearer
        &client_assertion=<signed JWT>
        &scope=business.api

and answers ``{"access_token", "token_type", "expires_in"}``. Apple does
not issue refresh tokens for this grant; refreshing means exchanging a new
assertion.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from axmtoken.client.base import DEFAULT_TIMEOUT, ApiClient
from axmtoken.models import DEFAULT_TOKEN_URL, TokenResponse

logger = logging.getLogger(__name__)

GRANT_TYPE = "client_credentials"
CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"


class OAuthTokenExchangeClient(ApiClient):
    """Exchange a signed client assertion for an access token.

    Args:
        token_url: The OAuth token endpoint.
        timeout: Per-request timeout in seconds.
        verify_ssl: Verify server certificates.
        transport: Optional httpx transport (tests).

    Example::

        client = OAuthTokenExchangeClient()
        token = await client.exchange(assertion, "BUSINESSAPI.123", "business.api")
        token.access_token
    """

    def __init__(
        self,
        token_url: str = DEFAULT_TOKEN_URL,
        timeout: float = DEFAULT_TIMEOUT,
        verify_ssl: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(timeout=timeout, verify_ssl=verify_ssl, transport=transport)
        self._token_url = token_url

    @property
    def token_url(self) -> str:
        return self._token_url

    async def exchange(self, assertion: str, client_id: str, scope: str) -> TokenResponse:
        """POST the assertion and return the parsed token response.

        Raises:
            InvalidURLError: If the token URL is malformed.
            NetworkError: On DNS, TLS, connection or timeout failures.
            InvalidResponseError: If the reply is not valid HTTP.
            HttpStatusError: On any non-2xx status.
            NoDataError: If a 2xx reply has no body.
            DecodingError: If a 2xx body is not a token response.
        """
        params = {
            "grant_type": GRANT_TYPE,
            "client_id": client_id,
            "client_assertion_type": CLIENT_ASSERTION_TYPE,
            "client_assertion": assertion,
            "scope": scope,
        }
        response = await self._send(
            "POST",
            self._token_url,
            params=params,
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Accept": "application/json",
            },
        )
        self._raise_for_status(response)
        token = self._parse(response, TokenResponse)
        logger.info(
            "Token exchange for %s succeeded (%s, expires in %ss)",
            client_id,
            token.token_type,
            token.expires_in,
        )
        return token
