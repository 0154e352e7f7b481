"""HTTP clients for Apple's OAuth endpoint and organisation API.

- :class:`OAuthTokenExchangeClient` -- assertion to access token.
- :class:`DeviceClient` -- paginated ``orgDevices`` listing.
"""

from axmtoken.client.base import ApiClient
from axmtoken.client.device_client import DeviceClient
from axmtoken.client.token_client import CLIENT_ASSERTION_TYPE, OAuthTokenExchangeClient

__all__ = [
    "ApiClient",
    "CLIENT_ASSERTION_TYPE",
    "DeviceClient",
    "OAuthTokenExchangeClient",
]
