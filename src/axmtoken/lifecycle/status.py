"""Token status derivation.

Status is computed, never stored: it depends on which secrets the vault
holds, the expiry recorded on the configuration, the current time and a
lookahead threshold.

=====================================================  ==================
Condition                                              Status
=====================================================  ==================
no private key, or no access token                     ``not_configured``
access token present, no expiry recorded               ``expired``
expiry at or before now                                ``expired``
now < expiry <= now + threshold                        ``expiring``
expiry after now + threshold                           ``active``
=====================================================  ==================
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from axmtoken.models import TokenConfiguration, TokenStatus

DEFAULT_EXPIRING_THRESHOLD = timedelta(minutes=15)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_expiring(
    expiry: Optional[datetime],
    now: datetime,
    threshold: timedelta = DEFAULT_EXPIRING_THRESHOLD,
) -> bool:
    """Return whether *expiry* is still in the future but within *threshold*."""
    if expiry is None:
        return False
    expiry = as_utc(expiry)
    now = as_utc(now)
    return now < expiry <= now + threshold


def derive_status(
    has_private_key: bool,
    has_access_token: bool,
    expiry: Optional[datetime],
    now: datetime,
    threshold: timedelta = DEFAULT_EXPIRING_THRESHOLD,
) -> TokenStatus:
    if not has_private_key or not has_access_token:
        return TokenStatus.NOT_CONFIGURED
    if expiry is None:
        return TokenStatus.EXPIRED
    if as_utc(expiry) <= as_utc(now):
        return TokenStatus.EXPIRED
    if is_expiring(expiry, now, threshold):
        return TokenStatus.EXPIRING
    return TokenStatus.ACTIVE


def select_expiring(
    configs: Iterable[TokenConfiguration],
    now: datetime,
    threshold: timedelta = DEFAULT_EXPIRING_THRESHOLD,
) -> list[TokenConfiguration]:
    """Return the active configurations whose token expires within *threshold*."""
    return [
        config
        for config in configs
        if config.is_active and is_expiring(config.token_expiry, now, threshold)
    ]
