"""Construct the process-wide service objects.

The vault, HTTP clients, configuration store and lifecycle manager are
created once by :func:`create_services` and handed to commands through the
Typer context. Nothing here is a module-level singleton, so tests can build
an independent set per test with their own transport and directories.

Typical usage::

    from axmtoken.config import resolve_config
    from axmtoken.services import create_services

    services = create_services(resolve_config())
    config = await services.manager.generate(config_id)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import httpx

from axmtoken.client import DeviceClient, OAuthTokenExchangeClient
from axmtoken.config import ConfigurationStore
from axmtoken.lifecycle import TokenLifecycleManager
from axmtoken.models import GlobalConfig
from axmtoken.vault import CredentialVault, FileVault


@dataclass
class Services:
    """Everything a command needs, built from one :class:`GlobalConfig`."""

    config: GlobalConfig
    store: ConfigurationStore
    vault: CredentialVault
    token_client: OAuthTokenExchangeClient
    device_client: DeviceClient
    manager: TokenLifecycleManager


def create_services(
    config: GlobalConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    vault: Optional[CredentialVault] = None,
    store: Optional[ConfigurationStore] = None,
) -> Services:
    """Build a :class:`Services` set.

    Args:
        config: Resolved global configuration.
        transport: httpx transport shared by both HTTP clients; tests pass
            an :class:`httpx.MockTransport`.
        vault: Secret store; defaults to a :class:`FileVault` under the
            data directory.
        store: Configuration store; defaults to the config directory.
    """
    vault = vault if vault is not None else FileVault()
    store = store if store is not None else ConfigurationStore()
    token_client = OAuthTokenExchangeClient(
        token_url=config.token_url,
        timeout=config.request.timeout,
        verify_ssl=config.request.verify_ssl,
        transport=transport,
    )
    device_client = DeviceClient(
        timeout=config.request.timeout,
        verify_ssl=config.request.verify_ssl,
        transport=transport,
    )
    manager = TokenLifecycleManager(
        vault=vault,
        exchange_client=token_client,
        store=store,
        audience=config.audience,
        expiring_threshold=timedelta(minutes=config.expiring_threshold_minutes),
    )
    return Services(
        config=config,
        store=store,
        vault=vault,
        token_client=token_client,
        device_client=device_client,
        manager=manager,
    )
