"""Orchestrate token generation, refresh, status and deletion.

One :class:`TokenLifecycleManager` is built per process (see
:func:`axmtoken.services.create_services`) and shared by every command.
A generation runs these steps in order::

    vault[private-key] -> KeyMaterialNormalizer -> JWTAssertionBuilder
        -> vault[assertion] -> OAuthTokenExchangeClient.exchange
        -> vault[access-token] -> ConfigurationStore.save(expiry, last_refresh)

A failure at any step leaves the configuration record untouched. Secrets
written by earlier steps are left in place and overwritten by the next
attempt. Component errors are re-raised as one of the
:class:`~axmtoken.exceptions.TokenServiceError` subclasses.

Apple does not support a refresh grant for this flow, so :meth:`refresh`
simply signs and exchanges a new assertion.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from axmtoken.assertion import JWTAssertionBuilder
from axmtoken.client import OAuthTokenExchangeClient
from axmtoken.config import ConfigurationStore
from axmtoken.exceptions import (
    ConfigError,
    CredentialsInvalidError,
    ExchangeError,
    ExchangeFailureError,
    KeyFormatError,
    SigningError,
    SigningFailureError,
    StorageFailureError,
    VaultError,
    VaultNotFoundError,
)
from axmtoken.keys import KeyMaterialNormalizer, SigningKey
from axmtoken.lifecycle.status import (
    DEFAULT_EXPIRING_THRESHOLD,
    derive_status,
    select_expiring,
)
from axmtoken.lifecycle.tasks import GenerationResult, GenerationTask, OnComplete
from axmtoken.models import DEFAULT_AUDIENCE, TokenConfiguration, TokenStatus
from axmtoken.vault import CredentialVault, VaultPurpose

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenLifecycleManager:
    """Produce and track access tokens for stored configurations.

    Concurrent :meth:`generate` calls for the same configuration share one
    in-flight exchange and all receive its result. Cancelling one caller
    only ends that caller's wait; the exchange itself is cancelled once no
    caller is left waiting, or explicitly through :meth:`cancel` or
    :meth:`delete`.

    Args:
        vault: Where private keys, assertions and access tokens live.
        exchange_client: Exchanges assertions for access tokens.
        store: Configuration record store.
        normalizer: Key loader; a default instance is created if omitted.
        builder: Assertion builder; a default instance is created if omitted.
        audience: ``aud`` claim written into every assertion.
        expiring_threshold: Lookahead used by :meth:`status` and
            :meth:`expiring`.
        clock: Returns the current aware UTC time. Tests inject a fixed one.
    """

    def __init__(
        self,
        vault: CredentialVault,
        exchange_client: OAuthTokenExchangeClient,
        store: ConfigurationStore,
        normalizer: Optional[KeyMaterialNormalizer] = None,
        builder: Optional[JWTAssertionBuilder] = None,
        audience: str = DEFAULT_AUDIENCE,
        expiring_threshold: timedelta = DEFAULT_EXPIRING_THRESHOLD,
        clock: Optional[Clock] = None,
    ) -> None:
        self._vault = vault
        self._exchange = exchange_client
        self._store = store
        self._normalizer = normalizer or KeyMaterialNormalizer()
        self._builder = builder or JWTAssertionBuilder()
        self._audience = audience
        self._threshold = expiring_threshold
        self._clock = clock or _utcnow
        self._inflight: dict[str, asyncio.Task] = {}
        self._waiters: dict[asyncio.Task, int] = {}

    @property
    def vault(self) -> CredentialVault:
        return self._vault

    @property
    def store(self) -> ConfigurationStore:
        return self._store

    @property
    def expiring_threshold(self) -> timedelta:
        return self._threshold

    # ------------------------------------------------------------------ #
    # Status
    # ------------------------------------------------------------------ #

    def status(
        self,
        config: TokenConfiguration,
        now: Optional[datetime] = None,
        threshold: Optional[timedelta] = None,
    ) -> TokenStatus:
        """Classify *config*'s token. Vault failures yield ``unknown``."""
        try:
            has_key = self._vault.contains(config.id, VaultPurpose.PRIVATE_KEY)
            has_token = self._vault.contains(config.id, VaultPurpose.ACCESS_TOKEN)
        except VaultError as exc:
            logger.warning("Could not read vault for %s: %s", config.id, exc)
            return TokenStatus.UNKNOWN
        return derive_status(
            has_key,
            has_token,
            config.token_expiry,
            now or self._clock(),
            self._threshold if threshold is None else threshold,
        )

    def expiring(
        self,
        configs: Iterable[TokenConfiguration],
        threshold: Optional[timedelta] = None,
        now: Optional[datetime] = None,
    ) -> list[TokenConfiguration]:
        """Return the configurations that need a proactive refresh."""
        return select_expiring(
            configs,
            now or self._clock(),
            self._threshold if threshold is None else threshold,
        )

    def validate(self, config: TokenConfiguration) -> None:
        """Check that *config* has a private key stored.

        Raises:
            CredentialsInvalidError: If no private key is stored.
            StorageFailureError: If the vault cannot be read.
        """
        self._read_private_key(config)

    # ------------------------------------------------------------------ #
    # Registration and access
    # ------------------------------------------------------------------ #

    def register(self, config: TokenConfiguration, private_key: bytes) -> TokenConfiguration:
        """Persist a new configuration together with its private key.

        The key bytes are stored exactly as given, but only after they load
        as a P-256 key.

        Raises:
            CredentialsInvalidError: If *private_key* is not a usable key.
            StorageFailureError: If the vault write fails.
        """
        try:
            loaded = self._normalizer.load(private_key)
        except KeyFormatError as exc:
            raise CredentialsInvalidError(str(exc)) from exc
        logger.debug("Registering %s with a %s key", config.id, loaded.encoding)
        try:
            self._vault.put(config.id, VaultPurpose.PRIVATE_KEY, private_key)
        except VaultError as exc:
            raise StorageFailureError(f"Could not store private key: {exc}") from exc
        self._save(config)
        return config

    def access_token(self, config_id: str) -> str:
        """Return the stored access token for *config_id*.

        Raises:
            CredentialsInvalidError: If no token has been generated yet.
            StorageFailureError: If the vault cannot be read.
        """
        try:
            return self._vault.get_text(config_id, VaultPurpose.ACCESS_TOKEN)
        except VaultNotFoundError as exc:
            raise CredentialsInvalidError(
                f"No access token stored for configuration '{config_id}'"
            ) from exc
        except VaultError as exc:
            raise StorageFailureError(f"Could not read access token: {exc}") from exc

    def assertion(self, config_id: str) -> str:
        """Return the most recently built client assertion for *config_id*."""
        try:
            return self._vault.get_text(config_id, VaultPurpose.ASSERTION)
        except VaultNotFoundError as exc:
            raise CredentialsInvalidError(
                f"No assertion stored for configuration '{config_id}'"
            ) from exc
        except VaultError as exc:
            raise StorageFailureError(f"Could not read assertion: {exc}") from exc

    def signing_key(self, config: TokenConfiguration) -> SigningKey:
        """Load *config*'s private key as a signing key."""
        try:
            return self._normalizer.normalize(self._read_private_key(config))
        except KeyFormatError as exc:
            raise SigningFailureError(f"Stored private key is unusable: {exc}") from exc

    # ------------------------------------------------------------------ #
    # Generation
    # ------------------------------------------------------------------ #

    async def generate(self, config_id: str) -> TokenConfiguration:
        """Sign, exchange and store a new access token.

        Returns:
            The configuration record with updated ``token_expiry``,
            ``last_refresh`` and ``is_active``.

        Raises:
            ConfigurationNotFoundError: If *config_id* is unknown.
            CredentialsInvalidError: If no private key is stored.
            StorageFailureError: If the vault fails.
            SigningFailureError: If the key cannot be loaded or signing fails.
            ExchangeFailureError: If the token endpoint call fails.
            asyncio.CancelledError: If this caller, or the shared generation,
                was cancelled. Other callers keep waiting on the shared one.
        """
        task = self._inflight.get(config_id)
        if task is None:
            task = asyncio.ensure_future(self._generate(config_id))
            self._inflight[config_id] = task
            task.add_done_callback(functools.partial(self._forget, config_id))
        else:
            logger.debug("Joining in-flight generation for %s", config_id)

        self._waiters[task] = self._waiters.get(task, 0) + 1
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if self._waiters[task] == 1 and not task.done():
                logger.debug("Last waiter left, cancelling generation for %s", config_id)
                task.cancel()
            raise
        finally:
            self._waiters[task] -= 1
            if not self._waiters[task]:
                del self._waiters[task]

    async def refresh(self, config_id: str) -> TokenConfiguration:
        """Replace the access token. Equivalent to :meth:`generate`."""
        return await self.generate(config_id)

    def start_generate(
        self, config_id: str, on_complete: Optional[OnComplete] = None
    ) -> GenerationTask:
        """Schedule :meth:`generate` and return a handle to it.

        Must be called from a running event loop.
        """
        future = asyncio.ensure_future(self.generate(config_id))
        return GenerationTask(config_id, future, on_complete)

    async def refresh_expiring(
        self,
        threshold: Optional[timedelta] = None,
        on_complete: Optional[OnComplete] = None,
    ) -> list[GenerationResult]:
        """Refresh every configuration whose token is about to expire."""
        due = self.expiring(self._store.list_all(), threshold=threshold)
        tasks = [self.start_generate(config.id, on_complete) for config in due]
        return [await task.wait() for task in tasks]

    def cancel(self, config_id: str) -> bool:
        """Cancel the in-flight generation for *config_id* for every caller.

        Returns False if nothing was running.
        """
        task = self._inflight.pop(config_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def _forget(self, config_id: str, task: asyncio.Task) -> None:
        if self._inflight.get(config_id) is task:
            del self._inflight[config_id]

    async def _generate(self, config_id: str) -> TokenConfiguration:
        config = self._store.load(config_id)
        key_bytes = self._read_private_key(config)
        try:
            key = self._normalizer.normalize(key_bytes)
            assertion = self._builder.build(
                config.client_id,
                config.key_id,
                key,
                audience=self._audience,
                now=self._clock(),
            )
        except (KeyFormatError, SigningError) as exc:
            raise SigningFailureError(
                f"Could not sign client assertion for '{config.name}': {exc}"
            ) from exc
        self._write(config.id, VaultPurpose.ASSERTION, assertion)

        try:
            token = await self._exchange.exchange(
                assertion, config.client_id, config.service.scope
            )
        except ExchangeError as exc:
            raise ExchangeFailureError(
                f"Token exchange failed for '{config.name}': {exc}", exc
            ) from exc
        self._write(config.id, VaultPurpose.ACCESS_TOKEN, token.access_token)

        issued = self._clock()
        updated = config.model_copy(
            update={
                "token_expiry": issued + timedelta(seconds=token.expires_in),
                "last_refresh": issued,
                "is_active": True,
            }
        )
        self._save(updated)
        logger.info("Generated access token for %s, expires %s", config.name, updated.token_expiry)
        return updated

    # ------------------------------------------------------------------ #
    # Deletion
    # ------------------------------------------------------------------ #

    def delete(self, config_id: str) -> None:
        """Remove every secret for *config_id* and its configuration record.

        Vault removal is best effort. An in-flight generation is cancelled.
        """
        self.cancel(config_id)
        self._vault.delete_all(config_id)
        self._store.delete(config_id)
        logger.info("Deleted configuration %s", config_id)

    # ------------------------------------------------------------------ #
    # Vault helpers
    # ------------------------------------------------------------------ #

    def _read_private_key(self, config: TokenConfiguration) -> bytes:
        try:
            return self._vault.get(config.id, VaultPurpose.PRIVATE_KEY)
        except VaultNotFoundError as exc:
            raise CredentialsInvalidError(
                f"No private key stored for '{config.name}'"
            ) from exc
        except VaultError as exc:
            raise StorageFailureError(f"Could not read private key: {exc}") from exc

    def _write(self, config_id: str, purpose: VaultPurpose, value: str) -> None:
        try:
            self._vault.put_text(config_id, purpose, value)
        except VaultError as exc:
            raise StorageFailureError(f"Could not store {purpose.value}: {exc}") from exc

    def _save(self, config: TokenConfiguration) -> None:
        try:
            self._store.save(config)
        except (OSError, ConfigError) as exc:
            raise StorageFailureError(
                f"Could not save configuration '{config.name}': {exc}"
            ) from exc
