"""Process-local vault backend."""

from __future__ import annotations

import threading

from axmtoken.exceptions import VaultDuplicateError, VaultNotFoundError
from axmtoken.vault.base import CredentialVault, VaultPurpose


class MemoryVault(CredentialVault):
    """Keep secrets in a dict guarded by a lock. Nothing touches disk.

    Useful for tests and for embedding the lifecycle manager in a process
    that obtains the private key from elsewhere.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[str, VaultPurpose], bytes] = {}
        self._lock = threading.Lock()

    def _add(self, subject_id: str, purpose: VaultPurpose, value: bytes) -> None:
        with self._lock:
            if (subject_id, purpose) in self._entries:
                raise VaultDuplicateError(f"{purpose.value} already stored for {subject_id}")
            self._entries[(subject_id, purpose)] = bytes(value)

    def _update(self, subject_id: str, purpose: VaultPurpose, value: bytes) -> None:
        with self._lock:
            self._entries[(subject_id, purpose)] = bytes(value)

    def _read(self, subject_id: str, purpose: VaultPurpose) -> bytes:
        with self._lock:
            try:
                return self._entries[(subject_id, purpose)]
            except KeyError:
                raise VaultNotFoundError(subject_id, purpose.value) from None

    def _remove(self, subject_id: str, purpose: VaultPurpose) -> None:
        with self._lock:
            if self._entries.pop((subject_id, purpose), None) is None:
                raise VaultNotFoundError(subject_id, purpose.value)
