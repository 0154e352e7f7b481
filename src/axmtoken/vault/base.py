"""Abstract secret vault keyed by ``(subject_id, purpose)``.

The vault holds the three secrets belonging to a token configuration:

- ``private-key`` -- the client's EC key, exactly as the user supplied it.
- ``assertion`` -- the most recently built JWT client assertion.
- ``access-token`` -- the most recently issued access token.

Values are opaque bytes. Backends implement the three primitive operations
(:meth:`CredentialVault._add`, :meth:`CredentialVault._update`,
:meth:`CredentialVault._read`, :meth:`CredentialVault._remove`) and inherit
the public contract: :meth:`~CredentialVault.put` upserts,
:meth:`~CredentialVault.delete` is idempotent, and
:meth:`~CredentialVault.delete_all` is best effort.

See Also:
    :class:`~axmtoken.vault.file_vault.FileVault` -- owner-only files on disk.
    :class:`~axmtoken.vault.memory.MemoryVault` -- process-local storage.
"""

from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod

from axmtoken.exceptions import (
    VaultDuplicateError,
    VaultError,
    VaultInvalidFormatError,
    VaultNotFoundError,
)
from axmtoken.models import is_valid_subject_id

logger = logging.getLogger(__name__)


class VaultPurpose(str, enum.Enum):
    """Which secret of a configuration an entry holds."""

    PRIVATE_KEY = "private-key"
    ASSERTION = "assertion"
    ACCESS_TOKEN = "access-token"


def _check_key(subject_id: str, purpose: VaultPurpose | str) -> VaultPurpose:
    if not is_valid_subject_id(subject_id):
        raise VaultInvalidFormatError(f"Invalid vault subject id: {subject_id!r}")
    try:
        return VaultPurpose(purpose)
    except ValueError:
        raise VaultInvalidFormatError(f"Unknown vault purpose: {purpose!r}") from None


class CredentialVault(ABC):
    """Keyed byte store for configuration secrets.

    At most one value exists per ``(subject_id, purpose)``. Writing replaces
    the previous value atomically; readers never see a partial write.
    """

    def put(self, subject_id: str, purpose: VaultPurpose | str, value: bytes) -> None:
        """Store *value*, replacing any existing entry.

        Raises:
            VaultInvalidFormatError: If the key is malformed.
            VaultError: If the backend fails.
        """
        purpose = _check_key(subject_id, purpose)
        try:
            self._add(subject_id, purpose, value)
        except VaultDuplicateError:
            self._update(subject_id, purpose, value)
        logger.debug("Stored %s for %s", purpose.value, subject_id)

    def put_text(self, subject_id: str, purpose: VaultPurpose | str, value: str) -> None:
        """Store a UTF-8 string value."""
        self.put(subject_id, purpose, value.encode("utf-8"))

    def get(self, subject_id: str, purpose: VaultPurpose | str) -> bytes:
        """Return the stored value.

        Raises:
            VaultNotFoundError: If nothing is stored under the key.
            VaultError: If the backend fails.
        """
        purpose = _check_key(subject_id, purpose)
        return self._read(subject_id, purpose)

    def get_text(self, subject_id: str, purpose: VaultPurpose | str) -> str:
        """Return a stored value decoded as UTF-8.

        Raises:
            VaultInvalidFormatError: If the stored bytes are not UTF-8.
        """
        data = self.get(subject_id, purpose)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise VaultInvalidFormatError(
                f"{VaultPurpose(purpose).value} for {subject_id} is not text"
            ) from exc

    def contains(self, subject_id: str, purpose: VaultPurpose | str) -> bool:
        """Return whether a value is stored under the key."""
        try:
            self.get(subject_id, purpose)
        except VaultNotFoundError:
            return False
        return True

    def delete(self, subject_id: str, purpose: VaultPurpose | str) -> None:
        """Remove one entry. Deleting a missing entry is not an error."""
        purpose = _check_key(subject_id, purpose)
        try:
            self._remove(subject_id, purpose)
        except VaultNotFoundError:
            pass

    def delete_all(self, subject_id: str) -> None:
        """Remove every purpose stored for *subject_id*.

        Each purpose is attempted even if an earlier one fails; failures
        are logged and swallowed so that partial cleanup still proceeds.
        """
        for purpose in VaultPurpose:
            try:
                self.delete(subject_id, purpose)
            except VaultError as exc:
                logger.warning("Could not delete %s for %s: %s", purpose.value, subject_id, exc)

    # ------------------------------------------------------------------ #
    # Backend primitives
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _add(self, subject_id: str, purpose: VaultPurpose, value: bytes) -> None:
        """Create a new entry; raise :class:`VaultDuplicateError` if it exists."""

    @abstractmethod
    def _update(self, subject_id: str, purpose: VaultPurpose, value: bytes) -> None:
        """Replace an existing entry in place."""

    @abstractmethod
    def _read(self, subject_id: str, purpose: VaultPurpose) -> bytes:
        """Return an entry; raise :class:`VaultNotFoundError` if absent."""

    @abstractmethod
    def _remove(self, subject_id: str, purpose: VaultPurpose) -> None:
        """Delete an entry; raise :class:`VaultNotFoundError` if absent."""
