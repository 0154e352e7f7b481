"""Vault backend storing each secret as an owner-only file.

Layout::

    <root>/                      0o700
        <subject_id>/            0o700
            private-key          0o600
            assertion            0o600
            access-token         0o600

The default root is ``<data_dir>/vault`` (``~/.local/share/axmtoken/vault``
on Linux). New entries are written to a temporary file, fsynced, then
hard-linked into place so that an existing entry is detected rather than
clobbered; updates go through an atomic ``os.replace``. Either way a reader
only ever sees a complete value.
"""

from __future__ import annotations

import errno
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from axmtoken.config import atomic_write, get_data_dir
from axmtoken.exceptions import (
    VaultDuplicateError,
    VaultNotFoundError,
    VaultUnexpectedStatusError,
)
from axmtoken.vault.base import CredentialVault, VaultPurpose, is_valid_subject_id

logger = logging.getLogger(__name__)

_DIR_MODE = 0o700
_FILE_MODE = 0o600


def _unexpected(exc: OSError) -> VaultUnexpectedStatusError:
    return VaultUnexpectedStatusError(
        exc.errno if exc.errno is not None else -1,
        f"Vault I/O failed: {exc}",
    )


class FileVault(CredentialVault):
    """Secrets on the local filesystem, readable only by the owning user.

    Args:
        root: Vault directory. Defaults to ``get_data_dir() / "vault"``.
    """

    def __init__(self, root: Optional[Path] = None) -> None:
        self._root = root or get_data_dir() / "vault"

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, subject_id: str, purpose: VaultPurpose) -> Path:
        """Filesystem location of one entry."""
        return self._root / subject_id / purpose.value

    def _ensure_dir(self, subject_id: str) -> Path:
        directory = self._root / subject_id
        for path in (self._root, directory):
            path.mkdir(mode=_DIR_MODE, parents=True, exist_ok=True)
            os.chmod(path, _DIR_MODE)
        return directory

    def _add(self, subject_id: str, purpose: VaultPurpose, value: bytes) -> None:
        target = self.path_for(subject_id, purpose)
        tmp_path: Optional[str] = None
        try:
            directory = self._ensure_dir(subject_id)
            with tempfile.NamedTemporaryFile(
                mode="wb",
                dir=directory,
                prefix=f".{purpose.value}.",
                suffix=".tmp",
                delete=False,
            ) as fh:
                tmp_path = fh.name
                os.chmod(tmp_path, _FILE_MODE)
                fh.write(value)
                fh.flush()
                os.fsync(fh.fileno())
            os.link(tmp_path, target)
        except FileExistsError:
            raise VaultDuplicateError(f"{purpose.value} already stored for {subject_id}") from None
        except OSError as exc:
            raise _unexpected(exc) from exc
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass

    def _update(self, subject_id: str, purpose: VaultPurpose, value: bytes) -> None:
        try:
            self._ensure_dir(subject_id)
            atomic_write(self.path_for(subject_id, purpose), value, mode=_FILE_MODE)
        except OSError as exc:
            raise _unexpected(exc) from exc

    def _read(self, subject_id: str, purpose: VaultPurpose) -> bytes:
        try:
            return self.path_for(subject_id, purpose).read_bytes()
        except FileNotFoundError:
            raise VaultNotFoundError(subject_id, purpose.value) from None
        except OSError as exc:
            raise _unexpected(exc) from exc

    def _remove(self, subject_id: str, purpose: VaultPurpose) -> None:
        try:
            self.path_for(subject_id, purpose).unlink()
        except FileNotFoundError:
            raise VaultNotFoundError(subject_id, purpose.value) from None
        except OSError as exc:
            raise _unexpected(exc) from exc

    def delete_all(self, subject_id: str) -> None:
        """Remove every purpose, then the subject's directory if it is empty."""
        super().delete_all(subject_id)
        if not is_valid_subject_id(subject_id):
            return
        try:
            (self._root / subject_id).rmdir()
        except OSError as exc:
            if exc.errno not in (errno.ENOENT, errno.ENOTEMPTY, errno.EEXIST):
                logger.warning("Could not remove vault directory for %s: %s", subject_id, exc)
