"""Secret storage for private keys, assertions and access tokens.

The main entry points are:

- :class:`CredentialVault` -- abstract keyed byte store.
- :class:`FileVault` -- owner-only files under the data directory.
- :class:`MemoryVault` -- in-process storage.
- :class:`VaultPurpose` -- the three secrets kept per configuration.
"""

from axmtoken.vault.base import CredentialVault, VaultPurpose
from axmtoken.vault.file_vault import FileVault
from axmtoken.vault.memory import MemoryVault

__all__ = [
    "CredentialVault",
    "FileVault",
    "MemoryVault",
    "VaultPurpose",
]
