"""Tests for the credential vault backends."""

from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from axmtoken.exceptions import (
    VaultError,
    VaultInvalidFormatError,
    VaultNotFoundError,
    VaultUnexpectedStatusError,
)
from axmtoken.vault import CredentialVault, FileVault, MemoryVault, VaultPurpose
from axmtoken.vault.base import is_valid_subject_id


@pytest.fixture(params=["memory", "file"])
def any_vault(request: pytest.FixtureRequest, tmp_path: Path) -> CredentialVault:
    if request.param == "memory":
        return MemoryVault()
    return FileVault(tmp_path / "vault")


class TestContract:
    def test_get_missing(self, any_vault: CredentialVault) -> None:
        with pytest.raises(VaultNotFoundError) as exc_info:
            any_vault.get("cfg1", VaultPurpose.ACCESS_TOKEN)
        assert exc_info.value.purpose == "access-token"

    def test_put_then_get(self, any_vault: CredentialVault) -> None:
        any_vault.put("cfg1", VaultPurpose.PRIVATE_KEY, b"\x00key\xff")
        assert any_vault.get("cfg1", VaultPurpose.PRIVATE_KEY) == b"\x00key\xff"

    def test_put_is_upsert(self, any_vault: CredentialVault) -> None:
        any_vault.put_text("cfg1", VaultPurpose.ACCESS_TOKEN, "AT1")
        any_vault.put_text("cfg1", VaultPurpose.ACCESS_TOKEN, "AT2")
        assert any_vault.get_text("cfg1", VaultPurpose.ACCESS_TOKEN) == "AT2"

    def test_purposes_are_independent(self, any_vault: CredentialVault) -> None:
        any_vault.put_text("cfg1", "assertion", "A")
        any_vault.put_text("cfg1", "access-token", "T")
        any_vault.put_text("cfg2", "access-token", "U")
        assert any_vault.get_text("cfg1", "assertion") == "A"
        assert any_vault.get_text("cfg1", "access-token") == "T"
        assert any_vault.get_text("cfg2", "access-token") == "U"

    def test_delete_is_idempotent(self, any_vault: CredentialVault) -> None:
        any_vault.put("cfg1", VaultPurpose.ASSERTION, b"x")
        any_vault.delete("cfg1", VaultPurpose.ASSERTION)
        any_vault.delete("cfg1", VaultPurpose.ASSERTION)
        assert not any_vault.contains("cfg1", VaultPurpose.ASSERTION)

    def test_delete_all(self, any_vault: CredentialVault) -> None:
        for purpose in VaultPurpose:
            any_vault.put("cfg1", purpose, purpose.value.encode())
        any_vault.put("cfg2", VaultPurpose.PRIVATE_KEY, b"keep")

        any_vault.delete_all("cfg1")

        assert not any(any_vault.contains("cfg1", p) for p in VaultPurpose)
        assert any_vault.get("cfg2", VaultPurpose.PRIVATE_KEY) == b"keep"

    def test_delete_all_with_nothing_stored(self, any_vault: CredentialVault) -> None:
        any_vault.delete_all("never-stored")

    def test_get_text_rejects_binary(self, any_vault: CredentialVault) -> None:
        any_vault.put("cfg1", VaultPurpose.PRIVATE_KEY, b"\xff\xfe")
        with pytest.raises(VaultInvalidFormatError):
            any_vault.get_text("cfg1", VaultPurpose.PRIVATE_KEY)

    @pytest.mark.parametrize("subject_id", ["", "..", "../etc", "a/b", ".hidden"])
    def test_invalid_subject_id(self, any_vault: CredentialVault, subject_id: str) -> None:
        with pytest.raises(VaultInvalidFormatError):
            any_vault.put(subject_id, VaultPurpose.ASSERTION, b"x")

    def test_unknown_purpose(self, any_vault: CredentialVault) -> None:
        with pytest.raises(VaultInvalidFormatError):
            any_vault.get("cfg1", "password")


class TestSubjectIds:
    @pytest.mark.parametrize("value", ["abc", "0f3e9a", "TEAM.123", "a-b_c"])
    def test_valid(self, value: str) -> None:
        assert is_valid_subject_id(value)


class TestFileVault:
    def test_permissions(self, tmp_path: Path) -> None:
        vault = FileVault(tmp_path / "vault")
        vault.put("cfg1", VaultPurpose.PRIVATE_KEY, b"secret")

        path = vault.path_for("cfg1", VaultPurpose.PRIVATE_KEY)
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
        assert stat.S_IMODE(os.stat(path.parent).st_mode) == 0o700
        assert stat.S_IMODE(os.stat(vault.root).st_mode) == 0o700

    def test_update_keeps_permissions(self, tmp_path: Path) -> None:
        vault = FileVault(tmp_path / "vault")
        vault.put("cfg1", VaultPurpose.ACCESS_TOKEN, b"one")
        vault.put("cfg1", VaultPurpose.ACCESS_TOKEN, b"two")
        path = vault.path_for("cfg1", VaultPurpose.ACCESS_TOKEN)
        assert path.read_bytes() == b"two"
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        vault = FileVault(tmp_path / "vault")
        vault.put("cfg1", VaultPurpose.ASSERTION, b"a")
        vault.put("cfg1", VaultPurpose.ASSERTION, b"b")
        assert [p.name for p in (vault.root / "cfg1").iterdir()] == ["assertion"]

    def test_delete_all_removes_directory(self, tmp_path: Path) -> None:
        vault = FileVault(tmp_path / "vault")
        vault.put("cfg1", VaultPurpose.PRIVATE_KEY, b"k")
        vault.delete_all("cfg1")
        assert not (vault.root / "cfg1").exists()

    def test_default_root_under_data_dir(self, isolated_config: Path) -> None:
        vault = FileVault()
        assert vault.root == isolated_config / "data" / "axmtoken" / "vault"

    def test_unreadable_entry_is_unexpected_status(self, tmp_path: Path) -> None:
        vault = FileVault(tmp_path / "vault")
        vault.put("cfg1", VaultPurpose.ASSERTION, b"a")
        path = vault.path_for("cfg1", VaultPurpose.ASSERTION)
        path.unlink()
        path.mkdir()
        with pytest.raises(VaultUnexpectedStatusError) as exc_info:
            vault.get("cfg1", VaultPurpose.ASSERTION)
        assert exc_info.value.code != 0
        assert isinstance(exc_info.value, VaultError)
