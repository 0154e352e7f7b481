"""CLI tests driving the Typer app end to end against a stub token endpoint."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from axmtoken.app import app
from axmtoken.exit_codes import EXIT_AUTH_FAILURE, EXIT_INVALID_USAGE, EXIT_NOT_FOUND


@pytest.fixture()
def key_file(isolated_config: Path, sec1_pem: bytes) -> Path:
    path = isolated_config / "AuthKey.pem"
    path.write_bytes(sec1_pem)
    return path


@pytest.fixture()
def invoke(cli_runner, transport: httpx.MockTransport, isolated_config: Path):
    def _invoke(*args: str, input: str | None = None):
        return cli_runner.invoke(app, list(args), obj={"transport": transport}, input=input)

    return _invoke


def _add(invoke, key_file: Path, name: str = "Acme", *extra: str):
    return invoke(
        "add", name,
        "--client-id", "TEAM.123",
        "--key-id", "KID1",
        "--key-file", str(key_file),
        *extra,
    )


class TestVersion:
    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "axmtoken 0.1.0" in result.output


class TestAdd:
    def test_add_generates_token(self, invoke, key_file: Path, endpoint) -> None:
        result = _add(invoke, key_file)
        assert result.exit_code == 0, result.output
        assert 'Configuration "Acme" saved' in result.output
        assert 'Token generated for "Acme"' in result.output
        assert len(endpoint.token_requests) == 1

        token = invoke("token", "Acme")
        assert token.exit_code == 0
        assert token.output.strip() == "AT1"

    def test_add_without_generate(self, invoke, key_file: Path, endpoint) -> None:
        result = _add(invoke, key_file, "Acme", "--no-generate")
        assert result.exit_code == 0
        assert endpoint.token_requests == []

        listed = invoke("--plain", "list")
        assert "Acme" in listed.output
        assert "Not configured" in listed.output

    def test_add_rejects_bad_key(self, invoke, isolated_config: Path) -> None:
        bad = isolated_config / "bad.pem"
        bad.write_bytes(b"-----BEGIN CERTIFICATE-----\nAAAA\n-----END CERTIFICATE-----\n")
        result = _add(invoke, bad)
        assert result.exit_code == EXIT_AUTH_FAILURE
        assert "CERTIFICATE" in result.output
        assert invoke("list").output.count("Acme") == 0

    def test_add_missing_key_file(self, invoke, isolated_config: Path) -> None:
        result = _add(invoke, isolated_config / "missing.pem")
        assert result.exit_code == EXIT_INVALID_USAGE

    def test_add_key_from_stdin(self, invoke, sec1_pem: bytes, endpoint) -> None:
        result = invoke(
            "add", "Piped", "--client-id", "C", "--key-id", "K", "--key-file", "-",
            input=sec1_pem.decode(),
        )
        assert result.exit_code == 0, result.output
        assert len(endpoint.token_requests) == 1

    def test_add_generation_failure_sets_exit_code(self, invoke, key_file: Path, endpoint) -> None:
        endpoint.status_code = 401
        endpoint.token_body = {"error": "invalid_client"}
        result = _add(invoke, key_file)
        assert result.exit_code == EXIT_AUTH_FAILURE
        assert "Authentication failed" in result.output


class TestTokens:
    def test_generate_unknown(self, invoke) -> None:
        result = invoke("generate", "nope")
        assert result.exit_code == EXIT_NOT_FOUND
        assert "axmtoken list" in result.output

    def test_refresh(self, invoke, key_file: Path, endpoint) -> None:
        _add(invoke, key_file)
        endpoint.token_body = {"access_token": "AT2", "token_type": "Bearer", "expires_in": 3600}
        result = invoke("refresh", "Acme")
        assert result.exit_code == 0
        assert invoke("token", "Acme").output.strip() == "AT2"

    def test_token_masked_and_assertion(self, invoke, key_file: Path, endpoint) -> None:
        endpoint.token_body = {
            "access_token": "ABCDEF0123456789UVWXYZ",
            "token_type": "Bearer",
            "expires_in": 3600,
        }
        _add(invoke, key_file)
        assert invoke("token", "Acme", "--masked").output.strip() == "ABCDEF...UVWXYZ"
        assertion = invoke("token", "Acme", "--assertion").output.strip()
        assert assertion.count(".") == 2

    def test_json_list(self, invoke, key_file: Path) -> None:
        _add(invoke, key_file)
        result = invoke("--json", "list")
        rows = json.loads(result.output)
        assert rows[0]["Name"] == "Acme"
        assert rows[0]["Status"] == "Active"

    def test_show(self, invoke, key_file: Path) -> None:
        _add(invoke, key_file)
        result = invoke("--json", "show", "Acme")
        data = json.loads(result.output)
        assert data["status"] == "active"
        assert data["client_id"] == "TEAM.123"
        assert data["access_token"] == "AT1"

    def test_decode_stored_assertion(self, invoke, key_file: Path) -> None:
        _add(invoke, key_file)
        result = invoke("--json", "decode", "Acme")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["header"]["kid"] == "KID1"
        assert data["payload"]["iss"] == "TEAM.123"
        assert data["signature_valid"] is True

    def test_decode_literal_jwt(self, invoke, key_file: Path) -> None:
        _add(invoke, key_file)
        assertion = invoke("token", "Acme", "--assertion").output.strip()
        result = invoke("--plain", "decode", assertion)
        assert result.exit_code == 0
        assert '"kid": "KID1"' in result.output

    def test_decode_dotted_configuration_name(self, invoke, key_file: Path) -> None:
        _add(invoke, key_file, "Acme.Inc.ABM")
        result = invoke("--json", "decode", "Acme.Inc.ABM")
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["signature_valid"] is True

    def test_decode_garbage(self, invoke) -> None:
        result = invoke("decode", "a.b.c")
        assert result.exit_code == EXIT_INVALID_USAGE

    def test_delete(self, invoke, key_file: Path, isolated_config: Path) -> None:
        _add(invoke, key_file)
        result = invoke("delete", "Acme", "--force")
        assert result.exit_code == 0
        assert invoke("token", "Acme").exit_code == EXIT_NOT_FOUND
        vault_root = isolated_config / "data" / "axmtoken" / "vault"
        assert list(vault_root.iterdir()) == []

    def test_delete_confirmation_declined(self, invoke, key_file: Path) -> None:
        _add(invoke, key_file)
        result = invoke("delete", "Acme", input="n\n")
        assert "Aborted" in result.output
        assert invoke("token", "Acme").exit_code == 0

    def test_refresh_expiring_nothing_due(self, invoke, key_file: Path, endpoint) -> None:
        _add(invoke, key_file)
        result = invoke("refresh-expiring")
        assert result.exit_code == 0
        assert "No tokens are about to expire" in result.output
        assert len(endpoint.token_requests) == 1

    def test_refresh_expiring_due(self, invoke, key_file: Path, endpoint) -> None:
        endpoint.token_body = {"access_token": "AT1", "token_type": "Bearer", "expires_in": 300}
        _add(invoke, key_file)
        result = invoke("refresh-expiring")
        assert result.exit_code == 0, result.output
        assert len(endpoint.token_requests) == 2


class TestDevices:
    def test_lists_devices(self, invoke, key_file: Path, endpoint) -> None:
        _add(invoke, key_file)
        endpoint.device_pages = [
            {
                "data": [
                    {
                        "type": "orgDevices",
                        "id": "C02X",
                        "attributes": {"serialNumber": "C02X", "deviceModel": "MacBook Air"},
                    }
                ],
                "meta": {"cursor": "abc", "has_more": True},
            }
        ]
        result = invoke("--plain", "devices", "Acme", "--limit", "1")
        assert result.exit_code == 0, result.output
        assert "C02X\tMacBook Air" in result.output
        assert "--cursor abc" in result.output
        device_request = endpoint.requests[-1]
        assert device_request.headers["authorization"] == "Bearer AT1"
        assert device_request.url.params["limit"] == "1"

    def test_rejected_token(self, invoke, key_file: Path, endpoint) -> None:
        _add(invoke, key_file)
        endpoint.device_status = 401
        result = invoke("devices", "Acme")
        assert result.exit_code == EXIT_AUTH_FAILURE
        assert "axmtoken refresh" in result.output

    def test_no_token_yet(self, invoke, key_file: Path) -> None:
        _add(invoke, key_file, "Acme", "--no-generate")
        result = invoke("devices", "Acme")
        assert result.exit_code == EXIT_AUTH_FAILURE


class TestConfigCommands:
    def test_set_and_show(self, invoke) -> None:
        assert invoke("config", "set", "request.timeout", "12").exit_code == 0
        assert invoke("config", "set", "expiring_threshold_minutes", "30").exit_code == 0
        data = json.loads(invoke("--json", "--quiet", "config", "show").output)
        assert data["request"]["timeout"] == 12.0
        assert data["expiring_threshold_minutes"] == 30

    def test_unknown_key(self, invoke) -> None:
        result = invoke("config", "set", "nope", "1")
        assert result.exit_code == 2

    def test_bad_int(self, invoke) -> None:
        result = invoke("config", "set", "device_page_limit", "many")
        assert result.exit_code == 2
