"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent, non-secret state for axmtoken:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.axmtoken/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Global config** -- A single :class:`~axmtoken.models.GlobalConfig`
  JSON file storing endpoints, timeouts and thresholds.
* **Configuration records** -- One JSON file per
  :class:`~axmtoken.models.TokenConfiguration`, managed by
  :class:`ConfigurationStore`.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables and the global config file.

Secrets never pass through this module; they live in the
:mod:`axmtoken.vault`.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from axmtoken.exceptions import ConfigError, ConfigurationNotFoundError
from axmtoken.models import GlobalConfig, TokenConfiguration, is_valid_subject_id

_APP_NAME = "axmtoken"
_CONFIG_FILENAME = "config.json"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True on platforms that follow the XDG Base Directory layout (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/axmtoken/`` (default ``~/.config/axmtoken/``).
    On macOS/Windows: ``~/.axmtoken/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CONFIG_HOME", (".config",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (vault, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/axmtoken/`` (default ``~/.local/share/axmtoken/``).
    On macOS/Windows: ``~/.axmtoken/data/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_DATA_HOME", (".local", "share"))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_configurations_dir() -> Path:
    """Return ``<config_dir>/configurations/``, creating it if necessary."""
    path = get_config_dir() / "configurations"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: bytes, mode: int = 0o644) -> None:
    """Write *data* to *path* atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    Permissions are applied to the temp file before any content is written,
    so secrets written with ``mode=0o600`` are never readable by others,
    even momentarily. On any failure the temp file is cleaned up.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        )
        tmp_path = fd.name
        os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


def _write_json(path: Path, data: dict) -> None:
    atomic_write(path, (json.dumps(data, indent=2) + "\n").encode("utf-8"))


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the config directory.

    Returns:
        The deserialised :class:`~axmtoken.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    _write_json(_global_config_path(), config.model_dump(mode="json"))


def resolve_config(
    cli_token_url: Optional[str] = None,
    cli_timeout: Optional[float] = None,
) -> GlobalConfig:
    """Resolve the effective configuration.

    Precedence (high to low):
        1. CLI flags (``cli_token_url``, ``cli_timeout``)
        2. Environment variables (``AXMTOKEN_TOKEN_URL``, ``AXMTOKEN_TIMEOUT``)
        3. User config (``~/.config/axmtoken/config.json``)
        4. Defaults

    Raises:
        ConfigError: If the config file is invalid or ``AXMTOKEN_TIMEOUT``
            is not a number.
    """
    config = load_global_config()

    env_url = os.environ.get("AXMTOKEN_TOKEN_URL")
    if env_url:
        config.token_url = env_url
    env_timeout = os.environ.get("AXMTOKEN_TIMEOUT")
    if env_timeout:
        try:
            config.request.timeout = float(env_timeout)
        except ValueError as exc:
            raise ConfigError(
                f"AXMTOKEN_TIMEOUT must be a number of seconds, got '{env_timeout}'"
            ) from exc

    if cli_token_url is not None:
        config.token_url = cli_token_url
    if cli_timeout is not None:
        config.request.timeout = cli_timeout
    return config


# --- Configuration records ---


class ConfigurationStore:
    """JSON-file store for :class:`~axmtoken.models.TokenConfiguration` records.

    Each record is written to ``<directory>/<id>.json``. Records are
    immutable Pydantic models; updates replace the whole file atomically.

    Args:
        directory: Where records live. Defaults to
            :func:`get_configurations_dir`.

    Example::

        store = ConfigurationStore()
        store.save(config)
        assert store.load(config.id) == config
    """

    def __init__(self, directory: Optional[Path] = None) -> None:
        self._directory = directory or get_configurations_dir()

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, config_id: str) -> Path:
        if not is_valid_subject_id(config_id):
            raise ConfigError(f"Invalid configuration id: {config_id!r}")
        return self._directory / f"{config_id}.json"

    def list_all(self) -> list[TokenConfiguration]:
        """Return every stored configuration, ordered by creation time.

        Files that fail to parse are skipped.
        """
        configs: list[TokenConfiguration] = []
        if not self._directory.is_dir():
            return configs
        for path in self._directory.glob("*.json"):
            try:
                configs.append(self._read(path))
            except ConfigError:
                continue
        return sorted(configs, key=lambda c: c.created_at)

    def load(self, config_id: str) -> TokenConfiguration:
        """Load one configuration by identifier.

        Raises:
            ConfigurationNotFoundError: If no record has this identifier.
            ConfigError: If the record exists but is invalid.
        """
        if not is_valid_subject_id(config_id):
            raise ConfigurationNotFoundError(f"Configuration '{config_id}' not found")
        path = self._path(config_id)
        if not path.is_file():
            raise ConfigurationNotFoundError(f"Configuration '{config_id}' not found")
        return self._read(path)

    def find(self, name_or_id: str) -> TokenConfiguration:
        """Look a configuration up by identifier, then by exact display name.

        Raises:
            ConfigurationNotFoundError: If nothing matches.
            ConfigError: If the name matches more than one configuration.
        """
        if is_valid_subject_id(name_or_id) and self._path(name_or_id).is_file():
            return self.load(name_or_id)
        matches = [c for c in self.list_all() if c.name == name_or_id]
        if not matches:
            raise ConfigurationNotFoundError(f"No configuration named '{name_or_id}'")
        if len(matches) > 1:
            ids = ", ".join(c.id for c in matches)
            raise ConfigError(
                f"Several configurations are named '{name_or_id}'; use an id ({ids})"
            )
        return matches[0]

    def save(self, config: TokenConfiguration) -> None:
        """Create or replace a configuration record atomically."""
        _write_json(self._path(config.id), config.model_dump(mode="json"))

    def delete(self, config_id: str) -> None:
        """Remove a configuration record. Missing records are ignored."""
        if not is_valid_subject_id(config_id):
            return
        path = self._path(config_id)
        if path.is_file():
            path.unlink()

    def _read(self, path: Path) -> TokenConfiguration:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return TokenConfiguration.model_validate(data)
        except (json.JSONDecodeError, ValueError, OSError) as exc:
            raise ConfigError(f"Invalid configuration at {path}: {exc}") from exc
