"""Configuration — where the asset directories live and how the hub is reached.

Read from a YAML file. Keys with a value of the wrong type are ignored and the
default is kept, so a half-broken config file still yields a usable setup.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = ".hubstore.yaml"


@dataclass
class HubStoreConfig:
    """Paths and public address of a hubstore installation."""

    assets_dir: Path = field(default_factory=lambda: Path("assets"))
    protocol: str = "https"
    hostname: str = "localhost"
    domain: str = ""  # Public domain, overrides hostname in URLs
    port: int = 8080
    update_lock_file: str = ".update.lock"

    @property
    def libraries_path(self) -> Path:
        return self.assets_dir / "libraries"

    @property
    def temp_path(self) -> Path:
        return self.assets_dir / "temp"

    @property
    def exports_path(self) -> Path:
        return self.assets_dir / "exports"

    @property
    def lock_path(self) -> Path:
        path = Path(self.update_lock_file)
        return path if path.is_absolute() else self.assets_dir / path

    @property
    def public_url(self) -> str:
        return f"{self.protocol}://{self.domain or self.hostname}"

    def ensure_directories(self) -> None:
        for path in (self.libraries_path, self.temp_path, self.exports_path):
            path.mkdir(parents=True, exist_ok=True)


_STRING_KEYS = ("protocol", "hostname", "domain", "update_lock_file")


def load_config(path: str | Path | None = None) -> HubStoreConfig:
    """Load configuration from a YAML file, falling back to defaults.

    A missing file yields the defaults; a file that is not valid YAML raises
    ``yaml.YAMLError``.
    """
    config = HubStoreConfig()
    config_path = Path(path or DEFAULT_CONFIG_FILE)

    if not config_path.is_file():
        if path:
            logger.warning("Config file %s not found, using defaults", config_path)
        return config

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        logger.warning("Ignoring config file %s: top level is not a mapping", config_path)
        return config

    assets_dir = data.get("assets_dir")
    if isinstance(assets_dir, str) and assets_dir:
        config.assets_dir = _relative_to(config_path, assets_dir)

    for key in _STRING_KEYS:
        value = data.get(key)
        if isinstance(value, str) and value:
            setattr(config, key, value)
        elif value is not None:
            logger.warning("Ignoring config key %s: expected a string", key)

    port = data.get("port")
    if isinstance(port, int) and not isinstance(port, bool):
        config.port = port
    elif port is not None:
        logger.warning("Ignoring config key port: expected an integer")

    return config


def _relative_to(config_path: Path, value: str) -> Path:
    path = Path(value).expanduser()
    if path.is_absolute():
        return path
    return config_path.parent / path
