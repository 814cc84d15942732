"""Server settings loaded from the JSON config file and the environment."""

from __future__ import annotations

import json
import logging
import os
import socket
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

LOOPBACK_HOST = "127.0.0.1"
ALL_INTERFACES_HOST = "0.0.0.0"
DEFAULT_PORT = 11535
CONFIG_FILE_ENV = "APPLE_ON_DEVICE_CONFIG_FILE"
FILE_KEYS = ("host", "port")


class ServerSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="APPLE_ON_DEVICE_", extra="ignore")

    host: str = LOOPBACK_HOST
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    log_level: str = "INFO"
    generation_timeout: float | None = Field(default=300.0, gt=0)

    @property
    def lan_visible(self) -> bool:
        return self.host != LOOPBACK_HOST

    @property
    def advertised_host(self) -> str:
        if self.host == ALL_INTERFACES_HOST:
            return primary_lan_address() or LOOPBACK_HOST
        return self.host

    @property
    def server_url(self) -> str:
        return f"http://{self.advertised_host}:{self.port}"

    @property
    def openai_base_url(self) -> str:
        return f"{self.server_url}/v1"

    @property
    def chat_completions_endpoint(self) -> str:
        return f"{self.server_url}/v1/chat/completions"


def default_config_path() -> Path:
    if (from_env := os.environ.get(CONFIG_FILE_ENV)) is not None:
        return Path(from_env).expanduser()
    return Path.home() / ".config" / "apple-on-device.json"


def load_settings(config_file: Path | None = None) -> ServerSettings:
    """Build settings from the config file, letting environment variables win.

    An unreadable or invalid file is reported and ignored; the server then
    starts from environment values and defaults.
    """

    path = config_file or default_config_path()
    ensure_config_file(path)
    file_values = read_config_file(path)

    env_settings = ServerSettings()
    overrides = env_settings.model_dump(include=env_settings.model_fields_set)

    try:
        return ServerSettings(**{**file_values, **overrides})
    except ValidationError as exc:
        logger.warning("Ignoring invalid values in config file %s: %s", path, exc)
        return env_settings


def ensure_config_file(path: Path) -> None:
    if path.exists():
        return

    defaults = {"host": LOOPBACK_HOST, "port": DEFAULT_PORT}
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(defaults, indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        logger.warning("Could not create config file %s: %s", path, exc)
        return

    logger.info("Created config file with defaults at %s", path)


def read_config_file(path: Path) -> dict[str, Any]:
    logger.info("Reading config at %s", path)

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        logger.warning("Error reading config file %s, using defaults: %s", path, exc)
        return {}

    if not isinstance(raw, dict):
        logger.warning("Config file %s must contain a JSON object, using defaults", path)
        return {}

    return {key: raw[key] for key in FILE_KEYS if key in raw}


def current_ipv4_addresses() -> list[str]:
    """Local IPv4 addresses, loopback first, then sorted."""

    addresses: set[str] = set()
    try:
        infos = socket.getaddrinfo(socket.gethostname(), None, family=socket.AF_INET)
    except OSError:
        infos = []

    for *_, sockaddr in infos:
        addresses.add(sockaddr[0])

    addresses.discard(LOOPBACK_HOST)
    return [LOOPBACK_HOST, *sorted(addresses)]


def primary_lan_address() -> str | None:
    for address in current_ipv4_addresses():
        if address.startswith("127.") or address.startswith("169.254"):
            continue
        return address
    return None
