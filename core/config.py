"""Configuration models and loading."""

import json
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from core.exceptions import ConfigurationError

CONFIG_DIR = Path.home() / ".config" / "path-proxy"
CONFIG_FILE = CONFIG_DIR / "config.json"


class ProxySettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8080
    # Trusted for X-Forwarded-Proto when a TLS terminator sits in front
    forwarded_allow_ips: str = "127.0.0.1"


class UpstreamSettings(BaseModel):
    timeout: float = 30.0
    connect_timeout: float = 10.0
    max_connections: int = 100
    max_keepalive_connections: int = 20
    verify_tls: bool = True


class LimitsSettings(BaseModel):
    keep_alive_timeout: int = 5


class EventSettings(BaseModel):
    client_ip_header: str = "cf-connecting-ip"


class Config(BaseModel):
    proxy: ProxySettings = Field(default_factory=ProxySettings)
    upstream: UpstreamSettings = Field(default_factory=UpstreamSettings)
    limits: LimitsSettings = Field(default_factory=LimitsSettings)
    events: EventSettings = Field(default_factory=EventSettings)


def load_config(config_file: Path = CONFIG_FILE) -> Config:
    """Load configuration from JSON file, creating default if needed."""
    if not config_file.exists():
        config_file.parent.mkdir(parents=True, exist_ok=True)
        default = Config()
        config_file.write_text(default.model_dump_json(indent=2))
        return default

    try:
        raw = config_file.read_text()
    except OSError as e:
        raise ConfigurationError(f"Cannot read {config_file}: {e}") from e

    try:
        return Config.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError):
        # Backup corrupted config and recreate default
        backup = config_file.with_suffix(".json.bak")
        config_file.rename(backup)
        default = Config()
        config_file.write_text(default.model_dump_json(indent=2))
        return default
