"""Configuration management for craftgate"""

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from craftgate.errors import ConfigurationError


def get_config_path() -> Path:
    """Return the default config.yaml location used by the daemon and CLI."""
    return Path.home() / ".craftgate" / "config.yaml"


class Settings(BaseSettings):
    """Gateway settings with environment variable support

    Immutable once built: one GatewayServer keeps the same port, secret and
    origin list for its whole life.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    # Listener
    host: str = Field(default="0.0.0.0", alias="CRAFTGATE_HOST")
    port: int = Field(default=8080, ge=0, le=65535, alias="CRAFTGATE_PORT")

    # Admission
    jwt_secret: str = Field(..., min_length=1, alias="JWT_SECRET")
    allowed_origins: List[str] = Field(default_factory=list, alias="ALLOWED_ORIGINS")

    # Commands
    command_timeout: float = Field(default=5.0, gt=0, alias="COMMAND_TIMEOUT")

    # Daemon
    ipc_socket_path: str = Field(
        default="~/.craftgate/daemon.sock", alias="CRAFTGATE_IPC_SOCKET"
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")
    log_file: Optional[str] = Field(default=None, alias="LOG_FILE")

    @classmethod
    def from_file(cls, path: str) -> "Settings":
        """Load settings from YAML file"""
        try:
            with open(path, "r") as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Could not read config file {path}: {e}") from e

        if not isinstance(config, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")

        try:
            return cls(**config)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e

    def to_file(self, path: str):
        """Save settings to YAML file. Creates parent directory if needed."""
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        with open(p, "w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False)
