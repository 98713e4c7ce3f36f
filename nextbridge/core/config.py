"""
Configuration

BridgeConfig is read from environment variables (and an optional .env file)
via pydantic-settings. PluginConfig is the `custom.next` block of the service
descriptor, read once when the plugin is constructed.
"""

from pathlib import Path
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import PluginConfigError

DEFAULT_LOG_CONFIG_PATH = str(Path(__file__).resolve().parent.parent / "config" / "logging.yml")

DEFAULT_PORT = 3000
DEFAULT_FUNCTION_NAME = "next"
DEFAULT_RUNTIME = "provided.al2023"


class BridgeConfig(BaseSettings):
    """
    Process-wide settings.
    """

    LOG_LEVEL: str = Field(default="INFO", description="Log level")
    LOG_FORMAT: Literal["plugin", "json"] = Field(
        default="plugin", description="Console log format: plugin prefix or one JSON object per line"
    )
    LOG_CONFIG_PATH: str = Field(
        default=DEFAULT_LOG_CONFIG_PATH, description="YAML logging config path"
    )
    VERIFY_SSL: bool = Field(default=False, description="Whether to verify SSL certificates")

    # ===== Local process =====
    DEV_START_PORT: int = Field(default=12000, description="First port probed for the dev server")
    READINESS_TIMEOUT: float = Field(
        default=30.0, description="Timeout in seconds waiting for the spawned process to listen"
    )
    READINESS_INTERVAL: float = Field(default=0.25, description="Readiness poll interval")
    BUILD_COMMAND: str = Field(default="next build", description="Production build command")
    ROUTING_TOKEN_ENV: str = Field(
        default="NEXT_ROUTING_TOKEN", description="Env var carrying the routing token"
    )

    # ===== Runtime API relay =====
    AWS_LAMBDA_RUNTIME_API: Optional[str] = Field(
        default=None, description="host:port of the Lambda Runtime API"
    )
    RUNTIME_API_VERSION: str = Field(default="2018-06-01", description="Runtime API version")
    RELAY_FORWARD_TIMEOUT: float = Field(
        default=30.0, description="Timeout for forwarding an invocation (seconds)"
    )
    RELAY_RETRY_DELAY: float = Field(
        default=1.0, description="Delay before re-polling after a failed fetch (seconds)"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )


class PluginConfig(BaseModel):
    """
    The `custom.next` block. Every field is optional.
    """

    model_config = ConfigDict(extra="ignore")

    port: Optional[int] = Field(default=None, description="Port of the default command template")
    function: str = Field(default=DEFAULT_FUNCTION_NAME, description="Managed function name")
    docker: bool = Field(default=False, description="Run the local process in a container")
    routing: bool = Field(default=False, description="Install websocket routes before spawning")
    hooks: Dict[str, str] = Field(default_factory=dict, description="User hook overrides")

    @property
    def effective_port(self) -> int:
        return self.port or DEFAULT_PORT

    @classmethod
    def from_custom(cls, custom: Optional[dict], plugin_name: str) -> "PluginConfig":
        raw = (custom or {}).get(plugin_name) or {}
        if not isinstance(raw, dict):
            raise PluginConfigError(f"custom.{plugin_name} must be a mapping")
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise PluginConfigError(f"Invalid custom.{plugin_name}: {e}") from e
