"""
Configuration management for OPC-UA Sentinel.

Service settings come from environment variables (and an optional .env file)
via Pydantic Settings. The ordered list of monitored nodes comes from a YAML
file, which may also override the server name and URL.
"""

from pathlib import Path
from typing import List, Optional, Union

import yaml
from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..monitor.models import NodeDescriptor
from ..monitor.registry import Clock, NodeRegistry, utc_now
from .exceptions import ConfigurationError

DESCRIPTION = "Monitor nodes on an OPC-UA Server"

SAMPLE_CONFIG = """\
## OPC-UA Connection Configuration
##
## Connects to OPC-UA devices through an HTTP gateway.
## Currently supports anonymous mode only.
##
## Name given to the OPC-UA server for logging and tags
server_name: Device
## URL including endpoint
url: opc.tcp://localhost:4840/endpoint

## Nodes to monitor: tag (name), node_id, and the absolute deadband
## (set to 0.0 to record every read).
## forced_interval reports the node at least this often regardless of
## change: "10s", "30m", "24h", etc. Leave it out to rely on the deadband alone.
nodes:
  - tag: HeatExchanger1 Temp
    node_id: "ns=2;s=TE-800-07/AI1/PV.CV"
    abs_deadband: 0.10
    forced_interval: 30s
  - tag: HeatExchanger1 Pressure
    node_id: "ns=2;i=1234"
    abs_deadband: 0.0
    forced_interval: 1h
"""


class ServerConfig(BaseSettings):
    """OPC-UA server and gateway configuration."""

    server_name: str = Field(
        default="Device",
        description="Name given to the server for logging and tags"
    )
    url: str = Field(
        default="opc.tcp://localhost:4840/endpoint",
        description="OPC-UA endpoint URL"
    )
    gateway_url: str = Field(
        default="http://localhost:8080",
        description="HTTP gateway that owns the OPC-UA connection"
    )
    read_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for one batched read (seconds)"
    )
    max_age_ms: int = Field(
        default=2000,
        ge=0,
        description="Maximum age of values the server may return from cache (ms)"
    )
    security_mode: str = Field(
        default="None",
        description="Message security mode (only None is supported)"
    )

    @field_validator("security_mode")
    @classmethod
    def validate_security_mode(cls, v: str) -> str:
        if v != "None":
            raise ValueError("Only security mode 'None' is supported")
        return v

    model_config = SettingsConfigDict(env_prefix="OPCUA_")


class PollConfig(BaseSettings):
    """Poll loop configuration."""

    interval_seconds: float = Field(
        default=10.0,
        ge=0.1,
        description="Time between poll cycles (seconds)"
    )
    nodes_file: str = Field(
        default="/etc/opcua-sentinel/nodes.yaml",
        description="YAML file with the nodes to monitor"
    )

    model_config = SettingsConfigDict(env_prefix="POLL_")


class LokiConfig(BaseSettings):
    """Loki sink configuration."""

    enabled: bool = Field(
        default=True,
        description="Push accepted observations to Loki"
    )
    url: str = Field(
        default="http://localhost:3100",
        description="Loki HTTP API URL"
    )
    timeout: float = Field(
        default=10.0,
        gt=0,
        description="Push timeout in seconds"
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        description="Number of push attempts before giving up"
    )
    batch_size: int = Field(
        default=100,
        ge=1,
        description="Number of buffered observations that triggers a push"
    )

    model_config = SettingsConfigDict(env_prefix="LOKI_")


class AppConfig(BaseSettings):
    """Main application configuration."""

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # Nested configurations
    server: ServerConfig = Field(default_factory=ServerConfig)
    poll: PollConfig = Field(default_factory=PollConfig)
    loki: LokiConfig = Field(default_factory=LokiConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class NodesFile(BaseModel):
    """Contents of a nodes YAML file."""

    server_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("server_name", "ServerName")
    )
    url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("url", "URL")
    )
    nodes: List[NodeDescriptor] = Field(
        default_factory=list, validation_alias=AliasChoices("nodes", "Nodes")
    )


# Global config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get the global configuration instance.

    Lazily loads configuration on first access.

    Raises:
        ConfigurationError: If an environment value is invalid
    """
    global _config
    if _config is None:
        try:
            _config = AppConfig(
                server=ServerConfig(),
                poll=PollConfig(),
                loki=LokiConfig(),
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
    return _config


def reload_config() -> AppConfig:
    """
    Reload configuration from environment variables.

    Useful for testing or when environment changes.
    """
    global _config
    _config = None
    return get_config()


def load_nodes_file(path: Union[str, Path]) -> NodesFile:
    """
    Load monitored nodes from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Parsed file, with nodes in file order

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    filepath = Path(path)

    try:
        with open(filepath, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read nodes file {filepath}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {filepath}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{filepath} must contain a mapping with a 'nodes' list")

    try:
        nodes_file = NodesFile.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid node configuration in {filepath}: {e}") from e

    if not nodes_file.nodes:
        raise ConfigurationError(f"No nodes configured in {filepath}")

    return nodes_file


def load_node_descriptors(path: Union[str, Path]) -> List[NodeDescriptor]:
    """Load only the node descriptors from a YAML file."""
    return load_nodes_file(path).nodes


def build_registry(
    descriptors: List[NodeDescriptor], clock: Clock = utc_now
) -> NodeRegistry:
    """Build a node registry, preserving descriptor order."""
    return NodeRegistry.from_descriptors(descriptors, clock=clock)
