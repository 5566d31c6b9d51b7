"""
Configuration management for FalkorDB MCP Server.

Handles loading, validation, and management of server configuration
from files and environment variables.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .connection import parse_falkordb_connection_string


class FalkorDBConfig(BaseModel):
    """Configuration for the FalkorDB graph backend."""

    host: str = Field(default="localhost", description="FalkorDB host")
    port: int = Field(default=6379, description="FalkorDB port")
    username: Optional[str] = Field(default=None, description="FalkorDB username")
    password: Optional[str] = Field(default=None, description="FalkorDB password")
    url: Optional[str] = Field(
        default=None, description="Connection string, overrides host/port/credentials"
    )
    default_read_only: bool = Field(default=False, description="Run queries read-only by default")
    strict_read_only: bool = Field(default=False, description="Force every query read-only")
    connect_timeout_seconds: float = Field(default=10.0, description="Connection timeout")
    query_timeout_seconds: float = Field(default=30.0, description="Query timeout")
    list_timeout_seconds: float = Field(default=10.0, description="List graphs timeout")
    ping_timeout_seconds: float = Field(default=5.0, description="Ping/health check timeout")
    max_retries: int = Field(default=5, description="Maximum connection attempts at startup")
    initial_backoff_seconds: float = Field(default=5.0, description="Initial retry backoff")
    max_backoff_seconds: float = Field(default=30.0, description="Maximum retry backoff")

    @model_validator(mode="after")
    def apply_connection_string(self) -> "FalkorDBConfig":
        """Expand ``url`` into host, port and credentials."""
        if self.url:
            parsed = parse_falkordb_connection_string(self.url)
            self.host = parsed.host
            self.port = parsed.port
            self.username = parsed.username or self.username
            self.password = parsed.password or self.password
        return self


class RedisConfig(BaseModel):
    """Configuration for the auxiliary key/value store."""

    url: str = Field(default="redis://localhost:6379", description="Redis URL")
    username: Optional[str] = Field(default=None, description="Redis username")
    password: Optional[str] = Field(default=None, description="Redis password")
    connect_timeout_seconds: float = Field(default=10.0, description="Connection timeout")
    operation_timeout_seconds: float = Field(default=10.0, description="GET/SET/DEL timeout")
    scan_timeout_seconds: float = Field(default=30.0, description="Key listing timeout")
    ping_timeout_seconds: float = Field(default=5.0, description="Ping/health check timeout")
    max_retries: int = Field(default=5, description="Maximum connection attempts at startup")
    initial_backoff_seconds: float = Field(default=5.0, description="Initial retry backoff")
    max_backoff_seconds: float = Field(default=30.0, description="Maximum retry backoff")


class ServerConfig(BaseModel):
    """Configuration for MCP server behavior."""

    log_level: str = Field(default="INFO", description="Logging level")
    transport: str = Field(default="stdio", description="Transport: stdio or http")
    host: str = Field(default="0.0.0.0", description="HTTP listen address")  # nosec B104
    port: int = Field(default=3000, description="HTTP listen port")
    endpoint: str = Field(default="/mcp", description="HTTP path of the MCP endpoint")
    api_key: Optional[str] = Field(default=None, description="Static API key for HTTP")
    client_log_level: str = Field(
        default="WARNING", description="Minimum level forwarded to MCP clients"
    )

    @field_validator("log_level", "client_log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("transport")
    @classmethod
    def validate_transport(cls, v: str) -> str:
        """Validate transport name."""
        v_lower = v.lower()
        if v_lower not in ("stdio", "http"):
            raise ValueError(f"Invalid transport: {v}. Must be 'stdio' or 'http'")
        return v_lower

    @field_validator("api_key")
    @classmethod
    def empty_api_key_is_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat an empty API key as not configured."""
        return v or None


class BearerConfig(BaseModel):
    """Configuration for bearer JWT verification."""

    jwks_uri: Optional[str] = Field(default=None, description="JWKS endpoint")
    issuer: Optional[str] = Field(default=None, description="Expected issuer")
    audience: Optional[str] = Field(default=None, description="Expected audience")
    algorithm: str = Field(default="RS256", description="Signing algorithm")


class MultiTenancyConfig(BaseModel):
    """Configuration for tenant isolation."""

    enabled: bool = Field(default=False, description="Enable multi-tenancy")
    tenant_graph_prefix: bool = Field(
        default=False, description="Prefix graph and key names with the tenant id"
    )
    auth_mode: str = Field(default="api-key", description="api-key or bearer")
    bearer: BearerConfig = Field(default_factory=BearerConfig)

    @field_validator("auth_mode")
    @classmethod
    def validate_auth_mode(cls, v: str) -> str:
        """Validate authentication mode."""
        v_lower = v.lower()
        if v_lower not in ("api-key", "bearer"):
            raise ValueError(f"Invalid auth mode: {v}. Must be 'api-key' or 'bearer'")
        return v_lower


class ToolConfig(BaseModel):
    """Configuration for individual tools."""

    enabled: bool = Field(default=True, description="Whether tool is enabled")


class ToolsConfig(BaseModel):
    """Configuration for all available tools."""

    query_graph: ToolConfig = Field(default_factory=ToolConfig)
    query_graph_readonly: ToolConfig = Field(default_factory=ToolConfig)
    list_graphs: ToolConfig = Field(default_factory=ToolConfig)
    delete_graph: ToolConfig = Field(default_factory=ToolConfig)

    # Key/value tools
    set_key: ToolConfig = Field(default_factory=ToolConfig)
    get_key: ToolConfig = Field(default_factory=ToolConfig)
    delete_key: ToolConfig = Field(default_factory=ToolConfig)
    list_keys: ToolConfig = Field(default_factory=ToolConfig)


class Config(BaseModel):
    """Main configuration object."""

    model_config = ConfigDict(extra="forbid")

    version: str = Field(default="0.1.0", description="Configuration version")
    falkordb: FalkorDBConfig = Field(default_factory=FalkorDBConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    multi_tenancy: MultiTenancyConfig = Field(default_factory=MultiTenancyConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)


# Environment variable -> (section path, key)
_ENV_OVERRIDES = {
    "FALKORDB_HOST": (("falkordb",), "host"),
    "FALKORDB_PORT": (("falkordb",), "port"),
    "FALKORDB_URL": (("falkordb",), "url"),
    "FALKORDB_USERNAME": (("falkordb",), "username"),
    "FALKORDB_PASSWORD": (("falkordb",), "password"),
    "FALKORDB_DEFAULT_READONLY": (("falkordb",), "default_read_only"),
    "FALKORDB_STRICT_READONLY": (("falkordb",), "strict_read_only"),
    "REDIS_URL": (("redis",), "url"),
    "REDIS_USERNAME": (("redis",), "username"),
    "REDIS_PASSWORD": (("redis",), "password"),
    "MCP_TRANSPORT": (("server",), "transport"),
    "MCP_API_KEY": (("server",), "api_key"),
    "MCP_HOST": (("server",), "host"),
    "PORT": (("server",), "port"),
    "MCP_PORT": (("server",), "port"),
    "FALKORDB_MCP_LOG_LEVEL": (("server",), "log_level"),
    "MULTI_TENANCY_ENABLED": (("multi_tenancy",), "enabled"),
    "TENANT_GRAPH_PREFIX": (("multi_tenancy",), "tenant_graph_prefix"),
    "MULTI_TENANCY_AUTH_MODE": (("multi_tenancy",), "auth_mode"),
    "BEARER_JWKS_URI": (("multi_tenancy", "bearer"), "jwks_uri"),
    "BEARER_ISSUER": (("multi_tenancy", "bearer"), "issuer"),
    "BEARER_AUDIENCE": (("multi_tenancy", "bearer"), "audience"),
    "BEARER_ALGORITHM": (("multi_tenancy", "bearer"), "algorithm"),
}


def _env_overrides(environ: Dict[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for env_var, (path, key) in _ENV_OVERRIDES.items():
        value = environ.get(env_var)
        if value is None or value == "":
            continue
        section = overrides
        for part in path:
            section = section.setdefault(part, {})
        section[key] = value
    return overrides


def load_config(
    config_path: Optional[Path] = None,
    environ: Optional[Dict[str, str]] = None,
) -> Config:
    """
    Load configuration from file and environment variables.

    Args:
        config_path: Path to configuration file. If None, looks for
                    FALKORDB_MCP_CONFIG_PATH environment variable.
        environ: Environment mapping, defaults to ``os.environ``

    Returns:
        Loaded and validated configuration

    Raises:
        FileNotFoundError: If config file specified but not found
        ValueError: If configuration is invalid
    """
    environ = dict(os.environ) if environ is None else environ

    # Determine config file path
    if config_path is None:
        env_path = environ.get("FALKORDB_MCP_CONFIG_PATH")
        if env_path:
            config_path = Path(env_path)

    # Load from file if specified
    config_data: Dict[str, Any] = {}
    if config_path and config_path.exists():
        with open(config_path, "r") as f:
            config_data = json.load(f)
    elif config_path:
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    # Override with environment variables
    env_overrides = _env_overrides(environ)
    if env_overrides:
        config_data = _deep_merge(config_data, env_overrides)

    return Config(**config_data)


def create_default_config(config_path: Path) -> None:
    """
    Create a default configuration file.

    Args:
        config_path: Path where to create the configuration file
    """
    default_config = Config().model_dump(exclude_none=True)
    default_config["falkordb"]["password"] = ""
    default_config["server"]["api_key"] = ""

    # Create directory if it doesn't exist
    config_path.parent.mkdir(parents=True, exist_ok=True)

    # Write configuration file
    with open(config_path, "w") as f:
        json.dump(default_config, f, indent=2)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Override dictionary

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result
