"""Configuration management for FalkorDB MCP Server."""

from .connection import ConnectionOptions, parse_falkordb_connection_string
from .settings import Config, create_default_config, load_config

__all__ = [
    "Config",
    "ConnectionOptions",
    "create_default_config",
    "load_config",
    "parse_falkordb_connection_string",
]
