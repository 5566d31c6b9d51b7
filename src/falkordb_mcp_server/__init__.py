"""
FalkorDB MCP Server

A Model Context Protocol server that exposes FalkorDB graph queries and an
auxiliary Redis key/value store to MCP clients over stdio or HTTP.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .config.settings import Config, load_config
from .server import FalkorDBMCPServer

__all__ = [
    "FalkorDBMCPServer",
    "Config",
    "load_config",
    "__version__",
    "__license__",
]
