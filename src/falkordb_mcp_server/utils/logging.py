"""
Logging utilities for FalkorDB MCP Server.

Structured logging is configured once at startup. The sink depends on the
transport: in stdio mode stdout carries protocol frames only, so every log
line goes to stderr tagged with its level; in http mode logs are JSON lines
on stdout. Independently of the sink, a ``ClientLogForwarder`` can relay
events to connected MCP clients as ``notifications/message``.
"""

import contextvars
import logging
import sys
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, NamedTuple, Optional

import structlog

from ..errors import sanitize_message

# Events from the transport layer would otherwise be forwarded back into it
EXCLUDED_LOGGER_PREFIX = "falkordb_mcp_server.protocol"

# MCP (syslog) level names to stdlib numeric levels
MCP_LOG_LEVELS: Dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "notice": logging.INFO + 5,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "alert": logging.CRITICAL + 5,
    "emergency": logging.CRITICAL + 10,
}

_STDLIB_TO_MCP = {
    "debug": "debug",
    "info": "info",
    "warning": "warning",
    "warn": "warning",
    "error": "error",
    "exception": "error",
    "critical": "critical",
    "fatal": "critical",
}

_forwarding: contextvars.ContextVar[bool] = contextvars.ContextVar(
    "falkordb_mcp_log_forwarding", default=False
)

# Sink id of the session whose request is being handled
_log_origin: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "falkordb_mcp_log_origin", default=None
)

LogSink = Callable[[Dict[str, Any]], None]

# Tracebacks stay server-side
_UNFORWARDED_KEYS = frozenset(
    {"event", "logger", "level", "timestamp", "exc_info", "exception", "stack", "stack_info"}
)


class _SinkEntry(NamedTuple):
    sink: LogSink
    min_level: int
    receive_untagged: bool


@contextmanager
def log_origin(sink_id: Optional[str]) -> Iterator[None]:
    """Attribute log events emitted inside the block to one sink."""
    token = _log_origin.set(sink_id)
    try:
        yield
    finally:
        _log_origin.reset(token)


def _scrub(value: Any) -> Any:
    """JSON-safe copy of a log value with every string sanitized."""
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, dict):
        return {str(k): _scrub(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_scrub(v) for v in value]
    text = str(value)
    return sanitize_message(text) if text else text


class ClientLogForwarder:
    """
    structlog processor relaying log events to MCP clients.

    Each registered sink is a non-blocking callable that receives a complete
    ``notifications/message`` JSON-RPC notification. A sink failing never
    affects the code that emitted the log event.

    An event emitted while handling a session's request (see ``log_origin``)
    reaches only that session's sink. Events with no originating session reach
    only sinks registered with ``receive_untagged``. String values are passed
    through the error sanitizer before leaving the process.

    Args:
        default_level: MCP level name applied to sinks registered without one
    """

    def __init__(self, default_level: str = "warning"):
        self.default_level = self._normalize_level(default_level)
        self._sinks: Dict[str, _SinkEntry] = {}

    @staticmethod
    def _normalize_level(level: str) -> str:
        name = level.lower()
        if name not in MCP_LOG_LEVELS:
            name = _STDLIB_TO_MCP.get(name, "")
        if not name:
            raise ValueError(f"Unknown log level: {level}")
        return name

    def register(
        self,
        sink_id: str,
        sink: LogSink,
        level: Optional[str] = None,
        receive_untagged: bool = False,
    ) -> None:
        """
        Register a sink under an id (the session id for HTTP).

        Args:
            sink_id: Id matched against the originating session of an event
            sink: Non-blocking callable receiving notifications
            level: Minimum MCP level, the forwarder default if omitted
            receive_untagged: Also deliver events with no originating session
        """
        name = self._normalize_level(level or self.default_level)
        self._sinks[sink_id] = _SinkEntry(sink, MCP_LOG_LEVELS[name], receive_untagged)

    def unregister(self, sink_id: str) -> None:
        """Remove a sink. Unknown ids are ignored."""
        self._sinks.pop(sink_id, None)

    def set_level(self, sink_id: str, level: str) -> None:
        """Change the minimum level delivered to one sink."""
        entry = self._sinks.get(sink_id)
        if entry is None:
            return
        self._sinks[sink_id] = entry._replace(min_level=MCP_LOG_LEVELS[self._normalize_level(level)])

    @property
    def sink_count(self) -> int:
        return len(self._sinks)

    def _targets(self, level_no: int) -> List[LogSink]:
        origin = _log_origin.get()
        if origin is not None:
            entry = self._sinks.get(origin)
            entries = [entry] if entry is not None else []
        else:
            entries = [entry for entry in self._sinks.values() if entry.receive_untagged]
        return [entry.sink for entry in entries if level_no >= entry.min_level]

    def __call__(self, logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        if not self._sinks or _forwarding.get():
            return event_dict

        logger_name = event_dict.get("logger") or getattr(logger, "name", "") or ""
        if logger_name.startswith(EXCLUDED_LOGGER_PREFIX):
            return event_dict

        level = _STDLIB_TO_MCP.get(method_name, "info")
        targets = self._targets(MCP_LOG_LEVELS[level])
        if not targets:
            return event_dict

        data = {"message": _scrub(str(event_dict.get("event", "")))}
        for key, value in event_dict.items():
            if key not in _UNFORWARDED_KEYS:
                data[key] = _scrub(value)

        notification = {
            "jsonrpc": "2.0",
            "method": "notifications/message",
            "params": {"level": level, "logger": logger_name, "data": data},
        }

        token = _forwarding.set(True)
        try:
            for sink in targets:
                try:
                    sink(notification)
                except Exception:  # nosec B112
                    # delivery to clients is best effort
                    continue
        finally:
            _forwarding.reset(token)

        return event_dict


def setup_logging(
    log_level: str = "INFO",
    transport: str = "stdio",
    forwarder: Optional[ClientLogForwarder] = None,
) -> None:
    """
    Set up structured logging for the MCP server.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        transport: ``stdio`` logs to stderr, ``http`` logs JSON to stdout
        forwarder: Optional processor relaying events to MCP clients
    """
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if forwarder is not None:
        processors.append(forwarder)

    if transport == "stdio":
        # stdout carries protocol frames only
        processors.append(
            structlog.processors.KeyValueRenderer(
                key_order=["event", "logger"], drop_missing=True
            )
        )
        log_format = "[%(levelname)s] %(message)s"
        stream = sys.stderr
    else:
        processors.append(structlog.processors.JSONRenderer())
        log_format = "%(message)s"
        stream = sys.stdout

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format=log_format,
        stream=stream,
        level=getattr(logging, log_level.upper()),
        force=True,
    )

    # Reduce noise from dependencies
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
