"""
Run logger for the CNAME registry engine.

Provides structured logging with dual-format output (JSON and human-readable
text), explicit nesting depth for sub-operations, level filtering, and
sensitive data masking.
"""

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, TextIO

from cname_registry.enums import LogLevel


LEVEL_ORDER = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARN: 2,
    LogLevel.ERROR: 3,
}


@dataclass
class LogEntry:
    """Represents a single log entry with all metadata."""

    timestamp: str
    level: LogLevel
    component: str
    message: str
    depth: int = 0
    data: dict = field(default_factory=dict)


class RunLogger:
    """
    Logger with dual-format output and scoped nesting.

    Nested operations get a child logger from ``nested()``; the child shares
    the output stream and entry buffer but renders one level deeper. There is
    no process-wide indentation state.
    """

    # Keys that should be masked in log output
    SENSITIVE_KEYS = frozenset({
        'token', 'secret', 'password', 'api_key', 'hmac_secret',
        'auth', 'authorization', 'credential', 'credentials',
        'private_key', 'access_token',
    })

    MASK_VALUE = "***MASKED***"

    def __init__(
        self,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
        level: LogLevel = LogLevel.INFO,
        depth: int = 0,
        _entries: Optional[list[LogEntry]] = None,
    ):
        """
        Initialize the logger.

        Args:
            output_format: Output format - 'json', 'text', or 'both'
            output_stream: Output stream for log entries (defaults to sys.stderr)
            level: Minimum level that is written to the stream
            depth: Nesting depth of this logger
        """
        if output_format not in ("json", "text", "both"):
            raise ValueError(f"Invalid output_format: {output_format}")
        if depth < 0:
            raise ValueError("depth cannot be negative")

        self._output_format = output_format
        self._output_stream = output_stream or sys.stderr
        self._level = level
        self._depth = depth
        self._entries: list[LogEntry] = _entries if _entries is not None else []

    @classmethod
    def from_level_name(
        cls,
        level_name: str,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
    ) -> "RunLogger":
        """Create a logger from a configured level name such as 'info'."""
        try:
            level = LogLevel(level_name.lower())
        except ValueError:
            raise ValueError(f"Invalid log level: {level_name}") from None
        return cls(output_format=output_format, output_stream=output_stream, level=level)

    @property
    def output_format(self) -> str:
        """Get the current output format."""
        return self._output_format

    @property
    def depth(self) -> int:
        """Get the nesting depth of this logger."""
        return self._depth

    @property
    def entries(self) -> list[LogEntry]:
        """Get all logged entries (shared across nested loggers)."""
        return self._entries.copy()

    def nested(self) -> "RunLogger":
        """Return a logger one level deeper sharing stream and entries."""
        return RunLogger(
            output_format=self._output_format,
            output_stream=self._output_stream,
            level=self._level,
            depth=self._depth + 1,
            _entries=self._entries,
        )

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> LogEntry:
        """
        Log an entry in the configured format(s).

        Entries below the configured level are recorded but not written.

        Returns:
            The created LogEntry object
        """
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=message,
            depth=self._depth,
            data=self.mask_sensitive_data(data or {}),
        )

        self._entries.append(entry)

        if LEVEL_ORDER[level] >= LEVEL_ORDER[self._level]:
            self._output_entry(entry)

        return entry

    def debug(self, component: str, message: str, data: Optional[dict] = None) -> LogEntry:
        return self.log(LogLevel.DEBUG, component, message, data)

    def info(self, component: str, message: str, data: Optional[dict] = None) -> LogEntry:
        return self.log(LogLevel.INFO, component, message, data)

    def warn(self, component: str, message: str, data: Optional[dict] = None) -> LogEntry:
        return self.log(LogLevel.WARN, component, message, data)

    def error(
        self,
        component: str,
        message: str,
        error: Optional[Exception] = None,
        data: Optional[dict] = None,
    ) -> LogEntry:
        """Log an error, attaching exception context when given."""
        payload = dict(data) if data else {}
        if error is not None:
            payload["error_message"] = str(error)
            payload["error_type"] = type(error).__name__
        return self.log(LogLevel.ERROR, component, message, payload)

    def mask_sensitive_data(self, data: dict) -> dict:
        """
        Recursively mask sensitive data in a dictionary.

        Args:
            data: Dictionary potentially containing sensitive data

        Returns:
            New dictionary with sensitive values masked
        """
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            key_lower = str(key).lower()

            is_sensitive = any(
                sensitive_key in key_lower
                for sensitive_key in self.SENSITIVE_KEYS
            )

            if is_sensitive:
                masked[key] = self.MASK_VALUE
            elif isinstance(value, dict):
                masked[key] = self.mask_sensitive_data(value)
            elif isinstance(value, list):
                masked[key] = [
                    self.mask_sensitive_data(item) if isinstance(item, dict) else item
                    for item in value
                ]
            else:
                masked[key] = value

        return masked

    def _output_entry(self, entry: LogEntry) -> None:
        if self._output_format in ("json", "both"):
            self._output_stream.write(self.format_json(entry) + "\n")

        if self._output_format in ("text", "both"):
            self._output_stream.write(self.format_text(entry) + "\n")

        self._output_stream.flush()

    def format_json(self, entry: LogEntry) -> str:
        """Format a log entry as a single JSON line."""
        obj = {
            "timestamp": entry.timestamp,
            "level": entry.level.value,
            "component": entry.component,
            "depth": entry.depth,
            "message": entry.message,
            "data": entry.data,
        }
        return json.dumps(obj, ensure_ascii=False)

    def format_text(self, entry: LogEntry) -> str:
        """
        Format a log entry as human-readable text.

        Nested entries are prefixed with one '>' per level of depth.
        """
        prefix = f"{'>' * entry.depth} " if entry.depth else ""

        parts = [
            f"[{entry.timestamp}]",
            entry.level.value.upper(),
            f"[{entry.component}]",
            f"{prefix}{entry.message}",
        ]

        if entry.data:
            parts.append(json.dumps(entry.data, ensure_ascii=False))

        return " ".join(parts)
