"""
Enumeration types for the CNAME registry engine.

These enums provide type-safe constants for log levels, probe outcomes,
diff classification, and parse warnings throughout the system.
"""

from enum import Enum


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class ProbeProtocol(Enum):
    """Protocols every registry entry is probed over."""

    HTTP = "http"
    HTTPS = "https"


class ProbeFailureCode(Enum):
    """Reasons a single HTTP or HTTPS probe can fail."""

    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    HTTP_STATUS = "http_status"
    EXTERNAL_REDIRECT = "external_redirect"
    EMPTY_BODY = "empty_body"
    CONTENT_TYPE = "content_type"
    PLACEHOLDER_PAGE = "placeholder_page"
    META_REFRESH = "meta_refresh"


class FailurePolicy(Enum):
    """When an entry counts as failed overall."""

    BOTH = "both"  # HTTP and HTTPS must both fail
    EITHER = "either"  # any failed protocol fails the entry


class DiffKind(Enum):
    """Classification of a changed line between a file and its canonical form."""

    MISSING = "missing"
    MISMATCH = "mismatch"
    EXTRA = "extra"


class ParseWarningCode(Enum):
    """Non-fatal conditions reported while parsing data lines."""

    UNPARSEABLE_LINE = "unparseable_line"
    DUPLICATE_KEY = "duplicate_key"
