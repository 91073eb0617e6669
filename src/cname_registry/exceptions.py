"""
Exception classes for the CNAME registry engine.

All exceptions inherit from RegistryError and provide structured
error information with codes, messages, and optional details.
"""

from typing import Optional


class RegistryError(Exception):
    """Base exception for all registry engine errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class StructuralParseError(RegistryError):
    """Raised when the data block markers cannot be located in a registry file."""

    pass


class GenerationError(RegistryError):
    """Raised when the header and footer comment blocks cannot be recovered."""

    pass


class ProbeTransportError(RegistryError):
    """Raised for a single failed HTTP fetch; always converted to a failure reason."""

    pass


class PersistenceError(RegistryError):
    """Raised when cache persistence operations fail (file I/O, invalid names)."""

    pass


class CacheCorruptionError(PersistenceError):
    """Raised when a cache blob cannot be decoded or fails HMAC validation."""

    pass


class ConfigError(RegistryError):
    """Raised when a configuration file contains invalid values."""

    pass


class SourceFetchError(RegistryError):
    """Raised when the registry file cannot be fetched from the hosting API."""

    pass
