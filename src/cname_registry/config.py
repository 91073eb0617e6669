"""
Configuration dataclasses for the CNAME registry engine.

This module defines the configuration structures used throughout the system,
including the registry layout, probing behaviour, cache persistence, the
registry source repository, and logging configuration.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .enums import FailurePolicy


DEFAULT_WILDCARD_TARGETS = {
    ".vercel.app": "cname.vercel-dns.com",
}

DEFAULT_PLACEHOLDER_MARKERS = [
    "There isn't a GitHub Pages site here.",
    "Site not found · GitHub Pages",
]

DEFAULT_CONTENT_TYPES = [
    "text/html",
    "application/xhtml+xml",
    "text/plain",
]


@dataclass
class RegistryConfig:
    """Layout and normalization settings for the registry file."""

    domain: str = "js.org"
    # Target suffix -> fixed upstream every such target is rewritten to
    wildcard_targets: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_WILDCARD_TARGETS)
    )


@dataclass
class ProbeConfig:
    """Reachability probing configuration."""

    timeout_seconds: float = 5.0
    failure_policy: FailurePolicy = FailurePolicy.BOTH
    concurrency: int = 1
    delay_seconds: float = 0.0
    limit: Optional[int] = None
    cache_name: str = "validateCNAMEs"
    user_agent: str = "cname-registry/0.1 (+https://github.com/js-org/js.org)"
    check_content_type: bool = True
    allowed_content_types: list[str] = field(
        default_factory=lambda: list(DEFAULT_CONTENT_TYPES)
    )
    check_placeholder: bool = True
    placeholder_markers: list[str] = field(
        default_factory=lambda: list(DEFAULT_PLACEHOLDER_MARKERS)
    )
    check_meta_refresh: bool = True


@dataclass
class CacheConfig:
    """Cache store configuration."""

    directory: Path
    hmac_secret: Optional[str] = None


@dataclass
class SourceConfig:
    """Repository holding the registry file."""

    owner: str = "js-org"
    repo: str = "js.org"
    path: str = "cnames_active.js"
    ref: Optional[str] = None
    token: Optional[str] = None
    api_url: str = "https://api.github.com"
    timeout_seconds: float = 30.0


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    registry: RegistryConfig
    probe: ProbeConfig
    cache: CacheConfig
    source: SourceConfig
    logging: LoggingConfig
    language: str = "en"  # 'de' or 'en'
