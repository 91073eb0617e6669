"""
CNAME Registry - canonical parsing, validation and probing of a subdomain registry.

This package parses a community-edited ``cnames_active.js`` file defensively,
regenerates it in a byte-stable canonical form, reports drift line by line,
and probes every registered subdomain over HTTP and HTTPS with a resumable
per-entry cache.
"""

__version__ = "0.1.0"

from cname_registry.exceptions import (
    RegistryError,
    StructuralParseError,
    GenerationError,
    ProbeTransportError,
    PersistenceError,
    CacheCorruptionError,
    ConfigError,
    SourceFetchError,
)
from cname_registry.enums import (
    LogLevel,
    ProbeProtocol,
    ProbeFailureCode,
    FailurePolicy,
    DiffKind,
    ParseWarningCode,
)
from cname_registry.config import (
    RegistryConfig,
    ProbeConfig,
    CacheConfig,
    SourceConfig,
    LoggingConfig,
    SystemConfig,
)
from cname_registry.models import (
    Entry,
    Registry,
    LineWarning,
    ParseResult,
    DiffLine,
    DiffReport,
    ProbeOutcome,
    ProbeSummary,
    ProbeCacheRecord,
)
from cname_registry.run_logger import (
    RunLogger,
    LogEntry,
)
from cname_registry.cache_store import (
    CacheStore,
)
from cname_registry.parser import (
    RegistryParser,
    parse_registry,
)
from cname_registry.generator import (
    RegistryGenerator,
    generate_registry,
)
from cname_registry.diff_validator import (
    CIContext,
    DiffValidator,
    compute_diff,
)
from cname_registry.prober import (
    URLProber,
    RegistryProber,
    build_urls,
    is_within_domain,
)
from cname_registry.source import (
    RegistrySource,
)
from cname_registry.i18n import (
    get_message,
    get_missing_translations,
    TRANSLATIONS,
    SUPPORTED_LANGUAGES,
    DEFAULT_LANGUAGE,
)
from cname_registry.cli import (
    main as cli_main,
    create_parser,
    create_default_config,
    load_config_from_file,
    save_config_to_file,
)

__all__ = [
    # Exceptions
    "RegistryError",
    "StructuralParseError",
    "GenerationError",
    "ProbeTransportError",
    "PersistenceError",
    "CacheCorruptionError",
    "ConfigError",
    "SourceFetchError",
    # Enums
    "LogLevel",
    "ProbeProtocol",
    "ProbeFailureCode",
    "FailurePolicy",
    "DiffKind",
    "ParseWarningCode",
    # Configuration
    "RegistryConfig",
    "ProbeConfig",
    "CacheConfig",
    "SourceConfig",
    "LoggingConfig",
    "SystemConfig",
    # Models
    "Entry",
    "Registry",
    "LineWarning",
    "ParseResult",
    "DiffLine",
    "DiffReport",
    "ProbeOutcome",
    "ProbeSummary",
    "ProbeCacheRecord",
    # Logging
    "RunLogger",
    "LogEntry",
    # Cache Store
    "CacheStore",
    # Parser / Generator
    "RegistryParser",
    "parse_registry",
    "RegistryGenerator",
    "generate_registry",
    # Diff Validator
    "CIContext",
    "DiffValidator",
    "compute_diff",
    # Prober
    "URLProber",
    "RegistryProber",
    "build_urls",
    "is_within_domain",
    # Source
    "RegistrySource",
    # I18n
    "get_message",
    "get_missing_translations",
    "TRANSLATIONS",
    "SUPPORTED_LANGUAGES",
    "DEFAULT_LANGUAGE",
    # CLI
    "cli_main",
    "create_parser",
    "create_default_config",
    "load_config_from_file",
    "save_config_to_file",
]
