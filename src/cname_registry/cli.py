"""
Command-line interface for the CNAME registry engine.

This module provides the main CLI entry point with commands for:
- validate: Check a registry file against its canonical form (optionally fix it)
- regenerate: Print or write the canonical form of a registry file
- probe: Test every registry entry over HTTP and HTTPS
- fetch: Download the registry file from its repository
- cache: Inspect or clear resumable operation caches
- config: Configuration management
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from . import __version__
from .cache_store import CacheStore
from .config import (
    CacheConfig,
    LoggingConfig,
    ProbeConfig,
    RegistryConfig,
    SourceConfig,
    SystemConfig,
)
from .diff_validator import CIContext, DiffValidator
from .enums import DiffKind, FailurePolicy
from .exceptions import ConfigError, RegistryError
from .generator import RegistryGenerator
from .i18n import get_message
from .models import DiffReport
from .parser import RegistryParser
from .prober import RegistryProber
from .run_logger import RunLogger
from .source import RegistrySource


DEFAULT_HOME = Path.home() / ".cname_registry"


def create_default_config(
    language: str = "en",
    cache_dir: Optional[Path] = None,
) -> SystemConfig:
    """
    Create a default system configuration.

    Args:
        language: Output language ('de' or 'en')
        cache_dir: Directory for operation caches

    Returns:
        SystemConfig with default settings
    """
    if cache_dir is None:
        cache_dir = DEFAULT_HOME / "cache"

    return SystemConfig(
        registry=RegistryConfig(),
        probe=ProbeConfig(),
        cache=CacheConfig(directory=cache_dir),
        source=SourceConfig(),
        logging=LoggingConfig(level="info", output_format="text"),
        language=language,
    )


def load_config_from_file(config_path: Path) -> Optional[SystemConfig]:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        SystemConfig if successful, None otherwise
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        defaults = create_default_config()

        registry_data = data.get("registry", {})
        registry = RegistryConfig(
            domain=registry_data.get("domain", defaults.registry.domain),
            wildcard_targets=registry_data.get(
                "wildcard_targets", defaults.registry.wildcard_targets
            ),
        )

        probe_data = data.get("probe", {})
        probe = ProbeConfig(
            timeout_seconds=float(probe_data.get("timeout_seconds", defaults.probe.timeout_seconds)),
            failure_policy=FailurePolicy(
                probe_data.get("failure_policy", defaults.probe.failure_policy.value)
            ),
            concurrency=int(probe_data.get("concurrency", defaults.probe.concurrency)),
            delay_seconds=float(probe_data.get("delay_seconds", defaults.probe.delay_seconds)),
            limit=probe_data.get("limit"),
            cache_name=probe_data.get("cache_name", defaults.probe.cache_name),
            user_agent=probe_data.get("user_agent", defaults.probe.user_agent),
            check_content_type=probe_data.get("check_content_type", True),
            allowed_content_types=probe_data.get(
                "allowed_content_types", defaults.probe.allowed_content_types
            ),
            check_placeholder=probe_data.get("check_placeholder", True),
            placeholder_markers=probe_data.get(
                "placeholder_markers", defaults.probe.placeholder_markers
            ),
            check_meta_refresh=probe_data.get("check_meta_refresh", True),
        )
        if probe.limit is not None and probe.limit < 0:
            raise ValueError(f"probe limit must not be negative: {probe.limit}")

        cache_data = data.get("cache", {})
        cache_dir = cache_data.get("directory")
        cache = CacheConfig(
            directory=Path(cache_dir) if cache_dir else defaults.cache.directory,
            hmac_secret=cache_data.get("hmac_secret"),
        )

        source_data = data.get("source", {})
        source = SourceConfig(
            owner=source_data.get("owner", defaults.source.owner),
            repo=source_data.get("repo", defaults.source.repo),
            path=source_data.get("path", defaults.source.path),
            ref=source_data.get("ref"),
            token=source_data.get("token"),
            api_url=source_data.get("api_url", defaults.source.api_url),
        )

        logging_data = data.get("logging", {})
        logging_config = LoggingConfig(
            level=logging_data.get("level", "info"),
            output_format=logging_data.get("output_format", "text"),
        )

        return SystemConfig(
            registry=registry,
            probe=probe,
            cache=cache,
            source=source,
            logging=logging_config,
            language=data.get("language", "en"),
        )

    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None
    except FileNotFoundError:
        return None


def save_config_to_file(config: SystemConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    The source token is never written; supply it through GITHUB_TOKEN.

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "registry": {
                "domain": config.registry.domain,
                "wildcard_targets": config.registry.wildcard_targets,
            },
            "probe": {
                "timeout_seconds": config.probe.timeout_seconds,
                "failure_policy": config.probe.failure_policy.value,
                "concurrency": config.probe.concurrency,
                "delay_seconds": config.probe.delay_seconds,
                "limit": config.probe.limit,
                "cache_name": config.probe.cache_name,
                "user_agent": config.probe.user_agent,
                "check_content_type": config.probe.check_content_type,
                "allowed_content_types": config.probe.allowed_content_types,
                "check_placeholder": config.probe.check_placeholder,
                "placeholder_markers": config.probe.placeholder_markers,
                "check_meta_refresh": config.probe.check_meta_refresh,
            },
            "cache": {
                "directory": str(config.cache.directory),
                "hmac_secret": config.cache.hmac_secret,
            },
            "source": {
                "owner": config.source.owner,
                "repo": config.source.repo,
                "path": config.source.path,
                "ref": config.source.ref,
                "api_url": config.source.api_url,
            },
            "logging": {
                "level": config.logging.level,
                "output_format": config.logging.output_format,
            },
            "language": config.language,
        }

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        return True

    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def apply_env_overrides(config: SystemConfig, environ: Optional[dict] = None) -> SystemConfig:
    """
    Apply environment variable overrides to a configuration in place.

    Recognised variables: CNAME_REGISTRY_DOMAIN, CNAME_REGISTRY_CACHE_DIR,
    CNAME_REGISTRY_PROBE_TIMEOUT, CNAME_REGISTRY_LANG and GITHUB_TOKEN.

    Raises:
        ConfigError: If a numeric override cannot be parsed
    """
    env = os.environ if environ is None else environ

    if env.get("CNAME_REGISTRY_DOMAIN"):
        config.registry.domain = env["CNAME_REGISTRY_DOMAIN"].strip().lower()
    if env.get("CNAME_REGISTRY_CACHE_DIR"):
        config.cache.directory = Path(env["CNAME_REGISTRY_CACHE_DIR"])
    if env.get("CNAME_REGISTRY_PROBE_TIMEOUT"):
        try:
            config.probe.timeout_seconds = float(env["CNAME_REGISTRY_PROBE_TIMEOUT"])
        except ValueError:
            raise ConfigError(
                code="invalid_timeout",
                message="CNAME_REGISTRY_PROBE_TIMEOUT must be a number",
                details={"value": env["CNAME_REGISTRY_PROBE_TIMEOUT"]},
            ) from None
    if env.get("CNAME_REGISTRY_LANG") in ("de", "en"):
        config.language = env["CNAME_REGISTRY_LANG"]
    if env.get("GITHUB_TOKEN"):
        config.source.token = env["GITHUB_TOKEN"]

    return config


def resolve_config(args: argparse.Namespace) -> Optional[SystemConfig]:
    """Load the config named on the command line (or defaults) and apply overrides."""
    config = None
    if getattr(args, "config", None):
        config = load_config_from_file(Path(args.config))
        if config is None:
            print(get_message("error.config_load", args.language, path=args.config), file=sys.stderr)
            return None

    if config is None:
        config = create_default_config()

    try:
        apply_env_overrides(config)
    except ConfigError as e:
        print(get_message("error.generic", args.language, error=e.message), file=sys.stderr)
        return None

    if getattr(args, "language", None):
        config.language = args.language
    return config


def create_logger(config: SystemConfig, verbose: bool) -> Optional[RunLogger]:
    """Create a logger when verbose output is requested."""
    if not verbose:
        return None
    return RunLogger.from_level_name(
        config.logging.level,
        output_format=config.logging.output_format,
    )


def print_diff_report(report: DiffReport, language: str) -> None:
    """Print human-readable diagnostics for a validation report."""
    for warning in report.warnings:
        print(
            get_message("validate.warning", language, line=warning.line_number, message=warning.message),
            file=sys.stderr,
        )

    if report.error is not None:
        print(get_message("validate.error", language, file=report.file_path, error=report.error), file=sys.stderr)
        return

    if report.fixed:
        print(get_message("validate.fixed", language, file=report.file_path))
        return

    if report.matches:
        print(get_message("validate.ok", language, file=report.file_path))
        return

    print(
        get_message("validate.failed", language, file=report.file_path, count=len(report.differences)),
        file=sys.stderr,
    )
    for difference in report.differences:
        if difference.kind == DiffKind.MISSING:
            text = get_message("diff.missing", language, line=difference.line_number, expected=repr(difference.expected))
        elif difference.kind == DiffKind.MISMATCH:
            text = get_message(
                "diff.mismatch",
                language,
                line=difference.line_number,
                expected=repr(difference.expected),
                found=repr(difference.found),
            )
        else:
            text = get_message("diff.extra", language, line=difference.line_number, found=repr(difference.found))
        print(f"  {text}", file=sys.stderr)


def cmd_validate(args: argparse.Namespace) -> int:
    """Handle the 'validate' command."""
    config = resolve_config(args)
    if config is None:
        return 1

    logger = create_logger(config, args.verbose)
    nested = logger.nested() if logger else None
    validator = DiffValidator(
        parser=RegistryParser(config.registry, nested),
        generator=RegistryGenerator(nested),
        logger=logger,
        ci=CIContext.detect(),
    )

    report = validator.validate(args.file, fix=args.fix)
    print_diff_report(report, config.language)
    return report.exit_code


def cmd_regenerate(args: argparse.Namespace) -> int:
    """Handle the 'regenerate' command."""
    config = resolve_config(args)
    if config is None:
        return 1

    logger = create_logger(config, args.verbose)
    try:
        content = DiffValidator.read_file(args.file)
        parsed = RegistryParser(config.registry, logger).parse(content)
        canonical = RegistryGenerator(logger).generate(parsed.registry, content)
    except (OSError, RegistryError) as e:
        message = e.message if isinstance(e, RegistryError) else str(e)
        print(get_message("error.generic", config.language, error=message), file=sys.stderr)
        return 1

    for warning in parsed.warnings:
        print(
            get_message("validate.warning", config.language, line=warning.line_number, message=warning.message),
            file=sys.stderr,
        )

    if args.output:
        try:
            DiffValidator.write_file(args.output, canonical)
        except OSError as e:
            print(get_message("error.generic", config.language, error=e), file=sys.stderr)
            return 1
        print(get_message("regenerate.written", config.language, path=args.output))
    else:
        sys.stdout.write(canonical)
    return 0


async def run_probe(
    config: SystemConfig,
    file: Optional[str],
    output_file: Optional[Path] = None,
    clear_cache: bool = False,
    logger: Optional[RunLogger] = None,
) -> int:
    """
    Probe every entry of a registry file.

    Args:
        config: System configuration
        file: Local registry file, or None to fetch it from the source repository
        output_file: Optional path to write the failed/passed partitions as JSON
        clear_cache: Remove the probe cache once results have been written
        logger: Optional logger

    Returns:
        Exit code (0 if no entry failed, 1 otherwise)
    """
    language = config.language
    nested = logger.nested() if logger else None

    try:
        if file:
            content = DiffValidator.read_file(file)
        else:
            content = await RegistrySource(config.source, nested).fetch()
        parsed = RegistryParser(config.registry, nested).parse(content)
    except (OSError, RegistryError) as e:
        message = e.message if isinstance(e, RegistryError) else str(e)
        print(get_message("error.generic", language, error=message), file=sys.stderr)
        return 1

    cache_store = CacheStore(config.cache.directory, config.cache.hmac_secret, logger=nested)
    prober = RegistryProber(
        config=config.probe,
        domain=config.registry.domain,
        cache_store=cache_store,
        logger=logger,
    )

    count = len(parsed.registry)
    if config.probe.limit is not None:
        count = min(count, config.probe.limit)
    print(get_message("probe.starting", language, count=count, domain=config.registry.domain))

    try:
        summary = await prober.probe(parsed.registry)
    except RegistryError as e:
        print(get_message("error.generic", language, error=e.message), file=sys.stderr)
        return 1

    okay = get_message("probe.okay", language)
    for subdomain, entry in summary.failed.items():
        print("  " + get_message(
            "probe.failed_entry",
            language,
            subdomain=subdomain or "@",
            target=entry.target,
            http=entry.http or okay,
            https=entry.https or okay,
        ))

    print(get_message("probe.summary", language, failed=len(summary.failed), passed=len(summary.passed)))

    if output_file:
        try:
            output_file.parent.mkdir(parents=True, exist_ok=True)
            with open(output_file, "w", encoding="utf-8") as f:
                json.dump(summary.to_dict(), f, indent=2, ensure_ascii=False)
            print(get_message("probe.results_written", language, path=output_file))
        except OSError as e:
            print(get_message("error.generic", language, error=e), file=sys.stderr)
            return 1

    if clear_cache and cache_store.delete(prober.cache_name):
        print(get_message("cache.cleared", language, name=prober.cache_name))

    return 0 if not summary.failed else 1


def cmd_probe(args: argparse.Namespace) -> int:
    """Handle the 'probe' command."""
    config = resolve_config(args)
    if config is None:
        return 1

    if args.limit is not None:
        config.probe.limit = args.limit
    if args.policy:
        config.probe.failure_policy = FailurePolicy(args.policy)
    if args.concurrency is not None:
        config.probe.concurrency = max(1, args.concurrency)
    if args.timeout is not None:
        config.probe.timeout_seconds = args.timeout

    return asyncio.run(run_probe(
        config=config,
        file=args.file,
        output_file=Path(args.output) if args.output else None,
        clear_cache=args.clear_cache,
        logger=create_logger(config, args.verbose),
    ))


def cmd_fetch(args: argparse.Namespace) -> int:
    """Handle the 'fetch' command."""
    config = resolve_config(args)
    if config is None:
        return 1

    logger = create_logger(config, args.verbose)
    try:
        content = asyncio.run(RegistrySource(config.source, logger).fetch())
    except RegistryError as e:
        print(get_message("error.generic", config.language, error=e.message), file=sys.stderr)
        return 1

    if args.output:
        try:
            DiffValidator.write_file(args.output, content)
        except OSError as e:
            print(get_message("error.generic", config.language, error=e), file=sys.stderr)
            return 1
        print(get_message("fetch.written", config.language, path=args.output))
    else:
        sys.stdout.write(content)
    return 0


def cmd_cache(args: argparse.Namespace) -> int:
    """Handle the 'cache' command."""
    config = resolve_config(args)
    if config is None:
        return 1

    language = config.language
    store = CacheStore(config.cache.directory, config.cache.hmac_secret)
    name = args.name or config.probe.cache_name

    try:
        if args.action == "list":
            names = store.names()
            if not names:
                print(get_message("cache.empty", language))
            for cache_name in names:
                print(cache_name)
            return 0

        if args.action == "show":
            data = store.load_strict(name)
            if data is None:
                print(get_message("cache.not_found", language, name=name))
                return 1
            print(json.dumps(data, indent=2, ensure_ascii=False))
            return 0

        if args.action == "clear":
            if store.delete(name):
                print(get_message("cache.cleared", language, name=name))
                return 0
            print(get_message("cache.not_found", language, name=name))
            return 0
    except RegistryError as e:
        print(get_message("error.generic", language, error=e.message), file=sys.stderr)
        return 1

    return 1


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_HOME / "config.json"
    language = args.language

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(get_message("config.not_found", language, path=config_path))
            print(get_message("config.init_hint", language))
            return 1

        language = language or config.language
        source = f"{config.source.owner}/{config.source.repo}/{config.source.path}"
        print(get_message("config.header", language, path=config_path))
        print(get_message("config.language", language, value=config.language))
        print(get_message("config.domain", language, value=config.registry.domain))
        print(get_message("config.source", language, value=source))
        print(get_message("config.cache_dir", language, value=config.cache.directory))
        print(get_message("config.policy", language, value=config.probe.failure_policy.value))
        print(get_message("config.timeout", language, value=config.probe.timeout_seconds))
        print(get_message("config.log_level", language, value=config.logging.level))
        return 0

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(get_message("config.exists", language, path=config_path))
            print(get_message("config.force_hint", language))
            return 1

        config = create_default_config(language=language or "en")
        if save_config_to_file(config, config_path):
            print(get_message("config.created", config.language, path=config_path))
            return 0
        return 1

    elif args.action == "validate":
        config = load_config_from_file(config_path)
        if config is None:
            print(get_message("error.config_load", language, path=config_path), file=sys.stderr)
            return 1

        print(get_message("config.valid", language or config.language, path=config_path))
        return 0

    return 1


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {value}")
    return number


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    parser.add_argument(
        "--language", "-l",
        choices=["de", "en"],
        default=None,
        help="Output language (default: from config, en)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="cname-registry",
        description="Validate, regenerate and probe a community CNAME registry file",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'validate' command
    validate_parser = subparsers.add_parser(
        "validate",
        help="Check a registry file against its canonical form",
    )
    validate_parser.add_argument("file", help="Path to the cnames_active.js file")
    validate_parser.add_argument(
        "--fix",
        action="store_true",
        help="Rewrite the file in canonical form instead of reporting differences",
    )
    _add_common_arguments(validate_parser)
    validate_parser.set_defaults(func=cmd_validate)

    # 'regenerate' command
    regenerate_parser = subparsers.add_parser(
        "regenerate",
        help="Print the canonical form of a registry file",
    )
    regenerate_parser.add_argument("file", help="Path to the cnames_active.js file")
    regenerate_parser.add_argument(
        "--output", "-o",
        help="Write the canonical content to this path instead of stdout",
    )
    _add_common_arguments(regenerate_parser)
    regenerate_parser.set_defaults(func=cmd_regenerate)

    # 'probe' command
    probe_parser = subparsers.add_parser(
        "probe",
        help="Test every registry entry over HTTP and HTTPS",
    )
    probe_parser.add_argument(
        "file",
        nargs="?",
        help="Path to the cnames_active.js file (fetched from the repository if omitted)",
    )
    probe_parser.add_argument(
        "--output", "-o",
        help="Path to write failed/passed results as JSON",
    )
    probe_parser.add_argument(
        "--limit",
        type=_non_negative_int,
        help="Only test the first N entries",
    )
    probe_parser.add_argument(
        "--policy",
        choices=[policy.value for policy in FailurePolicy],
        help="Fail an entry when both protocols fail, or when either does",
    )
    probe_parser.add_argument(
        "--concurrency",
        type=int,
        help="Number of entries probed at once (default: 1)",
    )
    probe_parser.add_argument(
        "--timeout",
        type=float,
        help="Per-request timeout in seconds",
    )
    probe_parser.add_argument(
        "--clear-cache",
        action="store_true",
        help="Remove the probe cache after the results have been written",
    )
    _add_common_arguments(probe_parser)
    probe_parser.set_defaults(func=cmd_probe)

    # 'fetch' command
    fetch_parser = subparsers.add_parser(
        "fetch",
        help="Download the registry file from its repository",
    )
    fetch_parser.add_argument(
        "--output", "-o",
        help="Write the file to this path instead of stdout",
    )
    _add_common_arguments(fetch_parser)
    fetch_parser.set_defaults(func=cmd_fetch)

    # 'cache' command
    cache_parser = subparsers.add_parser(
        "cache",
        help="Inspect or clear operation caches",
    )
    cache_parser.add_argument(
        "action",
        choices=["list", "show", "clear"],
        help="Cache action",
    )
    cache_parser.add_argument(
        "name",
        nargs="?",
        help="Cache name (default: the probe cache)",
    )
    _add_common_arguments(cache_parser)
    cache_parser.set_defaults(func=cmd_cache)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.add_argument(
        "--language", "-l",
        choices=["de", "en"],
        default=None,
        help="Output language and default language for new configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    load_dotenv()

    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
