"""
Registry parsing and normalization module.

Converts the raw text of a ``cnames_active.js`` file into a canonical
in-memory registry. Structural problems abort the parse; individual data
lines that do not fit the entry grammar are skipped and reported.
"""

import re
from typing import Optional

from cname_registry.config import RegistryConfig
from cname_registry.enums import ParseWarningCode
from cname_registry.exceptions import StructuralParseError
from cname_registry.models import Entry, LineWarning, ParseResult, Registry
from cname_registry.run_logger import RunLogger


OPENING_LINE_PATTERN = re.compile(r"^var cnames_active = \{[ \t]*$")

# Matched against the remainder of the file starting at a candidate line
CLOSING_BLOCK_PATTERN = re.compile(r"[ \t]*/\*[\s\S]+?\*/[ \t]*\n\};?[ \t]*(\n|$)")

ENTRY_LINE_PATTERN = re.compile(
    r"^[ \t]*['\"]([a-z0-9_.-]*)['\"][ \t]*:[ \t]*['\"]([^\"]*)['\"]"
    r"[ \t]*,?[ \t]*(// *nocf.*)?[ \t]*$",
    re.IGNORECASE,
)

PROTOCOL_PATTERN = re.compile(r"^(?:https?:)?//(.+)$", re.IGNORECASE)
GITHUB_COM_PATTERN = re.compile(r"^github\.com/([^/]+)/(.+)$", re.IGNORECASE)
GITHUB_IO_PATTERN = re.compile(r"^[^.]+\.github\.io/[^/]+$", re.IGNORECASE)
HAS_PATH_PATTERN = re.compile(r"^([^/]+)/(.+)$")
HOSTNAME_PATTERN = re.compile(r"^([^/]+)(.*)$", re.DOTALL)

NO_CF_MARKER = "// noCF"


class RegistryParser:
    """
    Parses and normalizes registry file content.

    Handles:
    - Locating the ``var cnames_active = {`` block and its closing footer
    - Tolerant per-line matching of quoted key/value pairs
    - Normalization of every accepted entry to its canonical form
    """

    def __init__(
        self,
        config: Optional[RegistryConfig] = None,
        logger: Optional[RunLogger] = None,
    ) -> None:
        """
        Initialize the parser.

        Args:
            config: Registry layout settings (domain, wildcard targets)
            logger: Optional logger for progress and line warnings
        """
        self._config = config or RegistryConfig()
        self._logger = logger
        self._domain_suffix = "." + self._config.domain.lower()
        self._wildcard_targets = {
            suffix.lower(): upstream.lower()
            for suffix, upstream in self._config.wildcard_targets.items()
        }
        self._wildcard_upstreams = frozenset(self._wildcard_targets.values())

    def parse(self, content: str) -> ParseResult:
        """
        Parse registry file content.

        Args:
            content: Full text of the registry file

        Returns:
            ParseResult with the normalized registry and any line warnings

        Raises:
            StructuralParseError: If the opening or closing marker is missing
        """
        self._log_info("Starting registry parse")

        lines = content.split("\n")
        opening_index, closing_index = self._locate_block(content, lines)

        registry: Registry = {}
        warnings: list[LineWarning] = []

        for index in range(opening_index + 1, closing_index):
            line = lines[index]
            line_number = index + 1
            match = ENTRY_LINE_PATTERN.match(line)

            if not match:
                warning = LineWarning(
                    code=ParseWarningCode.UNPARSEABLE_LINE,
                    line_number=line_number,
                    line=line,
                    message=f"Failed to parse '{line}' as cnames_active entry",
                )
                warnings.append(warning)
                self._log_warning(warning)
                continue

            subdomain, entry = self.normalize(match.group(1), match.group(2), match.group(3))

            if subdomain in registry:
                warning = LineWarning(
                    code=ParseWarningCode.DUPLICATE_KEY,
                    line_number=line_number,
                    line=line,
                    message=f"Duplicate entry '{subdomain}' overrides an earlier line",
                )
                warnings.append(warning)
                self._log_warning(warning)

            registry[subdomain] = entry

        self._log_info(
            "Parsing completed",
            {"entries": len(registry), "warnings": len(warnings)},
        )
        return ParseResult(registry=registry, warnings=warnings)

    def normalize(
        self,
        raw_key: str,
        raw_target: str,
        raw_marker: Optional[str] = None,
    ) -> tuple[str, Entry]:
        """
        Normalize one matched key/value pair.

        Args:
            raw_key: The quoted subdomain key as written
            raw_target: The quoted target value as written
            raw_marker: The trailing ``// nocf...`` comment, if any

        Returns:
            Tuple of (canonical subdomain, canonical Entry)
        """
        subdomain = self.normalize_subdomain(raw_key)
        target = self.normalize_target(raw_target)

        no_cf = self.render_marker(raw_marker) if raw_marker else None
        if no_cf is None and ("." in subdomain or target in self._wildcard_upstreams):
            no_cf = NO_CF_MARKER

        return subdomain, Entry(target=target, no_cf=no_cf)

    def normalize_subdomain(self, raw_key: str) -> str:
        """Lowercase a key and drop a redundant registry domain suffix."""
        subdomain = raw_key.lower()
        if subdomain.endswith(self._domain_suffix):
            subdomain = subdomain[: -len(self._domain_suffix)]
        return subdomain

    def normalize_target(self, raw_target: str) -> str:
        """
        Normalize a target value.

        Strips trailing slashes and protocol prefixes, maps github.com repo
        URLs to GitHub Pages, drops paths on anything but GitHub Pages,
        collapses wildcard-platform targets to their upstream, and lowercases
        the hostname while preserving path case.
        """
        target = raw_target.rstrip("/")

        protocol_match = PROTOCOL_PATTERN.match(target)
        if protocol_match:
            target = protocol_match.group(1)

        github_com_match = GITHUB_COM_PATTERN.match(target)
        if github_com_match:
            target = f"{github_com_match.group(1)}.github.io/{github_com_match.group(2)}"

        if not GITHUB_IO_PATTERN.match(target):
            path_match = HAS_PATH_PATTERN.match(target)
            if path_match:
                target = path_match.group(1)

        lowered = target.lower()
        for suffix, upstream in self._wildcard_targets.items():
            if lowered.endswith(suffix):
                target = upstream
                break

        hostname_match = HOSTNAME_PATTERN.match(target)
        if hostname_match:
            target = hostname_match.group(1).lower() + hostname_match.group(2)

        return target

    @staticmethod
    def render_marker(raw_marker: str) -> str:
        """Re-render a ``//nocf`` comment as ``// noCF`` keeping its trailing text."""
        return NO_CF_MARKER + raw_marker[2:].strip()[4:]

    def _locate_block(self, content: str, lines: list[str]) -> tuple[int, int]:
        opening_index = next(
            (i for i, line in enumerate(lines) if OPENING_LINE_PATTERN.match(line)),
            -1,
        )
        if opening_index == -1:
            self._log_abort("Could not locate the var declaration for cnames_active object")
            raise StructuralParseError(
                code="opening_marker_missing",
                message="Could not locate the var declaration for cnames_active object",
            )

        offset = sum(len(line) + 1 for line in lines[: opening_index + 1])
        for index in range(opening_index + 1, len(lines)):
            if CLOSING_BLOCK_PATTERN.match(content, offset):
                return opening_index, index
            offset += len(lines[index]) + 1

        self._log_abort(
            "Could not locate the closing comment and curly bracket for cnames_active object"
        )
        raise StructuralParseError(
            code="closing_marker_missing",
            message="Could not locate the closing comment and curly bracket "
            "for cnames_active object",
            details={"opening_line": opening_index + 1},
        )

    def _log_info(self, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.info("RegistryParser", message, data)

    def _log_warning(self, warning: LineWarning) -> None:
        if self._logger:
            self._logger.warn(
                "RegistryParser",
                f"Line {warning.line_number}: {warning.message}",
                {"code": warning.code.value},
            )

    def _log_abort(self, reason: str) -> None:
        if self._logger:
            self._logger.error("RegistryParser", f"Parsing aborted: {reason}")


def parse_registry(
    content: str,
    config: Optional[RegistryConfig] = None,
    logger: Optional[RunLogger] = None,
) -> ParseResult:
    """Parse registry content with a one-off RegistryParser."""
    return RegistryParser(config, logger).parse(content)
