"""
Data models for the CNAME registry engine.

This module defines the registry entry, parse and diff results, probe
outcomes, and the typed record persisted in the probe cache.
"""

from dataclasses import dataclass, field
from typing import Optional

from .enums import DiffKind, FailurePolicy, ParseWarningCode


@dataclass
class Entry:
    """A single subdomain record. The subdomain itself is the registry key."""

    target: str  # Normalized hostname, optionally followed by /path
    no_cf: Optional[str] = None  # Canonical marker text, e.g. '// noCF'
    http: Optional[str] = None  # Failure reason of the last HTTP probe
    https: Optional[str] = None  # Failure reason of the last HTTPS probe
    failed: Optional[bool] = None

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dict, omitting unset fields."""
        data: dict = {"target": self.target}
        if self.no_cf is not None:
            data["noCF"] = self.no_cf
        if self.http is not None:
            data["http"] = self.http
        if self.https is not None:
            data["https"] = self.https
        if self.failed is not None:
            data["failed"] = self.failed
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Entry":
        """Rebuild an entry from its serialized form."""
        if not isinstance(data, dict) or not isinstance(data.get("target"), str):
            raise ValueError(f"Invalid entry data: {data!r}")
        failed = data.get("failed")
        return cls(
            target=data["target"],
            no_cf=data.get("noCF"),
            http=data.get("http"),
            https=data.get("https"),
            failed=bool(failed) if failed is not None else None,
        )


# Map of lowercase subdomain -> Entry
Registry = dict[str, Entry]


@dataclass
class LineWarning:
    """A data line that was skipped or overridden during parsing."""

    code: ParseWarningCode
    line_number: int  # 1-based
    line: str
    message: str


@dataclass
class ParseResult:
    """Registry built from a file plus any non-fatal warnings."""

    registry: Registry
    warnings: list[LineWarning] = field(default_factory=list)


@dataclass
class DiffLine:
    """
    One changed line between the original file and its canonical form.

    ``line_number`` always refers to the original file. For MISSING lines it
    is the line after which ``expected`` should appear.
    """

    kind: DiffKind
    line_number: int
    expected: Optional[str] = None
    found: Optional[str] = None

    def describe(self) -> str:
        """Human-readable description of the change."""
        if self.kind == DiffKind.MISSING:
            return f"Expected line after {self.line_number}: {self.expected!r}"
        if self.kind == DiffKind.MISMATCH:
            return (
                f"Line {self.line_number}: expected {self.expected!r}, "
                f"found {self.found!r}"
            )
        return f"Line {self.line_number}: unexpected line {self.found!r}"


@dataclass
class DiffReport:
    """Outcome of validating a registry file against its canonical form."""

    file_path: str
    matches: bool
    differences: list[DiffLine] = field(default_factory=list)
    warnings: list[LineWarning] = field(default_factory=list)
    error: Optional[str] = None
    fixed: bool = False

    @property
    def exit_code(self) -> int:
        """Process exit status: 0 when canonical (or fixed), 1 otherwise."""
        if self.error is not None:
            return 1
        if self.fixed:
            return 0
        return 0 if self.matches else 1


@dataclass
class ProbeOutcome:
    """Result of probing one entry over both protocols."""

    subdomain: str
    http: Optional[str]
    https: Optional[str]
    failed: bool
    from_cache: bool = False


@dataclass
class ProbeSummary:
    """Partition of a probe run into failed and passed entries."""

    failed: Registry = field(default_factory=dict)
    passed: Registry = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialize both partitions for JSON output."""
        return {
            "failed": {key: entry.to_dict() for key, entry in self.failed.items()},
            "passed": {key: entry.to_dict() for key, entry in self.passed.items()},
        }


@dataclass
class ProbeCacheRecord:
    """
    Typed shape of the probe cache blob.

    Results recorded under a different policy or registry domain are not
    reusable, so both are stored alongside them.
    """

    domain: str
    policy: FailurePolicy
    results: Registry = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialize to the JSON-compatible cache payload."""
        return {
            "domain": self.domain,
            "policy": self.policy.value,
            "results": {key: entry.to_dict() for key, entry in self.results.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProbeCacheRecord":
        """
        Rebuild a record from a cache payload.

        Raises:
            ValueError: If the payload does not have the expected shape
        """
        if not isinstance(data, dict):
            raise ValueError("Probe cache payload must be an object")
        results = data.get("results")
        if not isinstance(results, dict):
            raise ValueError("Probe cache payload has no results map")
        return cls(
            domain=str(data.get("domain", "")),
            policy=FailurePolicy(data.get("policy")),
            results={key: Entry.from_dict(value) for key, value in results.items()},
        )
