"""
Diff validation module.

Checks a registry file on disk against its own canonical regeneration and
reports every changed line against the original file's line numbers, with
optional GitHub Actions annotations and in-place fixing.
"""

import difflib
import os
import stat
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, TextIO

from .enums import DiffKind
from .exceptions import RegistryError
from .generator import RegistryGenerator
from .models import DiffLine, DiffReport, LineWarning
from .parser import RegistryParser
from .run_logger import RunLogger


@dataclass
class CIContext:
    """A recognised CI environment that accepts structured annotations."""

    provider: str
    workspace: Optional[Path] = None

    @classmethod
    def detect(cls, environ: Optional[Mapping[str, str]] = None) -> Optional["CIContext"]:
        """
        Detect the CI environment from environment variables.

        Returns:
            CIContext for GitHub Actions, None when not running under CI
        """
        env = os.environ if environ is None else environ
        if env.get("GITHUB_ACTIONS", "").lower() == "true":
            workspace = env.get("GITHUB_WORKSPACE")
            return cls(provider="github", workspace=Path(workspace) if workspace else None)
        return None

    def relative_path(self, file_path: str) -> str:
        """Path of ``file_path`` relative to the CI workspace root."""
        path = Path(file_path).resolve()
        if self.workspace is not None:
            try:
                return path.relative_to(self.workspace.resolve()).as_posix()
            except ValueError:
                pass
        return Path(file_path).as_posix()

    def annotation(self, level: str, file_path: str, line: int, message: str) -> str:
        """
        Render a workflow-command annotation line.

        Args:
            level: 'error' or 'warning'
            file_path: File the annotation is addressed to
            line: 1-based line number
            message: Annotation text
        """
        file_value = _escape_property(self.relative_path(file_path))
        return f"::{level} file={file_value},line={max(line, 1)}::{_escape_data(message)}"


def _escape_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _escape_property(value: str) -> str:
    return _escape_data(value).replace(":", "%3A").replace(",", "%2C")


def compute_diff(original: str, canonical: str) -> list[DiffLine]:
    """
    Compute the changed lines between a file and its canonical form.

    Line numbers are 1-based and always refer to ``original``.

    Returns:
        DiffLine list in original-file order; empty when the texts match
    """
    if original == canonical:
        return []

    original_lines = original.split("\n")
    canonical_lines = canonical.split("\n")
    matcher = difflib.SequenceMatcher(None, original_lines, canonical_lines, autojunk=False)

    differences: list[DiffLine] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            continue

        if tag == "insert":
            for j in range(j1, j2):
                differences.append(DiffLine(
                    kind=DiffKind.MISSING,
                    line_number=i1,
                    expected=canonical_lines[j],
                ))
            continue

        if tag == "delete":
            for i in range(i1, i2):
                differences.append(DiffLine(
                    kind=DiffKind.EXTRA,
                    line_number=i + 1,
                    found=original_lines[i],
                ))
            continue

        # replace: pair lines up, then report the surplus on either side
        paired = min(i2 - i1, j2 - j1)
        for k in range(paired):
            differences.append(DiffLine(
                kind=DiffKind.MISMATCH,
                line_number=i1 + k + 1,
                expected=canonical_lines[j1 + k],
                found=original_lines[i1 + k],
            ))
        for i in range(i1 + paired, i2):
            differences.append(DiffLine(
                kind=DiffKind.EXTRA,
                line_number=i + 1,
                found=original_lines[i],
            ))
        for j in range(j1 + paired, j2):
            differences.append(DiffLine(
                kind=DiffKind.MISSING,
                line_number=i2,
                expected=canonical_lines[j],
            ))

    return differences


class DiffValidator:
    """
    Validates the formatting and sorting of a registry file.

    The file is parsed and regenerated from its own content; the file is
    valid exactly when the regeneration is byte-identical to it.
    """

    def __init__(
        self,
        parser: Optional[RegistryParser] = None,
        generator: Optional[RegistryGenerator] = None,
        logger: Optional[RunLogger] = None,
        ci: Optional[CIContext] = None,
        annotation_stream: Optional[TextIO] = None,
    ) -> None:
        """
        Initialize the validator.

        Args:
            parser: Parser to use (defaults to one with default config)
            generator: Generator to use
            logger: Optional logger; parser and generator log one level deeper
            ci: CI context for annotations, or None to disable them
            annotation_stream: Where annotations are written (defaults to stdout)
        """
        self._logger = logger
        nested = logger.nested() if logger else None
        self._parser = parser or RegistryParser(logger=nested)
        self._generator = generator or RegistryGenerator(logger=nested)
        self._ci = ci
        self._annotation_stream = annotation_stream or sys.stdout

    def validate(self, file_path: str, fix: bool = False) -> DiffReport:
        """
        Validate a registry file.

        Args:
            file_path: Path of the registry file on disk
            fix: Overwrite the file with its canonical form instead of diffing

        Returns:
            DiffReport; ``exit_code`` is non-zero iff the file is not canonical
            (or could not be processed)
        """
        self._log_info(f"Starting validation of {file_path}", {"fix": fix})

        try:
            content = self.read_file(file_path)
        except OSError as e:
            self._log_error(f"Could not read {file_path}", e)
            return DiffReport(file_path=file_path, matches=False, error=f"Could not read file: {e}")

        try:
            parsed = self._parser.parse(content)
            canonical = self._generator.generate(parsed.registry, content)
        except RegistryError as e:
            self._log_error(f"Validation aborted: {e.message}", e)
            self._annotate("error", file_path, 1, e.message)
            return DiffReport(file_path=file_path, matches=False, error=e.message)

        for warning in parsed.warnings:
            self._annotate_warning(file_path, warning)

        matches = content == canonical

        if fix:
            if not matches:
                try:
                    self.write_file(file_path, canonical)
                except OSError as e:
                    self._log_error(f"Could not write {file_path}", e)
                    return DiffReport(
                        file_path=file_path,
                        matches=False,
                        warnings=parsed.warnings,
                        error=f"Could not write file: {e}",
                    )
            self._log_info(f"Wrote canonical content to {file_path}", {"changed": not matches})
            return DiffReport(
                file_path=file_path,
                matches=matches,
                warnings=parsed.warnings,
                fixed=True,
            )

        differences = compute_diff(content, canonical)
        for difference in differences:
            self._annotate(
                "error", file_path, difference.line_number, self._annotation_message(difference)
            )

        self._log_info(
            "Validation completed",
            {"matches": matches, "differences": len(differences)},
        )
        return DiffReport(
            file_path=file_path,
            matches=matches,
            differences=differences,
            warnings=parsed.warnings,
        )

    @staticmethod
    def read_file(file_path: str) -> str:
        """Read a file without newline translation."""
        with open(file_path, "r", encoding="utf-8", newline="") as f:
            return f.read()

    @staticmethod
    def write_file(file_path: str, content: str) -> None:
        """
        Write a file without newline translation.

        Content goes to a temporary file beside the target which is then
        renamed over it, so a failed write leaves the existing file intact.
        An existing file keeps its permission bits.
        """
        directory = os.path.dirname(os.path.abspath(file_path))
        if os.path.exists(file_path):
            mode = stat.S_IMODE(os.stat(file_path).st_mode)
        else:
            umask = os.umask(0)
            os.umask(umask)
            mode = 0o666 & ~umask

        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{os.path.basename(file_path)}.", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, file_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    @staticmethod
    def _annotation_message(difference: DiffLine) -> str:
        if difference.kind == DiffKind.MISSING:
            return f"Expected line after {difference.line_number}: `{difference.expected}`"
        if difference.kind == DiffKind.MISMATCH:
            return f"Expected: `{difference.expected}`\nFound: `{difference.found}`"
        return f"Unexpected line: `{difference.found}`"

    def _annotate_warning(self, file_path: str, warning: LineWarning) -> None:
        message = warning.message.replace("`", "\\`")
        self._annotate("warning", file_path, warning.line_number, message)

    def _annotate(self, level: str, file_path: str, line: int, message: str) -> None:
        if self._ci is None:
            return
        self._annotation_stream.write(
            self._ci.annotation(level, file_path, line, message) + "\n"
        )
        self._annotation_stream.flush()

    def _log_info(self, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.info("DiffValidator", message, data)

    def _log_error(self, message: str, error: Exception) -> None:
        if self._logger:
            self._logger.error("DiffValidator", message, error)
