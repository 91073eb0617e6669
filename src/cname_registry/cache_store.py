"""
Cache Store module for resumable, long-running operations.

Each logical operation name maps to one JSON blob on disk. Blobs are written
atomically and may be HMAC-protected; anything that cannot be read back
cleanly is treated as a cache miss.
"""

import hashlib
import hmac
import json
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from .exceptions import CacheCorruptionError, PersistenceError
from .run_logger import RunLogger


CACHE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class CacheStore:
    """
    Keyed persistent blob store.

    ``put`` replaces the whole blob for a name in a single atomic rename, so a
    caller that writes after every unit of work loses at most the unit that
    was in flight when the process stopped.
    """

    VERSION = 1

    def __init__(
        self,
        directory: Path,
        hmac_secret: Optional[str] = None,
        logger: Optional[RunLogger] = None,
    ) -> None:
        """
        Initialize the cache store.

        Args:
            directory: Directory holding one ``<name>.json`` file per blob
            hmac_secret: Optional secret; when set every blob is HMAC-protected
            logger: Optional logger for corruption warnings
        """
        self._directory = Path(directory)
        self._hmac_secret = hmac_secret.encode("utf-8") if hmac_secret else None
        self._logger = logger

    @property
    def directory(self) -> Path:
        """Get the cache directory."""
        return self._directory

    def path_for(self, name: str) -> Path:
        """
        Resolve the file path for a logical cache name.

        Raises:
            PersistenceError: If the name contains path separators or other
                characters outside ``[A-Za-z0-9_.-]``
        """
        if not CACHE_NAME_PATTERN.match(name) or name in (".", ".."):
            raise PersistenceError(
                code="invalid_name",
                message=f"Invalid cache name: {name!r}",
                details={"name": name},
            )
        return self._directory / f"{name}.json"

    def exists(self, name: str) -> bool:
        """Check whether a blob is stored under ``name``."""
        return self.path_for(name).exists()

    def names(self) -> list[str]:
        """List all stored cache names in sorted order."""
        if not self._directory.is_dir():
            return []
        return sorted(path.stem for path in self._directory.glob("*.json"))

    def get(self, name: str) -> Optional[Any]:
        """
        Read the blob stored under ``name``.

        Returns:
            The stored data, or None if nothing usable is stored. Corrupt
            blobs are logged and reported as a miss.
        """
        try:
            return self.load_strict(name)
        except CacheCorruptionError as e:
            if self._logger:
                self._logger.warn(
                    "CacheStore",
                    f"Ignoring unusable cache for {name}: {e.message}",
                    {"name": name, "code": e.code},
                )
            return None

    def load_strict(self, name: str) -> Optional[Any]:
        """
        Read the blob stored under ``name``, surfacing corruption.

        Returns:
            The stored data, or None if no blob exists

        Raises:
            CacheCorruptionError: If the blob is unreadable, malformed, or
                fails HMAC validation
        """
        path = self.path_for(name)
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise CacheCorruptionError(
                code="io_error",
                message=f"Failed to read cache file: {e}",
                details={"file_path": str(path)},
            )

        if not raw.strip():
            raise CacheCorruptionError(
                code="empty",
                message="Cache file is empty",
                details={"file_path": str(path)},
            )

        try:
            envelope = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CacheCorruptionError(
                code="parse_error",
                message=f"Failed to parse cache file: {e}",
                details={"file_path": str(path)},
            )

        if not isinstance(envelope, dict) or "data" not in envelope:
            raise CacheCorruptionError(
                code="invalid_envelope",
                message="Cache file does not contain a data envelope",
                details={"file_path": str(path)},
            )

        if envelope.get("version") != self.VERSION:
            raise CacheCorruptionError(
                code="version_mismatch",
                message=f"Unsupported cache version: {envelope.get('version')!r}",
                details={"file_path": str(path)},
            )

        if self._hmac_secret is not None:
            stored_hmac = envelope.get("hmac") or ""
            computed_hmac = self.compute_hmac(self._signable(envelope))
            if not hmac.compare_digest(stored_hmac, computed_hmac):
                raise CacheCorruptionError(
                    code="hmac_mismatch",
                    message="HMAC validation failed - cache may have been tampered with",
                    details={"file_path": str(path)},
                )

        return envelope["data"]

    def put(self, name: str, data: Any) -> None:
        """
        Store ``data`` under ``name``, replacing any previous blob.

        The new blob is written to a temporary file in the cache directory and
        renamed over the old one.

        Raises:
            PersistenceError: If the data cannot be serialized or written
        """
        path = self.path_for(name)

        envelope = {
            "version": self.VERSION,
            "name": name,
            "updated_at": datetime.now(timezone.utc).isoformat(),
            "data": data,
        }
        if self._hmac_secret is not None:
            envelope["hmac"] = self.compute_hmac(self._signable(envelope))

        try:
            serialized = json.dumps(envelope, ensure_ascii=False, sort_keys=True)
        except (TypeError, ValueError) as e:
            raise PersistenceError(
                code="serialize_error",
                message=f"Cache data is not JSON-serializable: {e}",
                details={"name": name},
            )

        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{name}.", suffix=".tmp", dir=self._directory
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(serialized)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to write cache file: {e}",
                details={"file_path": str(path)},
            )

    def delete(self, name: str) -> bool:
        """
        Remove the blob stored under ``name``.

        Returns:
            True if a blob was removed, False if none existed
        """
        path = self.path_for(name)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to remove cache file: {e}",
                details={"file_path": str(path)},
            )
        return True

    def compute_hmac(self, data: dict) -> str:
        """
        Compute HMAC-SHA256 over serialized data.

        Returns:
            Hexadecimal HMAC string
        """
        if self._hmac_secret is None:
            raise PersistenceError(
                code="no_secret",
                message="No HMAC secret configured for this cache store",
            )
        serialized = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hmac.new(
            self._hmac_secret,
            serialized.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    @staticmethod
    def _signable(envelope: dict) -> dict:
        return {
            "version": envelope.get("version"),
            "name": envelope.get("name"),
            "updated_at": envelope.get("updated_at"),
            "data": envelope.get("data"),
        }
