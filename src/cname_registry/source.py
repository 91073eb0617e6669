"""
Registry source module.

Fetches the raw registry file from the GitHub contents API. The rest of the
engine only ever sees the decoded text.
"""

import base64
import binascii
from typing import Optional

import httpx

from .config import SourceConfig
from .exceptions import SourceFetchError
from .run_logger import RunLogger


class RegistrySource:
    """Read-only access to the registry file in its hosting repository."""

    def __init__(
        self,
        config: SourceConfig,
        logger: Optional[RunLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._logger = logger
        self._transport = transport

    @property
    def contents_url(self) -> str:
        """Contents API URL of the registry file."""
        api = self._config.api_url.rstrip("/")
        return f"{api}/repos/{self._config.owner}/{self._config.repo}/contents/{self._config.path}"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self._config.token:
            headers["Authorization"] = f"Bearer {self._config.token}"
        return headers

    async def fetch(self) -> str:
        """
        Fetch and decode the registry file.

        Returns:
            The file content as text

        Raises:
            SourceFetchError: On transport errors, non-2xx responses, or an
                unexpected payload
        """
        params = {"ref": self._config.ref} if self._config.ref else None
        if self._logger:
            self._logger.info(
                "RegistrySource",
                f"Fetching {self._config.owner}/{self._config.repo}/{self._config.path}",
                {"ref": self._config.ref},
            )

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.timeout_seconds),
                transport=self._transport,
            ) as client:
                response = await client.get(self.contents_url, headers=self._headers(), params=params)
        except httpx.HTTPError as e:
            raise SourceFetchError(
                code="network_error",
                message=f"Failed to fetch registry file: {e}",
                details={"url": self.contents_url},
            )

        if not response.is_success:
            raise SourceFetchError(
                code="http_status",
                message=f"Registry fetch failed with status {response.status_code}",
                details={"url": self.contents_url, "status_code": response.status_code},
            )

        try:
            payload = response.json()
            encoding = payload.get("encoding")
            content = payload["content"]
        except (ValueError, KeyError, AttributeError) as e:
            raise SourceFetchError(
                code="parse_error",
                message=f"Unexpected contents API payload: {e}",
                details={"url": self.contents_url},
            )

        if encoding != "base64":
            raise SourceFetchError(
                code="unsupported_encoding",
                message=f"Unsupported content encoding: {encoding!r}",
                details={"url": self.contents_url},
            )

        try:
            text = base64.b64decode(content).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise SourceFetchError(
                code="decode_error",
                message=f"Failed to decode registry file: {e}",
                details={"url": self.contents_url},
            )

        if self._logger:
            self._logger.info("RegistrySource", "Fetching completed", {"bytes": len(text)})
        return text
