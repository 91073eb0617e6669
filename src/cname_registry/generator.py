"""
Registry generation module.

Renders a registry back into the exact ``cnames_active.js`` layout, reusing
the header and footer comment blocks of an existing file.
"""

import re
from typing import Optional

from cname_registry.exceptions import GenerationError
from cname_registry.models import Registry
from cname_registry.run_logger import RunLogger


COMMENT_BLOCK_PATTERN = re.compile(r"(/\*[\s\S]+?\*/)")


class RegistryGenerator:
    """
    Produces the canonical text of a registry file.

    Output is a function of the registry contents and the first two comment
    blocks of the reference file only: keys are lowercased on a copy and
    sorted by code point, and the punctuation below is fixed.
    """

    def __init__(self, logger: Optional[RunLogger] = None) -> None:
        self._logger = logger

    def generate(self, registry: Registry, original_file: str) -> str:
        """
        Generate canonical file content.

        Args:
            registry: Entries to render (not modified)
            original_file: Existing file text providing header and footer

        Returns:
            The canonical file content

        Raises:
            GenerationError: If fewer than two comment blocks are present
        """
        if self._logger:
            self._logger.info("RegistryGenerator", "Starting registry generation")

        header, footer = self.extract_comment_blocks(original_file)

        entries = {key.lower(): entry for key, entry in registry.items()}
        keys = sorted(entries)

        lines = []
        for index, key in enumerate(keys):
            entry = entries[key]
            comma = "" if index == len(keys) - 1 else ","
            marker = f" {entry.no_cf}" if entry.no_cf else ""
            lines.append(f'  "{key}": "{entry.target}"{comma}{marker}')

        content = f"{header}\n\nvar cnames_active = {{\n" + "\n".join(lines) + f"\n  {footer}\n}}\n"

        if self._logger:
            self._logger.info(
                "RegistryGenerator",
                "Generation completed",
                {"entries": len(keys)},
            )
        return content

    def extract_comment_blocks(self, original_file: str) -> tuple[str, str]:
        """
        Find the leading header and trailing footer comment blocks.

        Returns:
            Tuple of (header block, footer block), verbatim

        Raises:
            GenerationError: If fewer than two ``/* ... */`` blocks exist
        """
        blocks = COMMENT_BLOCK_PATTERN.findall(original_file)
        if len(blocks) < 2:
            if self._logger:
                self._logger.error(
                    "RegistryGenerator",
                    "Generation aborted: could not locate top & bottom comment blocks",
                    data={"blocks_found": len(blocks)},
                )
            raise GenerationError(
                code="comment_blocks_missing",
                message="Could not locate top & bottom comment blocks in raw file",
                details={"blocks_found": len(blocks)},
            )
        if self._logger:
            self._logger.debug("RegistryGenerator", "Comment blocks located in existing raw file")
        return blocks[0], blocks[1]


def generate_registry(
    registry: Registry,
    original_file: str,
    logger: Optional[RunLogger] = None,
) -> str:
    """Generate canonical content with a one-off RegistryGenerator."""
    return RegistryGenerator(logger).generate(registry, original_file)
