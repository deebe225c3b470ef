"""Front-matter and inline tag parsing for Markdown notes."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Tuple

import yaml

from .errors import MetadataError
from .models import DocumentMetadata

_FRONTMATTER_OPEN = "---"
_FRONTMATTER_CLOSE = ("---", "...")
_FENCE_PATTERN = re.compile(r"^\s*(```|~~~)")
_INLINE_CODE_PATTERN = re.compile(r"`[^`\n]*`")
# A tag starts at a line start or after whitespace and may nest with "/".
_TAG_PATTERN = re.compile(r"(?<!\S)#([\w/-]+)")


def split_frontmatter(text: str) -> Tuple[str | None, str]:
    """Split ``text`` into its raw front-matter block and the remaining body.

    Returns:
        Tuple[str | None, str]: Front-matter source (``None`` when absent) and body.
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip("\r\n").rstrip() != _FRONTMATTER_OPEN:
        return None, text

    for index in range(1, len(lines)):
        if lines[index].rstrip("\r\n").rstrip() in _FRONTMATTER_CLOSE:
            return "".join(lines[1:index]), "".join(lines[index + 1 :])
    return None, text


class MetadataParser:
    """Extract front-matter fields and inline tag occurrences from note text."""

    def parse(self, text: str) -> DocumentMetadata:
        """Return parsed metadata for a note.

        Args:
            text: Full Markdown source of the note.

        Returns:
            DocumentMetadata: Front-matter mapping and inline tag tokens.

        Raises:
            MetadataError: If the front-matter block is not a valid YAML mapping.
        """
        raw_frontmatter, body = split_frontmatter(text)
        return DocumentMetadata(
            frontmatter=self._parse_frontmatter(raw_frontmatter),
            tags=self.inline_tags(body),
        )

    def inline_tags(self, body: str) -> List[str]:
        """Return ``#tag`` tokens found outside of code in document order."""
        tags: List[str] = []
        in_fence = False
        for line in body.splitlines():
            if _FENCE_PATTERN.match(line):
                in_fence = not in_fence
                continue
            if in_fence:
                continue
            visible = _INLINE_CODE_PATTERN.sub(" ", line)
            for match in _TAG_PATTERN.finditer(visible):
                token = match.group(1).rstrip("/")
                # Purely numeric tokens such as issue numbers are not tags.
                if not token or token.replace("/", "").isdigit():
                    continue
                tags.append(f"#{token}")
        return tags

    def _parse_frontmatter(self, raw: str | None) -> Dict[str, Any]:
        if raw is None or not raw.strip():
            return {}
        # Timestamp-shaped values that are not real dates raise ValueError.
        try:
            data = yaml.safe_load(raw)
        except (yaml.YAMLError, ValueError) as exc:
            raise MetadataError(f"Invalid front-matter: {exc}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise MetadataError("Front-matter must be a mapping.")
        return {str(key): value for key, value in data.items()}


__all__ = ["MetadataParser", "split_frontmatter"]
