"""Metadata extractors for Lantern.

This module contains implementations of the MetadataExtractor protocol.
Each extractor derives one kind of metadata from a source file; the
composite merges them into the defaults a content item starts from.
Frontmatter values always win over derived ones when the item's data
is assembled.

Key classes:
- FrontmatterExtractor: Splits YAML frontmatter from the body.
- TitleExtractor: Extracts title from the first heading or filename.
- DateExtractor: Extracts date from filename or file metadata.
- DescriptionExtractor: Extracts a short description from the body.
- CompositeMetadataExtractor: Runs a list of extractors.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from .utils import extract_date_from_name, first_paragraph, source_stem, titleize

FRONTMATTER_RE = re.compile(r"^---[ \t]*\n(?:(.*?)\n)?---[ \t]*(?:\n|$)", re.DOTALL)


def extract_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Extract YAML frontmatter from content.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (frontmatter dict, remaining content).
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return {}, text
    try:
        data = yaml.safe_load(match.group(1) or "") or {}
        if not isinstance(data, dict):
            return {}, text
        return data, text[match.end() :]
    except yaml.YAMLError:
        return {}, text


class FrontmatterExtractor:
    """Extracts YAML frontmatter from content."""

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        frontmatter, body = extract_frontmatter(content)
        return {"frontmatter": frontmatter, "body": body}


class TitleExtractor:
    """Extracts title from content or filename.

    Looks for a level-1 heading (# Title) in Markdown content,
    falling back to titleizing the filename.
    """

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        if path.suffix.lower() == ".md":
            _, body = extract_frontmatter(content)
            for line in body.splitlines():
                stripped = line.strip()
                if stripped.startswith("# "):
                    return {"title": stripped[2:].strip()}
        return {"title": titleize(source_stem(path))}


class DateExtractor:
    """Extracts date from filename or file metadata.

    Looks for YYYY-MM-DD prefix in filename, falling back
    to file modification time.
    """

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        date = extract_date_from_name(path.stem)
        if date is None:
            date = datetime.fromtimestamp(path.stat().st_mtime)
        return {"date": date}


class DescriptionExtractor:
    """Extracts a description from the first body paragraph (160 chars max)."""

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        _, body = extract_frontmatter(content)
        return {"description": first_paragraph(body)}


class CompositeMetadataExtractor:
    """Combines multiple metadata extractors.

    Runs every registered extractor and merges their results; later
    extractors override earlier ones.
    """

    def __init__(self, extractors: list | None = None):
        if extractors is None:
            self._extractors = [
                FrontmatterExtractor(),
                TitleExtractor(),
                DateExtractor(),
                DescriptionExtractor(),
            ]
        else:
            self._extractors = list(extractors)

    def add_extractor(self, extractor) -> None:
        self._extractors.append(extractor)

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        """Extract all metadata from content.

        Args:
            content: Source content.
            path: Path to the source file.

        Returns:
            Dictionary with all extracted metadata.
        """
        result: dict[str, Any] = {}
        for extractor in self._extractors:
            result.update(extractor.extract(content, path))
        return result


default_metadata_extractor = CompositeMetadataExtractor()
