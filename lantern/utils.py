"""Utility functions for Lantern.

This module contains small helpers used throughout the Lantern codebase:
string processing, path handling, date extraction and glob matching.

Key functions:
    slugify: Convert filenames to URL slugs.
    titleize: Convert filenames to human-readable titles.
    extract_date_from_name: Extract date from filename prefix.
    coerce_datetime: Normalize frontmatter date values.
    normalize_tags: Normalize a tags value into a list.
    template_format: Map a source path to its template format.
    glob_match: Match a relative path against a watch-style glob.
    ensure_clean_dir: Ensure a directory exists and is empty.
"""

from __future__ import annotations

import re
import shutil
from collections.abc import Iterable
from datetime import date, datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any


def slugify(name: str) -> str:
    """Convert filename (without extension) to slug, dropping date prefix.

    Args:
        name: Filename stem.

    Returns:
        URL-friendly slug.
    """
    cleaned = name
    if "-" in cleaned:
        parts = cleaned.split("-")
        if len(parts) >= 4 and all(p.isdigit() for p in parts[:3]):
            cleaned = "-".join(parts[3:])
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", cleaned)
    cleaned = cleaned.strip("-").lower()
    return cleaned or "index"


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'
    """
    base = filename.split(".", 1)[0]
    if "-" in base:
        parts = base.split("-")
        if len(parts) >= 4 and all(p.isdigit() for p in parts[:3]):
            base = "-".join(parts[3:])
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def extract_date_from_name(name: str) -> datetime | None:
    """Extract a date from a filename with YYYY-MM-DD prefix.

    Returns:
        datetime object if a valid date prefix is found, None otherwise.
    """
    parts = name.split("-")
    if len(parts) >= 3 and all(p.isdigit() for p in parts[:3]):
        try:
            return datetime(int(parts[0]), int(parts[1]), int(parts[2]))
        except ValueError:
            return None
    return None


def coerce_datetime(value: Any) -> datetime | None:
    """Normalize a frontmatter date value.

    YAML already turns ``2024-01-02`` into a date; strings are parsed as
    ISO 8601. Timezone-aware values are converted to naive UTC.

    Returns:
        A naive datetime, or None if the value is not a date.
    """
    if isinstance(value, datetime):
        result = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = f"{text[:-1]}+00:00"
        try:
            result = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if result.tzinfo is not None:
        result = result.astimezone(timezone.utc).replace(tzinfo=None)
    return result


def normalize_tags(value: Any) -> list[str]:
    """Turn a ``tags`` value (string or list) into a list of unique strings."""
    if value is None or value is False:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = [value]
    elif isinstance(value, (list, tuple, set)):
        items = value
    else:
        items = [value]
    seen: list[str] = []
    for item in items:
        tag = str(item).strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def first_paragraph(text: str, limit: int = 160) -> str:
    """Extract and clean the first paragraph from text.

    Strips leading # (headers), HTML tags, and Jinja syntax.
    Collapses whitespace and truncates to the specified limit.
    """
    paragraphs = [p.strip() for p in text.split("\n\n") if p.strip()]
    for para in paragraphs:
        if para.startswith(("#", "```", "![")):
            continue
        para = re.sub(r"<[^>]+>", "", para)
        para = re.sub(r"\{[%#{].*?[%#}]\}", "", para)
        collapsed = " ".join(para.split())
        if collapsed:
            return collapsed[:limit]
    return ""


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(str(path), ignore_errors=True)
        if path.exists():
            # Fallback for stubborn directories
            for item in path.rglob("*"):
                if item.is_file():
                    item.unlink()
            for item in sorted(
                [p for p in path.rglob("*") if p.is_dir()], reverse=True
            ):
                item.rmdir()
            path.rmdir()
    path.mkdir(parents=True, exist_ok=True)


def is_within(path: Path, parent: Path) -> bool:
    """Check whether ``path`` is ``parent`` or lies below it."""
    try:
        path.relative_to(parent)
    except ValueError:
        return False
    return True


def template_format(path: Path) -> str | None:
    """Return the template format of a source file.

    ``.md`` is markdown, ``.jinja`` and ``.html.jinja`` are jinja,
    ``.html`` is plain HTML.

    Returns:
        ``"md"``, ``"jinja"``, ``"html"`` or None for anything else.
    """
    suffix = path.suffix.lower()
    if suffix == ".md":
        return "md"
    if suffix == ".jinja":
        return "jinja"
    if suffix == ".html":
        return "html"
    return None


def source_stem(path: Path) -> str:
    """Filename without any template suffixes (``about.html.jinja`` -> ``about``)."""
    name = path.name
    for suffix in (".html.jinja", ".jinja", ".html", ".md"):
        if name.lower().endswith(suffix):
            return name[: -len(suffix)]
    return path.stem


def extract_number_from_name(name: str) -> int | None:
    """Extract a leading number from a filename for sorting.

    Handles filenames like "01-intro.md", "2-getting-started.md", etc.
    If the filename has a date prefix, extracts number after the date.
    """
    parts = name.split("-")

    # Check if starts with date (YYYY-MM-DD-)
    if len(parts) >= 4 and all(p.isdigit() for p in parts[:3]):
        if len(parts) > 3 and parts[3].isdigit():
            return int(parts[3])
        return None

    if parts and parts[0].isdigit():
        return int(parts[0])

    return None


def strip_number_prefix(name: str) -> str:
    """Strip date and number prefixes from filename for sorting comparison."""
    parts = name.split("-")

    if len(parts) >= 4 and all(p.isdigit() for p in parts[:3]):
        parts = parts[3:]
        if parts and parts[0].isdigit():
            parts = parts[1:]
    elif parts and parts[0].isdigit():
        parts = parts[1:]

    return "-".join(parts) if parts else name


def expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` alternatives in a glob pattern.

    Examples:
        >>> expand_braces("img/*.{png,jpg}")
        ['img/*.png', 'img/*.jpg']
    """
    match = re.search(r"\{([^{}]*)\}", pattern)
    if not match:
        return [pattern]
    head, tail = pattern[: match.start()], pattern[match.end() :]
    expanded: list[str] = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(f"{head}{option}{tail}"))
    return expanded


@lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a watch glob into a regex.

    ``**/`` matches any number of directories, ``*`` and ``?`` never cross
    a ``/`` and ``{a,b}`` braces are expanded.
    """
    alternatives = []
    if pattern.startswith("./"):
        pattern = pattern[2:]
    for expanded in expand_braces(pattern):
        out = []
        i = 0
        while i < len(expanded):
            if expanded.startswith("**/", i):
                out.append("(?:.*/)?")
                i += 3
            elif expanded.startswith("**", i):
                out.append(".*")
                i += 2
            elif expanded[i] == "*":
                out.append("[^/]*")
                i += 1
            elif expanded[i] == "?":
                out.append("[^/]")
                i += 1
            else:
                out.append(re.escape(expanded[i]))
                i += 1
        alternatives.append("".join(out))
    return re.compile("^(?:" + "|".join(alternatives) + ")$")


def glob_match(path: str, pattern: str) -> bool:
    """Check whether a POSIX relative path matches a watch glob.

    Examples:
        >>> glob_match("css/site/main.css", "css/**/*.css")
        True
        >>> glob_match("css/main.css", "css/**/*.css")
        True
    """
    return bool(glob_to_regex(pattern).match(path))
