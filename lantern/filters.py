"""Template filters for Lantern.

Date formatting and list helpers used by the blog layouts.

Key objects:
- readable_date, html_date_string: Date formatting.
- head, get_keys, filter_tag_list, sort_alphabetically: List helpers.
- FiltersPlugin: Registers all of the above.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any

from .utils import coerce_datetime

if TYPE_CHECKING:
    from .plugins import UserConfig

IGNORED_TAGS = ("all", "posts")


def readable_date(value: Any, fmt: str = "%d %B %Y") -> str:
    """Format a date for humans, e.g. ``05 January 2024``."""
    moment = value if isinstance(value, datetime) else coerce_datetime(value)
    if moment is None:
        return ""
    return moment.strftime(fmt)


def html_date_string(value: Any) -> str:
    """Format a date for ``<time datetime>`` attributes (``YYYY-MM-DD``)."""
    return readable_date(value, "%Y-%m-%d")


def head(items: Sequence[Any] | None, n: int) -> list[Any]:
    """Return the first ``n`` items, or the last ``-n`` when n is negative."""
    if not items or n == 0:
        return []
    items = list(items)
    if n < 0:
        return items[n:]
    return items[:n]


def get_keys(target: Mapping[str, Any] | None) -> list[str]:
    return list(target or {})


def filter_tag_list(tags: Iterable[str] | None) -> list[str]:
    """Drop the structural tags that only group pages into collections."""
    return [tag for tag in (tags or []) if tag not in IGNORED_TAGS]


def sort_alphabetically(strings: Iterable[str] | None) -> list[str]:
    return sorted(strings or [], key=lambda s: str(s).lower())


class FiltersPlugin:
    """Registers the date and list filters."""

    name = "filters"

    def register(self, config: UserConfig) -> None:
        config.add_filter("readable_date", readable_date)
        config.add_filter("html_date_string", html_date_string)
        config.add_filter("head", head)
        config.add_filter("get_keys", get_keys)
        config.add_filter("filter_tag_list", filter_tag_list)
        config.add_filter("sort_alphabetically", sort_alphabetically)
