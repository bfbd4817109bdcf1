"""Navigation menus for Lantern.

Pages opt into navigation with a ``navigation`` mapping in their data:

    navigation:
      key: Archive
      order: 2
      parent: Blog      # optional
      title: All posts  # optional, defaults to key

Plugins can contribute entries without a page (the feed does). The
NavigationPlugin exposes two filters to templates:
- navigation_tree(collection, root_key=None)
- navigation_breadcrumb(collection, key, include_self=False)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .content import Page
    from .plugins import UserConfig


@dataclass
class NavigationEntry:
    """One navigation menu entry.

    Attributes:
        key: Unique key within the menu.
        title: Link text.
        url: Link target.
        order: Sort order among siblings (missing orders sort as 0).
        parent: Key of the parent entry, None for top-level entries.
        children: Child entries, sorted.
    """

    key: str
    title: str
    url: str | None
    order: float = 0
    parent: str | None = None
    children: list[NavigationEntry] = field(default_factory=list)


def _collect(
    pages: Iterable[Page], extras: Iterable[Mapping[str, Any]] = ()
) -> dict[str, NavigationEntry]:
    entries: dict[str, NavigationEntry] = {}
    sources: list[tuple[Mapping[str, Any], str | None]] = []
    for page in pages:
        nav = page.data.get("navigation")
        if isinstance(nav, Mapping):
            sources.append((nav, page.url))
    for extra in extras:
        sources.append((extra, extra.get("url")))

    for nav, default_url in sources:
        key = nav.get("key")
        if not key or str(key) in entries:
            continue
        try:
            order = float(nav.get("order") or 0)
        except (TypeError, ValueError):
            order = 0
        entries[str(key)] = NavigationEntry(
            key=str(key),
            title=str(nav.get("title") or key),
            url=nav.get("url") or default_url,
            order=order,
            parent=str(nav["parent"]) if nav.get("parent") else None,
        )
    return entries


def navigation_tree(
    pages: Iterable[Page],
    root_key: str | None = None,
    extras: Iterable[Mapping[str, Any]] = (),
) -> list[NavigationEntry]:
    """Build the navigation tree below ``root_key`` (top level when None).

    Args:
        pages: Pages to read ``navigation`` data from (usually collections.all).
        root_key: Key whose descendants are returned.
        extras: Entries contributed by plugins.

    Returns:
        Sorted list of entries with their children filled in.
    """
    entries = _collect(pages, extras)
    by_parent: dict[str | None, list[NavigationEntry]] = {}
    for entry in entries.values():
        parent = entry.parent if entry.parent in entries else None
        by_parent.setdefault(parent, []).append(entry)

    def attach(key: str | None, seen: frozenset[str]) -> list[NavigationEntry]:
        children = sorted(by_parent.get(key, []), key=lambda e: e.order)
        for child in children:
            if child.key not in seen:
                child.children = attach(child.key, seen | {child.key})
        return children

    return attach(root_key, frozenset())


def navigation_breadcrumb(
    pages: Iterable[Page],
    key: str,
    include_self: bool = False,
    extras: Iterable[Mapping[str, Any]] = (),
) -> list[NavigationEntry]:
    """Return the chain of ancestors of ``key``, root first."""
    entries = _collect(pages, extras)
    chain: list[NavigationEntry] = []
    current = entries.get(key)
    if current is None:
        return chain
    if include_self:
        chain.append(current)
    seen = {current.key}
    while current.parent and current.parent in entries and current.parent not in seen:
        current = entries[current.parent]
        seen.add(current.key)
        chain.append(current)
    chain.reverse()
    return chain


class NavigationPlugin:
    """Registers the navigation filters."""

    name = "navigation"

    def register(self, config: UserConfig) -> None:
        def tree(pages, root_key=None):
            return navigation_tree(pages, root_key, extras=config.navigation_entries)

        def breadcrumb(pages, key, include_self=False):
            return navigation_breadcrumb(
                pages, key, include_self, extras=config.navigation_entries
            )

        config.add_filter("navigation_tree", tree)
        config.add_filter("navigation_breadcrumb", breadcrumb)
