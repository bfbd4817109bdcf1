from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence

from .content import Page
from .utils import extract_number_from_name, strip_number_prefix


def _sort_key(page: Page):
    number = extract_number_from_name(page.path.stem)
    name_key = strip_number_prefix(page.path.stem).lower()
    return (page.date, number if number is not None else 0, name_key, page.input_path)


class PageCollection(Sequence[Page]):
    """Lightweight helper for working with lists of Pages in templates and code.

    Collections keep the order they were built with; ``build_collections``
    hands them out sorted oldest first.
    """

    def __init__(self, pages: Iterable[Page]):
        self._pages = list(pages)

    def __iter__(self) -> Iterator[Page]:
        return iter(self._pages)

    def __len__(self) -> int:
        return len(self._pages)

    def __getitem__(self, item):
        if isinstance(item, slice):
            return PageCollection(self._pages[item])
        return self._pages[item]

    def with_tag(self, tag: str) -> PageCollection:
        return PageCollection(p for p in self._pages if tag in p.tags)

    def sorted(self, reverse: bool = False) -> PageCollection:
        """Sort pages by date, then by number prefix, then by filename.

        Args:
            reverse: If True, newest first.

        Returns:
            A new PageCollection with sorted pages.
        """
        return PageCollection(sorted(self._pages, key=_sort_key, reverse=reverse))

    def latest(self, count: int = 5) -> PageCollection:
        return self.sorted(reverse=True)[:count]

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PageCollection({len(self._pages)} pages)"


class Collections(Mapping[str, PageCollection]):
    """Mapping of collection name to PageCollection.

    ``all`` holds every page; every tag has a collection of its own.
    Unknown names resolve to an empty collection so templates can loop
    over ``collections.posts`` before the first post exists.
    """

    def __init__(self, mapping: dict[str, Iterable[Page]]):
        self._mapping = {k: PageCollection(v) for k, v in mapping.items()}

    def __getitem__(self, key: str) -> PageCollection:
        return self._mapping[key]

    def __getattr__(self, key: str) -> PageCollection:
        if key.startswith("_"):
            raise AttributeError(key)
        return self._mapping.get(key, PageCollection([]))

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def tags(self) -> list[str]:
        return sorted(k for k in self._mapping if k != "all")

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Collections({len(self._mapping)} collections)"


def build_collections(pages: Iterable[Page]) -> Collections:
    """Build the ``all`` and per-tag collections, oldest first.

    Pages with ``exclude_from_collections`` set are left out everywhere.

    Args:
        pages: Pages that will be rendered.

    Returns:
        Collections mapping.
    """
    included = sorted(
        (p for p in pages if not p.exclude_from_collections), key=_sort_key
    )
    mapping: dict[str, list[Page]] = {"all": included}
    for page in included:
        for tag in page.tags:
            mapping.setdefault(tag, []).append(page)
    return Collections(mapping)
