"""Content preprocessors for Lantern.

Preprocessors run on every content item after its metadata has been
assembled and before anything is rendered. Each one receives the item and
the current RunMode and returns a PreprocessResult: a (possibly updated)
copy of the item and whether the item is excluded from the build. Items
are never mutated in place.

Key objects:
- PreprocessResult: Outcome of one preprocessor call.
- filter_drafts: Marks draft titles and drops drafts from production builds.
- PreprocessorRegistry: Named preprocessors with extension matching.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from .config import RunMode

if TYPE_CHECKING:
    from .content import ContentItem

DRAFT_SUFFIX = " (draft)"


@dataclass(frozen=True)
class PreprocessResult:
    """Result of running a preprocessor on one content item.

    Attributes:
        item: The item to continue with (a copy when anything changed).
        excluded: True if the item must not be rendered or enumerated.
    """

    item: ContentItem
    excluded: bool = False


Preprocessor = Callable[["ContentItem", RunMode], PreprocessResult]


def filter_drafts(item: ContentItem, run_mode: RunMode) -> PreprocessResult:
    """Handle ``draft: true`` content.

    Drafts get `` (draft)`` appended to their title in every mode, and are
    excluded when building for production. Items without a truthy ``draft``
    value pass through untouched. Titles already carrying the suffix are not
    suffixed again.

    Args:
        item: Content item to inspect.
        run_mode: Mode of the current build.

    Returns:
        PreprocessResult for the item.
    """
    if not item.data.get("draft"):
        return PreprocessResult(item)

    title = str(item.data.get("title") or "")
    if not title.endswith(DRAFT_SUFFIX):
        title = f"{title}{DRAFT_SUFFIX}"
    data = {**item.data, "title": title}
    return PreprocessResult(replace(item, data=data), excluded=run_mode.is_production)


@dataclass(frozen=True)
class _Registration:
    name: str
    extensions: tuple[str, ...]
    func: Preprocessor

    def applies_to(self, template_format: str) -> bool:
        return "*" in self.extensions or template_format in self.extensions


class PreprocessorRegistry:
    """Ordered registry of named preprocessors.

    Preprocessors run in registration order; the first exclusion stops the
    chain. Registering an existing name replaces the earlier entry in place.
    """

    def __init__(self) -> None:
        self._registrations: list[_Registration] = []

    def register(self, name: str, extensions: str, func: Preprocessor) -> None:
        """Register a preprocessor.

        Args:
            name: Unique preprocessor name.
            extensions: ``"*"`` or a comma separated list of template formats.
            func: Callable receiving ``(item, run_mode)``.
        """
        formats = tuple(
            part.strip().lstrip(".").lower() for part in extensions.split(",") if part.strip()
        )
        registration = _Registration(name, formats or ("*",), func)
        for index, existing in enumerate(self._registrations):
            if existing.name == name:
                self._registrations[index] = registration
                return
        self._registrations.append(registration)

    @property
    def names(self) -> list[str]:
        return [registration.name for registration in self._registrations]

    def run(self, item: ContentItem, run_mode: RunMode) -> PreprocessResult:
        """Run every applicable preprocessor on an item.

        Args:
            item: Content item to process.
            run_mode: Mode of the current build.

        Returns:
            Final PreprocessResult.
        """
        result = PreprocessResult(item)
        for registration in self._registrations:
            if not registration.applies_to(item.template_format):
                continue
            result = registration.func(result.item, run_mode)
            if result.excluded:
                break
        return result
