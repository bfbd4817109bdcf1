"""Protocol definitions for Lantern.

The built-in components are wired through these interfaces, so a test
(or a project-specific plugin) can swap any of them for another
implementation without touching the build orchestration.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .content import ContentItem, Page
    from .plugins import UserConfig


@runtime_checkable
class ContentRenderer(Protocol):
    """Protocol for turning a page body into HTML.

    Implementations handle one source type ("markdown", "html", "jinja").
    """

    @abstractmethod
    def can_render(self, source_type: str) -> bool:
        """Check if this renderer handles the given source type."""
        ...

    @abstractmethod
    def render(self, content: str) -> str:
        """Render content to HTML.

        Args:
            content: Body after template preprocessing.

        Returns:
            Rendered HTML.
        """
        ...


@runtime_checkable
class MetadataExtractor(Protocol):
    """Protocol for extracting metadata from content."""

    @abstractmethod
    def extract(self, content: str, path: Path) -> dict[str, Any]:
        """Extract metadata from content.

        Args:
            content: Source content.
            path: Path to the source file.

        Returns:
            Dictionary of extracted metadata.
        """
        ...


@runtime_checkable
class Plugin(Protocol):
    """Protocol for configuration plugins.

    A plugin receives the mutable UserConfig once, during
    ``configure_site``, and registers whatever filters, globals,
    transforms or feeds it contributes.
    """

    name: str

    @abstractmethod
    def register(self, config: UserConfig) -> None:
        ...


@runtime_checkable
class TemplateRenderer(Protocol):
    """Protocol for rendering pages and template strings."""

    @abstractmethod
    def render_page(self, page: Page) -> str:
        """Render a page with its layout chain.

        Args:
            page: Page object to render.

        Returns:
            Rendered output.
        """
        ...

    @abstractmethod
    def render_string(self, template: str, context: dict[str, Any]) -> str:
        ...


@runtime_checkable
class ContentLoader(Protocol):
    """Protocol for discovering content files."""

    @abstractmethod
    def iter_files(self) -> list[Path]:
        ...


@runtime_checkable
class PageBuilder(Protocol):
    """Protocol for reading content items and building Page objects.

    ``read`` and ``build`` are separate so preprocessors can run between
    them.
    """

    @abstractmethod
    def read(self, path: Path) -> ContentItem:
        ...

    @abstractmethod
    def build(self, item: ContentItem) -> Page:
        ...
