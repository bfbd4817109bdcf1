"""Template rendering engine for Lantern.

This module uses Jinja2 to render page bodies and wrap them in layouts.

Rendering a page happens in two steps:
1. The body is run through the template engine configured for its format
   (``markdown_template_engine``/``html_template_engine``; Jinja pages
   always), then through the renderer for its source type (mistune for
   Markdown).
2. The result is wrapped by the page's layout chain. Layouts live in the
   includes directory and may carry frontmatter of their own, including a
   ``layout`` key naming the next layout out.

Template context, lowest priority first: global data files, layout data,
page data, then ``page``, ``collections`` and ``content``.

Key class:
- TemplateEngine: Handles template rendering and provides context to templates.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, Template, TemplateNotFound, select_autoescape
from markupsafe import Markup

from .collections import Collections
from .config import Directories, SiteConfig
from .content import Page
from .extractors import extract_frontmatter
from .renderers import RendererRegistry

LAYOUT_SUFFIXES = ("", ".jinja", ".html", ".html.jinja")


class LayoutError(Exception):
    """A layout chain cannot be resolved."""


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Attributes:
        directories: Resolved directory layout.
        site: Site configuration (template engines per format).
        data: Global data from the data directory.
        env: Jinja2 environment.
        renderers: Registry of body renderers.
        collections: Collections of the current build.
    """

    def __init__(
        self,
        directories: Directories,
        site: SiteConfig,
        data: dict[str, Any],
        filters: Mapping[str, Any] | None = None,
        globals: Mapping[str, Any] | None = None,
        renderers: RendererRegistry | None = None,
    ):
        self.directories = directories
        self.site = site
        self.data = data
        self.renderers = renderers or RendererRegistry()
        self.env = Environment(
            loader=FileSystemLoader([str(directories.includes), str(directories.input)]),
            autoescape=select_autoescape(["html", "xml", "jinja"]),
            enable_async=False,
        )
        self.env.filters.update(filters or {})
        self.env.globals.update(globals or {})
        self.collections = Collections({})
        self._layouts: dict[str, tuple[dict[str, Any], Template]] = {}

    def update_collections(self, collections: Collections) -> None:
        self.collections = collections
        self.env.globals["collections"] = collections

    def _engine_for(self, page: Page) -> str | None:
        if page.source_type == "markdown":
            return self.site.markdown_template_engine
        if page.source_type == "html":
            return self.site.html_template_engine
        return "jinja"

    def render_content(self, page: Page) -> str:
        """Render a page body without its layouts and store it on the page.

        Args:
            page: Page object to render.

        Returns:
            Rendered content HTML.
        """
        context = self._context(page, {})
        body = page.body
        if self._engine_for(page) == "jinja":
            body = self.env.from_string(body).render(context)
        renderer = self.renderers.get_renderer(page.source_type)
        content = renderer.render(body) if renderer is not None else body
        page.content = content
        return content

    def render_page(self, page: Page) -> str:
        """Render a page with its layout chain.

        ``render_content`` must have been called for the page first; pages
        are rendered in two passes so that layouts can read the content of
        every page through ``collections``.

        Args:
            page: Page object to render.

        Returns:
            Rendered output.
        """
        chain = self._layout_chain(page.layout)
        layout_data: dict[str, Any] = {}
        for data, _ in reversed(chain):
            layout_data.update(data)

        output = page.content
        for _, template in chain:
            context = self._context(page, layout_data)
            context["content"] = Markup(output)
            output = template.render(context)
        return output

    def _context(self, page: Page, layout_data: Mapping[str, Any]) -> dict[str, Any]:
        context: dict[str, Any] = {}
        context.update(self.data)
        context.update(layout_data)
        context.update(page.data)
        context["page"] = page
        context["collections"] = self.collections
        return context

    def _layout_chain(self, layout: str | None) -> list[tuple[dict[str, Any], Template]]:
        chain: list[tuple[dict[str, Any], Template]] = []
        seen: list[str] = []
        while layout:
            if layout in seen:
                raise LayoutError(f"Layout cycle: {' -> '.join(seen + [layout])}")
            seen.append(layout)
            data, template = self._load_layout(layout)
            chain.append((data, template))
            layout = data.get("layout") or None
        return chain

    def _load_layout(self, name: str) -> tuple[dict[str, Any], Template]:
        """Load a layout from the includes directory.

        Raises:
            TemplateNotFound: If no file matches the layout name.
        """
        if name not in self._layouts:
            path = self._find_layout(name)
            if path is None:
                raise TemplateNotFound(name)
            data, body = extract_frontmatter(path.read_text(encoding="utf-8"))
            self._layouts[name] = (data, self.env.from_string(body))
        return self._layouts[name]

    def _find_layout(self, name: str) -> Path | None:
        for suffix in LAYOUT_SUFFIXES:
            candidate = self.directories.includes / f"{name}{suffix}"
            if candidate.is_file():
                return candidate
        return None

    def render_string(self, template: str, context: dict[str, Any]) -> str:
        """Render a template string.

        Args:
            template: Template string to render.
            context: Variables to make available in the template.

        Returns:
            Rendered string.
        """
        tmpl = self.env.from_string(template)
        return tmpl.render(**context)
