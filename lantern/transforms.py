"""HTML transform pipeline for Lantern.

Every rendered HTML page passes through an ordered list of transform
stages. The order is declared by each stage (``order``, lower runs first)
rather than by the order plugins register them in, so plugins can be
composed in any sequence. Stages only see pages whose output is HTML.

Stage contracts, in pipeline order:
- bundle (10): Removes bundled ``<style>``/``<script>`` elements and fills
  bundle placeholders. Emits root-relative bundle file URLs.
- input_path_to_url (20): Rewrites links to source files into page URLs.
- image (30): Replaces local ``<img>`` elements with optimized ``<picture>``
  markup. Emits root-relative image URLs.
- id_attribute (40): Adds unique ids to headings that have none.
- html_base (90): Prefixes every root-relative URL with the path prefix.

Key classes:
- TransformContext: Per-build information shared by all stages.
- BaseTransform: Base class for stages.
- TransformPipeline: Ordered registry of stages.
- HtmlBaseTransform, InputPathToUrlTransform, IdAttributeTransform and
  their plugins.
"""

from __future__ import annotations

import posixpath
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from html import unescape
from pathlib import Path
from typing import TYPE_CHECKING

from .config import Directories
from .html_utils import is_external_url, rewrite_html_urls

if TYPE_CHECKING:
    from .content import Page
    from .plugins import UserConfig

HEADING_RE = re.compile(
    r"<h(?P<level>[1-6])(?P<attrs>\s[^>]*)?>(?P<inner>.*?)</h(?P=level)\s*>",
    re.IGNORECASE | re.DOTALL,
)
ID_ATTR_RE = re.compile(r"""(?<![\w-])id\s*=\s*["']([^"']*)["']""", re.IGNORECASE)
TAG_RE = re.compile(r"<[^>]+>")


@dataclass
class TransformContext:
    """Information about the current build, shared by all stages.

    Attributes:
        directories: Resolved directory layout.
        output_dir: Directory the build writes to.
        path_prefix: URL path prefix of the site.
        pages_by_input: Pages keyed by input path (relative POSIX path).
    """

    directories: Directories
    output_dir: Path
    path_prefix: str = "/"
    pages_by_input: dict[str, Page] = field(default_factory=dict)


class BaseTransform(ABC):
    """Base class for HTML transform stages."""

    name: str = "transform"

    @property
    @abstractmethod
    def order(self) -> int:
        """Return pipeline position (lower runs first)."""
        ...

    @abstractmethod
    def apply(self, html: str, page: Page, context: TransformContext) -> str:
        """Transform the rendered HTML of one page.

        Args:
            html: Rendered page HTML.
            page: The page being written.
            context: Build-wide context.

        Returns:
            Transformed HTML.
        """
        ...


class TransformPipeline:
    """Ordered registry of transform stages.

    Stages are kept sorted by their declared order; stages with the same
    order keep registration order. Registering a stage whose name is
    already present replaces it.
    """

    def __init__(self) -> None:
        self._stages: list[BaseTransform] = []

    def register(self, stage: BaseTransform) -> None:
        self._stages = [s for s in self._stages if s.name != stage.name]
        self._stages.append(stage)
        self._stages.sort(key=lambda s: s.order)

    @property
    def stages(self) -> list[BaseTransform]:
        return list(self._stages)

    def run(self, html: str, page: Page, context: TransformContext) -> str:
        """Apply every stage to a page's HTML; non-HTML outputs are returned as-is."""
        if not page.is_html:
            return html
        for stage in self._stages:
            html = stage.apply(html, page, context)
        return html


def apply_path_prefix(url: str, path_prefix: str) -> str:
    """Prefix a root-relative URL with the site's path prefix.

    Examples:
        >>> apply_path_prefix("/about/", "/blog/")
        '/blog/about/'
    """
    if path_prefix in ("", "/") or is_external_url(url) or not url.startswith("/"):
        return url
    prefix = path_prefix.rstrip("/")
    if url == prefix or url.startswith(f"{prefix}/"):
        return url
    return f"{prefix}{url}"


class HtmlBaseTransform(BaseTransform):
    """Applies the path prefix to href, src, srcset and action URLs."""

    name = "html_base"

    @property
    def order(self) -> int:
        return 90

    def apply(self, html: str, page: Page, context: TransformContext) -> str:
        if context.path_prefix in ("", "/"):
            return html
        return rewrite_html_urls(
            html, lambda url: apply_path_prefix(url, context.path_prefix)
        )


class HtmlBasePlugin:
    """Registers the html_base transform and the ``url`` filter."""

    name = "html-base"

    def register(self, config: UserConfig) -> None:
        prefix = config.site.path_prefix
        config.add_transform(HtmlBaseTransform())
        config.add_filter("url", lambda url: apply_path_prefix(str(url), prefix))


def resolve_input_path(url: str, page: Page, context: TransformContext) -> str | None:
    """Map a link to a source file onto that page's URL.

    Absolute links are relative to the input directory (the input
    directory's own name may be included); relative links are relative to
    the linking page.

    Returns:
        The target page URL (with the original fragment), or None.
    """
    if is_external_url(url):
        return None
    path, hash_sep, fragment = url.partition("#")
    path, _, _ = path.partition("?")
    if not path:
        return None
    if path.startswith("/"):
        candidate = posixpath.normpath(path.lstrip("/"))
        input_name = context.directories.input.name
        if candidate.startswith(f"{input_name}/"):
            stripped = candidate[len(input_name) + 1 :]
            if stripped in context.pages_by_input:
                candidate = stripped
    else:
        base = posixpath.dirname(page.input_path)
        candidate = posixpath.normpath(posixpath.join(base, path))
    target = context.pages_by_input.get(candidate)
    if target is None or target.url is None:
        return None
    return f"{target.url}{hash_sep}{fragment}"


class InputPathToUrlTransform(BaseTransform):
    """Rewrites links that name source files (``/blog/post.md``) to page URLs."""

    name = "input_path_to_url"

    @property
    def order(self) -> int:
        return 20

    def apply(self, html: str, page: Page, context: TransformContext) -> str:
        return rewrite_html_urls(
            html, lambda url: resolve_input_path(url, page, context) or url
        )


class InputPathToUrlPlugin:
    """Registers the input_path_to_url transform."""

    name = "input-path-to-url"

    def register(self, config: UserConfig) -> None:
        config.add_transform(InputPathToUrlTransform())


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = text.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


class IdAttributeTransform(BaseTransform):
    """Adds ``id`` attributes to ``h1``-``h6`` elements lacking one.

    Ids are slugs of the heading text; collisions with any id already in
    the document, or with an earlier heading, get a ``-1``, ``-2`` ... suffix.
    """

    name = "id_attribute"

    @property
    def order(self) -> int:
        return 40

    def apply(self, html: str, page: Page, context: TransformContext) -> str:
        taken = set(ID_ATTR_RE.findall(html))

        def repl(match: re.Match) -> str:
            attrs = match.group("attrs") or ""
            if ID_ATTR_RE.search(attrs):
                return match.group(0)
            base_id = _generate_heading_id(unescape(TAG_RE.sub("", match.group("inner"))))
            if not base_id:
                return match.group(0)
            heading_id = base_id
            counter = 0
            while heading_id in taken:
                counter += 1
                heading_id = f"{base_id}-{counter}"
            taken.add(heading_id)
            level = match.group("level")
            return (
                f'<h{level} id="{heading_id}"{attrs}>{match.group("inner")}</h{level}>'
            )

        return HEADING_RE.sub(repl, html)


class IdAttributePlugin:
    """Registers the id_attribute transform."""

    name = "id-attribute"

    def register(self, config: UserConfig) -> None:
        config.add_transform(IdAttributeTransform())
