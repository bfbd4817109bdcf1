"""Feed generation for Lantern.

This module generates the XML feeds of a site (Atom or RSS for the blog
collection, sitemap.xml for every page). Feed generation is separate from
build orchestration: plugins register generators on the UserConfig and
the build runs them after all pages are written.

Classes:
    FeedGenerator: Base class for feed generators.
    AtomGenerator: Atom 1.0 feed of the newest items of a collection.
    RSSGenerator: RSS 2.0 feed of the newest items of a collection.
    SitemapGenerator: Generates sitemap.xml files.
    FeedRegistry: Registry for managing feed generators.
    FeedPlugin, SitemapPlugin: Register generators from configuration.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from .collections import Collections, PageCollection
from .config import FeedOptions
from .html_utils import (
    absolutize_html_urls,
    escape_html,
    join_root_url,
    rewrite_html_urls,
)
from .transforms import apply_path_prefix

if TYPE_CHECKING:
    from .content import Page
    from .plugins import UserConfig

ATOM_DATE = "%Y-%m-%dT%H:%M:%SZ"
RSS_DATE = "%a, %d %b %Y %H:%M:%S +0000"


def prefix_for_base(base_url: str, path_prefix: str) -> str:
    """Return the part of ``path_prefix`` still missing from ``base_url``.

    A base URL whose path already ends with the prefix, such as
    ``https://user.github.io/blog/`` with prefix ``/blog/``, carries the
    prefix itself and gets ``/`` back.
    """
    prefix = path_prefix.rstrip("/")
    if prefix and urlsplit(base_url).path.rstrip("/").endswith(prefix):
        return "/"
    return path_prefix


def _utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class FeedGenerator(ABC):
    """Abstract base class for feed generators.

    Subclasses implement specific feed formats (sitemap, RSS, Atom).
    """

    @property
    @abstractmethod
    def output_path(self) -> str:
        """Return the output path relative to the output directory.

        Returns:
            Path such as 'sitemap.xml' or 'feed/feed.xml'.
        """
        ...

    @abstractmethod
    def generate(self, collections: Collections, data: Mapping[str, Any]) -> str | None:
        """Generate feed content.

        Args:
            collections: Collections of the current build.
            data: Global site data.

        Returns:
            Feed content as a string, or None if the feed cannot be
            generated (e.g., missing base URL).
        """
        ...

    def write(
        self, output_dir: Path, collections: Collections, data: Mapping[str, Any]
    ) -> bool:
        """Generate and write the feed to the output directory.

        Returns:
            True if the feed was written, False if skipped.
        """
        content = self.generate(collections, data)
        if content is None:
            return False
        target = output_dir / self.output_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return True


class CollectionFeedGenerator(FeedGenerator):
    """Shared behaviour of the Atom and RSS generators.

    Links are absolute: the path prefix is applied first, then the
    result is joined onto ``metadata.base``.

    Attributes:
        options: Feed options.
        path_prefix: Site path prefix.
    """

    def __init__(self, options: FeedOptions, path_prefix: str = "/"):
        self.options = options
        self.path_prefix = path_prefix

    @property
    def output_path(self) -> str:
        return self.options.output_path.lstrip("/")

    def entries(self, collections: Collections) -> PageCollection:
        """Return the newest pages of the feed collection, newest first."""
        pages = collections.get(self.options.collection, PageCollection([]))
        pages = PageCollection(p for p in pages if p.url is not None)
        if self.options.limit > 0:
            return pages.latest(self.options.limit)
        return pages.sorted(reverse=True)

    @property
    def link_prefix(self) -> str:
        return prefix_for_base(self.options.metadata.base, self.path_prefix)

    def absolute_url(self, url: str) -> str:
        return join_root_url(
            self.options.metadata.base, apply_path_prefix(url, self.link_prefix)
        )

    def entry_content(self, page: Page) -> str:
        content = page.content or page.description
        content = rewrite_html_urls(
            content, lambda url: apply_path_prefix(url, self.link_prefix)
        )
        return absolutize_html_urls(content, self.options.metadata.base)

    def header(self) -> list[str]:
        lines = ['<?xml version="1.0" encoding="utf-8"?>']
        if self.options.stylesheet:
            href = escape_html(self.options.stylesheet)
            lines.append(f'<?xml-stylesheet href="{href}" type="text/xsl"?>')
        return lines


class AtomGenerator(CollectionFeedGenerator):
    """Generates an Atom 1.0 feed."""

    def generate(self, collections: Collections, data: Mapping[str, Any]) -> str | None:
        meta = self.options.metadata
        pages = self.entries(collections)
        updated = _utc(pages[0].date) if pages else datetime.now(timezone.utc)
        home = self.absolute_url("/")
        lines = self.header()
        lines += [
            f'<feed xmlns="http://www.w3.org/2005/Atom" xml:lang="{escape_html(meta.language)}">',
            f"  <title>{escape_html(meta.title)}</title>",
            f"  <subtitle>{escape_html(meta.subtitle)}</subtitle>",
            f'  <link href="{escape_html(self.absolute_url(self.options.output_path))}" rel="self"/>',
            f'  <link href="{escape_html(home)}"/>',
            f"  <updated>{updated.strftime(ATOM_DATE)}</updated>",
            f"  <id>{escape_html(home)}</id>",
            "  <author>",
            f"    <name>{escape_html(meta.author_name)}</name>",
            "  </author>",
        ]
        for page in pages:
            link = escape_html(self.absolute_url(page.url))
            lines += [
                "  <entry>",
                f"    <title>{escape_html(page.title)}</title>",
                f'    <link href="{link}"/>',
                f"    <updated>{_utc(page.date).strftime(ATOM_DATE)}</updated>",
                f"    <id>{link}</id>",
                f'    <content type="html">{escape_html(self.entry_content(page))}</content>',
                "  </entry>",
            ]
        lines.append("</feed>")
        return "\n".join(lines) + "\n"


class RSSGenerator(CollectionFeedGenerator):
    """Generates an RSS 2.0 feed."""

    def generate(self, collections: Collections, data: Mapping[str, Any]) -> str | None:
        meta = self.options.metadata
        pages = self.entries(collections)
        build_date = datetime.now(timezone.utc).strftime(RSS_DATE)
        home = escape_html(self.absolute_url("/"))
        lines = self.header()
        lines += [
            '<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom" xmlns:dc="http://purl.org/dc/elements/1.1/">',
            "  <channel>",
            f"    <title>{escape_html(meta.title)}</title>",
            f"    <link>{home}</link>",
            f'    <atom:link href="{escape_html(self.absolute_url(self.options.output_path))}" rel="self" type="application/rss+xml"/>',
            f"    <description>{escape_html(meta.subtitle)}</description>",
            f"    <language>{escape_html(meta.language)}</language>",
            f"    <lastBuildDate>{build_date}</lastBuildDate>",
        ]
        for page in pages:
            link = escape_html(self.absolute_url(page.url))
            lines += [
                "    <item>",
                f"      <title>{escape_html(page.title)}</title>",
                f"      <link>{link}</link>",
                f"      <description>{escape_html(self.entry_content(page))}</description>",
                f"      <pubDate>{_utc(page.date).strftime(RSS_DATE)}</pubDate>",
                f"      <dc:creator>{escape_html(meta.author_name)}</dc:creator>",
                f"      <guid>{link}</guid>",
                "    </item>",
            ]
        lines += ["  </channel>", "</rss>"]
        return "\n".join(lines) + "\n"


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml for search engine indexing.

    Lists every page of the ``all`` collection that has a URL. Requires a
    base URL (the feed's ``metadata.base`` or ``url`` in the site data).
    """

    def __init__(self, base_url: str | None = None, path_prefix: str = "/"):
        self.base_url = base_url
        self.path_prefix = path_prefix

    @property
    def output_path(self) -> str:
        return "sitemap.xml"

    def generate(self, collections: Collections, data: Mapping[str, Any]) -> str | None:
        base_url = str(self.base_url or data.get("url") or "")
        if not base_url:
            return None

        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        prefix = prefix_for_base(base_url, self.path_prefix)
        for page in collections.get("all", PageCollection([])):
            if page.url is None or not page.is_html:
                continue
            full_url = join_root_url(base_url, apply_path_prefix(page.url, prefix))
            lastmod = page.date.strftime("%Y-%m-%d")
            lines.append(
                f"  <url><loc>{escape_html(full_url)}</loc><lastmod>{lastmod}</lastmod></url>"
            )
        lines.append("</urlset>")
        return "\n".join(lines)


class FeedRegistry:
    """Registry for managing feed generators."""

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    @property
    def generators(self) -> list[FeedGenerator]:
        return list(self._generators)

    def generate_all(
        self,
        output_dir: Path,
        collections: Collections,
        data: Mapping[str, Any],
    ) -> list[str]:
        """Generate all registered feeds.

        Returns:
            Output paths of the feeds that were written.
        """
        generated = []
        for generator in self._generators:
            if generator.write(output_dir, collections, data):
                generated.append(generator.output_path)
        return generated


FEED_GENERATORS = {"atom": AtomGenerator, "rss": RSSGenerator}


class FeedPlugin:
    """Registers the collection feed and its navigation entry."""

    name = "feed"

    def __init__(self, options: FeedOptions | None = None):
        self.options = options or FeedOptions()

    def register(self, config: UserConfig) -> None:
        generator_cls = FEED_GENERATORS[self.options.type]
        config.feeds.register(generator_cls(self.options, config.site.path_prefix))
        config.add_global("feed_url", self.options.output_path)
        if self.options.navigation_key:
            config.navigation_entries.append(
                {
                    "key": self.options.navigation_key,
                    "order": self.options.navigation_order,
                    "url": self.options.output_path,
                }
            )


class SitemapPlugin:
    """Registers the sitemap generator."""

    name = "sitemap"

    def __init__(self, base_url: str | None = None):
        self.base_url = base_url

    def register(self, config: UserConfig) -> None:
        config.feeds.register(SitemapGenerator(self.base_url, config.site.path_prefix))
