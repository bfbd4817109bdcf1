"""Tests for the pluggable modules.

Tests for protocols, metadata extractors and the components that
implement them.
"""

from datetime import datetime
from pathlib import Path

from lantern.bundles import BundlePlugin
from lantern.config import SiteConfig
from lantern.content import DefaultPageBuilder, FileContentLoader
from lantern.extractors import (
    CompositeMetadataExtractor,
    DateExtractor,
    DescriptionExtractor,
    FrontmatterExtractor,
    TitleExtractor,
    extract_frontmatter,
)
from lantern.feeds import FeedPlugin, SitemapPlugin
from lantern.filters import FiltersPlugin
from lantern.images import ImageTransformPlugin
from lantern.navigation import NavigationPlugin
from lantern.protocols import (
    ContentLoader,
    ContentRenderer,
    MetadataExtractor,
    PageBuilder,
    Plugin,
    TemplateRenderer,
)
from lantern.renderers import MarkdownRenderer, PassthroughRenderer, SyntaxHighlightPlugin
from lantern.templates import TemplateEngine
from lantern.transforms import HtmlBasePlugin, IdAttributePlugin, InputPathToUrlPlugin

# --- Extractor Tests ---


def test_title_extractor():
    result = TitleExtractor().extract("# My Title\n\nContent", Path("test.md"))
    assert result["title"] == "My Title"


def test_title_extractor_ignores_heading_in_frontmatter_and_html():
    text = "---\ntitle: x\n---\nNo heading here"
    assert TitleExtractor().extract(text, Path("my-test-file.md"))["title"] == "My Test File"
    html = TitleExtractor().extract("# Not markdown", Path("about-us.html.jinja"))
    assert html["title"] == "About Us"


def test_date_extractor_from_filename(tmp_path):
    test_file = tmp_path / "2024-01-15-test.md"
    test_file.write_text("content")
    assert DateExtractor().extract("", test_file)["date"] == datetime(2024, 1, 15)


def test_date_extractor_fallback(tmp_path):
    test_file = tmp_path / "test.md"
    test_file.write_text("content")
    assert isinstance(DateExtractor().extract("", test_file)["date"], datetime)


def test_description_extractor():
    result = DescriptionExtractor().extract(
        "---\ntitle: T\n---\n# Heading\n\nSome <em>content</em> here.\n\nSecond paragraph.",
        Path("test.md"),
    )
    assert result["description"] == "Some content here."


def test_frontmatter_extractor():
    result = FrontmatterExtractor().extract("---\ntitle: Test\n---\nContent", Path("test.md"))
    assert result["frontmatter"]["title"] == "Test"
    assert result["body"] == "Content"


def test_extract_frontmatter_edge_cases():
    assert extract_frontmatter("No frontmatter") == ({}, "No frontmatter")
    assert extract_frontmatter("---\n---\nBody") == ({}, "Body")
    assert extract_frontmatter("---\n- a list\n---\nBody") == ({}, "---\n- a list\n---\nBody")
    assert extract_frontmatter("---\nkey: [broken\n---\nBody")[0] == {}


def test_composite_extractor():
    extractor = CompositeMetadataExtractor([])
    extractor.add_extractor(TitleExtractor())
    assert extractor.extract("# Title", Path("test.md")) == {"title": "Title"}


# --- Protocol Tests ---


def test_components_satisfy_protocols(tmp_path):
    site = SiteConfig()
    directories = site.directories(tmp_path)
    assert isinstance(MarkdownRenderer(), ContentRenderer)
    assert isinstance(PassthroughRenderer("html"), ContentRenderer)
    assert isinstance(TitleExtractor(), MetadataExtractor)
    assert isinstance(CompositeMetadataExtractor(), MetadataExtractor)
    assert isinstance(FileContentLoader(directories), ContentLoader)
    assert isinstance(DefaultPageBuilder(directories.input), PageBuilder)
    assert isinstance(TemplateEngine(directories, site, {}), TemplateRenderer)


def test_plugins_satisfy_plugin_protocol():
    site = SiteConfig()
    plugins = [
        BundlePlugin({}),
        SyntaxHighlightPlugin(),
        NavigationPlugin(),
        HtmlBasePlugin(),
        InputPathToUrlPlugin(),
        FeedPlugin(site.feed),
        ImageTransformPlugin(site.images),
        FiltersPlugin(),
        IdAttributePlugin(),
        SitemapPlugin(),
    ]
    for plugin in plugins:
        assert isinstance(plugin, Plugin)
        assert plugin.name
