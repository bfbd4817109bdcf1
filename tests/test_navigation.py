from datetime import datetime
from pathlib import Path

from lantern.config import SiteConfig
from lantern.content import Page
from lantern.navigation import NavigationPlugin, navigation_breadcrumb, navigation_tree
from lantern.plugins import UserConfig


def nav_page(slug, navigation=None):
    return Page(
        title=slug.title(),
        body="",
        url=f"/{slug}/",
        output_path=f"{slug}/index.html",
        slug=slug,
        date=datetime(2024, 1, 1),
        tags=[],
        draft=False,
        layout=None,
        path=Path("content") / f"{slug}.md",
        input_path=f"{slug}.md",
        source_type="markdown",
        data={"navigation": navigation} if navigation else {},
    )


def site_pages():
    return [
        nav_page("about", {"key": "About", "order": 3}),
        nav_page("home", {"key": "Home", "order": 1}),
        nav_page("archive", {"key": "Archive", "order": 2, "title": "All posts"}),
        nav_page("python", {"key": "Python", "parent": "Archive"}),
        nav_page("plain"),
    ]


def test_navigation_tree_orders_entries():
    tree = navigation_tree(site_pages())
    assert [e.key for e in tree] == ["Home", "Archive", "About"]
    archive = tree[1]
    assert archive.title == "All posts"
    assert archive.url == "/archive/"
    assert [c.key for c in archive.children] == ["Python"]


def test_navigation_tree_below_root_key():
    assert [e.key for e in navigation_tree(site_pages(), "Archive")] == ["Python"]


def test_navigation_tree_includes_plugin_entries():
    extras = [{"key": "Feed", "order": 4, "url": "/feed/feed.xml"}]
    tree = navigation_tree(site_pages(), extras=extras)
    assert [e.key for e in tree][-1] == "Feed"
    assert tree[-1].url == "/feed/feed.xml"


def test_navigation_breadcrumb():
    pages = site_pages()
    assert [e.key for e in navigation_breadcrumb(pages, "Python")] == ["Archive"]
    assert [e.key for e in navigation_breadcrumb(pages, "Python", include_self=True)] == [
        "Archive",
        "Python",
    ]
    assert navigation_breadcrumb(pages, "Missing") == []


def test_plugin_filters_see_registered_entries():
    config = UserConfig(SiteConfig())
    NavigationPlugin().register(config)
    config.navigation_entries.append({"key": "Feed", "order": 9, "url": "/feed.xml"})
    tree = config.filters["navigation_tree"](site_pages())
    assert tree[-1].key == "Feed"
