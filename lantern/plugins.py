"""Plugin composition for Lantern.

UserConfig is the mutable registration surface handed to plugins;
configure_site performs the fixed series of registrations that turns a
SiteConfig into a ready-to-build UserConfig.

Key objects:
- UserConfig: Collects preprocessors, passthrough copies, watch targets,
  bundles, transforms, template filters/globals/shortcodes and feeds.
- configure_site: Registers the built-in behaviour in a fixed order.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from .bundles import BundlePlugin
from .config import BundleDeclaration, SiteConfig
from .feeds import FeedPlugin, FeedRegistry, SitemapPlugin
from .filters import FiltersPlugin
from .images import ImageTransformPlugin
from .navigation import NavigationPlugin
from .passthrough import PassthroughCopy
from .preprocessors import Preprocessor, PreprocessorRegistry, filter_drafts
from .protocols import Plugin
from .renderers import CodeHighlighter, SyntaxHighlightPlugin
from .shortcodes import current_build_date
from .transforms import (
    BaseTransform,
    HtmlBasePlugin,
    IdAttributePlugin,
    InputPathToUrlPlugin,
    TransformPipeline,
)


class UserConfig:
    """Registration surface for the build.

    Attributes:
        site: The declarative site configuration.
        preprocessors: Content preprocessors, in registration order.
        passthrough: Declared passthrough copies.
        watch_targets: Extra glob patterns watched by the dev server.
        bundles: Declared bundles by name.
        transforms: Ordered HTML transform pipeline.
        filters: Template filters by name.
        globals: Template globals (shortcodes included) by name.
        feeds: Feed generators run after the pages are written.
        navigation_entries: Navigation entries contributed by plugins.
        plugins: Names of the plugins added so far.
        code_highlighter: Highlighter used for fenced code, if any.
    """

    def __init__(self, site: SiteConfig):
        self.site = site
        self.preprocessors = PreprocessorRegistry()
        self.passthrough: list[PassthroughCopy] = []
        self.watch_targets: list[str] = []
        self.bundles: dict[str, BundleDeclaration] = {}
        self.transforms = TransformPipeline()
        self.filters: dict[str, Callable[..., Any]] = {}
        self.globals: dict[str, Any] = {}
        self.feeds = FeedRegistry()
        self.navigation_entries: list[dict[str, Any]] = []
        self.plugins: list[str] = []
        self.code_highlighter: CodeHighlighter | None = None

    def add_preprocessor(self, name: str, extensions: str, func: Preprocessor) -> None:
        self.preprocessors.register(name, extensions, func)

    def add_passthrough_copy(self, source: str, destination: str | None = None) -> UserConfig:
        """Declare a passthrough copy. Returns self so calls can be chained."""
        self.passthrough.append(PassthroughCopy(source, destination))
        return self

    def add_watch_target(self, pattern: str) -> None:
        if pattern not in self.watch_targets:
            self.watch_targets.append(pattern)

    def add_bundle(self, declaration: BundleDeclaration) -> None:
        """Declare a bundle; the first declaration installs the bundle stage."""
        self.bundles[declaration.name] = declaration
        if BundlePlugin.name not in self.plugins:
            self.add_plugin(BundlePlugin(self.bundles))

    def add_plugin(self, plugin: Plugin) -> None:
        plugin.register(self)
        self.plugins.append(plugin.name)

    def add_filter(self, name: str, func: Callable[..., Any]) -> None:
        self.filters[name] = func

    def add_global(self, name: str, value: Any) -> None:
        self.globals[name] = value

    def add_shortcode(self, name: str, func: Callable[..., Any]) -> None:
        self.add_global(name, func)

    def add_transform(self, transform: BaseTransform) -> None:
        self.transforms.register(transform)


def configure_site(config: UserConfig) -> UserConfig:
    """Register the built-in behaviour of a Lantern site.

    The registrations happen in a fixed order: drafts preprocessor,
    passthrough copies, watch targets, bundles, syntax highlighting,
    navigation, HTML base, input path to URL, feed, image transform,
    filters, id attributes, the currentBuildDate shortcode and the sitemap.
    Options come from ``config.site``; disabled plugins are skipped.

    Args:
        config: Fresh UserConfig for the build.

    Returns:
        The same config, for chaining.
    """
    site = config.site

    config.add_preprocessor("drafts", "*", filter_drafts)

    for source, destination in site.passthrough:
        config.add_passthrough_copy(source, destination)

    for pattern in site.watch_targets:
        config.add_watch_target(pattern)

    for declaration in site.bundles:
        config.add_bundle(declaration)

    config.add_plugin(SyntaxHighlightPlugin(site.syntax_highlight))
    config.add_plugin(NavigationPlugin())
    config.add_plugin(HtmlBasePlugin())
    config.add_plugin(InputPathToUrlPlugin())

    if site.feed is not None:
        config.add_plugin(FeedPlugin(site.feed))

    if site.images is not None:
        config.add_plugin(ImageTransformPlugin(site.images))

    config.add_plugin(FiltersPlugin())
    config.add_plugin(IdAttributePlugin())

    config.add_shortcode("currentBuildDate", current_build_date)

    if site.sitemap:
        base = site.feed.metadata.base if site.feed is not None else None
        config.add_plugin(SitemapPlugin(base))

    return config
