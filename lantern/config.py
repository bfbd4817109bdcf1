"""Site configuration for Lantern.

This module defines the declarative build configuration and the option
records handed to plugins. Everything is loaded once from lantern.yaml at
the project root; any key left out keeps the default shown on the dataclass.

Key objects:
- SiteConfig: Global build configuration (formats, engines, directories, prefix).
- DirectoryConfig / Directories: Directory layout and its resolved paths.
- BundleDeclaration, SyntaxHighlightOptions, FeedOptions, ImageOptions:
  Immutable option records for the built-in plugins.
- RunMode: Build vs. preview mode, read once per build invocation.
- load_config: Parse lantern.yaml into a SiteConfig.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

CONFIG_FILENAME = "lantern.yaml"

# Kept under its historical name so existing deploy scripts keep working.
RUN_MODE_ENV = "ELEVENTY_RUN_MODE"

TEMPLATE_FORMATS = ("md", "jinja", "html")
TEMPLATE_ENGINES = ("jinja",)
FEED_TYPES = ("atom", "rss")
IMAGE_FORMATS = ("avif", "webp", "png", "jpeg", "gif", "auto")


class ConfigError(Exception):
    """Invalid configuration value.

    Attributes:
        source: Config file or environment variable the value came from.
        message: Human-readable error message.
    """

    def __init__(self, source: Path | str, message: str):
        self.source = source
        self.message = message
        super().__init__(f"{source}: {message}")


class RunMode(str, Enum):
    """Which command is driving the current build."""

    BUILD = "build"
    SERVE = "serve"
    WATCH = "watch"

    @property
    def is_production(self) -> bool:
        return self is RunMode.BUILD

    @classmethod
    def from_environ(
        cls,
        environ: Mapping[str, str] | None = None,
        default: RunMode | None = None,
    ) -> RunMode:
        """Read the run mode from the environment.

        Args:
            environ: Mapping to read from, defaults to os.environ.
            default: Mode to use when the variable is unset, defaults to BUILD.

        Returns:
            The configured RunMode.

        Raises:
            ConfigError: If the variable holds an unknown mode.
        """
        env = os.environ if environ is None else environ
        raw = (env.get(RUN_MODE_ENV) or "").strip().lower()
        if not raw:
            return default or cls.BUILD
        try:
            return cls(raw)
        except ValueError:
            choices = ", ".join(mode.value for mode in cls)
            raise ConfigError(
                RUN_MODE_ENV, f"Unknown run mode {raw!r} (expected one of {choices})"
            ) from None


def _frozen(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class Directories:
    """Absolute directory layout for one project."""

    project_root: Path
    input: Path
    includes: Path
    data: Path
    output: Path


@dataclass(frozen=True)
class DirectoryConfig:
    """Directory layout.

    ``includes`` and ``data`` are relative to ``input``; ``input`` and
    ``output`` are relative to the project root.
    """

    input: str = "content"
    includes: str = "../_includes"
    data: str = "../_data"
    output: str = "_site"

    def resolve(self, project_root: Path) -> Directories:
        root = Path(os.path.normpath(project_root.resolve()))
        input_dir = Path(os.path.normpath(root / self.input))
        return Directories(
            project_root=root,
            input=input_dir,
            includes=Path(os.path.normpath(input_dir / self.includes)),
            data=Path(os.path.normpath(input_dir / self.data)),
            output=Path(os.path.normpath(root / self.output)),
        )


@dataclass(frozen=True)
class BundleDeclaration:
    """A named bundle aggregated from page markup.

    Attributes:
        name: Bundle name used from templates (``css``, ``js``).
        to_file_directory: Output directory for file bundles.
        selector: Element name whose contents are collected (``style``, ``script``).
    """

    name: str
    to_file_directory: str = "dist"
    selector: str = "style"


@dataclass(frozen=True)
class SyntaxHighlightOptions:
    pre_attributes: Mapping[str, Any] = field(
        default_factory=lambda: _frozen({"tabindex": 0})
    )


@dataclass(frozen=True)
class FeedMetadata:
    language: str = "en"
    title: str = "Blog Title"
    subtitle: str = "This is a longer description about your blog."
    base: str = "https://example.com/"
    author_name: str = "Your Name"


@dataclass(frozen=True)
class FeedOptions:
    """Options for the feed plugin.

    Attributes:
        type: ``atom`` or ``rss``.
        output_path: URL path of the generated feed.
        stylesheet: Optional XSL stylesheet referenced from the feed.
        collection: Name of the collection the feed lists.
        limit: Maximum number of entries (newest first), 0 for no limit.
        metadata: Feed title, subtitle, author, base URL and language.
        navigation_key: Navigation entry contributed for the feed.
        navigation_order: Sort order of that navigation entry.
    """

    type: str = "atom"
    output_path: str = "/feed/feed.xml"
    stylesheet: str | None = "pretty-atom-feed.xsl"
    collection: str = "posts"
    limit: int = 10
    metadata: FeedMetadata = field(default_factory=FeedMetadata)
    navigation_key: str | None = "Feed"
    navigation_order: int = 4


@dataclass(frozen=True)
class ImageOptions:
    """Options for the HTML image transform.

    Attributes:
        formats: Output formats; ``auto`` keeps the source format.
        fail_on_error: Whether a broken image fails the build.
        img_attributes: Default attributes for generated ``<img>`` elements.
        animated: Keep every frame of animated sources.
        url_path: URL directory the generated images are written to.
    """

    formats: tuple[str, ...] = ("avif", "webp", "auto")
    fail_on_error: bool = False
    img_attributes: Mapping[str, Any] = field(
        default_factory=lambda: _frozen({"loading": "lazy", "decoding": "async"})
    )
    animated: bool = True
    url_path: str = "/img/"


def _default_bundles() -> tuple[BundleDeclaration, ...]:
    return (
        BundleDeclaration("css", to_file_directory="dist", selector="style"),
        BundleDeclaration("js", to_file_directory="dist", selector="script"),
    )


@dataclass(frozen=True)
class SiteConfig:
    """Global build configuration.

    Attributes:
        template_formats: Enabled source formats (``md``, ``jinja``, ``html``).
        markdown_template_engine: Engine run over Markdown before Markdown itself.
        html_template_engine: Engine run over plain HTML sources.
        dir: Directory layout.
        path_prefix: URL prefix applied to every root-relative link in the output.
        port: Dev server HTTP port.
        ws_port: Dev server live reload port (defaults to port + 1).
        passthrough: ``(source, destination)`` pairs; a None destination keeps
            the source's path relative to the input directory.
        watch_targets: Extra glob patterns that trigger a rebuild.
        bundles: Declared markup bundles.
        syntax_highlight: Options for code block highlighting.
        feed: Feed options, or None to disable the feed.
        images: Image transform options, or None to disable it.
        sitemap: Whether to write sitemap.xml.
        source: The file this configuration was loaded from, if any.
    """

    template_formats: tuple[str, ...] = TEMPLATE_FORMATS
    markdown_template_engine: str | None = "jinja"
    html_template_engine: str | None = "jinja"
    dir: DirectoryConfig = field(default_factory=DirectoryConfig)
    path_prefix: str = "/"
    port: int = 8080
    ws_port: int | None = None
    passthrough: tuple[tuple[str, str | None], ...] = (
        ("public/", "/"),
        ("content/feed/pretty-atom-feed.xsl", None),
    )
    watch_targets: tuple[str, ...] = (
        "css/**/*.css",
        "content/**/*.{svg,webp,png,jpg,jpeg,gif}",
    )
    bundles: tuple[BundleDeclaration, ...] = field(default_factory=_default_bundles)
    syntax_highlight: SyntaxHighlightOptions = field(
        default_factory=SyntaxHighlightOptions
    )
    feed: FeedOptions | None = field(default_factory=FeedOptions)
    images: ImageOptions | None = field(default_factory=ImageOptions)
    sitemap: bool = True
    source: Path | None = None

    def directories(self, project_root: Path) -> Directories:
        return self.dir.resolve(project_root)


def load_config(project_root: Path) -> SiteConfig:
    """Load site configuration from lantern.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        SiteConfig with defaults applied for every missing key.

    Raises:
        ConfigError: If the file is not valid YAML or holds invalid values.
    """
    config_path = project_root / CONFIG_FILENAME
    if not config_path.exists():
        return SiteConfig()
    with open(config_path, encoding="utf-8") as f:
        try:
            loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(config_path, f"Invalid YAML: {exc}") from exc
    if not isinstance(loaded, dict):
        return SiteConfig(source=config_path)
    return parse_config(loaded, source=config_path)


def parse_config(raw: Mapping[str, Any], source: Path | str = "<config>") -> SiteConfig:
    """Build a SiteConfig from a parsed mapping.

    Args:
        raw: Parsed configuration mapping.
        source: Where the mapping came from, for error messages.

    Returns:
        SiteConfig instance.
    """
    defaults = SiteConfig()
    values: dict[str, Any] = {}

    if "template_formats" in raw:
        formats = _string_tuple(raw["template_formats"], "template_formats", source)
        unknown = [fmt for fmt in formats if fmt not in TEMPLATE_FORMATS]
        if unknown:
            raise ConfigError(source, f"Unknown template format(s): {', '.join(unknown)}")
        values["template_formats"] = formats

    for key in ("markdown_template_engine", "html_template_engine"):
        if key in raw:
            values[key] = _engine(raw[key], key, source)

    if "dir" in raw:
        section = _section(raw["dir"], "dir", source)
        values["dir"] = DirectoryConfig(
            **{
                k: str(v)
                for k, v in section.items()
                if k in ("input", "includes", "data", "output")
            }
        )

    if "path_prefix" in raw:
        values["path_prefix"] = normalize_path_prefix(raw["path_prefix"])

    for key in ("port", "ws_port"):
        if raw.get(key) is not None:
            try:
                values[key] = int(raw[key])
            except (TypeError, ValueError):
                raise ConfigError(source, f"{key} must be an integer") from None

    if "passthrough" in raw:
        values["passthrough"] = _passthrough(raw["passthrough"], source)

    if "watch_targets" in raw:
        values["watch_targets"] = _string_tuple(raw["watch_targets"], "watch_targets", source)

    if "bundles" in raw:
        bundles = []
        for name, options in _section(raw["bundles"], "bundles", source).items():
            options = _section(options, f"bundles.{name}", source)
            bundles.append(
                BundleDeclaration(
                    name=str(name),
                    to_file_directory=str(options.get("to_file_directory", "dist")),
                    selector=str(options.get("selector", "style")),
                )
            )
        values["bundles"] = tuple(bundles)

    if "syntax_highlight" in raw:
        section = _section(raw["syntax_highlight"], "syntax_highlight", source)
        values["syntax_highlight"] = SyntaxHighlightOptions(
            pre_attributes=_frozen(
                section.get("pre_attributes", defaults.syntax_highlight.pre_attributes)
            )
        )

    if "feed" in raw:
        values["feed"] = _feed(raw["feed"], source)

    if "images" in raw:
        values["images"] = _images(raw["images"], source)

    if "sitemap" in raw:
        values["sitemap"] = bool(raw["sitemap"])

    return SiteConfig(source=Path(source) if isinstance(source, Path) else None, **values)


def normalize_path_prefix(value: Any) -> str:
    """Ensure a path prefix starts and ends with a slash.

    Examples:
        >>> normalize_path_prefix("blog")
        '/blog/'
    """
    text = str(value or "").strip().strip("/")
    return f"/{text}/" if text else "/"


def _section(value: Any, name: str, source: Path | str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(source, f"{name} must be a mapping")
    return value


def _string_tuple(value: Any, name: str, source: Path | str) -> tuple[str, ...]:
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    if isinstance(value, (list, tuple)):
        return tuple(str(item) for item in value)
    raise ConfigError(source, f"{name} must be a list of strings")


def _engine(value: Any, name: str, source: Path | str) -> str | None:
    if value in (None, False, ""):
        return None
    engine = str(value).lower()
    if engine not in TEMPLATE_ENGINES:
        raise ConfigError(source, f"Unsupported {name}: {value!r}")
    return engine


def _passthrough(value: Any, source: Path | str) -> tuple[tuple[str, str | None], ...]:
    if isinstance(value, Mapping):
        return tuple((str(src), None if dest is None else str(dest)) for src, dest in value.items())
    if isinstance(value, (list, tuple)):
        entries: list[tuple[str, str | None]] = []
        for item in value:
            if isinstance(item, Mapping):
                entries.extend(_passthrough(item, source))
            else:
                entries.append((str(item), None))
        return tuple(entries)
    raise ConfigError(source, "passthrough must be a mapping or a list")


def _feed(value: Any, source: Path | str) -> FeedOptions | None:
    if value is False or value is None:
        return None
    section = _section(value, "feed", source)
    defaults = FeedOptions()
    feed_type = str(section.get("type", defaults.type)).lower()
    if feed_type not in FEED_TYPES:
        raise ConfigError(source, f"Unsupported feed type: {feed_type!r}")

    collection = section.get("collection", {})
    if isinstance(collection, str):
        collection = {"name": collection}
    collection = _section(collection, "feed.collection", source)

    meta = _section(section.get("metadata"), "feed.metadata", source)
    author = meta.get("author", {})
    author_name = author.get("name") if isinstance(author, Mapping) else author
    base_meta = defaults.metadata
    metadata = FeedMetadata(
        language=str(meta.get("language", base_meta.language)),
        title=str(meta.get("title", base_meta.title)),
        subtitle=str(meta.get("subtitle", base_meta.subtitle)),
        base=str(meta.get("base", base_meta.base)),
        author_name=str(author_name or base_meta.author_name),
    )

    navigation = _section(section.get("navigation"), "feed.navigation", source)
    try:
        limit = int(collection.get("limit", defaults.limit))
        order = int(navigation.get("order", defaults.navigation_order))
    except (TypeError, ValueError):
        raise ConfigError(source, "feed limit and navigation order must be integers") from None

    return FeedOptions(
        type=feed_type,
        output_path=str(section.get("output_path", defaults.output_path)),
        stylesheet=section.get("stylesheet", defaults.stylesheet) or None,
        collection=str(collection.get("name", defaults.collection)),
        limit=limit,
        metadata=metadata,
        navigation_key=navigation.get("key", defaults.navigation_key),
        navigation_order=order,
    )


def _images(value: Any, source: Path | str) -> ImageOptions | None:
    if value is False or value is None:
        return None
    section = _section(value, "images", source)
    defaults = ImageOptions()
    formats = defaults.formats
    if "formats" in section:
        formats = tuple(fmt.lower() for fmt in _string_tuple(section["formats"], "images.formats", source))
        unknown = [fmt for fmt in formats if fmt not in IMAGE_FORMATS]
        if unknown or not formats:
            raise ConfigError(source, f"Unsupported image format(s): {', '.join(unknown) or '(none)'}")
    return ImageOptions(
        formats=formats,
        fail_on_error=bool(section.get("fail_on_error", defaults.fail_on_error)),
        img_attributes=_frozen(section.get("img_attributes", defaults.img_attributes)),
        animated=bool(section.get("animated", defaults.animated)),
        url_path=normalize_path_prefix(section.get("url_path", defaults.url_path)),
    )
