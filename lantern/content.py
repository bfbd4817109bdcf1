"""Content processing for Lantern.

This module handles discovery of content files, assembly of their
metadata (directory data cascade, frontmatter, derived values), the
preprocessor pass and creation of Page objects. Rendering happens later
in the TemplateEngine.

Key classes:
- ContentItem: A source document before preprocessing (metadata + body).
- Page: Dataclass representing one page of the site.
- FileContentLoader: Finds content files in the input directory.
- DirectoryDataLoader: Loads directory data files for the cascade.
- UrlDeriver: Derives URLs and output paths, honouring permalinks.
- DefaultPageBuilder: Reads ContentItems and turns them into Pages.
- ContentProcessor: Facade tying discovery, preprocessing and building together.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from .config import TEMPLATE_FORMATS, Directories, RunMode
from .extractors import CompositeMetadataExtractor, default_metadata_extractor
from .preprocessors import PreprocessorRegistry
from .utils import (
    coerce_datetime,
    is_within,
    normalize_tags,
    slugify,
    source_stem,
    template_format,
)

SOURCE_TYPES = {"md": "markdown", "html": "html", "jinja": "jinja"}
DATA_FILE_SUFFIXES = (".yaml", ".yml", ".json")


class DuplicateOutputError(Exception):
    """Two content files would be written to the same output path."""

    def __init__(self, source_path: Path, other_path: Path, output_path: str):
        self.source_path = source_path
        self.other_path = other_path
        self.output_path = output_path
        super().__init__(
            f"{source_path} and {other_path} both write to {output_path}"
        )


@dataclass(frozen=True)
class ContentItem:
    """A content file with its assembled metadata and raw body.

    Attributes:
        path: Absolute path to the source file.
        input_path: POSIX path relative to the input directory.
        template_format: ``md``, ``jinja`` or ``html``.
        data: Metadata mapping (directory data + frontmatter + derived keys).
        body: Source text without frontmatter.
    """

    path: Path
    input_path: str
    template_format: str
    data: dict[str, Any]
    body: str


@dataclass
class Page:
    """Represents a site page with all its metadata and content.

    Attributes:
        title: Human-readable title of the page.
        body: Source text after preprocessing, without frontmatter.
        content: Rendered content before the layout is applied.
        description: Short description, from frontmatter or first paragraph.
        url: URL path for the page, or None for ``permalink: false``.
        output_path: File path relative to the output directory, or None.
        slug: URL-friendly slug derived from the filename.
        date: Publication date.
        tags: Tags from the data cascade.
        draft: Whether this is a draft page.
        layout: Layout template name from the data cascade.
        path: Path to the source file.
        input_path: Path relative to the input directory.
        source_type: "markdown", "html", or "jinja".
        data: The page's full data mapping.
    """

    title: str
    body: str
    url: str | None
    output_path: str | None
    slug: str
    date: datetime
    tags: list[str]
    draft: bool
    layout: str | None
    path: Path
    input_path: str
    source_type: str
    description: str = ""
    content: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def file_slug(self) -> str:
        return self.slug

    @property
    def exclude_from_collections(self) -> bool:
        return bool(self.data.get("exclude_from_collections"))

    @property
    def is_html(self) -> bool:
        return bool(self.output_path) and self.output_path.endswith(".html")


class FileContentLoader:
    """Finds content files in the input directory.

    Files inside the includes, data and output directories, hidden
    entries and ``node_modules`` are skipped, as is every file whose
    template format is not enabled.
    """

    def __init__(
        self, directories: Directories, template_formats: tuple[str, ...] = TEMPLATE_FORMATS
    ):
        self.directories = directories
        self.template_formats = template_formats

    def iter_files(self) -> list[Path]:
        input_dir = self.directories.input
        skipped = (
            self.directories.includes,
            self.directories.data,
            self.directories.output,
        )
        files: list[Path] = []
        for path in sorted(input_dir.rglob("*")):
            if path.is_dir():
                continue
            rel = path.relative_to(input_dir)
            if any(part.startswith(".") or part == "node_modules" for part in rel.parts):
                continue
            if any(is_within(path, directory) for directory in skipped):
                continue
            fmt = template_format(path)
            if fmt and fmt in self.template_formats:
                files.append(path)
        return files


class DirectoryDataLoader:
    """Loads directory data files for the data cascade.

    A directory ``blog/`` may hold ``blog/blog.yaml`` (or ``.yml``/``.json``);
    its values apply to every content file below it. Deeper directories
    override shallower ones, except ``tags`` which accumulate.
    """

    def __init__(self, input_dir: Path):
        self.input_dir = input_dir
        self._cache: dict[Path, dict[str, Any]] = {}

    def data_for(self, path: Path) -> dict[str, Any]:
        rel_parent = path.parent.relative_to(self.input_dir)
        directories = [self.input_dir]
        current = self.input_dir
        for part in rel_parent.parts:
            current = current / part
            directories.append(current)

        merged: dict[str, Any] = {}
        for directory in directories:
            merged = merge_data(merged, self._load(directory))
        return merged

    def _load(self, directory: Path) -> dict[str, Any]:
        if directory not in self._cache:
            data: dict[str, Any] = {}
            for suffix in DATA_FILE_SUFFIXES:
                candidate = directory / f"{directory.name}{suffix}"
                if candidate.exists():
                    payload = read_data_file(candidate)
                    if isinstance(payload, dict):
                        data = merge_data(data, payload)
            self._cache[directory] = data
        return self._cache[directory]


def read_data_file(path: Path) -> Any:
    """Parse a YAML or JSON data file."""
    with open(path, encoding="utf-8") as f:
        if path.suffix == ".json":
            return json.load(f)
        return yaml.safe_load(f)


def merge_data(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge two data mappings; ``tags`` are unioned, other keys overridden."""
    merged = dict(base)
    for key, value in override.items():
        if key == "tags":
            merged["tags"] = normalize_tags(
                normalize_tags(merged.get("tags")) + normalize_tags(value)
            )
        else:
            merged[key] = value
    return merged


class UrlDeriver:
    """Derives URLs and output paths for pages."""

    def derive(self, rel: Path, slug: str, permalink: Any = None) -> str | None:
        """Derive the URL for a page.

        Args:
            rel: Relative path from the input directory.
            slug: URL-friendly slug.
            permalink: Optional ``permalink`` value from the page data.

        Returns:
            URL path, or None when the permalink is ``false``.
        """
        if permalink is False:
            return None
        if isinstance(permalink, str) and permalink.strip():
            url = permalink.strip()
            return url if url.startswith("/") else f"/{url}"
        segments = [p for p in rel.parent.parts if p]
        url_parts = segments if slug == "index" else segments + [slug]
        path = "/".join(url_parts)
        return f"/{path}/" if path else "/"

    def output_path(self, url: str | None) -> str | None:
        """Map a URL to a file path relative to the output directory."""
        if url is None:
            return None
        if url.endswith("/"):
            stripped = url.strip("/")
            return f"{stripped}/index.html" if stripped else "index.html"
        return url.lstrip("/")


class DefaultPageBuilder:
    """Reads content items and builds Page objects from them.

    Attributes:
        input_dir: Directory containing site content.
        metadata_extractor: Composite metadata extractor.
        directory_data: Directory data cascade loader.
        url_deriver: URL deriver instance.
    """

    def __init__(
        self,
        input_dir: Path,
        metadata_extractor: CompositeMetadataExtractor | None = None,
    ):
        self.input_dir = input_dir
        self.metadata_extractor = metadata_extractor or default_metadata_extractor
        self.directory_data = DirectoryDataLoader(input_dir)
        self.url_deriver = UrlDeriver()

    def read(self, path: Path) -> ContentItem:
        """Read a source file into a ContentItem.

        Derived values (title, date, description) fill in whatever the
        directory data and frontmatter leave out.
        """
        raw = path.read_text(encoding="utf-8")
        metadata = self.metadata_extractor.extract(raw, path)
        frontmatter = metadata.get("frontmatter", {})
        body = metadata.get("body", raw)

        data: dict[str, Any] = {
            "title": metadata.get("title"),
            "description": metadata.get("description", ""),
        }
        data = merge_data(data, self.directory_data.data_for(path))
        data = merge_data(data, frontmatter)
        if data.get("title") in (None, ""):
            data["title"] = metadata.get("title")
        data["date"] = coerce_datetime(data.get("date")) or metadata.get(
            "date", datetime.now()
        )
        data["tags"] = normalize_tags(data.get("tags"))

        rel = path.relative_to(self.input_dir)
        return ContentItem(
            path=path,
            input_path=rel.as_posix(),
            template_format=template_format(path) or "html",
            data=data,
            body=body,
        )

    def build(self, item: ContentItem) -> Page:
        """Build a Page from a (preprocessed) content item."""
        rel = Path(item.input_path)
        data = item.data
        slug = slugify(source_stem(rel))
        url = self.url_deriver.derive(rel, slug, data.get("permalink"))
        return Page(
            title=str(data.get("title") or ""),
            body=item.body,
            url=url,
            output_path=self.url_deriver.output_path(url),
            slug=slug,
            date=data["date"],
            tags=list(data.get("tags", [])),
            draft=bool(data.get("draft")),
            layout=data.get("layout") or None,
            path=item.path,
            input_path=item.input_path,
            source_type=SOURCE_TYPES[item.template_format],
            description=str(data.get("description") or ""),
            data=data,
        )


class ContentProcessor:
    """Facade for loading content and building Page objects.

    Attributes:
        directories: Resolved directory layout.
        preprocessors: Registry applied to every item before building.
        excluded: Items dropped by a preprocessor during the last load.
    """

    def __init__(
        self,
        directories: Directories,
        template_formats: tuple[str, ...] = TEMPLATE_FORMATS,
        preprocessors: PreprocessorRegistry | None = None,
        content_loader: FileContentLoader | None = None,
        page_builder: DefaultPageBuilder | None = None,
    ):
        self.directories = directories
        self.preprocessors = preprocessors or PreprocessorRegistry()
        self._content_loader = content_loader or FileContentLoader(
            directories, template_formats
        )
        self._page_builder = page_builder or DefaultPageBuilder(directories.input)
        self.excluded: list[ContentItem] = []

    def load(self, run_mode: RunMode = RunMode.BUILD) -> list[Page]:
        """Load all content files and create Page objects.

        Args:
            run_mode: Mode handed to the preprocessors.

        Returns:
            Pages that survived preprocessing.

        Raises:
            DuplicateOutputError: If two pages share an output path.
        """
        pages: list[Page] = []
        self.excluded = []
        written: dict[str, Path] = {}
        for path in self._content_loader.iter_files():
            item = self._page_builder.read(path)
            result = self.preprocessors.run(item, run_mode)
            if result.excluded:
                self.excluded.append(result.item)
                continue
            page = self._page_builder.build(result.item)
            if page.output_path is not None:
                if page.output_path in written:
                    raise DuplicateOutputError(
                        page.path, written[page.output_path], page.output_path
                    )
                written[page.output_path] = page.path
            pages.append(page)
        return pages
