"""Site building functionality for Lantern.

This module contains the core logic for building a static site from source
files. It loads configuration and data, composes plugins, processes
content, renders templates, runs the HTML transforms and writes the output.

Key functions:
- build_site: Main function to build the entire site.
- load_data: Loads global data from the data directory.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from jinja2 import TemplateSyntaxError

from .collections import Collections, build_collections
from .config import RunMode, SiteConfig, load_config
from .content import ContentItem, ContentProcessor, DuplicateOutputError, Page
from .images import ImageTransformError
from .passthrough import copy_passthrough
from .plugins import UserConfig, configure_site
from .renderers import RendererRegistry
from .templates import TemplateEngine
from .transforms import TransformContext
from .utils import ensure_clean_dir

DATA_SUFFIXES = (".yaml", ".yml", ".json")


class BuildError(Exception):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        pages: Pages that were rendered (drafts excluded in production).
        output_dir: Directory where the site was built.
        data: Global site data dictionary.
        run_mode: Mode the build ran in.
        collections: Collections handed to templates.
        excluded: Content items dropped by preprocessors.
        config: The composed UserConfig.
    """

    pages: list[Page]
    output_dir: Path
    data: dict[str, Any]
    run_mode: RunMode = RunMode.BUILD
    collections: Collections = field(default_factory=lambda: Collections({}))
    excluded: list[ContentItem] = field(default_factory=list)
    config: UserConfig | None = None


def load_data(data_dir: Path) -> dict[str, Any]:
    """Load global data from YAML and JSON files in the data directory.

    Each file becomes one key named after its stem, so ``_data/metadata.yaml``
    is available to templates as ``metadata``.

    Args:
        data_dir: The data directory.

    Returns:
        Dictionary of file stem to parsed content.
    """
    data: dict[str, Any] = {}
    if not data_dir.exists():
        return data
    for path in sorted(data_dir.iterdir()):
        if not path.is_file() or path.suffix not in DATA_SUFFIXES:
            continue
        with open(path, encoding="utf-8") as f:
            try:
                payload = json.load(f) if path.suffix == ".json" else yaml.safe_load(f)
            except (yaml.YAMLError, json.JSONDecodeError) as exc:
                raise BuildError(path, f"Invalid data file: {exc}", exc) from exc
        data[path.stem] = payload
    return data


def build_site(
    project_root: Path,
    run_mode: RunMode | None = None,
    clean_output: bool = True,
    output_dir_override: Path | None = None,
    site: SiteConfig | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        project_root: Root directory of the project.
        run_mode: Build mode; read from ELEVENTY_RUN_MODE when None.
        clean_output: Whether to wipe the output directory before building.
        output_dir_override: Optional path to write the build output to
            instead of the configured output directory.
        site: Pre-loaded configuration; loaded from lantern.yaml when None.

    Returns:
        BuildResult containing all pages, output directory, and site data.

    Raises:
        ConfigError: If the configuration or run mode is invalid.
        FileNotFoundError: If the input directory does not exist.
        BuildError: If a page fails to render.
    """
    site = site or load_config(project_root)
    if run_mode is None:
        run_mode = RunMode.from_environ()
    directories = site.directories(project_root)
    if not directories.input.exists():
        raise FileNotFoundError(f"Expected input directory at {directories.input}")

    output_dir = output_dir_override or directories.output
    if clean_output:
        ensure_clean_dir(output_dir)
    else:
        output_dir.mkdir(parents=True, exist_ok=True)

    config = configure_site(UserConfig(site))
    data = load_data(directories.data)

    processor = ContentProcessor(
        directories,
        template_formats=site.template_formats,
        preprocessors=config.preprocessors,
    )
    try:
        pages = processor.load(run_mode)
    except DuplicateOutputError as exc:
        raise BuildError(exc.source_path, f"Duplicate output path {exc.output_path}", exc) from exc
    collections = build_collections(pages)

    engine = TemplateEngine(
        directories,
        site,
        data,
        filters=config.filters,
        globals=config.globals,
        renderers=RendererRegistry(config.code_highlighter),
    )
    engine.update_collections(collections)
    context = TransformContext(
        directories=directories,
        output_dir=output_dir,
        path_prefix=site.path_prefix,
        pages_by_input={page.input_path: page for page in pages},
    )

    for page in pages:
        _render(page, engine.render_content)
    for page in pages:
        if page.output_path is None:
            continue
        rendered = _render(page, engine.render_page)
        try:
            rendered = config.transforms.run(rendered, page, context)
        except ImageTransformError as exc:
            raise BuildError(page.path, exc.message, exc) from exc
        _write_page(output_dir, page, rendered)

    copy_passthrough(config.passthrough, directories, output_dir)
    config.feeds.generate_all(output_dir, collections, data)
    return BuildResult(
        pages=pages,
        output_dir=output_dir,
        data=data,
        run_mode=run_mode,
        collections=collections,
        excluded=list(processor.excluded),
        config=config,
    )


def _render(page: Page, render) -> str:
    try:
        return render(page)
    except TemplateSyntaxError as exc:
        raise BuildError(
            page.path,
            f"Template syntax error on line {exc.lineno}: {exc.message}",
            exc,
        ) from exc
    except Exception as exc:
        raise BuildError(
            page.path,
            _format_error_message(exc),
            exc,
        ) from exc


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    error_type = type(exc).__name__
    error_msg = str(exc)

    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TemplateNotFound":
        return f"Layout not found: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"

    return f"{error_type}: {error_msg}"


def _write_page(output_dir: Path, page: Page, rendered: str) -> None:
    """Write rendered output to the page's output path.

    Args:
        output_dir: Base output directory.
        page: Page object with a non-None output_path.
        rendered: Rendered content.
    """
    target = output_dir / page.output_path
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        f.write(rendered)
