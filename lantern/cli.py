"""Command-line interface for Lantern.

This module defines the CLI commands using Click framework.
It provides commands for building sites, running the development server and
creating new posts.

Commands:
- build: Build the site into the output directory.
- serve: Run development server with live reload.
- md: Create a new markdown file interactively.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import click
import questionary
import yaml

from . import __version__
from .config import ConfigError, RunMode, load_config
from .utils import is_within, slugify, titleize


@click.group()
@click.version_option(version=__version__, prog_name="lantern")
def cli():
    """Lantern blog generator."""


def _fail_config(exc: ConfigError) -> None:
    click.echo(click.style("Configuration error:", fg="red", bold=True), err=True)
    click.echo(click.style(f"  Source: {exc.source}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
    raise SystemExit(1)


@cli.command()
def build():
    """Build the site into the output directory.

    Drafts are left out unless ELEVENTY_RUN_MODE selects a preview mode.
    """
    project_root = Path.cwd().resolve()
    from .build import BuildError, build_site

    try:
        run_mode = RunMode.from_environ(default=RunMode.BUILD)
        result = build_site(project_root, run_mode=run_mode)
    except ConfigError as exc:
        _fail_config(exc)
    except FileNotFoundError as exc:
        raise click.ClickException(str(exc)) from None
    except BuildError as exc:
        try:
            rel_path = exc.source_path.relative_to(project_root)
        except ValueError:
            rel_path = exc.source_path
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  File: {rel_path}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None
    click.echo(f"Built {len(result.pages)} pages into {result.output_dir}")
    if result.excluded:
        click.echo(f"Skipped {len(result.excluded)} draft(s)")


@cli.command()
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides lantern.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides lantern.yaml ws_port)",
)
def serve(port: int | None, ws_port: int | None):
    """Run dev server with live reload. Drafts are included."""
    project_root = Path.cwd()
    from .server import DevServer

    try:
        server = DevServer(project_root, http_port=port, ws_port=ws_port, run_mode=RunMode.SERVE)
    except ConfigError as exc:
        _fail_config(exc)
    server.start()


@cli.command()
def md():
    """Create a new markdown post interactively."""
    project_root = Path.cwd().resolve()
    try:
        site = load_config(project_root)
    except ConfigError as exc:
        _fail_config(exc)
    directories = site.directories(project_root)
    input_dir = directories.input

    if not input_dir.exists():
        raise click.ClickException(
            f"No {site.dir.input}/ directory found. Run this command from a Lantern project root."
        )

    folders = _get_content_folders(input_dir, (directories.includes, directories.data))

    folder = questionary.select(
        "Select folder:",
        choices=folders,
        style=_questionary_style(),
    ).ask()
    if folder is None:
        raise click.Abort()

    name = questionary.text(
        "Filename (without .md extension):",
        validate=lambda x: len(x.strip()) > 0 or "Filename cannot be empty",
        style=_questionary_style(),
    ).ask()
    if name is None:
        raise click.Abort()
    name = name.strip()

    add_date = questionary.confirm(
        "Prefix with today's date? (YYYY-MM-DD-)",
        default=True,
        style=_questionary_style(),
    ).ask()
    if add_date is None:
        raise click.Abort()

    draft = questionary.confirm(
        "Mark as draft?",
        default=True,
        style=_questionary_style(),
    ).ask()
    if draft is None:
        raise click.Abort()

    now = datetime.now()
    filename = f"{now.strftime('%Y-%m-%d-')}{name}.md" if add_date else f"{name}.md"
    target_dir = input_dir if folder == ". (root)" else input_dir / folder
    target_path = target_dir / filename

    if target_path.exists():
        raise click.ClickException(
            f"File already exists: {target_path.relative_to(project_root)}"
        )

    slug = slugify(Path(filename).stem)
    if target_dir.exists():
        conflicting = [
            f.name
            for f in sorted(target_dir.iterdir())
            if f.is_file() and f.suffix == ".md" and slugify(f.stem) == slug
        ]
        if conflicting:
            raise click.ClickException(
                f"A file with slug '{slug}' already exists: {conflicting[0]}"
            )

    frontmatter = {"title": titleize(name), "date": now.strftime("%Y-%m-%d")}
    if draft:
        frontmatter["draft"] = True
    target_dir.mkdir(parents=True, exist_ok=True)
    target_path.write_text(
        f"---\n{yaml.safe_dump(frontmatter, sort_keys=False)}---\n\n",
        encoding="utf-8",
    )
    click.echo(f"Created {target_path.relative_to(project_root)}")


def _get_content_folders(input_dir: Path, skipped: tuple[Path, ...] = ()) -> list[str]:
    """List the folders of the input directory a post can be created in.

    Hidden folders, folders starting with ``_`` and the includes/data
    directories are left out. ``. (root)`` is always the first choice.
    """
    folders = []
    for path in input_dir.iterdir():
        if not path.is_dir() or path.name.startswith(("_", ".")):
            continue
        if any(is_within(path, directory) for directory in skipped):
            continue
        folders.append(path.name)
    folders.sort()
    folders.insert(0, ". (root)")
    return folders


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()
