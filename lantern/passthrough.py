"""Passthrough copying of static files.

Sources are paths (or glob patterns) relative to the project root. A
directory source copies its contents; a file source copies the file.

Destinations:
- None: keep the source's path, relative to the input directory when the
  source lives there, otherwise relative to the project root.
- A path ending in ``/`` (or ``/`` itself): a directory in the output tree.
- Anything else: the output file path for a single file source.
"""

from __future__ import annotations

import glob
import shutil
from dataclasses import dataclass
from pathlib import Path

from .config import Directories
from .utils import expand_braces, is_within

GLOB_CHARS = ("*", "?", "[", "{")


@dataclass(frozen=True)
class PassthroughCopy:
    """A declared passthrough copy.

    Attributes:
        source: Project-relative path or glob pattern.
        destination: Output-relative destination, or None.
    """

    source: str
    destination: str | None = None

    @property
    def is_glob(self) -> bool:
        return any(char in self.source for char in GLOB_CHARS)

    def _matches(self, root: Path) -> list[Path]:
        pattern = self.source.removeprefix("./")
        if not self.is_glob:
            candidate = root / pattern
            return [candidate] if candidate.exists() else []
        matches: set[Path] = set()
        for expanded in expand_braces(pattern):
            for hit in glob.glob(str(root / expanded), recursive=True):
                matches.add(Path(hit))
        return sorted(matches)

    def _default_rel(self, path: Path, directories: Directories) -> Path:
        if is_within(path, directories.input):
            return path.relative_to(directories.input)
        return path.relative_to(directories.project_root)

    def copy(self, directories: Directories, output_dir: Path) -> list[str]:
        """Copy the source into the output directory.

        Returns:
            Output-relative POSIX paths of the copied files.
        """
        sources = self._matches(directories.project_root)
        if not sources:
            print(f"Warning: passthrough source not found: {self.source}")
            return []

        copied: list[str] = []
        for source in sources:
            if self.destination is None:
                target = output_dir / self._default_rel(source, directories)
            else:
                dest = self.destination.lstrip("/")
                into_dir = (
                    self.destination.endswith("/") or self.is_glob or len(sources) > 1
                )
                if source.is_dir() and not self.is_glob:
                    target = output_dir / dest
                elif into_dir:
                    target = output_dir / dest / source.name
                else:
                    target = output_dir / dest
            copied.extend(_copy_path(source, target, output_dir))
        return copied


def _copy_path(source: Path, target: Path, output_dir: Path) -> list[str]:
    if source.is_dir():
        shutil.copytree(source, target, dirs_exist_ok=True)
        return sorted(
            (target / p.relative_to(source)).relative_to(output_dir).as_posix()
            for p in source.rglob("*")
            if p.is_file()
        )
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, target)
    return [target.relative_to(output_dir).as_posix()]


def copy_passthrough(
    copies: list[PassthroughCopy], directories: Directories, output_dir: Path
) -> list[str]:
    """Run every declared passthrough copy.

    Returns:
        Output-relative paths of all copied files.
    """
    copied: list[str] = []
    for entry in copies:
        copied.extend(entry.copy(directories, output_dir))
    return copied
