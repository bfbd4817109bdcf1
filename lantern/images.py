"""HTML image transform for Lantern.

Local ``<img>`` elements in rendered pages are replaced by ``<picture>``
markup that offers the image in every configured format, generated with
Pillow and written below ``ImageOptions.url_path``. The fallback ``<img>``
gets the default attributes (``loading="lazy" decoding="async"``) and the
source pixel size as ``width``/``height``; attributes on the source element,
dimensions included, win over the defaults.

Elements with ``data-image-ignore``, external or ``data:`` sources and
images already inside a ``<picture>`` are left as they are. A missing or
unreadable image fails the build only when ``fail_on_error`` is set;
otherwise a warning is printed and the element is kept unchanged.
"""

from __future__ import annotations

import hashlib
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from PIL import Image, UnidentifiedImageError

from .config import ImageOptions
from .html_utils import is_external_url, parse_attributes, render_attributes
from .transforms import BaseTransform, TransformContext

if TYPE_CHECKING:
    from .content import Page
    from .plugins import UserConfig

IMG_OR_PICTURE_RE = re.compile(
    r"<picture\b.*?</picture\s*>|<img\b[^>]*>", re.IGNORECASE | re.DOTALL
)

PILLOW_FORMATS = {
    "avif": "AVIF",
    "webp": "WEBP",
    "png": "PNG",
    "jpeg": "JPEG",
    "gif": "GIF",
}
MIME_TYPES = {
    "avif": "image/avif",
    "webp": "image/webp",
    "png": "image/png",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
}
ANIMATED_FORMATS = ("avif", "webp", "png", "gif")


class ImageTransformError(Exception):
    """An image could not be processed.

    Attributes:
        source_path: Path of the image (or the page referencing it).
        message: Human-readable error message.
    """

    def __init__(self, source_path: Path | str, message: str):
        self.source_path = source_path
        self.message = message
        super().__init__(f"{source_path}: {message}")


@dataclass(frozen=True)
class GeneratedImage:
    """One generated image file."""

    format: str
    url: str
    width: int
    height: int


def can_encode(fmt: str) -> bool:
    """Check whether the installed Pillow can write ``fmt``."""
    Image.init()
    return PILLOW_FORMATS.get(fmt, "") in Image.SAVE


class ImageTransform(BaseTransform):
    """Replaces local images with multi-format ``<picture>`` markup.

    Generated files are cached per source file for the lifetime of the
    transform (one build).
    """

    name = "image"

    def __init__(self, options: ImageOptions):
        self.options = options
        self._cache: dict[tuple[Path, int], list[GeneratedImage]] = {}
        self._warned_formats: set[str] = set()

    @property
    def order(self) -> int:
        return 30

    def apply(self, html: str, page: Page, context: TransformContext) -> str:
        def repl(match: re.Match) -> str:
            tag = match.group(0)
            if tag[:8].lower().startswith("<picture"):
                return tag
            return self._transform_img(tag, page, context)

        return IMG_OR_PICTURE_RE.sub(repl, html)

    def _transform_img(self, tag: str, page: Page, context: TransformContext) -> str:
        attrs = parse_attributes(tag)
        if "data-image-ignore" in attrs:
            attrs.pop("data-image-ignore")
            return f"<img{render_attributes(attrs)}>"
        src = attrs.get("src")
        if not isinstance(src, str) or is_external_url(src):
            return tag

        source = self._resolve_source(src, page, context)
        try:
            if source is None:
                raise ImageTransformError(page.path, f"Image not found: {src}")
            generated = self._generate(source, context.output_dir)
        except ImageTransformError as exc:
            if self.options.fail_on_error:
                raise
            print(f"Warning: {exc.message} (in {page.input_path}); keeping original <img>")
            return tag

        fallback = generated[-1]
        img_attrs: dict[str, object] = dict(self.options.img_attributes)
        img_attrs.update(attrs)
        img_attrs["src"] = fallback.url
        img_attrs.setdefault("width", fallback.width)
        img_attrs.setdefault("height", fallback.height)
        img = f"<img{render_attributes(img_attrs)}>"
        if len(generated) == 1:
            return img

        sizes = attrs.get("sizes")
        sources = []
        for image in generated[:-1]:
            source_attrs = {
                "type": MIME_TYPES[image.format],
                "srcset": f"{image.url} {image.width}w",
                "sizes": sizes if isinstance(sizes, str) else None,
            }
            sources.append(f"<source{render_attributes(source_attrs)}>")
        return f"<picture>{''.join(sources)}{img}</picture>"

    def _resolve_source(self, src: str, page: Page, context: TransformContext) -> Path | None:
        path = src.split("#", 1)[0].split("?", 1)[0]
        if path.startswith("/"):
            candidates = [
                context.directories.input / path.lstrip("/"),
                context.directories.project_root / path.lstrip("/"),
            ]
        else:
            candidates = [Path(os.path.normpath(page.path.parent / path))]
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        return None

    def _output_formats(self, source_format: str) -> list[str]:
        formats: list[str] = []
        for fmt in self.options.formats:
            if fmt == "auto":
                fmt = source_format
            if fmt in formats:
                continue
            if not can_encode(fmt):
                if fmt not in self._warned_formats:
                    print(f"Warning: Pillow cannot write {fmt} images; skipping that format")
                    self._warned_formats.add(fmt)
                continue
            formats.append(fmt)
        return formats

    def _generate(self, source: Path, output_dir: Path) -> list[GeneratedImage]:
        key = (source, source.stat().st_mtime_ns)
        if key in self._cache:
            return self._cache[key]
        try:
            with Image.open(source) as img:
                source_format = (img.format or "png").lower()
                if source_format not in PILLOW_FORMATS:
                    source_format = "png"
                formats = self._output_formats(source_format)
                if not formats:
                    raise ImageTransformError(source, "No writable output format")
                digest = hashlib.sha256(source.read_bytes()).hexdigest()[:10]
                width, height = img.size
                animated = bool(getattr(img, "is_animated", False)) and self.options.animated
                url_dir = self.options.url_path
                target_dir = output_dir / url_dir.strip("/")
                target_dir.mkdir(parents=True, exist_ok=True)
                generated = []
                for fmt in formats:
                    filename = f"{digest}-{width}.{fmt}"
                    target = target_dir / filename
                    if not target.exists():
                        _save(img, target, fmt, animated and fmt in ANIMATED_FORMATS)
                    generated.append(
                        GeneratedImage(fmt, f"{url_dir}{filename}", width, height)
                    )
        except (OSError, UnidentifiedImageError, ValueError) as exc:
            raise ImageTransformError(source, f"Could not process image: {exc}") from exc
        self._cache[key] = generated
        return generated


def _save(img: Image.Image, target: Path, fmt: str, animated: bool) -> None:
    pillow_format = PILLOW_FORMATS[fmt]
    if animated:
        img.save(target, format=pillow_format, save_all=True)
        return
    img.seek(0)
    frame = img
    if fmt == "jpeg" and frame.mode not in ("RGB", "L"):
        frame = frame.convert("RGB")
    elif fmt in ("avif", "webp") and frame.mode == "P":
        frame = frame.convert("RGBA")
    frame.save(target, format=pillow_format)


class ImageTransformPlugin:
    """Registers the image transform stage."""

    name = "image"

    def __init__(self, options: ImageOptions | None = None):
        self.options = options or ImageOptions()

    def register(self, config: UserConfig) -> None:
        config.add_transform(ImageTransform(self.options))
