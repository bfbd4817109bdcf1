"""Markup bundles for Lantern.

Templates declare where a bundle goes with two globals:

    <style>{{ get_bundle("css") }}</style>
    <script type="module" src="{{ get_bundle_file_url('js') }}"></script>

Both render placeholders. After the page is rendered, the bundle stage
collects the ``<style>`` (or inline ``<script>``) elements of the page,
removes them, and fills the placeholders: inline placeholders receive
the collected code, file placeholders the URL of a content-hashed file
written below the bundle's output directory. Identical snippets are only
included once. Elements carrying ``data-bundle-skip``, scripts with a
``src`` and elements that host a placeholder are left alone.

Pages without a placeholder for a bundle keep their elements untouched.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING

from markupsafe import Markup
from rjsmin import jsmin

from .config import BundleDeclaration
from .html_utils import parse_attributes
from .transforms import BaseTransform, TransformContext

if TYPE_CHECKING:
    from .content import Page
    from .plugins import UserConfig

INLINE_PLACEHOLDER = "<!--lantern-bundle:{name}-->"
FILE_PLACEHOLDER = "/__lantern_bundle__/{name}"
SCRIPT_TYPES = ("", "text/javascript", "application/javascript", "module")
EXTENSIONS = {"style": "css", "script": "js"}


def _element_re(selector: str) -> re.Pattern:
    return re.compile(
        rf"<{selector}(?P<attrs>\s[^>]*)?>(?P<body>.*?)</{selector}\s*>",
        re.IGNORECASE | re.DOTALL,
    )


class UnknownBundleError(KeyError):
    """A template asked for a bundle that was never declared."""


class BundleManager:
    """Tracks declared bundles and the files written for them.

    Attributes:
        declarations: Declared bundles keyed by name.
        written: Output-relative paths of bundle files written so far.
    """

    def __init__(self, declarations: Mapping[str, BundleDeclaration]):
        self.declarations = declarations
        self.written: set[str] = set()

    def _declaration(self, name: str) -> BundleDeclaration:
        try:
            return self.declarations[name]
        except KeyError:
            raise UnknownBundleError(f"Unknown bundle {name!r}") from None

    def inline_placeholder(self, name: str) -> Markup:
        self._declaration(name)
        return Markup(INLINE_PLACEHOLDER.format(name=name))

    def file_placeholder(self, name: str) -> Markup:
        self._declaration(name)
        return Markup(FILE_PLACEHOLDER.format(name=name))

    def owner(self, declaration: BundleDeclaration, attrs: Mapping[str, object]) -> bool:
        """Return True if an element with ``attrs`` belongs to ``declaration``.

        An explicit ``data-bundle`` attribute names the bundle; otherwise the
        element goes to the first bundle declared for its element name.
        """
        target = attrs.get("data-bundle")
        if isinstance(target, str) and target:
            return target == declaration.name
        for candidate in self.declarations.values():
            if candidate.selector == declaration.selector:
                return candidate.name == declaration.name
        return False

    def write_file(self, declaration: BundleDeclaration, code: str, output_dir: Path) -> str:
        """Write bundle code to a content-hashed file.

        Args:
            declaration: Bundle the code belongs to.
            code: Collected code.
            output_dir: Build output directory.

        Returns:
            Root-relative URL of the written file.
        """
        extension = EXTENSIONS.get(declaration.selector, declaration.name)
        if extension == "js":
            code = jsmin(code)
        digest = hashlib.sha256(code.encode("utf-8")).hexdigest()[:10]
        directory = declaration.to_file_directory.strip("/")
        rel = f"{directory}/{digest}.{extension}" if directory else f"{digest}.{extension}"
        if rel not in self.written:
            target = output_dir / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(code, encoding="utf-8")
            self.written.add(rel)
        return f"/{rel}"


class BundleTransform(BaseTransform):
    """Collects bundled elements and fills bundle placeholders."""

    name = "bundle"

    def __init__(self, manager: BundleManager):
        self.manager = manager

    @property
    def order(self) -> int:
        return 10

    def apply(self, html: str, page: Page, context: TransformContext) -> str:
        for declaration in list(self.manager.declarations.values()):
            html = self._apply_bundle(html, declaration, context)
        return html

    def _apply_bundle(
        self, html: str, declaration: BundleDeclaration, context: TransformContext
    ) -> str:
        inline = INLINE_PLACEHOLDER.format(name=declaration.name)
        file_url = FILE_PLACEHOLDER.format(name=declaration.name)
        if inline not in html and file_url not in html:
            return html

        snippets: list[str] = []

        def collect(match: re.Match) -> str:
            body = match.group("body")
            if "<!--lantern-bundle:" in body or FILE_PLACEHOLDER.format(name="") in body:
                return match.group(0)
            opening = match.group(0)[: match.start("body") - match.start(0)]
            attrs = parse_attributes(opening)
            if "data-bundle-skip" in attrs or not self.manager.owner(declaration, attrs):
                return match.group(0)
            if declaration.selector == "script":
                script_type = str(attrs.get("type") or "").lower()
                if "src" in attrs or script_type not in SCRIPT_TYPES:
                    return match.group(0)
            code = body.strip()
            if code and code not in snippets:
                snippets.append(code)
            return ""

        html = _element_re(declaration.selector).sub(collect, html)
        code = "\n".join(snippets)
        if inline in html:
            html = html.replace(inline, code)
        if file_url in html:
            url = (
                self.manager.write_file(declaration, code, context.output_dir)
                if code
                else ""
            )
            html = html.replace(file_url, url)
        return html


class BundlePlugin:
    """Registers the bundle stage and the ``get_bundle*`` template globals."""

    name = "bundle"

    def __init__(self, declarations: Mapping[str, BundleDeclaration]):
        self.manager = BundleManager(declarations)

    def register(self, config: UserConfig) -> None:
        config.add_transform(BundleTransform(self.manager))
        config.add_global("get_bundle", self.manager.inline_placeholder)
        config.add_global("get_bundle_file_url", self.manager.file_placeholder)
