"""Content renderers for Lantern.

This module contains implementations of the ContentRenderer protocol for
each source type, plus the Pygments-backed code highlighter used by the
Markdown renderer. Template preprocessing (running Markdown or HTML
through Jinja first) is done by the TemplateEngine before a renderer is
called.

Key classes:
- CodeHighlighter: Highlights fenced code blocks with Pygments.
- SyntaxHighlightPlugin: Installs a CodeHighlighter and the pygments_css global.
- MarkdownRenderer: Renders Markdown to HTML with mistune.
- PassthroughRenderer: Returns HTML and Jinja output unchanged.
- RendererRegistry: Maps source types to renderers.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .config import SyntaxHighlightOptions
from .html_utils import escape_html, render_attributes

if TYPE_CHECKING:
    from .plugins import UserConfig


class CodeHighlighter:
    """Renders code blocks as ``<pre class="language-x"><code class="language-x">``.

    Known languages are highlighted with Pygments (inline token spans);
    unknown or missing languages are escaped.

    Attributes:
        pre_attributes: Extra attributes added to every ``<pre>``.
    """

    def __init__(self, pre_attributes: Mapping[str, Any] | None = None):
        self.pre_attributes = dict(pre_attributes or {})
        self._formatter = HtmlFormatter(nowrap=True)

    def __call__(self, code: str, language: str | None = None) -> str:
        parts = (language or "").split()
        language = parts[0] if parts else ""
        body = None
        if language:
            try:
                lexer = get_lexer_by_name(language, stripall=False)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                body = highlight(code, lexer, self._formatter)
        if body is None:
            body = escape_html(code)
        lang_class = f"language-{language}" if language else None
        pre_attrs = {"class": lang_class, **self.pre_attributes}
        code_attrs = {"class": lang_class}
        return (
            f"<pre{render_attributes(pre_attrs)}>"
            f"<code{render_attributes(code_attrs)}>{body}</code></pre>\n"
        )

    @staticmethod
    def stylesheet() -> str:
        """Return Pygments CSS for highlighted code blocks."""
        return HtmlFormatter().get_style_defs('pre[class^="language-"]')


class SyntaxHighlightPlugin:
    """Highlights fenced code blocks in Markdown."""

    name = "syntax-highlight"

    def __init__(self, options: SyntaxHighlightOptions | None = None):
        self.options = options or SyntaxHighlightOptions()

    def register(self, config: UserConfig) -> None:
        highlighter = CodeHighlighter(self.options.pre_attributes)
        config.code_highlighter = highlighter
        config.add_global("pygments_css", highlighter.stylesheet)


class _HighlightRenderer(mistune.HTMLRenderer):
    """mistune renderer delegating code blocks to a highlighter."""

    def __init__(self, highlighter: CodeHighlighter | None):
        super().__init__(escape=False)
        self.highlighter = highlighter

    def block_code(self, code: str, info: str | None = None) -> str:
        if self.highlighter is not None:
            return self.highlighter(code, info)
        return super().block_code(code, info)


class MarkdownRenderer:
    """Renders Markdown content to HTML. Raw HTML in the source is kept."""

    source_type = "markdown"

    def __init__(self, highlighter: CodeHighlighter | None = None):
        self.highlighter = highlighter

    def can_render(self, source_type: str) -> bool:
        return source_type == self.source_type

    def render(self, content: str) -> str:
        markdown = mistune.create_markdown(
            renderer=_HighlightRenderer(self.highlighter),
            plugins=["strikethrough", "footnotes", "table", "url"],
        )
        return markdown(content)


class PassthroughRenderer:
    """Returns already-templated HTML unchanged."""

    def __init__(self, source_type: str):
        self.source_type = source_type

    def can_render(self, source_type: str) -> bool:
        return source_type == self.source_type

    def render(self, content: str) -> str:
        return content


class RendererRegistry:
    """Registry for content renderers.

    Renderers are tried in registration order; the first that accepts a
    source type wins.
    """

    def __init__(self, highlighter: CodeHighlighter | None = None):
        self._renderers: list = []
        self.register(MarkdownRenderer(highlighter))
        self.register(PassthroughRenderer("jinja"))
        self.register(PassthroughRenderer("html"))

    def register(self, renderer) -> None:
        self._renderers.append(renderer)

    def get_renderer(self, source_type: str):
        for renderer in self._renderers:
            if renderer.can_render(source_type):
                return renderer
        return None
