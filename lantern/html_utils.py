"""HTML utility functions for Lantern.

This module provides the HTML string manipulation shared by the transform
stages and feed generators: escaping, URL joining, attribute parsing and
rewriting of URL-bearing attributes.

Functions:
    escape_html: Escape special HTML characters in a string.
    join_root_url: Join a base URL with a path.
    absolutize_html_urls: Convert root-relative URLs to absolute in HTML.
    rewrite_html_urls: Apply a callback to every href/src/srcset/action URL.
    parse_attributes: Parse the attributes of a start tag.
    render_attributes: Serialize an attribute mapping back to HTML.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from html import unescape
from typing import Any

# URL attribute regex pattern for finding href, src, srcset, action attributes
_URL_ATTR_RE = re.compile(
    r'(?P<prefix>\b(?P<name>href|src|srcset|action)=(?P<quote>["\']))(?P<url>[^"\']+)(?P=quote)'
)

_ATTR_RE = re.compile(
    r"""(?P<name>[^\s"'<>/=]+)(?:\s*=\s*(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'|(?P<bare>[^\s"'=<>`]+)))?"""
)

# URL prefixes that should not be modified
_URL_SKIP_PREFIXES = (
    "http://",
    "https://",
    "//",
    "mailto:",
    "tel:",
    "#",
    "javascript:",
    "data:",
)


def escape_html(text: str) -> str:
    """Escape special HTML characters in a string.

    Examples:
        >>> escape_html('Tom & Jerry')
        'Tom &amp; Jerry'
    """
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def is_external_url(url: str) -> bool:
    """Check whether a URL should never be rewritten."""
    return not url or url.startswith(_URL_SKIP_PREFIXES)


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Examples:
        >>> join_root_url('https://example.com/blog/', '/about/')
        'https://example.com/blog/about/'
    """
    if not root_url:
        return path
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"


def _rewrite_srcset(value: str, rewrite: Callable[[str], str]) -> str:
    candidates = []
    for candidate in value.split(","):
        parts = candidate.strip().split(None, 1)
        if not parts:
            continue
        parts[0] = rewrite(parts[0])
        candidates.append(" ".join(parts))
    return ", ".join(candidates)


def rewrite_html_urls(html: str, rewrite: Callable[[str], str]) -> str:
    """Rewrite every URL found in href, src, srcset and action attributes.

    Args:
        html: HTML content to process.
        rewrite: Callback receiving one URL and returning its replacement.

    Returns:
        HTML with rewritten URLs.
    """

    def repl(match: re.Match) -> str:
        url = match.group("url")
        if match.group("name") == "srcset":
            rewritten = _rewrite_srcset(url, rewrite)
        else:
            rewritten = rewrite(url)
        quote = match.group("quote")
        return f"{match.group('prefix')}{rewritten}{quote}"

    return _URL_ATTR_RE.sub(repl, html)


def absolutize_html_urls(html: str, root_url: str) -> str:
    """Rewrite root-relative URLs in HTML to absolute URLs.

    External URLs, anchors, mailto/tel links, and javascript: URLs are left
    unchanged.

    Examples:
        >>> absolutize_html_urls('<a href="/about">About</a>', 'https://example.com')
        '<a href="https://example.com/about">About</a>'
    """
    if not root_url:
        return html

    def rewrite(url: str) -> str:
        if is_external_url(url):
            return url
        return join_root_url(root_url, url)

    return rewrite_html_urls(html, rewrite)


def parse_attributes(tag: str) -> dict[str, str | bool]:
    """Parse the attributes of a start tag.

    Args:
        tag: A start tag such as ``<img src="a.png" alt="">``.

    Returns:
        Ordered mapping of attribute name to value (True for bare attributes).
    """
    inner = re.sub(r"^<\s*[\w:-]+", "", tag).rstrip(">").rstrip("/")
    attributes: dict[str, str | bool] = {}
    for match in _ATTR_RE.finditer(inner):
        name = match.group("name").lower()
        value = match.group("dq")
        if value is None:
            value = match.group("sq")
        if value is None:
            value = match.group("bare")
        attributes[name] = True if value is None else unescape(value)
    return attributes


def render_attributes(attributes: Mapping[str, Any]) -> str:
    """Serialize attributes, skipping None/False values.

    Examples:
        >>> render_attributes({"src": "a.png", "hidden": True})
        ' src="a.png" hidden'
    """
    parts = []
    for name, value in attributes.items():
        if value is None or value is False:
            continue
        if value is True:
            parts.append(f" {name}")
        else:
            parts.append(f' {name}="{escape_html(str(value))}"')
    return "".join(parts)
