"""Lantern static blog generator.

This package builds a static blog from Markdown, HTML and Jinja2 sources.
A single declarative file (lantern.yaml) selects template formats, the
directory layout, the URL path prefix and the options of every plugin.

Plugins are composed once per build by :func:`lantern.plugins.configure_site`:
- Preprocessors (draft handling) run on each content item before rendering.
- Transforms (bundles, image optimization, id attributes, path prefix) run on
  each rendered HTML page in a fixed, declared order.
- Feeds, passthrough copies and bundles write extra files to the output tree.

The main entry point is the CLI module, which provides commands for building
the site, running the development server and creating new posts.
"""

__all__ = ["__version__"]
__version__ = "0.3.0"
