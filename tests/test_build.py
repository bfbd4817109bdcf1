import pytest

from lantern.build import BuildError, build_site, load_data
from lantern.config import RUN_MODE_ENV, RunMode


def write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def make_site(root):
    write(
        root / "_includes" / "base.html",
        "<!doctype html><html><head><title>{{ title }} | {{ metadata.title }}</title>"
        "<style>{{ get_bundle('css') }}</style></head>"
        "<body>{{ content }}<footer>{{ currentBuildDate() }}</footer></body></html>",
    )
    write(
        root / "_includes" / "post.html",
        "---\nlayout: base\n---\n<article><h1>{{ title }}</h1>{{ content }}</article>",
    )
    write(root / "_data" / "metadata.yaml", "title: My Blog\nurl: https://example.com\n")
    write(
        root / "content" / "index.md",
        "---\nlayout: base\ntitle: Home\n---\n"
        "{% for post in collections.posts %}"
        '<a href="{{ post.url }}">{{ post.title }}</a>\n'
        "{% endfor %}",
    )
    write(root / "content" / "blog" / "blog.json", '{"layout": "post", "tags": ["posts"]}')
    write(
        root / "content" / "blog" / "2024-01-01-hello.md",
        "---\ntitle: Hello\n---\nHello **world**.\n\n<style>p { color: red; }</style>\n",
    )
    write(
        root / "content" / "blog" / "2024-02-01-wip.md",
        "---\ntitle: WIP\ndraft: true\n---\nNot ready.\n",
    )
    write(root / "content" / "feed" / "pretty-atom-feed.xsl", "<xsl:stylesheet/>")
    write(root / "public" / "robots.txt", "User-agent: *\n")


def test_build_excludes_drafts(tmp_path):
    make_site(tmp_path)
    result = build_site(tmp_path, run_mode=RunMode.BUILD)
    out = tmp_path / "_site"

    assert result.run_mode is RunMode.BUILD
    assert sorted(p.input_path for p in result.pages) == [
        "blog/2024-01-01-hello.md",
        "index.md",
    ]
    assert [item.input_path for item in result.excluded] == ["blog/2024-02-01-wip.md"]
    assert [p.title for p in result.collections.posts] == ["Hello"]
    assert not (out / "blog" / "wip").exists()

    post = (out / "blog" / "hello" / "index.html").read_text(encoding="utf-8")
    assert "<title>Hello | My Blog</title>" in post
    assert '<h1 id="hello">Hello</h1>' in post
    assert "<p>Hello <strong>world</strong>.</p>" in post
    assert "<style>p { color: red; }</style></head>" in post
    assert post.count("<style>") == 1

    index = (out / "index.html").read_text(encoding="utf-8")
    assert '<a href="/blog/hello/">Hello</a>' in index
    assert "WIP" not in index

    assert (out / "robots.txt").exists()
    assert (out / "feed" / "pretty-atom-feed.xsl").exists()
    feed = (out / "feed" / "feed.xml").read_text(encoding="utf-8")
    assert "<title>Hello</title>" in feed
    assert "WIP" not in feed
    assert "https://example.com/blog/hello/" in (out / "sitemap.xml").read_text(
        encoding="utf-8"
    )


def test_serve_mode_renders_drafts_with_marked_title(tmp_path):
    make_site(tmp_path)
    result = build_site(tmp_path, run_mode=RunMode.SERVE)
    out = tmp_path / "_site"

    assert result.excluded == []
    assert [p.title for p in result.collections.posts] == ["Hello", "WIP (draft)"]
    wip = (out / "blog" / "wip" / "index.html").read_text(encoding="utf-8")
    assert "<title>WIP (draft) | My Blog</title>" in wip
    assert "<p>Not ready.</p>" in wip


def test_run_mode_read_from_environment(tmp_path, monkeypatch):
    make_site(tmp_path)
    monkeypatch.setenv(RUN_MODE_ENV, "watch")
    result = build_site(tmp_path)
    assert result.run_mode is RunMode.WATCH
    assert (tmp_path / "_site" / "blog" / "wip" / "index.html").exists()


def test_path_prefix_applies_to_links_and_feed(tmp_path):
    make_site(tmp_path)
    write(tmp_path / "lantern.yaml", "path_prefix: /docs/\n")
    build_site(tmp_path, run_mode=RunMode.BUILD)
    out = tmp_path / "_site"
    index = (out / "index.html").read_text(encoding="utf-8")
    assert '<a href="/docs/blog/hello/">Hello</a>' in index
    feed = (out / "feed" / "feed.xml").read_text(encoding="utf-8")
    assert "https://example.com/docs/blog/hello/" in feed


def test_output_dir_override_and_clean(tmp_path):
    make_site(tmp_path)
    staging = tmp_path / "staging"
    write(staging / "stale.html", "old")
    result = build_site(tmp_path, run_mode=RunMode.BUILD, output_dir_override=staging)
    assert result.output_dir == staging
    assert not (staging / "stale.html").exists()
    assert (staging / "index.html").exists()
    assert not (tmp_path / "_site").exists()


def test_permalink_false_page_is_rendered_but_not_written(tmp_path):
    make_site(tmp_path)
    write(tmp_path / "content" / "partial.md", "---\npermalink: false\n---\nHidden\n")
    result = build_site(tmp_path, run_mode=RunMode.BUILD)
    hidden = next(p for p in result.pages if p.input_path == "partial.md")
    assert hidden.content == "<p>Hidden</p>\n"
    assert not (tmp_path / "_site" / "partial").exists()


def test_template_syntax_error_raises_build_error(tmp_path):
    make_site(tmp_path)
    broken = write(tmp_path / "content" / "broken.md", "{% if %}\n")
    with pytest.raises(BuildError) as excinfo:
        build_site(tmp_path, run_mode=RunMode.BUILD)
    assert excinfo.value.source_path == broken.resolve()
    assert excinfo.value.message.startswith("Template syntax error on line 1")


def test_missing_layout_raises_build_error(tmp_path):
    make_site(tmp_path)
    write(tmp_path / "content" / "lost.md", "---\nlayout: nope\n---\nText\n")
    with pytest.raises(BuildError) as excinfo:
        build_site(tmp_path, run_mode=RunMode.BUILD)
    assert excinfo.value.message == "Layout not found: nope"


def test_missing_input_directory(tmp_path):
    with pytest.raises(FileNotFoundError) as excinfo:
        build_site(tmp_path, run_mode=RunMode.BUILD)
    assert "Expected input directory" in str(excinfo.value)


def test_load_data(tmp_path):
    data_dir = tmp_path / "_data"
    write(data_dir / "metadata.yaml", "title: Blog\n")
    write(data_dir / "links.json", '[{"url": "/a/"}]')
    write(data_dir / "notes.txt", "ignored")
    assert load_data(data_dir) == {"links": [{"url": "/a/"}], "metadata": {"title": "Blog"}}
    assert load_data(tmp_path / "missing") == {}


def test_load_data_invalid_file(tmp_path):
    bad = write(tmp_path / "_data" / "broken.json", "{nope")
    with pytest.raises(BuildError) as excinfo:
        load_data(tmp_path / "_data")
    assert excinfo.value.source_path == bad
    assert "Invalid data file" in excinfo.value.message
