from datetime import datetime
from pathlib import Path

from lantern.config import SiteConfig
from lantern.content import Page
from lantern.plugins import UserConfig
from lantern.transforms import (
    BaseTransform,
    HtmlBasePlugin,
    HtmlBaseTransform,
    IdAttributeTransform,
    InputPathToUrlTransform,
    TransformContext,
    TransformPipeline,
    apply_path_prefix,
)


def make_page(input_path="blog/post.md", url="/blog/post/", output_path="blog/post/index.html"):
    return Page(
        title="Post",
        body="",
        url=url,
        output_path=output_path,
        slug=Path(input_path).stem,
        date=datetime(2024, 1, 1),
        tags=[],
        draft=False,
        layout=None,
        path=Path("content") / input_path,
        input_path=input_path,
        source_type="markdown",
    )


def make_context(tmp_path, path_prefix="/", pages=()):
    directories = SiteConfig().directories(tmp_path)
    return TransformContext(
        directories=directories,
        output_dir=directories.output,
        path_prefix=path_prefix,
        pages_by_input={page.input_path: page for page in pages},
    )


class Recorder(BaseTransform):
    def __init__(self, name, order, log):
        self.name = name
        self._order = order
        self.log = log

    @property
    def order(self):
        return self._order

    def apply(self, html, page, context):
        self.log.append(self.name)
        return html + f"[{self.name}]"


def test_pipeline_runs_by_declared_order(tmp_path):
    log = []
    pipeline = TransformPipeline()
    pipeline.register(Recorder("late", 90, log))
    pipeline.register(Recorder("early", 10, log))
    pipeline.register(Recorder("middle", 40, log))
    html = pipeline.run("<p></p>", make_page(), make_context(tmp_path))
    assert log == ["early", "middle", "late"]
    assert html == "<p></p>[early][middle][late]"


def test_pipeline_replaces_stage_with_same_name(tmp_path):
    log = []
    pipeline = TransformPipeline()
    pipeline.register(Recorder("a", 10, log))
    pipeline.register(Recorder("a", 50, log))
    assert [s.order for s in pipeline.stages] == [50]


def test_pipeline_skips_non_html_output(tmp_path):
    log = []
    pipeline = TransformPipeline()
    pipeline.register(Recorder("a", 10, log))
    feed = make_page("feed.jinja", "/feed.xml", "feed.xml")
    assert pipeline.run("<xml/>", feed, make_context(tmp_path)) == "<xml/>"
    assert log == []


def test_apply_path_prefix():
    assert apply_path_prefix("/about/", "/blog/") == "/blog/about/"
    assert apply_path_prefix("/blog/about/", "/blog/") == "/blog/about/"
    assert apply_path_prefix("https://x.com/", "/blog/") == "https://x.com/"
    assert apply_path_prefix("relative.png", "/blog/") == "relative.png"
    assert apply_path_prefix("/about/", "/") == "/about/"


def test_html_base_prefixes_urls(tmp_path):
    html = (
        '<a href="/about/">A</a><img src="/img/a.png" srcset="/img/a.png 1x, /img/b.png 2x">'
        '<a href="#top">T</a><a href="mailto:me@example.com">M</a>'
    )
    out = HtmlBaseTransform().apply(html, make_page(), make_context(tmp_path, "/blog/"))
    assert 'href="/blog/about/"' in out
    assert 'src="/blog/img/a.png"' in out
    assert 'srcset="/blog/img/a.png 1x, /blog/img/b.png 2x"' in out
    assert 'href="#top"' in out
    assert 'href="mailto:me@example.com"' in out


def test_html_base_plugin_registers_url_filter():
    config = UserConfig(SiteConfig(path_prefix="/docs/"))
    HtmlBasePlugin().register(config)
    assert config.filters["url"]("/a/") == "/docs/a/"
    assert [s.name for s in config.transforms.stages] == ["html_base"]


def test_input_path_to_url(tmp_path):
    target = make_page("blog/other.md", "/blog/other/", "blog/other/index.html")
    about = make_page("about.md", "/about/", "about/index.html")
    page = make_page()
    context = make_context(tmp_path, pages=[page, target, about])
    html = (
        '<a href="other.md#intro">rel</a>'
        '<a href="/about.md">abs</a>'
        '<a href="/content/blog/other.md">with input dir</a>'
        '<a href="/missing.md">missing</a>'
        '<a href="https://example.com/about.md">ext</a>'
    )
    out = InputPathToUrlTransform().apply(html, page, context)
    assert 'href="/blog/other/#intro"' in out
    assert 'href="/about/"' in out
    assert 'href="/blog/other/">with input dir' in out
    assert 'href="/missing.md"' in out
    assert 'href="https://example.com/about.md"' in out


def test_id_attribute_adds_unique_ids(tmp_path):
    html = (
        '<h1>Hello <em>World</em></h1>'
        '<h2 id="keep">Kept</h2>'
        "<h2>Setup</h2><h3>Setup</h3>"
        '<div id="notes"></div><h2>Notes</h2>'
        '<div data-id="intro"></div><h2>Intro</h2>'
    )
    out = IdAttributeTransform().apply(html, make_page(), make_context(tmp_path))
    assert '<h1 id="hello-world">Hello <em>World</em></h1>' in out
    assert '<h2 id="keep">Kept</h2>' in out
    assert '<h2 id="setup">Setup</h2><h3 id="setup-1">Setup</h3>' in out
    assert '<h2 id="notes-1">Notes</h2>' in out
    assert '<h2 id="intro">Intro</h2>' in out


def test_id_attribute_skips_empty_headings(tmp_path):
    out = IdAttributeTransform().apply("<h2>!!!</h2>", make_page(), make_context(tmp_path))
    assert out == "<h2>!!!</h2>"
