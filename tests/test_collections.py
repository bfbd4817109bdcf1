from datetime import datetime
from pathlib import Path

from lantern.collections import Collections, PageCollection, build_collections
from lantern.content import Page


def make_page(title, date=None, tags=None, draft=False, filename=None, data=None):
    filename = filename or f"{title.lower().replace(' ', '-')}.md"
    slug = Path(filename).stem
    return Page(
        title=title,
        body="",
        url=f"/{slug}/",
        output_path=f"{slug}/index.html",
        slug=slug,
        date=date or datetime(2024, 1, 1),
        tags=tags or [],
        draft=draft,
        layout=None,
        path=Path("content") / filename,
        input_path=filename,
        source_type="markdown",
        data=data or {},
    )


def test_page_collection_filters_and_latest():
    pages = PageCollection(
        [
            make_page("A", date=datetime(2024, 1, 2), filename="a.md"),
            make_page("B", date=datetime(2024, 1, 3), draft=True, filename="b.md"),
            make_page("C", date=datetime(2024, 1, 1), tags=["python"], filename="c.md"),
        ]
    )
    assert len(pages) == 3
    assert pages.latest(1)[0].title == "B"
    assert [p.title for p in pages.sorted()] == ["C", "A", "B"]
    assert [p.title for p in pages.sorted(reverse=True)] == ["B", "A", "C"]
    assert [p.title for p in pages.with_tag("python")] == ["C"]
    assert isinstance(pages[:2], PageCollection)


def test_sorting_by_date_number_filename():
    pages = PageCollection(
        [
            make_page("Third", filename="03-third.md"),
            make_page("First", filename="01-first.md"),
            make_page("Second", filename="02-second.md"),
            make_page("Zeta", filename="zeta.md"),
        ]
    )
    assert [p.title for p in pages.sorted()] == ["Zeta", "First", "Second", "Third"]
    assert [p.title for p in pages.sorted(reverse=True)][0] == "Third"


def test_build_collections_groups_by_tag_oldest_first():
    newer = make_page("Newer", date=datetime(2024, 3, 1), tags=["posts", "python"])
    older = make_page("Older", date=datetime(2024, 1, 1), tags=["posts"])
    about = make_page("About", date=datetime(2023, 1, 1))
    hidden = make_page(
        "Tag Index", tags=["posts"], data={"exclude_from_collections": True}
    )

    collections = build_collections([newer, about, hidden, older])
    assert [p.title for p in collections["all"]] == ["About", "Older", "Newer"]
    assert [p.title for p in collections["posts"]] == ["Older", "Newer"]
    assert [p.title for p in collections.python] == ["Newer"]
    assert collections.tags() == ["posts", "python"]


def test_unknown_collection_is_empty():
    collections = Collections({"all": []})
    assert len(collections.posts) == 0
    assert list(collections) == ["all"]
    assert "posts" not in collections
