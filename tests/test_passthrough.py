from lantern.config import SiteConfig
from lantern.passthrough import PassthroughCopy, copy_passthrough


def write(path, text="x"):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def layout(tmp_path):
    directories = SiteConfig().directories(tmp_path)
    output = directories.output
    output.mkdir(parents=True)
    return directories, output


def test_directory_contents_copied_to_root(tmp_path):
    directories, output = layout(tmp_path)
    write(tmp_path / "public" / "robots.txt", "User-agent: *")
    write(tmp_path / "public" / "fonts" / "body.woff2")

    copied = PassthroughCopy("public/", "/").copy(directories, output)
    assert copied == ["fonts/body.woff2", "robots.txt"]
    assert (output / "robots.txt").read_text(encoding="utf-8") == "User-agent: *"


def test_file_inside_input_keeps_input_relative_path(tmp_path):
    directories, output = layout(tmp_path)
    write(directories.input / "feed" / "pretty-atom-feed.xsl", "<xsl/>")
    copied = PassthroughCopy("content/feed/pretty-atom-feed.xsl").copy(directories, output)
    assert copied == ["feed/pretty-atom-feed.xsl"]
    assert (output / "feed" / "pretty-atom-feed.xsl").exists()


def test_file_outside_input_keeps_project_relative_path(tmp_path):
    directories, output = layout(tmp_path)
    write(tmp_path / "static" / "favicon.ico")
    assert PassthroughCopy("static/favicon.ico").copy(directories, output) == [
        "static/favicon.ico"
    ]


def test_file_renamed_and_copied_into_directory(tmp_path):
    directories, output = layout(tmp_path)
    write(tmp_path / "static" / "favicon.ico")
    assert PassthroughCopy("static/favicon.ico", "icon.ico").copy(directories, output) == [
        "icon.ico"
    ]
    assert PassthroughCopy("static/favicon.ico", "assets/").copy(directories, output) == [
        "assets/favicon.ico"
    ]


def test_glob_sources(tmp_path):
    directories, output = layout(tmp_path)
    write(directories.input / "img" / "a.png")
    write(directories.input / "img" / "b.jpg")
    write(directories.input / "img" / "notes.txt")

    copied = PassthroughCopy("content/img/*.{png,jpg}").copy(directories, output)
    assert copied == ["img/a.png", "img/b.jpg"]

    copied = PassthroughCopy("content/img/*.png", "media").copy(directories, output)
    assert copied == ["media/a.png"]


def test_missing_source_warns(tmp_path, capsys):
    directories, output = layout(tmp_path)
    assert PassthroughCopy("public/").copy(directories, output) == []
    assert "passthrough source not found: public/" in capsys.readouterr().out


def test_copy_passthrough_runs_every_entry(tmp_path):
    directories, output = layout(tmp_path)
    write(tmp_path / "public" / "robots.txt")
    write(tmp_path / "static" / "favicon.ico")
    copied = copy_passthrough(
        [PassthroughCopy("public/", "/"), PassthroughCopy("static/favicon.ico", "/")],
        directories,
        output,
    )
    assert copied == ["robots.txt", "favicon.ico"]
