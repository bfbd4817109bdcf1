from datetime import datetime
from pathlib import Path

import yaml
from click.testing import CliRunner

from lantern.build import BuildError, BuildResult
from lantern.cli import _get_content_folders, cli
from lantern.config import RUN_MODE_ENV, RunMode


def mock_prompts(monkeypatch, answers):
    responses = iter(answers)

    class MockQuestion:
        def ask(self):
            return next(responses)

    def factory(*args, **kwargs):
        return MockQuestion()

    monkeypatch.setattr("lantern.cli.questionary.select", factory)
    monkeypatch.setattr("lantern.cli.questionary.text", factory)
    monkeypatch.setattr("lantern.cli.questionary.confirm", factory)


def test_cli_build_and_serve(monkeypatch, tmp_path):
    runner = CliRunner()
    monkeypatch.chdir(tmp_path)
    called = {}

    def fake_build_site(root, run_mode=None, clean_output=True, output_dir_override=None):
        called["run_mode"] = run_mode
        out = root / "_site"
        out.mkdir(exist_ok=True)
        return BuildResult(pages=[], output_dir=out, data={}, run_mode=run_mode)

    class DummyServer:
        def __init__(self, root, http_port=None, ws_port=None, run_mode=RunMode.SERVE):
            called["port"] = http_port
            called["ws_port"] = ws_port
            called["serve_mode"] = run_mode

        def start(self):
            called["started"] = True

    monkeypatch.setattr("lantern.build.build_site", fake_build_site)
    monkeypatch.setattr("lantern.server.DevServer", DummyServer)
    monkeypatch.delenv(RUN_MODE_ENV, raising=False)

    result = runner.invoke(cli, ["build"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "Built 0 pages" in result.output
    assert called["run_mode"] is RunMode.BUILD

    result = runner.invoke(cli, ["build"], env={RUN_MODE_ENV: "serve"}, catch_exceptions=False)
    assert result.exit_code == 0
    assert called["run_mode"] is RunMode.SERVE

    result = runner.invoke(cli, ["serve", "--port", "5050", "--ws-port", "5051"], catch_exceptions=False)
    assert result.exit_code == 0
    assert called["port"] == 5050
    assert called["ws_port"] == 5051
    assert called["serve_mode"] is RunMode.SERVE
    assert called["started"] is True


def test_cli_build_reports_skipped_drafts(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)

    def fake_build_site(root, run_mode=None, **kwargs):
        return BuildResult(pages=[], output_dir=root / "_site", data={}, excluded=["draft"])

    monkeypatch.setattr("lantern.build.build_site", fake_build_site)
    result = CliRunner().invoke(cli, ["build"], catch_exceptions=False)
    assert "Skipped 1 draft(s)" in result.output


def test_cli_build_failure_exit_code(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)

    def fake_build_site(root, run_mode=None, **kwargs):
        raise BuildError(root / "content" / "post.md", "Undefined variable: 'nope' is undefined")

    monkeypatch.setattr("lantern.build.build_site", fake_build_site)
    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "Build failed:" in result.output
    assert str(Path("content") / "post.md") in result.output
    assert "Undefined variable" in result.output


def test_cli_build_config_error(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "lantern.yaml").write_text("port: [\n", encoding="utf-8")
    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "Configuration error:" in result.output


def test_cli_build_missing_input(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["build"], env={RUN_MODE_ENV: "build"})
    assert result.exit_code != 0
    assert "Expected input directory" in result.output


def test_cli_build_unknown_run_mode(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["build"], env={RUN_MODE_ENV: "production"})
    assert result.exit_code == 1
    assert RUN_MODE_ENV in result.output


def test_version_option():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "lantern" in result.output


def test_main_invokes_cli(monkeypatch):
    import lantern.cli as cli_mod

    called = {}
    monkeypatch.setattr(cli_mod, "cli", lambda: called.setdefault("ran", True))
    cli_mod.main()
    assert called["ran"]


def test_get_content_folders(tmp_path):
    content = tmp_path / "content"
    for name in ("blog", "notes", "_drafts", ".git", "_data"):
        (content / name).mkdir(parents=True)
    (content / "index.md").write_text("# Home", encoding="utf-8")
    assert _get_content_folders(content) == [". (root)", "blog", "notes"]
    assert _get_content_folders(content, (content / "notes",)) == [". (root)", "blog"]


def test_md_command_no_input_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["md"])
    assert result.exit_code != 0
    assert "No content/ directory found" in result.output


def test_md_command_creates_draft_post(tmp_path, monkeypatch):
    (tmp_path / "content" / "blog").mkdir(parents=True)
    monkeypatch.chdir(tmp_path)
    mock_prompts(monkeypatch, ["blog", "my-new-post", True, True])

    result = CliRunner().invoke(cli, ["md"], catch_exceptions=False)
    assert result.exit_code == 0

    today = datetime.now().strftime("%Y-%m-%d")
    created = tmp_path / "content" / "blog" / f"{today}-my-new-post.md"
    assert created.exists()
    text = created.read_text(encoding="utf-8")
    assert text.startswith("---\n")
    frontmatter = yaml.safe_load(text.split("---\n")[1])
    assert frontmatter == {"title": "My New Post", "date": today, "draft": True}


def test_md_command_root_without_date_or_draft(tmp_path, monkeypatch):
    (tmp_path / "content").mkdir()
    monkeypatch.chdir(tmp_path)
    mock_prompts(monkeypatch, [". (root)", "about", False, False])

    result = CliRunner().invoke(cli, ["md"], catch_exceptions=False)
    assert result.exit_code == 0
    created = tmp_path / "content" / "about.md"
    frontmatter = yaml.safe_load(created.read_text(encoding="utf-8").split("---\n")[1])
    assert "draft" not in frontmatter
    assert frontmatter["title"] == "About"


def test_md_command_duplicate_detection(tmp_path, monkeypatch):
    posts = tmp_path / "content" / "blog"
    posts.mkdir(parents=True)
    (posts / "2024-01-01-existing-post.md").write_text("# Existing", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    mock_prompts(monkeypatch, ["blog", "existing-post", True, True])

    result = CliRunner().invoke(cli, ["md"])
    assert result.exit_code != 0
    assert "A file with slug 'existing-post' already exists" in result.output


def test_md_command_aborts_on_cancel(tmp_path, monkeypatch):
    (tmp_path / "content").mkdir()
    monkeypatch.chdir(tmp_path)
    mock_prompts(monkeypatch, [None])
    result = CliRunner().invoke(cli, ["md"])
    assert result.exit_code == 1
    assert list((tmp_path / "content").iterdir()) == []
