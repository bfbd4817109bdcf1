"""Development server for Lantern.

Serves the built site with live reload for local authoring:
- Builds in ``serve`` mode, so drafts are rendered with a marked title.
- Serves the output below the configured path prefix.
- Injects a reload script into HTML responses.
- Rejects directory listings and missing paths with a 404 (serving 404.html when present).
- Watches the content, includes and data directories, lantern.yaml and the
  configured watch targets, then rebuilds and reloads connected browsers.

Key classes:
- DevServer: Main class for running the development server.
- _ReloadHandler: HTTP request handler that injects reload script and enforces 404s.
- _ChangeHandler: File system event handler for triggering rebuilds.
"""

from __future__ import annotations

import asyncio
import functools
import json
import os
import shutil
import threading
import time
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from urllib.parse import urlsplit

import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import BuildError, build_site
from .config import CONFIG_FILENAME, ConfigError, RunMode, load_config
from .utils import expand_braces, glob_match, is_within


class _ReloadHandler(SimpleHTTPRequestHandler):
    """HTTP request handler that injects live reload script into HTML pages.

    Attributes:
        reload_script: JavaScript snippet that reloads the page on a
            ``reload`` message from the websocket server.
        path_prefix: URL prefix the site is served under.
    """

    reload_script_template = """
    <script>
    (() => {{
      const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
      ws.onmessage = (event) => {{
        const data = JSON.parse(event.data || '{{}}');
        if (data.type === 'reload') location.reload();
      }};
    }})();
    </script>
    """
    reload_script = reload_script_template.format(ws_port=8081)
    path_prefix = "/"

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def list_directory(self, path):  # pragma: no cover - exercised via send_head
        return self._serve_404()

    def translate_path(self, path):
        """Map a request path onto the output directory, minus the path prefix."""
        prefix = self.path_prefix.rstrip("/")
        url_path = urlsplit(path).path
        if prefix:
            if url_path == prefix or url_path.startswith(f"{prefix}/"):
                url_path = url_path[len(prefix) :] or "/"
            else:
                # Outside the prefix: resolve to a path that never exists.
                url_path = "/__outside_path_prefix__"
        return super().translate_path(url_path)

    def _inject(self, content: str) -> bytes:
        if "</body>" in content:
            content = content.replace("</body>", f"{self.reload_script}</body>")
        else:
            content += self.reload_script
        return content.encode("utf-8")

    def _send_html(self, status: int, content: str) -> None:
        encoded = self._inject(content)
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        self.wfile.write(encoded)

    def _serve_404(self):
        """Serve 404.html (when present) with injected reload script and a 404 status."""
        error_page = Path(self.directory) / "404.html"
        if error_page.exists():
            self._send_html(404, error_page.read_text(encoding="utf-8"))
            return None
        self.send_error(404, "File not found")
        return None

    def send_head(self):
        path_obj = Path(self.translate_path(self.path))
        if path_obj.is_dir():
            index_path = path_obj / "index.html"
            if not index_path.exists():
                return self._serve_404()
            path_obj = index_path
        elif not path_obj.exists():
            return self._serve_404()

        if path_obj.suffix == ".html":
            self._send_html(200, path_obj.read_text(encoding="utf-8"))
            return None
        return super().send_head()


class DevServer:
    """Development server with live reload functionality.

    Attributes:
        project_root: Root directory of the project.
        site: Site configuration.
        directories: Resolved directory layout.
        output_dir: Directory where the built site is served from.
        http_port: Port for HTTP server.
        ws_port: Port for WebSocket connections.
        run_mode: Mode every build runs in.
        watch_targets: Extra glob patterns (relative to the project root).
    """

    def __init__(
        self,
        project_root: Path,
        http_port: int | None = None,
        ws_port: int | None = None,
        run_mode: RunMode = RunMode.SERVE,
    ):
        self.project_root = Path(project_root).resolve()
        self.site = load_config(self.project_root)
        self.directories = self.site.directories(self.project_root)
        self.output_dir = self.directories.output
        self._staging_dir = self.output_dir.with_name(self.output_dir.name + ".staging")
        self._previous_dir = self.output_dir.with_name(self.output_dir.name + ".previous")
        self.http_port = int(http_port or self.site.port)
        if ws_port is not None:
            self.ws_port = ws_port
        elif http_port is None and self.site.ws_port is not None:
            self.ws_port = self.site.ws_port
        else:
            self.ws_port = self.http_port + 1
        self.run_mode = run_mode
        self.watch_targets: list[str] = list(self.site.watch_targets)
        self._reload_script = _ReloadHandler.reload_script_template.format(ws_port=self.ws_port)
        self._observer: Observer | None = None
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()
        self._rebuilding = False
        self._last_rebuild_at = 0.0
        self._last_signature: tuple | None = None
        self._debounce_seconds = 0.05
        self._post_build_delay = 0.05

    def start(self) -> None:  # pragma: no cover - integration path
        self._build()
        self._last_signature = self._compute_signature()
        threading.Thread(target=self._start_http, daemon=True).start()
        threading.Thread(target=self._start_ws, daemon=True).start()
        self._start_watcher()
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
        self._loop.call_soon_threadsafe(self._loop.stop)

    def _build(self) -> None:
        staging = self._prepare_staging_dir()
        result = build_site(
            self.project_root,
            run_mode=self.run_mode,
            clean_output=True,
            output_dir_override=staging,
        )
        self._activate_staging(staging)
        if result.config is not None:
            self.watch_targets = list(result.config.watch_targets)

    def _start_http(self) -> None:  # pragma: no cover - integration path
        handler_cls = type(
            "_ReloadHandlerWithPort",
            (_ReloadHandler,),
            {"reload_script": self._reload_script, "path_prefix": self.site.path_prefix},
        )
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        httpd = ThreadingHTTPServer(("", self.http_port), handler)
        print(
            f"Serving {self.output_dir} at "
            f"http://localhost:{self.http_port}{self.site.path_prefix}"
        )
        httpd.serve_forever()

    def _start_ws(self) -> None:  # pragma: no cover - integration path
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            print(f"WebSocket server failed to start (port {self.ws_port}): {exc}")
            return

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._ws_handler, "0.0.0.0", self.ws_port):
            await asyncio.Future()

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def _broadcast_reload(self):
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str):
        stale = set()
        for ws in self._ws_clients:
            try:
                await ws.send(message)
            except websockets.ConnectionClosed:
                stale.add(ws)
        for ws in stale:
            self._ws_clients.discard(ws)

    def _start_watcher(self) -> None:
        handler = _ChangeHandler(self)
        observer = Observer()
        observer.schedule(handler, str(self.project_root), recursive=True)
        observer.start()
        self._observer = observer

    def is_watched(self, path: Path) -> bool:
        """Check whether a change to ``path`` should trigger a rebuild."""
        if any(
            is_within(path, ignored)
            for ignored in (self.output_dir, self._staging_dir, self._previous_dir)
        ):
            return False
        if not is_within(path, self.project_root) or "node_modules" in path.parts:
            return False
        if path == self.project_root / CONFIG_FILENAME:
            return True
        if any(
            is_within(path, folder)
            for folder in (
                self.directories.input,
                self.directories.includes,
                self.directories.data,
            )
        ):
            return True
        rel = path.relative_to(self.project_root).as_posix()
        return any(glob_match(rel, pattern) for pattern in self.watch_targets)

    def rebuild(self) -> None:
        now = time.time()
        if self._rebuilding or (now - self._last_rebuild_at) < self._debounce_seconds:
            return
        signature = self._compute_signature()
        if signature is not None and signature == self._last_signature:
            return
        self._rebuilding = True
        try:
            print("Change detected; rebuilding...")
            try:
                self._build()
            except (BuildError, ConfigError, FileNotFoundError) as exc:
                print(f"Build failed: {exc}")
                return
            self._last_signature = signature
            if self._post_build_delay:
                time.sleep(self._post_build_delay)
            self._broadcast_reload()
        finally:
            self._rebuilding = False
            self._last_rebuild_at = time.time()

    def _watched_files(self) -> list[Path]:
        files: set[Path] = set()
        for folder in (
            self.directories.input,
            self.directories.includes,
            self.directories.data,
        ):
            if folder.exists():
                files.update(p for p in folder.rglob("*") if p.is_file())
        config_file = self.project_root / CONFIG_FILENAME
        if config_file.exists():
            files.add(config_file)
        for pattern in self.watch_targets:
            for expanded in expand_braces(pattern):
                files.update(p for p in self.project_root.glob(expanded) if p.is_file())
        return sorted(p for p in files if self.is_watched(p))

    def _compute_signature(self) -> tuple | None:
        entries: list[tuple] = []
        for path in self._watched_files():
            try:
                stat = path.stat()
            except OSError:
                continue
            rel = path.relative_to(self.project_root)
            entries.append((str(rel), stat.st_mtime_ns, stat.st_size))
        return tuple(entries) if entries else None

    def _prepare_staging_dir(self) -> Path:
        staging = self._staging_dir
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True, exist_ok=True)
        return staging

    def _activate_staging(self, staging: Path) -> None:
        target = self.output_dir
        previous = self._previous_dir
        if previous.exists():
            shutil.rmtree(previous)
        if target.exists():
            os.replace(target, previous)
        os.replace(staging, target)
        if previous.exists():
            shutil.rmtree(previous)


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, server: DevServer):
        super().__init__()
        self.server = server

    def on_any_event(self, event):
        if event.is_directory:
            return
        if not self.server.is_watched(Path(event.src_path)):
            return
        self.server.rebuild()
