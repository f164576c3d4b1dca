"""Pytest configuration for easy_add tests."""
from __future__ import annotations

import http.server
import sys
import threading
from pathlib import Path

import pytest

# Ensure project root is importable
PROJECT_ROOT = Path(__file__).resolve().parents[2]  # directory holding easy_add/
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


class _ArchiveHandler(http.server.BaseHTTPRequestHandler):
    def do_GET(self):
        self.server.requests.append(self.path)
        body = self.server.files.get(self.path)
        if body is None:
            self.send_error(404, "Not Found")
            return
        self.send_response(200)
        self.send_header("Content-Type", "application/octet-stream")
        self.send_header("Content-Length", str(self.server.declared_lengths.get(self.path, len(body))))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):  # keep test output quiet
        pass


class ArchiveServer:
    """Local HTTP server handing out in-memory archives by path."""

    def __init__(self):
        self._httpd = http.server.ThreadingHTTPServer(("127.0.0.1", 0), _ArchiveHandler)
        self._httpd.files = {}
        self._httpd.requests = []
        self._httpd.declared_lengths = {}
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)

    @property
    def files(self) -> dict[str, bytes]:
        return self._httpd.files

    @property
    def requests(self) -> list[str]:
        return self._httpd.requests

    @property
    def declared_lengths(self) -> dict[str, int]:
        """Content-Length to announce instead of the real body length."""
        return self._httpd.declared_lengths

    def url(self, path: str) -> str:
        host, port = self._httpd.server_address[:2]
        return f"http://{host}:{port}{path}"

    def start(self):
        self._thread.start()

    def stop(self):
        self._httpd.shutdown()
        self._httpd.server_close()
        self._thread.join(timeout=5)


@pytest.fixture()
def archive_server(monkeypatch) -> ArchiveServer:
    # never route the loopback server through a proxy from the environment
    monkeypatch.setenv("NO_PROXY", "127.0.0.1,localhost")
    monkeypatch.setenv("no_proxy", "127.0.0.1,localhost")
    server = ArchiveServer()
    server.start()
    yield server
    server.stop()
