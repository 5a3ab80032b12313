"""Shared pytest fixtures: a fake Loki HTTP server on an ephemeral port."""

import json
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest


class FakeLoki:
    """Records push requests and answers /ready with a configurable status."""

    def __init__(self):
        self.ready_status = 200
        self.ready_sequence: list[int] = []
        self.push_status = 204
        self.pushes: list[dict] = []
        self.push_headers: list[dict] = []
        self.ready_calls = 0
        self.lock = threading.Lock()
        self.url = ""

    def next_ready_status(self) -> int:
        with self.lock:
            self.ready_calls += 1
            if self.ready_sequence:
                return self.ready_sequence.pop(0)
            return self.ready_status

    def record_push(self, body: bytes, headers) -> int:
        with self.lock:
            self.pushes.append(json.loads(body))
            self.push_headers.append(dict(headers))
            return self.push_status

    def all_values(self) -> list[list[str]]:
        """Every [ts, line] pair received, in push order."""
        with self.lock:
            return [
                value
                for push in self.pushes
                for stream in push["streams"]
                for value in stream["values"]
            ]


class _Handler(BaseHTTPRequestHandler):
    def _reply(self, status: int):
        self.send_response(status)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def do_GET(self):
        if self.path == "/ready":
            self._reply(self.server.loki.next_ready_status())
        else:
            self._reply(404)

    def do_POST(self):
        length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(length)
        if self.path == "/loki/api/v1/push":
            self._reply(self.server.loki.record_push(body, self.headers))
        else:
            self._reply(404)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def fake_loki():
    """Start a fake Loki server on 127.0.0.1 and yield its FakeLoki state."""
    loki = FakeLoki()
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    httpd.loki = loki
    host, port = httpd.server_address[:2]
    loki.url = f"http://{host}:{port}"
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield loki
    httpd.shutdown()
    httpd.server_close()
    thread.join(timeout=5)


@pytest.fixture
def unreachable_url():
    """URL of a local port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    _, port = sock.getsockname()
    sock.close()
    return f"http://127.0.0.1:{port}"
