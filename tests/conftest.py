from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
import threading

import pytest
import requests

from bulkcaller.config import Settings


@dataclass
class FakeResponse:
    status_code: int
    content: bytes = b""


@dataclass
class FakeSession:
    """Stands in for ``requests.Session``; replies come from ``responder``."""

    responder: Callable[[dict[str, object]], FakeResponse]
    calls: list[dict[str, object]] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def request(self, method: str, url: str, **kwargs: object) -> FakeResponse:
        call = {"method": method, "url": url, **kwargs}
        with self.lock:
            self.calls.append(call)
        return self.responder(call)

    def close(self) -> None:
        pass


def always(status_code: int, content: bytes = b"{}") -> Callable[[dict[str, object]], FakeResponse]:
    return lambda _call: FakeResponse(status_code, content)


def refuse_connection(_call: dict[str, object]) -> FakeResponse:
    raise requests.ConnectionError("connection refused")


@pytest.fixture()
def temp_workspace(tmp_path: Path) -> Path:
    (tmp_path / "data").mkdir(parents=True, exist_ok=True)
    return tmp_path


@pytest.fixture()
def test_settings(temp_workspace: Path) -> Settings:
    return Settings(
        log_level="INFO",
        file_path=str(temp_workspace / "data" / "rows.csv"),
        url="http://example.test/api",
        method="POST",
        body_template='{"name":"${name}","email":"${email}"}',
        concurrency=2,
        delay_seconds=0.0,
        timeout_seconds=5.0,
        max_retries=1,
        retry_backoff_seconds=0,
        output_dir=None,
        print_responses=False,
    )


def write_csv(path: Path, lines: list[str]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@dataclass
class RecordingServer:
    url: str
    bodies: list[bytes]
    headers: list[dict[str, str]]


@pytest.fixture()
def http_server() -> Generator[RecordingServer, None, None]:
    bodies: list[bytes] = []
    headers: list[dict[str, str]] = []
    lock = threading.Lock()

    class Handler(BaseHTTPRequestHandler):
        def do_POST(self) -> None:
            length = int(self.headers.get("Content-Length", "0"))
            payload = self.rfile.read(length)
            with lock:
                bodies.append(payload)
                headers.append(dict(self.headers.items()))
            status = 500 if b"fail" in payload else 200
            reply = b'{"success":true}' if status == 200 else b'{"error":"server error"}'
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(reply)))
            self.end_headers()
            self.wfile.write(reply)

        def log_message(self, format: str, *args: object) -> None:
            pass

    server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    try:
        yield RecordingServer(url=f"http://{host}:{port}/bulk", bodies=bodies, headers=headers)
    finally:
        server.shutdown()
        server.server_close()
