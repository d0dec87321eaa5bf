# smooth_operator/testing_utils.py

"""
Utilities for building fake server bundles, stub server processes and fake
HTTP sessions for Smooth Operator tests.
"""

import json
import zipfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from smooth_operator.server.installer import BUNDLE_FILE_NAME, MARKER_FILE_NAME

STUB_EXECUTABLE = "stub_server.py"

# Reads /portnrfile=<name> from argv, like the real server
_STUB_PRELUDE = """\
import os, sys, time
port_file = next(a.split("=", 1)[1] for a in sys.argv if a.startswith("/portnrfile="))

def report_port(port):
    tmp = port_file + ".tmp"
    with open(tmp, "w") as f:
        f.write(str(port) + "\\n")
    os.replace(tmp, port_file)
"""

# Reports a fixed port and idles; nothing listens on it
PORT_ONLY_STUB = _STUB_PRELUDE + """
report_port(54321)
time.sleep(60)
"""

# Never reports a port
SILENT_STUB = _STUB_PRELUDE + """
time.sleep(60)
"""

# Serves ping and one action endpoint on an ephemeral port
HTTP_STUB = _STUB_PRELUDE + """
import json
from http.server import BaseHTTPRequestHandler, HTTPServer

class Handler(BaseHTTPRequestHandler):
    def _reply(self, status, payload):
        body = json.dumps(payload).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self):
        if self.path == "/tools-api/ping":
            self._reply(200, "pong")
        else:
            self._reply(404, {"message": "not found"})

    def do_POST(self):
        length = int(self.headers.get("Content-Length", 0))
        data = json.loads(self.rfile.read(length) or b"{}")
        if self.path == "/tools-api/mouse/click":
            self._reply(200, {"success": True, "message": "clicked at %s,%s" % (data["x"], data["y"])})
        else:
            self._reply(404, {"message": "not found"})

    def log_message(self, *args):
        pass

server = HTTPServer(("127.0.0.1", 0), Handler)
report_port(server.server_address[1])
server.timeout = 0.5
deadline = time.time() + 60
while time.time() < deadline:
    server.handle_request()
"""


def make_bundle(
    bundle_dir: Path,
    stub_source: str = PORT_ONLY_STUB,
    version: bytes = b"1.2.3\n",
    extra_files: Optional[Dict[str, bytes]] = None,
) -> Path:
    """
    Write a server bundle (archive + version marker) into ``bundle_dir``.

    The archive holds the stub executable, a nested dependency file and a
    directory entry, mimicking the layout of the real server package.
    """
    bundle_dir.mkdir(parents=True, exist_ok=True)
    files = {
        STUB_EXECUTABLE: stub_source.encode("utf-8"),
        "lib/dependency.dll": b"\x00binary dependency\x00",
    }
    files.update(extra_files or {})
    with zipfile.ZipFile(bundle_dir / BUNDLE_FILE_NAME, "w") as archive:
        archive.writestr("data/", b"")
        for name, content in files.items():
            archive.writestr(name, content)
    (bundle_dir / MARKER_FILE_NAME).write_bytes(version)
    return bundle_dir


class FakeClock:
    """Clock whose sleep() advances time instantly."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_response(status_code: int, body: Any, url: str = "http://localhost") -> requests.Response:
    """Build a real requests.Response with a JSON (or raw string) body."""
    response = requests.Response()
    response.status_code = status_code
    response.url = url
    response.encoding = "utf-8"
    text = body if isinstance(body, str) else json.dumps(body)
    response._content = text.encode("utf-8")
    return response


Route = Callable[[Dict[str, Any]], Tuple[int, Any]]


class FakeHttpSession:
    """
    Stand-in for requests.Session routing (method, path) to handlers.

    Unrouted requests raise ConnectionError, like a server that is not
    listening yet.
    """

    def __init__(self, routes: Optional[Dict[Tuple[str, str], Route]] = None):
        self.headers: Dict[str, str] = {}
        self.routes = routes or {}
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []
        self.closed = False

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        self.calls.append((method, url, kwargs))
        path = "/" + url.split("://", 1)[-1].split("/", 1)[-1]
        handler = self.routes.get((method, path))
        if handler is None:
            raise requests.exceptions.ConnectionError(f"Connection refused: {url}")
        status, body = handler(kwargs)
        return make_response(status, body, url)

    def close(self) -> None:
        self.closed = True
