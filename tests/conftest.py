import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from hostswitcher.app import HostSwitcher
from hostswitcher.settings import Settings

INITIAL_HOSTS = "# test hosts\n127.0.0.1 localhost\n"


class Recorder:
    """Collects ``(event, entity_id)`` pairs emitted by a Notifier."""

    def __init__(self):
        self.events = []

    def __call__(self, event, entity_id):
        self.events.append((event, entity_id))

    def names(self):
        return [event for event, _ in self.events]


@pytest.fixture
def hosts_file(tmp_path):
    path = tmp_path / "etc" / "hosts"
    path.parent.mkdir()
    path.write_text(INITIAL_HOSTS, encoding="utf-8")
    return path


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def settings(data_dir, hosts_file):
    return Settings(data_dir=str(data_dir), hosts_path=str(hosts_file), startup_delay=0)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def app(settings, recorder):
    switcher = HostSwitcher(settings)
    switcher.notifier.subscribe(recorder)
    switcher.init(run_startup=False)
    yield switcher
    switcher.shutdown()


class _CannedHandler(BaseHTTPRequestHandler):
    def do_GET(self):
        status, body = self.server.routes.get(self.path, (404, b"not found"))
        self.server.hits.append(self.path)
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


class CannedServer:
    """Local HTTP server; ``routes`` maps a path to ``(status, body_bytes)``."""

    def __init__(self):
        self._httpd = ThreadingHTTPServer(("127.0.0.1", 0), _CannedHandler)
        self._httpd.routes = {}
        self._httpd.hits = []
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)

    @property
    def routes(self):
        return self._httpd.routes

    @property
    def hits(self):
        return self._httpd.hits

    def url(self, path):
        host, port = self._httpd.server_address[:2]
        return f"http://{host}:{port}{path}"

    def serve(self, path, body, status=200):
        self.routes[path] = (status, body.encode("utf-8") if isinstance(body, str) else body)
        return self.url(path)

    def start(self):
        self._thread.start()

    def stop(self):
        self._httpd.shutdown()
        self._httpd.server_close()
        self._thread.join(5)


@pytest.fixture
def http_server():
    server = CannedServer()
    server.start()
    yield server
    server.stop()
