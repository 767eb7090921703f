"""HTTP endpoint serving the published metrics."""

import logging
import threading
from typing import Any, Callable, Iterable, Optional
from wsgiref.simple_server import make_server

from prometheus_client import make_wsgi_app
from prometheus_client.exposition import ThreadingWSGIServer, _SilentHandler

from .metrics import MetricSet

logger = logging.getLogger(__name__)

LANDING_PAGE = """<html>
<head><title>Dependency-Track Exporter</title></head>
<body>
<h1>Dependency-Track Exporter</h1>
<p><a href='{metrics_path}'>Metrics</a></p>
</body>
</html>
"""


class MetricsApp:
    """WSGI application exposing the current snapshot.

    ``get_metrics`` is called once per request. The returned MetricSet is
    rendered by prometheus_client's own WSGI app, which negotiates the
    exposition format and gzip compression with the scraper. Published
    sets are never modified, so no lock is held while rendering.
    """

    def __init__(
        self,
        get_metrics: Callable[[], Optional[MetricSet]],
        metrics_path: str = "/metrics",
    ):
        self.get_metrics = get_metrics
        self.metrics_path = metrics_path

    def __call__(
        self, environ: dict[str, Any], start_response: Callable[..., Any]
    ) -> Iterable[bytes]:
        path = environ.get("PATH_INFO", "/") or "/"

        if path == self.metrics_path:
            metrics = self.get_metrics()
            if metrics is None:
                return self._respond(
                    start_response,
                    "503 Service Unavailable",
                    b"Exporter not yet initialized\n",
                )
            return make_wsgi_app(metrics.registry)(environ, start_response)

        if environ.get("REQUEST_METHOD", "GET") not in ("GET", "HEAD"):
            return self._respond(start_response, "405 Method Not Allowed", b"Method not allowed\n")

        if path == "/":
            body = LANDING_PAGE.format(metrics_path=self.metrics_path).encode("utf-8")
            return self._respond(start_response, "200 OK", body, "text/html; charset=utf-8")

        return self._respond(start_response, "404 Not Found", b"Not found\n")

    @staticmethod
    def _respond(
        start_response: Callable[..., Any],
        status: str,
        body: bytes,
        content_type: str = "text/plain; charset=utf-8",
    ) -> Iterable[bytes]:
        start_response(
            status,
            [("Content-Type", content_type), ("Content-Length", str(len(body)))],
        )
        return [body]


class MetricsServer:
    """Thread-per-request HTTP server for a MetricsApp."""

    def __init__(self, app: MetricsApp, host: str = "0.0.0.0", port: int = 9916):
        self.app = app
        self._httpd = make_server(
            host,
            port,
            app,
            server_class=ThreadingWSGIServer,
            handler_class=_SilentHandler,
        )
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> tuple[str, int]:
        """Bound (host, port); port is the real one when 0 was requested."""
        host, port = self._httpd.server_address[:2]
        return host, port

    def serve_forever(self) -> None:
        host, port = self.address
        logger.info("Listening on %s:%d (metrics at %s)", host, port, self.app.metrics_path)
        self._httpd.serve_forever()

    def start(self) -> None:
        """Serve from a background thread."""
        self._thread = threading.Thread(
            target=self.serve_forever,
            name="dtrack-exporter-http",
            daemon=True,
        )
        self._thread.start()

    def shutdown(self) -> None:
        """Stop the background thread started by start() and close the socket."""
        if self._thread is not None:
            self._httpd.shutdown()
            self._thread.join(timeout=5.0)
            self._thread = None
        self._httpd.server_close()
