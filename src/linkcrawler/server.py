"""
Local static file server for the site under test.
"""
from __future__ import annotations

import errno
import logging
import threading
from contextlib import contextmanager
from functools import partial
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Iterator

from linkcrawler.config import LinkCrawlerError

logger = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"


class PortInUseError(LinkCrawlerError):
    """The server could not bind its port."""


class QuietHandler(SimpleHTTPRequestHandler):
    """Static file handler that logs requests at debug level instead of stderr."""

    def log_message(self, format: str, *args) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)


class StaticSiteServer:
    """Serves ``directory`` over plain HTTP from a background thread."""

    def __init__(self, directory: Path, port: int, host: str = DEFAULT_HOST) -> None:
        self.directory = directory
        self.host = host
        handler = partial(QuietHandler, directory=str(directory))
        try:
            self._httpd = ThreadingHTTPServer((host, port), handler)
        except (OSError, OverflowError) as e:
            if getattr(e, "errno", None) == errno.EADDRINUSE:
                raise PortInUseError(f"Port {port} is already in use") from e
            raise PortInUseError(f"Cannot bind {host}:{port}: {e}") from e
        self._httpd.daemon_threads = True
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)

    @property
    def port(self) -> int:
        return self._httpd.server_address[1]

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def start(self) -> None:
        self._thread.start()
        logger.debug("Serving %s at %s", self.directory, self.base_url)

    def stop(self) -> None:
        self._httpd.shutdown()
        self._httpd.server_close()
        self._thread.join()


@contextmanager
def serve(directory: Path, port: int, host: str = DEFAULT_HOST) -> Iterator[StaticSiteServer]:
    """Serve ``directory`` for the duration of the block. The socket is listening on entry."""
    server = StaticSiteServer(directory, port, host)
    server.start()
    try:
        yield server
    finally:
        server.stop()
