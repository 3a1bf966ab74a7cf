from __future__ import annotations

import logging
import socketserver
import threading
from enum import Enum
from typing import List, Literal, Optional, Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ReloadMode(str, Enum):
    """How connected clients should react to a rebuild."""

    FULL = "full"
    SCOPED = "scoped"


class ReloadMessage(BaseModel):
    """Newline-delimited JSON message sent to connected clients."""

    type: Literal["hello", "reload", "inject"]
    match: Optional[str] = None
    proxy: Optional[str] = None


class ReloadTransport(Protocol):
    def send(self, message: ReloadMessage) -> None:
        ...


class ReloadSignal:
    """Fire-and-forget reload notification. Transport failures are logged, never raised."""

    def __init__(self, transport: Optional[ReloadTransport] = None) -> None:
        self.transport = transport

    def notify(self, mode: ReloadMode, pattern: Optional[str] = None) -> None:
        if mode == ReloadMode.SCOPED:
            message = ReloadMessage(type="inject", match=pattern)
        else:
            message = ReloadMessage(type="reload")

        logger.info("reload %s%s", mode.value, f" ({pattern})" if pattern and mode == ReloadMode.SCOPED else "")
        if self.transport is None:
            return
        try:
            self.transport.send(message)
        except Exception:
            logger.warning("could not notify reload clients", exc_info=True)


class _ClientHandler(socketserver.StreamRequestHandler):
    def handle(self) -> None:
        server: "_BroadcastTCPServer" = self.server  # type: ignore[assignment]
        server.add_client(self.wfile)
        try:
            # Block until the client disconnects; clients never send anything meaningful.
            while self.rfile.readline():
                pass
        except OSError:
            pass
        finally:
            server.remove_client(self.wfile)


class _BroadcastTCPServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, address, hello: ReloadMessage) -> None:
        super().__init__(address, _ClientHandler)
        self.hello = hello
        self._clients: List = []
        self._clients_lock = threading.Lock()

    def add_client(self, stream) -> None:
        with self._clients_lock:
            self._clients.append(stream)
        self._write(stream, self.hello)

    def remove_client(self, stream) -> None:
        with self._clients_lock:
            if stream in self._clients:
                self._clients.remove(stream)

    def broadcast(self, message: ReloadMessage) -> int:
        with self._clients_lock:
            clients = list(self._clients)
        delivered = 0
        for stream in clients:
            if self._write(stream, message):
                delivered += 1
            else:
                self.remove_client(stream)
        return delivered

    @staticmethod
    def _write(stream, message: ReloadMessage) -> bool:
        try:
            stream.write((message.model_dump_json(exclude_none=True) + "\n").encode("utf-8"))
            stream.flush()
        except OSError:
            return False
        return True


class ReloadBroadcastServer:
    """
    TCP endpoint on the proxy port that browser-side helpers connect to. Every
    reload signal is written to each connected client as one JSON line.
    """

    def __init__(self, host: str, port: int, proxy_target: str) -> None:
        self.host = host
        self.port = port
        self.proxy_target = proxy_target
        self._server: Optional[_BroadcastTCPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> tuple:
        if self._server is None:
            return (self.host, self.port)
        return self._server.server_address[:2]

    def start(self) -> None:
        if self._server is not None:
            return
        self._server = _BroadcastTCPServer(
            (self.host, self.port),
            hello=ReloadMessage(type="hello", proxy=self.proxy_target),
        )
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            kwargs={"poll_interval": 0.2},
            daemon=True,
        )
        self._thread.start()
        logger.info("reload server listening on %s:%s (proxy %s)", *self.address, self.proxy_target)

    def send(self, message: ReloadMessage) -> None:
        if self._server is None:
            return
        self._server.broadcast(message)

    def shutdown(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        self._server = None
        self._thread = None
