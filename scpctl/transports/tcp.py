"""TCP transport implementation using Python sockets."""

from __future__ import annotations

import codecs
import logging
import socket

from scpctl.core.errors import (
    TransportConnectError,
    TransportSendError,
    TransportTimeoutError,
)

_RECV_SIZE = 4096
LOGGER = logging.getLogger(__name__)


class TCPTransport:
    def __init__(self) -> None:
        self._socket: socket.socket | None = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def connected(self) -> bool:
        return self._socket is not None

    def connect(self, host: str, port: int, *, timeout_s: float = 5.0) -> None:
        self.close()
        try:
            self._socket = socket.create_connection((host, port), timeout=timeout_s)
        except TimeoutError as exc:
            raise TransportTimeoutError(f"TCP connect to {host}:{port} timed out") from exc
        except OSError as exc:
            raise TransportConnectError(f"TCP connect to {host}:{port} failed: {exc}") from exc
        self._decoder.reset()
        LOGGER.debug("Connected to %s:%d", host, port)

    def send(self, text: str) -> None:
        if self._socket is None:
            raise TransportSendError("Socket not connected")
        try:
            self._socket.sendall(text.encode("utf-8"))
        except OSError as exc:
            self.close()
            raise TransportSendError(f"TCP send failed: {exc}") from exc

    def receive(self, *, timeout_s: float = 1.0) -> str | None:
        if self._socket is None:
            raise TransportSendError("Socket not connected")
        self._socket.settimeout(timeout_s)
        try:
            data = self._socket.recv(_RECV_SIZE)
        except TimeoutError:
            return None
        except OSError as exc:
            self.close()
            raise TransportSendError(f"TCP receive failed: {exc}") from exc

        if not data:
            self.close()
            raise TransportSendError("Connection closed by console")
        return self._decoder.decode(data)

    def close(self) -> None:
        if self._socket is None:
            return
        try:
            self._socket.close()
        finally:
            self._socket = None
