"""Transport interfaces."""

from __future__ import annotations

from typing import Protocol


class Transport(Protocol):
    @property
    def connected(self) -> bool:
        """Whether the connection is currently open."""

    def connect(self, host: str, port: int, *, timeout_s: float = 5.0) -> None:
        """Open the connection, raising ``TransportConnectError`` on failure."""

    def send(self, text: str) -> None:
        """Write *text* as-is; fire and forget."""

    def receive(self, *, timeout_s: float = 1.0) -> str | None:
        """Return the next chunk of inbound text, or ``None`` if none arrived in time."""

    def close(self) -> None:
        """Tear down the connection without draining."""
