"""Service layer used by the CLI, the public API and host runtimes.

All decode, cache and feedback work runs synchronously on the caller's
thread, in the order inbound lines arrive.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

from scpctl.core.cache import FeedbackEvaluator, ValueCache, option_color
from scpctl.core.catalog import (
    DEFAULT_BG,
    DEFAULT_FG,
    MACRO_RECORD_START,
    MACRO_RECORD_STOP,
    MACRO_RECORDING,
    build_catalog,
)
from scpctl.core.choices import ChoiceTables, default_choice_tables
from scpctl.core.codec import GET, SET, AddressMatcher, LineBuffer, decode_line, encode_command
from scpctl.core.config import SessionConfig, load_config
from scpctl.core.dictionary import index_by_id, load_dictionary
from scpctl.core.errors import TransportError
from scpctl.core.macro import Macro, MacroRecorder
from scpctl.core.model import (
    ActionInvocation,
    Catalog,
    CommandDescriptor,
    ConnectionStatus,
    DeviceIdentity,
    FeedbackSubscription,
    OptionValue,
    RenderDirective,
    ScpType,
)
from scpctl.transports.base import Transport
from scpctl.transports.tcp import TCPTransport

DEVINFO_REQUEST = "devinfo productname"
LOGGER = logging.getLogger(__name__)

FeedbackListener = Callable[[str], None]
StatusListener = Callable[[ConnectionStatus, str | None], None]


@dataclass(frozen=True)
class ScpSession:
    """Everything derived from one dictionary load; replaced as a whole."""

    config: SessionConfig
    descriptors: tuple[CommandDescriptor, ...]
    by_id: dict[str, CommandDescriptor]
    catalog: Catalog
    matcher: AddressMatcher
    cache: ValueCache
    evaluator: FeedbackEvaluator


def build_session(
    config: SessionConfig,
    tables: ChoiceTables,
    descriptors: Sequence[CommandDescriptor] | None = None,
) -> ScpSession:
    if descriptors is None:
        descriptors = load_dictionary(config.model)
    by_id = index_by_id(descriptors)
    cache = ValueCache()
    return ScpSession(
        config=config,
        descriptors=tuple(descriptors),
        by_id=by_id,
        catalog=build_catalog(descriptors, config.model, tables),
        matcher=AddressMatcher(descriptors),
        cache=cache,
        evaluator=FeedbackEvaluator(cache, by_id, config.model, tables, config.aliases),
    )


class ScpService:
    def __init__(
        self,
        config: SessionConfig | None = None,
        *,
        transport: Transport | None = None,
        tables: ChoiceTables | None = None,
        descriptors: Sequence[CommandDescriptor] | None = None,
        feedback_listener: FeedbackListener | None = None,
        status_listener: StatusListener | None = None,
    ) -> None:
        self.tables = tables or default_choice_tables()
        self.session = build_session(config or load_config(), self.tables, descriptors)
        self.transport = transport or TCPTransport()
        self.feedback_listener = feedback_listener
        self.status_listener = status_listener
        self.subscriptions: dict[str, FeedbackSubscription] = {}
        self.recorder = MacroRecorder()
        self.product_name = ""
        self.status = ConnectionStatus.UNKNOWN
        self._buffer = LineBuffer()
        LOGGER.info("Device model= %s", self.config.model.value)

    @property
    def config(self) -> SessionConfig:
        return self.session.config

    @property
    def catalog(self) -> Catalog:
        return self.session.catalog

    @property
    def cache(self) -> ValueCache:
        return self.session.cache

    def reload(
        self,
        config: SessionConfig,
        descriptors: Sequence[CommandDescriptor] | None = None,
    ) -> None:
        """Rebuild dictionary, catalog and cache for *config*.

        The new session is fully built before it replaces the old one.
        """
        self.session = build_session(config, self.tables, descriptors)
        self._buffer.clear()
        LOGGER.info("Device model= %s", config.model.value)

    # Host registry

    def subscribe(self, subscription: FeedbackSubscription) -> None:
        self.subscriptions[subscription.id] = subscription

    def unsubscribe(self, subscription_id: str) -> None:
        self.subscriptions.pop(subscription_id, None)

    # Connection lifecycle

    def _set_status(self, status: ConnectionStatus, message: str | None = None) -> None:
        self.status = status
        if self.status_listener is not None:
            self.status_listener(status, message)

    def _transport_failed(self, exc: TransportError) -> None:
        LOGGER.error("Network error: %s", exc)
        self._set_status(ConnectionStatus.ERROR, str(exc))

    def connect(self) -> bool:
        if not self.config.host:
            self._set_status(ConnectionStatus.ERROR, "No console host configured")
            return False
        try:
            self.transport.connect(self.config.host, self.config.port, timeout_s=self.config.timeout_s)
        except TransportError as exc:
            self._transport_failed(exc)
            return False
        self.connection_made()
        return True

    def connection_made(self) -> None:
        self._set_status(ConnectionStatus.OK)
        LOGGER.info("Connected to %s:%d", self.config.host, self.config.port)
        self._buffer.clear()
        if self.config.clear_cache_on_reconnect:
            self.cache.clear()
            LOGGER.info("Value cache cleared on connect")
        self._send(DEVINFO_REQUEST)
        self.poll()

    def disconnect(self) -> None:
        self.transport.close()
        self._set_status(ConnectionStatus.DISCONNECTED)

    def pump(self, *, timeout_s: float = 1.0) -> list[str]:
        """Read one chunk from the transport and process it."""
        try:
            chunk = self.transport.receive(timeout_s=timeout_s)
        except TransportError as exc:
            self._transport_failed(exc)
            return []
        if chunk is None:
            return []
        return self.data_received(chunk)

    # Inbound

    def data_received(self, chunk: str) -> list[str]:
        """Process every complete line in *chunk*; return the feedback ids signalled."""
        LOGGER.debug("Received from device: %r", chunk)
        signalled: list[str] = []
        for line in self._buffer.feed(chunk):
            command_id = self.process_line(line)
            if command_id is not None:
                signalled.append(command_id)
        return signalled

    def process_line(self, line: str) -> str | None:
        decoded = decode_line(line)
        if decoded is None:
            LOGGER.debug("Ignoring line: %s", line)
            return None

        if isinstance(decoded, DeviceIdentity):
            self.product_name = decoded.product_name
            LOGGER.info("Device found: %s", self.product_name)
            return None

        session = self.session
        descriptor = session.matcher.match(decoded.address)
        if descriptor is None:
            LOGGER.debug("Unknown command received: %s", decoded.address)
            return None
        if session.cache.apply(decoded, descriptor) is None:
            return None

        self._signal(descriptor.command_id)
        return descriptor.command_id

    def _signal(self, feedback_id: str) -> None:
        if self.feedback_listener is not None:
            self.feedback_listener(feedback_id)

    # Outbound

    def _send(self, line: str) -> bool:
        if not self.transport.connected:
            LOGGER.info("Socket not connected :(")
            return False
        LOGGER.debug("sending %s to %s", line, self.config.host)
        try:
            self.transport.send(f"{line}\n")
        except TransportError as exc:
            self._transport_failed(exc)
            return False
        return True

    def encode(self, prefix: str, command_id: str, options: Mapping[str, OptionValue]) -> str | None:
        session = self.session
        return encode_command(
            prefix,
            command_id,
            options,
            session.by_id,
            session.config.model,
            session.config.aliases,
        )

    def run_action(self, invocation: ActionInvocation) -> str | None:
        """Execute a host action; return the line sent, if any."""
        if invocation.command_id == MACRO_RECORD_START:
            self.recorder.start()
            self._signal(MACRO_RECORDING)
            return None
        if invocation.command_id == MACRO_RECORD_STOP:
            self.recorder.stop()
            self._signal(MACRO_RECORDING)
            return None

        line = self.encode(SET, invocation.command_id, invocation.options)
        if line is None:
            return None
        self.recorder.capture(line)
        self._send(line)

        descriptor = self.session.by_id[invocation.command_id]
        if descriptor.type is ScpType.SCENE:
            self.poll()
        return line

    def play_macro(self, macro: Macro) -> int:
        sent = 0
        for line in macro.lines:
            if self._send(line):
                sent += 1
        return sent

    def poll(self) -> int:
        """Send a ``get`` for every registered feedback subscription."""
        sent = 0
        for subscription in list(self.subscriptions.values()):
            if subscription.command_id == MACRO_RECORDING:
                continue
            line = self.encode(GET, subscription.command_id, subscription.options)
            if line is not None and self._send(line):
                sent += 1
        return sent

    # Feedback

    def evaluate(self, subscription: FeedbackSubscription) -> RenderDirective | None:
        if subscription.command_id == MACRO_RECORDING:
            if self.recorder.recording:
                return RenderDirective(
                    color=option_color(subscription.options, "fg", DEFAULT_FG),
                    bgcolor=option_color(subscription.options, "bg", DEFAULT_BG),
                    matched=True,
                )
            style = subscription.default_style
            return RenderDirective(color=style.color, bgcolor=style.bgcolor, text=style.text)
        return self.session.evaluator.evaluate(subscription)

    def check_feedbacks(self, feedback_id: str) -> dict[str, RenderDirective | None]:
        """Evaluate every subscription of *feedback_id*."""
        return {
            subscription.id: self.evaluate(subscription)
            for subscription in self.subscriptions.values()
            if subscription.command_id == feedback_id
        }
