"""Stable public API for building host integrations on top of scpctl.

This module is the supported integration surface for third-party callers
(button-grid hosts, show-control runtimes, scripts). Avoid importing from
private/internal modules unless intentionally depending on non-stable
internals.
"""

from __future__ import annotations

from collections.abc import Mapping

from scpctl.core.config import SessionConfig, load_config
from scpctl.core.errors import (
    ChoicesValidationError,
    ConfigLoadError,
    ConfigValidationError,
    DictionaryLoadError,
    ScpctlError,
    TransportConnectError,
    TransportError,
    TransportSendError,
    TransportTimeoutError,
)
from scpctl.core.macro import Macro
from scpctl.core.model import (
    ActionInvocation,
    ActionSpec,
    ButtonStyle,
    Catalog,
    CommandDescriptor,
    ConnectionStatus,
    ConsoleModel,
    FeedbackSpec,
    FeedbackSubscription,
    OptionValue,
    RenderDirective,
)
from scpctl.core.session import FeedbackListener, ScpService, StatusListener
from scpctl.transports.base import Transport

__all__ = [
    "ScpctlError",
    "ChoicesValidationError",
    "ConfigLoadError",
    "ConfigValidationError",
    "DictionaryLoadError",
    "TransportError",
    "TransportConnectError",
    "TransportSendError",
    "TransportTimeoutError",
    "ActionInvocation",
    "ActionSpec",
    "ButtonStyle",
    "Catalog",
    "CommandDescriptor",
    "ConnectionStatus",
    "ConsoleModel",
    "FeedbackSpec",
    "FeedbackSubscription",
    "Macro",
    "RenderDirective",
    "SessionConfig",
    "Transport",
    "Client",
]


class Client:
    """Public client for driving a console through scpctl.

    A `Client` owns one session: the loaded dictionary, the synthesized
    action/feedback catalog, the value cache and the transport. Hosts
    register feedback subscriptions, feed it user actions and redraw the
    buttons named by the feedback listener.
    """

    def __init__(
        self,
        config: SessionConfig | None = None,
        *,
        transport: Transport | None = None,
        feedback_listener: FeedbackListener | None = None,
        status_listener: StatusListener | None = None,
    ) -> None:
        self._service = ScpService(
            config or load_config(),
            transport=transport,
            feedback_listener=feedback_listener,
            status_listener=status_listener,
        )

    @property
    def config(self) -> SessionConfig:
        return self._service.config

    @property
    def status(self) -> ConnectionStatus:
        return self._service.status

    @property
    def product_name(self) -> str:
        return self._service.product_name

    @property
    def macros(self) -> list[Macro]:
        return list(self._service.recorder.macros)

    def reconfigure(self, config: SessionConfig) -> None:
        self._service.reload(config)

    def actions(self) -> dict[str, ActionSpec]:
        return dict(self._service.catalog.actions)

    def feedbacks(self) -> dict[str, FeedbackSpec]:
        return dict(self._service.catalog.feedbacks)

    def connect(self) -> bool:
        return self._service.connect()

    def disconnect(self) -> None:
        self._service.disconnect()

    def pump(self, *, timeout_s: float = 1.0) -> list[str]:
        return self._service.pump(timeout_s=timeout_s)

    def data_received(self, chunk: str) -> list[str]:
        return self._service.data_received(chunk)

    def run_action(self, command_id: str, options: Mapping[str, OptionValue] | None = None) -> str | None:
        return self._service.run_action(ActionInvocation(command_id=command_id, options=dict(options or {})))

    def play_macro(self, macro: Macro) -> int:
        return self._service.play_macro(macro)

    def subscribe(self, subscription: FeedbackSubscription) -> None:
        self._service.subscribe(subscription)

    def unsubscribe(self, subscription_id: str) -> None:
        self._service.unsubscribe(subscription_id)

    def poll(self) -> int:
        return self._service.poll()

    def evaluate(self, subscription: FeedbackSubscription) -> RenderDirective | None:
        return self._service.evaluate(subscription)

    def check_feedbacks(self, feedback_id: str) -> dict[str, RenderDirective | None]:
        return self._service.check_feedbacks(feedback_id)
