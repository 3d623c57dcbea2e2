"""Core data models used across dictionary, catalog, codec, cache and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

OptionValue = Union[int, bool, str]


class ScpType(str, Enum):
    INTEGER = "integer"
    STRING = "string"
    BINARY = "binary"
    SCENE = "scene"


class ConsoleModel(str, Enum):
    CL_QL = "CL/QL"
    TF = "TF"


class ConnectionStatus(str, Enum):
    UNKNOWN = "unknown"
    OK = "ok"
    ERROR = "error"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class CommandDescriptor:
    index: int
    address: str
    dim_x: int
    dim_y: int
    min: int
    max: int
    default: str
    type: ScpType
    command: str = ""
    unit: str = ""
    ui: str = ""
    rw: str = ""
    scale: str = ""

    @property
    def command_id(self) -> str:
        return f"scp_{self.index}"

    @property
    def label(self) -> str:
        """Address with the top-level prefix (``MIXER:Current/``) removed."""
        return self.address.split("/", 1)[-1]

    @property
    def is_name(self) -> bool:
        return self.address.endswith("Name")

    @property
    def is_color(self) -> bool:
        return self.address.endswith("olor")


@dataclass(frozen=True)
class ValueRecord:
    """One decoded inbound line. Coordinates are 0-based as received."""

    address: str
    x: int | None = None
    y: int | None = None
    val: str | None = None
    txt_val: str | None = None
    status: str = ""
    command: str = ""


@dataclass(frozen=True)
class DeviceIdentity:
    product_name: str


@dataclass(frozen=True)
class Choice:
    id: OptionValue
    label: str


@dataclass(frozen=True)
class OptionSpec:
    """One host-facing option of an action or feedback."""

    type: str
    id: str
    label: str
    default: Any = None
    min: int | None = None
    max: int | None = None
    choices: tuple[Choice, ...] = ()


@dataclass(frozen=True)
class ActionSpec:
    id: str
    label: str
    options: tuple[OptionSpec, ...]


@dataclass(frozen=True)
class FeedbackSpec:
    id: str
    label: str
    options: tuple[OptionSpec, ...]
    display_only: bool = False


@dataclass(frozen=True)
class Catalog:
    actions: dict[str, ActionSpec]
    feedbacks: dict[str, FeedbackSpec]


@dataclass(frozen=True)
class ButtonStyle:
    color: int = 0xFFFFFF
    bgcolor: int = 0x000000
    text: str | None = None


@dataclass(frozen=True)
class FeedbackSubscription:
    id: str
    command_id: str
    options: dict[str, OptionValue] = field(default_factory=dict)
    default_style: ButtonStyle = field(default_factory=ButtonStyle)


@dataclass(frozen=True)
class ActionInvocation:
    command_id: str
    options: dict[str, OptionValue] = field(default_factory=dict)


@dataclass(frozen=True)
class RenderDirective:
    color: int
    bgcolor: int
    text: str | None = None
    matched: bool = False
