"""SCP wire codec: outbound line encoding and inbound line decoding.

Outbound forms::

    get <address> <X> <Y>
    set <address> <X> <Y> <Val>
    ssrecall_ex <address> <scene>
    sscurrent_ex <address>

Inbound forms::

    OK <command> <address> <X> <Y> <Val> [<TxtVal>]
    NOTIFY [<command>] <address> <X> <Y> <Val> [<TxtVal>]
    OK devinfo productname <name>

Coordinates are 1-based in the host model and 0-based on the wire.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import assert_never

from scpctl.core.dictionary import SCP_VALS, is_record, tokenize
from scpctl.core.model import (
    CommandDescriptor,
    ConsoleModel,
    DeviceIdentity,
    OptionValue,
    ScpType,
    ValueRecord,
)

SET = "set"
GET = "get"
SCENE_RECALL = "ssrecall_ex"
SCENE_CURRENT = "sscurrent_ex"
KNOWN_VERBS = frozenset({SET, GET, SCENE_RECALL, SCENE_CURRENT, "devinfo", "prminfo", "mtrinfo", "scpmode"})
DEFAULT_ALIASES = (1, 2, 3, 4)
LINE_TERMINATOR = "\n"
# Longest unterminated tail kept between chunks.
MAX_PENDING = 8192

LOGGER = logging.getLogger(__name__)


def resolve_channel(x: int, aliases: Sequence[int]) -> int | None:
    """Resolve a named-channel sentinel (``-1`` .. ``-N``) through *aliases*."""
    if x >= 0:
        return x
    slot = -x
    if slot > len(aliases):
        return None
    return aliases[slot - 1]


def tf_bank_suffix(bank: OptionValue) -> str:
    """Map a TF scene bank (``A``/``B`` or ``1``/``2``) to its address suffix."""
    if isinstance(bank, bool) or not isinstance(bank, (int, str)):
        raise ValueError(f"Invalid scene bank {bank!r}")
    if isinstance(bank, int):
        if bank < 1:
            raise ValueError(f"Invalid scene bank {bank!r}")
        return chr(ord("a") + bank - 1)
    return bank.strip().lower()


def _join(*fields: object) -> str:
    return " ".join(str(field) for field in fields if field != "").strip()


def _wire_value(descriptor: CommandDescriptor, value: OptionValue) -> str:
    scp_type = descriptor.type
    if scp_type is ScpType.INTEGER:
        if isinstance(value, bool):
            return "1" if value else "0"
        return str(int(value))
    if scp_type is ScpType.BINARY:
        if isinstance(value, bool):
            return "1" if value else "0"
        return str(value)
    if scp_type is ScpType.STRING:
        return f'"{value}"'
    if scp_type is ScpType.SCENE:
        return ""
    assert_never(scp_type)


def _encode_scene(
    prefix: str,
    descriptor: CommandDescriptor,
    options: Mapping[str, OptionValue],
    model: ConsoleModel,
) -> str:
    address = descriptor.address
    if model is ConsoleModel.TF:
        address += tf_bank_suffix(options.get("Y", "A"))

    if prefix == SET:
        return _join(SCENE_RECALL, address, int(options.get("X", 1)))
    return _join(SCENE_CURRENT, address)


def encode(
    prefix: str,
    descriptor: CommandDescriptor,
    options: Mapping[str, OptionValue],
    model: ConsoleModel,
    aliases: Sequence[int] = DEFAULT_ALIASES,
) -> str | None:
    """Encode an action invocation as a wire line (without terminator).

    Returns ``None`` when the options cannot be encoded; the caller treats
    that as a no-op.
    """
    try:
        if descriptor.type is ScpType.SCENE:
            return _encode_scene(prefix, descriptor, options, model)

        x = resolve_channel(int(options.get("X", 1)), aliases)
        if x is None:
            LOGGER.debug("Unknown named channel %s for %s", options.get("X"), descriptor.command_id)
            return None
        y = int(options.get("Y", 1))
        value = ""
        if prefix == SET:
            value = _wire_value(descriptor, options.get("Val", descriptor.default))
    except (TypeError, ValueError) as exc:
        LOGGER.debug("Cannot encode %s with %r: %s", descriptor.command_id, dict(options), exc)
        return None

    return _join(prefix, descriptor.address, x - 1, y - 1, value)


def encode_command(
    prefix: str,
    command_id: str,
    options: Mapping[str, OptionValue],
    descriptors: Mapping[str, CommandDescriptor],
    model: ConsoleModel,
    aliases: Sequence[int] = DEFAULT_ALIASES,
) -> str | None:
    descriptor = descriptors.get(command_id)
    if descriptor is None:
        LOGGER.debug("Invalid command: %s", command_id)
        return None
    return encode(prefix, descriptor, options, model, aliases)


def _int_or_none(token: str | None) -> int | None:
    if token is None:
        return None
    try:
        return int(token)
    except ValueError:
        return None


def decode_line(line: str) -> ValueRecord | DeviceIdentity | None:
    """Decode one inbound line; ``None`` for anything that is not a record."""
    tokens = tokenize(line)
    if not is_record(tokens) or len(tokens) < 2:
        return None

    if len(tokens) >= 3 and tokens[1].lower() == "devinfo" and tokens[2].lower() == "productname":
        return DeviceIdentity(product_name=tokens[-1] if len(tokens) > 3 else "")

    if tokens[1].lower() not in KNOWN_VERBS:
        tokens.insert(1, "")
    fields = dict(zip(SCP_VALS, tokens))
    address = fields.get("Address")
    if not address:
        return None

    return ValueRecord(
        status=fields["Status"].upper(),
        command=fields["Command"].lower(),
        address=address,
        x=_int_or_none(fields.get("X")),
        y=_int_or_none(fields.get("Y")),
        val=fields.get("Val"),
        txt_val=fields.get("TxtVal"),
    )


class AddressMatcher:
    """Find the descriptor an inbound address belongs to.

    An exact address wins; otherwise the longest descriptor address that is
    a prefix of the inbound one (TF scene addresses carry the bank letter).
    """

    def __init__(self, descriptors: Iterable[CommandDescriptor]) -> None:
        self._exact = {descriptor.address: descriptor for descriptor in descriptors}
        self._by_length = sorted(self._exact.values(), key=lambda d: len(d.address), reverse=True)

    def match(self, address: str) -> CommandDescriptor | None:
        found = self._exact.get(address)
        if found is not None:
            return found
        for descriptor in self._by_length:
            if address.startswith(descriptor.address):
                return descriptor
        return None


class LineBuffer:
    """Split a byte stream into lines, keeping a partial tail across chunks."""

    def __init__(self) -> None:
        self._pending = ""

    @property
    def pending(self) -> str:
        return self._pending

    def feed(self, chunk: str) -> list[str]:
        data = self._pending + chunk
        *lines, self._pending = data.split(LINE_TERMINATOR)
        if len(self._pending) > MAX_PENDING:
            LOGGER.debug("Dropping %d buffered characters with no line terminator", len(self._pending))
            self._pending = ""
        return [line.rstrip("\r") for line in lines if line.strip()]

    def clear(self) -> None:
        self._pending = ""
