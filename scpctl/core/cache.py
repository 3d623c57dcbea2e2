"""Last-known value cache and feedback evaluation."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Union

from scpctl.core.catalog import DEFAULT_BG, DEFAULT_FG
from scpctl.core.choices import ChoiceTables
from scpctl.core.codec import resolve_channel, tf_bank_suffix
from scpctl.core.model import (
    CommandDescriptor,
    ConsoleModel,
    FeedbackSubscription,
    OptionValue,
    RenderDirective,
    ScpType,
    ValueRecord,
)

CachedValue = Union[int, str]
LOGGER = logging.getLogger(__name__)


def _typed(descriptor: CommandDescriptor, raw: str) -> CachedValue:
    if descriptor.type is ScpType.INTEGER or descriptor.type is ScpType.SCENE:
        try:
            return int(raw)
        except ValueError:
            return raw
    return raw


def _bank_index(suffix: str) -> int:
    if len(suffix) == 1 and suffix.isalpha():
        return ord(suffix.lower()) - ord("a") + 1
    return 1


def normalize(record: ValueRecord, descriptor: CommandDescriptor) -> tuple[int, int, CachedValue] | None:
    """Return the 1-based cache coordinates and typed value for *record*.

    Scene replies carry the scene number in the X slot and, on TF consoles,
    the bank letter as an address suffix; those are remapped to value and Y.
    """
    if descriptor.type is ScpType.SCENE:
        raw = str(record.x) if record.x is not None else record.val
        if raw is None:
            return None
        suffix = record.address[len(descriptor.address):]
        return 1, _bank_index(suffix), _typed(descriptor, raw)

    if record.val is None:
        return None
    x = (record.x or 0) + 1
    y = (record.y or 0) + 1
    return x, y, _typed(descriptor, record.val)


class ValueCache:
    """Latest observed value per ``index -> X -> Y`` (1-based)."""

    def __init__(self) -> None:
        self._values: dict[int, dict[int, dict[int, CachedValue]]] = {}

    def __len__(self) -> int:
        return sum(len(ys) for xs in self._values.values() for ys in xs.values())

    def get(self, index: int, x: int, y: int) -> CachedValue | None:
        return self._values.get(index, {}).get(x, {}).get(y)

    def put(self, index: int, x: int, y: int, value: CachedValue) -> None:
        self._values.setdefault(index, {}).setdefault(x, {})[y] = value

    def apply(self, record: ValueRecord, descriptor: CommandDescriptor) -> tuple[int, int] | None:
        """Store *record*; return the coordinates written, if any."""
        normalized = normalize(record, descriptor)
        if normalized is None:
            LOGGER.debug("No value to cache in %s", record)
            return None
        x, y, value = normalized
        self.put(descriptor.index, x, y, value)
        return x, y

    def clear(self) -> None:
        self._values.clear()


def option_color(options: Mapping[str, OptionValue], key: str, default: int) -> int:
    """Read a colorpicker option. Accepts ints, decimal, ``0x`` and ``#RRGGBB`` strings."""
    raw = options.get(key, default)
    try:
        if isinstance(raw, str):
            text = raw.strip()
            if text.startswith("#"):
                return int(text[1:], 16)
            return int(text, 0)
        return int(raw)
    except (TypeError, ValueError):
        LOGGER.debug("Bad color option %s=%r; using %06X", key, raw, default)
        return default


def _expected_equals(descriptor: CommandDescriptor, expected: OptionValue, cached: CachedValue) -> bool:
    if descriptor.type is ScpType.INTEGER:
        try:
            return int(expected) == int(cached)
        except (TypeError, ValueError):
            return False
    return str(expected) == str(cached)


class FeedbackEvaluator:
    def __init__(
        self,
        cache: ValueCache,
        descriptors: Mapping[str, CommandDescriptor],
        model: ConsoleModel,
        tables: ChoiceTables,
        aliases: Sequence[int],
    ) -> None:
        self._cache = cache
        self._descriptors = descriptors
        self._model = model
        self._tables = tables
        self._aliases = aliases

    def _lookup(
        self,
        descriptor: CommandDescriptor,
        options: Mapping[str, OptionValue],
    ) -> tuple[CachedValue | None, OptionValue | None]:
        """Return ``(cached, expected)`` for the subscription coordinates."""
        if descriptor.type is ScpType.SCENE:
            y = 1
            if self._model is ConsoleModel.TF:
                y = _bank_index(tf_bank_suffix(options.get("Y", "A")))
            return self._cache.get(descriptor.index, 1, y), options.get("X", 1)

        x = resolve_channel(int(options.get("X", 1)), self._aliases)
        if x is None:
            return None, None
        y = int(options.get("Y", 1))
        return self._cache.get(descriptor.index, x, y), options.get("Val")

    def evaluate(self, subscription: FeedbackSubscription) -> RenderDirective | None:
        """Compute the render directive; ``None`` means leave the button as is."""
        descriptor = self._descriptors.get(subscription.command_id)
        if descriptor is None:
            return None

        options = subscription.options
        try:
            cached, expected = self._lookup(descriptor, options)
        except (TypeError, ValueError):
            LOGGER.debug("Bad options for feedback %s: %r", subscription.id, options)
            return None
        if cached is None:
            return None

        style = subscription.default_style
        if descriptor.is_color:
            color = self._tables.resolve_color(self._model, str(cached))
            if color is None:
                return RenderDirective(color=style.color, bgcolor=style.bgcolor, text=style.text)
            return RenderDirective(color=color.color, bgcolor=color.bgcolor, text=style.text)
        if descriptor.is_name:
            return RenderDirective(color=style.color, bgcolor=style.bgcolor, text=str(cached))

        if expected is not None and _expected_equals(descriptor, expected, cached):
            return RenderDirective(
                color=option_color(options, "fg", DEFAULT_FG),
                bgcolor=option_color(options, "bg", DEFAULT_BG),
                text=style.text,
                matched=True,
            )
        return RenderDirective(color=style.color, bgcolor=style.bgcolor, text=style.text)
