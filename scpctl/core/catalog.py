"""Action and feedback catalog synthesis from SCP command descriptors."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import assert_never

from scpctl.core.choices import ChoiceTables, default_choice_tables
from scpctl.core.model import (
    ActionSpec,
    Catalog,
    Choice,
    CommandDescriptor,
    ConsoleModel,
    FeedbackSpec,
    OptionSpec,
    ScpType,
)

MACRO_RECORD_START = "macro_record_start"
MACRO_RECORD_STOP = "macro_record_stop"
MACRO_RECORDING = "macro_recording"

NAMED_CHANNEL_SLOTS = 4
DEFAULT_FG = 0x000000
DEFAULT_BG = 0xFF0000
TF_SCENE_LABEL = "Scene/Bank"
TF_SCENE_BANKS = ("A", "B")

_COLOR_OPTIONS = (
    OptionSpec(type="colorpicker", id="fg", label="Foreground Colour", default=DEFAULT_FG),
    OptionSpec(type="colorpicker", id="bg", label="Background Colour", default=DEFAULT_BG),
)


def is_tf_scene(descriptor: CommandDescriptor, model: ConsoleModel) -> bool:
    return model is ConsoleModel.TF and descriptor.type is ScpType.SCENE


def command_label(descriptor: CommandDescriptor, model: ConsoleModel) -> str:
    if is_tf_scene(descriptor, model):
        return TF_SCENE_LABEL
    return descriptor.label


def _part(parts: Sequence[str], index: int) -> str:
    return parts[min(index, len(parts) - 1)]


def _channel_choices(count: int) -> tuple[Choice, ...]:
    named = tuple(Choice(id=-slot, label=f"Named channel {slot}") for slot in range(1, NAMED_CHANNEL_SLOTS + 1))
    return named + tuple(Choice(id=n, label=f"CH {n}") for n in range(1, count + 1))


def _coordinate_options(
    descriptor: CommandDescriptor,
    model: ConsoleModel,
    parts: Sequence[str],
) -> tuple[list[OptionSpec], int]:
    """Build the X/Y selectors; also return the label part for the value option."""
    options: list[OptionSpec] = []
    part_index = 0

    if descriptor.dim_x > 1:
        if parts[0] == "InCh":
            options.append(
                OptionSpec(
                    type="dropdown",
                    id="X",
                    label=parts[0],
                    default=1,
                    min=1,
                    max=descriptor.dim_x,
                    choices=_channel_choices(descriptor.dim_x),
                )
            )
        else:
            options.append(
                OptionSpec(type="number", id="X", label=parts[0], default=1, min=1, max=descriptor.dim_x)
            )
        part_index = 1

    if descriptor.dim_y > 1:
        label = _part(parts, part_index)
        if is_tf_scene(descriptor, model):
            options.append(
                OptionSpec(
                    type="dropdown",
                    id="Y",
                    label=label,
                    default=TF_SCENE_BANKS[0],
                    choices=tuple(Choice(id=bank, label=bank) for bank in TF_SCENE_BANKS),
                )
            )
        else:
            options.append(
                OptionSpec(type="number", id="Y", label=label, default=1, min=1, max=descriptor.dim_y)
            )

    if part_index < len(parts) - 1:
        part_index += 1
    return options, part_index


def _text_choices(
    descriptor: CommandDescriptor,
    label: str,
    model: ConsoleModel,
    tables: ChoiceTables,
) -> tuple[Choice, ...]:
    if label.startswith("CustomFaderBank"):
        return tables.channel_names
    if label.endswith("Color"):
        return tables.palette_choices(model)
    if label.endswith("Icon"):
        return tables.icons
    if "DanteOutPort/Patch" in descriptor.address:
        return tables.dante_out_patch
    if "OmniOutPort/Patch" in descriptor.address:
        return tables.omni_out_patch
    return ()


def _int_default(descriptor: CommandDescriptor) -> int:
    try:
        return int(descriptor.default)
    except ValueError:
        return descriptor.min


def _value_option(
    descriptor: CommandDescriptor,
    model: ConsoleModel,
    label: str,
    value_label: str,
    tables: ChoiceTables,
) -> OptionSpec | None:
    scp_type = descriptor.type
    if scp_type is ScpType.INTEGER:
        if descriptor.max == 1:
            return OptionSpec(type="checkbox", id="Val", label="On", default=descriptor.default == "1")
        return OptionSpec(
            type="number",
            id="Val",
            label=value_label,
            default=_int_default(descriptor),
            min=descriptor.min,
            max=descriptor.max,
        )
    if scp_type is ScpType.STRING or scp_type is ScpType.BINARY:
        choices = _text_choices(descriptor, label, model, tables)
        if choices:
            ids = {choice.id for choice in choices}
            default = descriptor.default if descriptor.default in ids else choices[0].id
            return OptionSpec(type="dropdown", id="Val", label=value_label, default=default, choices=choices)
        return OptionSpec(type="textinput", id="Val", label=value_label, default=descriptor.default)
    if scp_type is ScpType.SCENE:
        return None
    assert_never(scp_type)


def build_action(
    descriptor: CommandDescriptor,
    model: ConsoleModel,
    tables: ChoiceTables,
) -> ActionSpec:
    label = command_label(descriptor, model)
    parts = label.split("/")
    options, value_part = _coordinate_options(descriptor, model, parts)
    value = _value_option(descriptor, model, label, _part(parts, value_part), tables)
    if value is not None:
        options.append(value)
    return ActionSpec(id=descriptor.command_id, label=label, options=tuple(options))


def build_feedback(
    descriptor: CommandDescriptor,
    model: ConsoleModel,
    tables: ChoiceTables,
) -> FeedbackSpec:
    """Build the feedback for *descriptor*.

    Name and color commands are display-only: they carry just the
    coordinate selectors and surface the cached text or color. Every other
    command compares against an expected value and takes fg/bg pickers.
    """
    label = command_label(descriptor, model)
    parts = label.split("/")
    options, value_part = _coordinate_options(descriptor, model, parts)

    if descriptor.is_name or descriptor.is_color:
        return FeedbackSpec(id=descriptor.command_id, label=label, options=tuple(options), display_only=True)

    value = _value_option(descriptor, model, label, _part(parts, value_part), tables)
    if value is not None:
        options.append(value)
    options.extend(_COLOR_OPTIONS)
    return FeedbackSpec(id=descriptor.command_id, label=label, options=tuple(options))


def _macro_entries() -> tuple[dict[str, ActionSpec], dict[str, FeedbackSpec]]:
    actions = {
        MACRO_RECORD_START: ActionSpec(id=MACRO_RECORD_START, label="Macro: start recording", options=()),
        MACRO_RECORD_STOP: ActionSpec(id=MACRO_RECORD_STOP, label="Macro: stop recording", options=()),
    }
    feedbacks = {
        MACRO_RECORDING: FeedbackSpec(id=MACRO_RECORDING, label="Macro: recording", options=_COLOR_OPTIONS),
    }
    return actions, feedbacks


def build_catalog(
    descriptors: Iterable[CommandDescriptor],
    model: ConsoleModel,
    tables: ChoiceTables | None = None,
) -> Catalog:
    """Synthesize a complete catalog; each call returns a fresh one."""
    tables = tables or default_choice_tables()
    actions: dict[str, ActionSpec] = {}
    feedbacks: dict[str, FeedbackSpec] = {}

    for descriptor in descriptors:
        actions[descriptor.command_id] = build_action(descriptor, model, tables)
        feedbacks[descriptor.command_id] = build_feedback(descriptor, model, tables)

    macro_actions, macro_feedbacks = _macro_entries()
    actions.update(macro_actions)
    feedbacks.update(macro_feedbacks)
    return Catalog(actions=actions, feedbacks=feedbacks)
