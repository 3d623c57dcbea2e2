"""Curated dropdown tables for string parameters with a closed value set."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

from scpctl.core.documents import read_yaml, validate
from scpctl.core.errors import ChoicesValidationError
from scpctl.core.model import Choice, ConsoleModel


@dataclass(frozen=True)
class PaletteColor:
    id: str
    label: str
    color: int
    bgcolor: int


@dataclass(frozen=True)
class ChoiceTables:
    channel_names: tuple[Choice, ...]
    icons: tuple[Choice, ...]
    dante_out_patch: tuple[Choice, ...]
    omni_out_patch: tuple[Choice, ...]
    palettes: dict[ConsoleModel, tuple[PaletteColor, ...]]

    def palette_choices(self, model: ConsoleModel) -> tuple[Choice, ...]:
        return tuple(Choice(id=entry.id, label=entry.label) for entry in self.palettes[model])

    def resolve_color(self, model: ConsoleModel, raw: str) -> PaletteColor | None:
        """Look up a console color name in the palette of *model*."""
        wanted = raw.strip().lower()
        for entry in self.palettes[model]:
            if entry.id.lower() == wanted:
                return entry
        return None


def _expand(entries: list[dict[str, Any]]) -> tuple[Choice, ...]:
    choices: list[Choice] = []
    for entry in entries:
        if "count" in entry:
            for n in range(1, entry["count"] + 1):
                choices.append(Choice(id=f"{entry['id_prefix']}{n}", label=f"{entry['label_prefix']}{n}"))
        else:
            choices.append(Choice(id=entry["id"], label=entry["label"]))
    return tuple(choices)


def _build_palette(entries: list[dict[str, str]]) -> tuple[PaletteColor, ...]:
    return tuple(
        PaletteColor(
            id=entry["id"],
            label=entry["label"],
            color=int(entry["fg"], 16),
            bgcolor=int(entry["bg"], 16),
        )
        for entry in entries
    )


def build_choice_tables(doc: dict[str, Any], source: Path | Traversable) -> ChoiceTables:
    validate(doc, "choices.schema.json", source, validation_error=ChoicesValidationError)
    return ChoiceTables(
        channel_names=_expand(doc["channel_names"]),
        icons=_expand(doc["icons"]),
        dante_out_patch=_expand(doc["dante_out_patch"]),
        omni_out_patch=_expand(doc["omni_out_patch"]),
        palettes={model: _build_palette(doc["palettes"][model.value]) for model in ConsoleModel},
    )


def load_choice_tables(path: Path | None = None) -> ChoiceTables:
    source: Path | Traversable = path or resources.files("scpctl.data").joinpath("choices.yaml")
    doc = read_yaml(source, load_error=ChoicesValidationError, validation_error=ChoicesValidationError)
    return build_choice_tables(doc, source)


@lru_cache(maxsize=1)
def default_choice_tables() -> ChoiceTables:
    return load_choice_tables()
