"""Macro recording: capture encoded action lines for later replay."""

from __future__ import annotations

import logging
from dataclasses import dataclass

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Macro:
    lines: tuple[str, ...]


class MacroRecorder:
    def __init__(self) -> None:
        self._recording = False
        self._current: list[str] = []
        self.macros: list[Macro] = []

    @property
    def recording(self) -> bool:
        return self._recording

    def start(self) -> None:
        if self._recording:
            LOGGER.debug("Macro recording already active; restarting capture")
        self._recording = True
        self._current = []

    def stop(self) -> Macro | None:
        """Finish recording; empty captures are discarded."""
        if not self._recording:
            return None
        self._recording = False
        if not self._current:
            LOGGER.info("Macro recording stopped with no actions captured")
            return None
        macro = Macro(lines=tuple(self._current))
        self.macros.append(macro)
        self._current = []
        LOGGER.info("Recorded macro %d with %d actions", len(self.macros), len(macro.lines))
        return macro

    def capture(self, line: str) -> None:
        if self._recording:
            self._current.append(line)
