"""SCP parameter dictionary loading and parsing.

Dictionary files are plain text, one record per line. Candidate records start
with ``OK`` or ``NOTIFY``; the remaining whitespace-separated tokens map
positionally onto :data:`SCP_PARAMS`. Double-quoted substrings are single
tokens with the quotes stripped.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable, Sequence
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path

from scpctl.core.errors import DictionaryLoadError
from scpctl.core.model import CommandDescriptor, ConsoleModel, ScpType

SCP_PARAMS = (
    "Ok", "Command", "Index", "Address", "X", "Y", "Min", "Max",
    "Default", "Unit", "Type", "UI", "RW", "Scale",
)
SCP_VALS = ("Status", "Command", "Address", "X", "Y", "Val", "TxtVal")

_TOKEN_RE = re.compile(r'(?:[^\s"]+|"[^"]*")+')
_RECORD_STARTS = {"OK", "NOTIFY"}
_ECHO_COMMANDS = {"GET", "SSCURRENT_EX"}
# Records must carry every field up to and including Type.
_MIN_PARAM_TOKENS = SCP_PARAMS.index("Type") + 1

DICTIONARY_FILES: dict[ConsoleModel, str] = {
    ConsoleModel.CL_QL: "cl5_scp_parameters.txt",
    ConsoleModel.TF: "tf5_scp_parameters.txt",
}
LOGGER = logging.getLogger(__name__)


def tokenize(line: str) -> list[str]:
    """Split a line on whitespace, keeping quoted substrings together."""
    return [token.replace('"', "") for token in _TOKEN_RE.findall(line)]


def is_record(tokens: Sequence[str]) -> bool:
    return bool(tokens) and tokens[0].upper() in _RECORD_STARTS


def _build_descriptor(tokens: list[str]) -> CommandDescriptor | None:
    if not _MIN_PARAM_TOKENS <= len(tokens) <= len(SCP_PARAMS):
        return None
    record = dict(zip(SCP_PARAMS, tokens))
    try:
        scp_type = ScpType(record["Type"].lower())
        return CommandDescriptor(
            index=int(record["Index"]),
            address=record["Address"],
            dim_x=max(int(record["X"]), 1),
            dim_y=max(int(record["Y"]), 1),
            min=int(record["Min"]),
            max=int(record["Max"]),
            default=record["Default"],
            type=scp_type,
            command=record["Command"],
            unit=record["Unit"],
            ui=record.get("UI", ""),
            rw=record.get("RW", ""),
            scale=record.get("Scale", ""),
        )
    except ValueError:
        return None


def sort_key(descriptor: CommandDescriptor) -> str:
    return descriptor.label.lower()


def parse_dictionary(text: str) -> list[CommandDescriptor]:
    """Parse dictionary text into descriptors sorted for catalog display.

    Malformed lines are skipped. ``GET``/``SSCURRENT_EX`` echo records are
    recognised but not returned. A record reusing an index or address that
    is already loaded is skipped with a warning.
    """
    descriptors: list[CommandDescriptor] = []
    seen_index: set[int] = set()
    seen_address: set[str] = set()

    for lineno, line in enumerate(text.split("\n"), start=1):
        tokens = tokenize(line)
        if not is_record(tokens):
            continue
        if len(tokens) > 1 and tokens[1].upper() in _ECHO_COMMANDS:
            continue

        descriptor = _build_descriptor(tokens)
        if descriptor is None:
            LOGGER.debug("Skipping malformed dictionary line %d: %s", lineno, line.strip())
            continue
        if descriptor.index in seen_index or descriptor.address in seen_address:
            LOGGER.warning(
                "Skipping duplicate dictionary entry %d (%s) on line %d",
                descriptor.index,
                descriptor.address,
                lineno,
            )
            continue
        seen_index.add(descriptor.index)
        seen_address.add(descriptor.address)
        descriptors.append(descriptor)

    # sorted() is stable, so equal labels keep their file order.
    return sorted(descriptors, key=sort_key)


def _user_dictionary_dir() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "scpctl/dictionaries"


def _read_text(path: Path | Traversable) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise DictionaryLoadError(f"Could not read dictionary file {path}: {exc}") from exc


def dictionary_source(model: ConsoleModel) -> Path | Traversable:
    """Return the file backing *model*, preferring a user override."""
    filename = DICTIONARY_FILES[model]
    user_path = _user_dictionary_dir() / filename
    if user_path.is_file():
        LOGGER.warning("User dictionary %s overrides packaged dictionary", user_path)
        return user_path
    return resources.files("scpctl.dictionaries").joinpath(filename)


def load_dictionary(model: ConsoleModel, *, path: Path | None = None) -> list[CommandDescriptor]:
    source = path if path is not None else dictionary_source(model)
    descriptors = parse_dictionary(_read_text(source))
    LOGGER.info("Loaded %d SCP commands for %s from %s", len(descriptors), model.value, source)
    return descriptors


def index_by_id(descriptors: Iterable[CommandDescriptor]) -> dict[str, CommandDescriptor]:
    return {descriptor.command_id: descriptor for descriptor in descriptors}
