"""User configuration loading and validation."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from scpctl.core.codec import DEFAULT_ALIASES
from scpctl.core.documents import read_yaml, validate
from scpctl.core.errors import ConfigLoadError, ConfigValidationError
from scpctl.core.model import ConsoleModel

DEFAULT_PORT = 49280
LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionConfig:
    host: str | None = None
    port: int = DEFAULT_PORT
    model: ConsoleModel = ConsoleModel.CL_QL
    aliases: tuple[int, ...] = DEFAULT_ALIASES
    clear_cache_on_reconnect: bool = True
    timeout_s: float = 5.0


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "scpctl/config.yaml"


def _normalize_bool(value: Any, *, context: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise ConfigValidationError(f"{context} must be boolean true/false")


def build_config(doc: dict[str, Any], source: Path) -> SessionConfig:
    validate(doc, "config.schema.json", source, validation_error=ConfigValidationError)
    defaults = SessionConfig()
    return SessionConfig(
        host=doc.get("host", defaults.host),
        port=int(doc.get("port", defaults.port)),
        model=ConsoleModel(doc.get("model", defaults.model.value)),
        aliases=tuple(int(channel) for channel in doc.get("aliases", defaults.aliases)),
        clear_cache_on_reconnect=_normalize_bool(
            doc.get("clear_cache_on_reconnect", defaults.clear_cache_on_reconnect),
            context="clear_cache_on_reconnect",
        ),
        timeout_s=float(doc.get("timeout_s", defaults.timeout_s)),
    )


def load_config(path: Path | None = None) -> SessionConfig:
    """Load configuration from *path* or the default location.

    A missing default file yields the default configuration; a missing
    explicit file is an error.
    """
    source = path or default_config_path()
    if path is None and not source.exists():
        LOGGER.debug("No configuration at %s; using defaults", source)
        return SessionConfig()

    doc = read_yaml(source, load_error=ConfigLoadError, validation_error=ConfigValidationError)
    return build_config(doc, source)
