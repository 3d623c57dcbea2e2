"""Typer CLI entrypoint."""

from __future__ import annotations

import dataclasses
import logging
import time
from pathlib import Path

import typer

from scpctl.core.codec import GET, SET, decode_line
from scpctl.core.config import SessionConfig, load_config
from scpctl.core.errors import ScpctlError
from scpctl.core.model import (
    ActionInvocation,
    ConnectionStatus,
    ConsoleModel,
    DeviceIdentity,
    FeedbackSubscription,
    OptionSpec,
    OptionValue,
)
from scpctl.core.session import ScpService

app = typer.Typer(help="Yamaha SCP console control: catalog, codec and live monitoring")

ConfigOption = typer.Option(None, "--config", help="Path to config.yaml")
HostOption = typer.Option(None, "--host", help="Console IP address or hostname")
ModelOption = typer.Option(None, "--model", help="Console family: CL/QL or TF")
OptOption = typer.Option(None, "--opt", help="Action option as KEY=VALUE, e.g. X=5")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Python logging level"),
) -> None:
    logging.basicConfig(level=log_level.upper(), format="%(levelname)s %(name)s: %(message)s")


def _load(config: Path | None, host: str | None, model: str | None) -> SessionConfig:
    loaded = load_config(config)
    overrides: dict[str, object] = {}
    if host:
        overrides["host"] = host
    if model:
        try:
            overrides["model"] = ConsoleModel(model)
        except ValueError:
            raise typer.BadParameter(f"Unknown model '{model}'. Use CL/QL or TF.") from None
    return dataclasses.replace(loaded, **overrides)


def _build_service(config: SessionConfig) -> ScpService:
    return ScpService(config)


def _parse_value(text: str) -> OptionValue:
    lowered = text.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    try:
        return int(text)
    except ValueError:
        return text


def _parse_options(pairs: list[str] | None) -> dict[str, OptionValue]:
    options: dict[str, OptionValue] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got '{pair}'")
        options[key] = _parse_value(value)
    return options


def _describe_option(option: OptionSpec) -> str:
    desc = f"{option.id} ({option.type}) {option.label}"
    if option.min is not None and option.max is not None:
        desc += f" {option.min}..{option.max}"
    if option.choices:
        desc += f" [{len(option.choices)} choices]"
    return f"{desc} default={option.default!r}"


@app.command("catalog")
def list_catalog(
    feedbacks: bool = typer.Option(False, "--feedbacks", help="List feedbacks instead of actions"),
    match: str | None = typer.Option(None, "--match", help="Only entries whose label contains this text"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show option schemas"),
    config: Path | None = ConfigOption,
    model: str | None = ModelOption,
) -> None:
    """List the actions (or feedbacks) synthesized for a console model."""
    try:
        service = _build_service(_load(config, None, model))
        catalog = service.catalog
        entries = catalog.feedbacks if feedbacks else catalog.actions
        for entry_id, entry in entries.items():
            if match and match.lower() not in entry.label.lower():
                continue
            typer.echo(f"{entry_id}: {entry.label}")
            if verbose:
                for option in entry.options:
                    typer.echo(f"  {_describe_option(option)}")
    except ScpctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("encode")
def encode_action(
    action_id: str,
    opt: list[str] | None = OptOption,
    get: bool = typer.Option(False, "--get", help="Encode the query form instead of set"),
    config: Path | None = ConfigOption,
    model: str | None = ModelOption,
) -> None:
    """Print the SCP line an action invocation encodes to."""
    try:
        service = _build_service(_load(config, None, model))
        line = service.encode(GET if get else SET, action_id, _parse_options(opt))
    except ScpctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    if line is None:
        typer.echo(f"Error: Cannot encode '{action_id}' with the given options", err=True)
        raise typer.Exit(code=1)
    typer.echo(line)


@app.command("decode")
def decode_lines(
    lines: list[str],
    config: Path | None = ConfigOption,
    model: str | None = ModelOption,
) -> None:
    """Decode inbound SCP lines and show the cache entries they update."""
    try:
        service = _build_service(_load(config, None, model))
    except ScpctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None

    for line in lines:
        decoded = decode_line(line)
        if decoded is None:
            typer.echo(f"ignored: {line}")
            continue
        if isinstance(decoded, DeviceIdentity):
            typer.echo(f"device: {decoded.product_name}")
            continue
        descriptor = service.session.matcher.match(decoded.address)
        if descriptor is None:
            typer.echo(f"unknown address: {decoded.address}")
            continue
        coordinates = service.cache.apply(decoded, descriptor)
        if coordinates is None:
            typer.echo(f"{descriptor.command_id}: no value")
            continue
        x, y = coordinates
        value = service.cache.get(descriptor.index, x, y)
        typer.echo(f"{descriptor.command_id} [{x}][{y}] = {value!r}")


@app.command("send")
def send_action(
    action_id: str,
    opt: list[str] | None = OptOption,
    config: Path | None = ConfigOption,
    host: str | None = HostOption,
    model: str | None = ModelOption,
) -> None:
    """Connect to the console and send one action."""
    try:
        service = _build_service(_load(config, host, model))
        if not service.connect():
            typer.echo(f"Error: Could not connect to {service.config.host}", err=True)
            raise typer.Exit(code=1)
        line = service.run_action(ActionInvocation(command_id=action_id, options=_parse_options(opt)))
        service.disconnect()
    except ScpctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    if line is None:
        typer.echo(f"Error: Cannot encode '{action_id}' with the given options", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Sent {line} to {service.config.host}")


def _parse_watch(index: int, spec: str) -> FeedbackSubscription:
    command_id, _, raw_options = spec.partition(":")
    pairs = [pair for pair in raw_options.split(",") if pair]
    return FeedbackSubscription(id=f"watch{index}", command_id=command_id, options=_parse_options(pairs))


@app.command("monitor")
def monitor(
    watch: list[str] | None = typer.Option(
        None, "--watch", help="Feedback to poll and evaluate, e.g. scp_1:X=5,Val=true"
    ),
    duration: float = typer.Option(10.0, "--duration", help="Seconds to listen"),
    config: Path | None = ConfigOption,
    host: str | None = HostOption,
    model: str | None = ModelOption,
) -> None:
    """Connect, poll the watched feedbacks and print value updates."""
    try:
        service = _build_service(_load(config, host, model))
        for index, spec in enumerate(watch or [], start=1):
            service.subscribe(_parse_watch(index, spec))
        if not service.connect():
            typer.echo(f"Error: Could not connect to {service.config.host}", err=True)
            raise typer.Exit(code=1)

        deadline = time.monotonic() + duration
        while time.monotonic() < deadline and service.status is ConnectionStatus.OK:
            for feedback_id in service.pump(timeout_s=0.5):
                for subscription_id, directive in service.check_feedbacks(feedback_id).items():
                    typer.echo(f"{subscription_id} {feedback_id}: {directive}")
        if service.product_name:
            typer.echo(f"Device: {service.product_name}")
        failed = service.status is ConnectionStatus.ERROR
        service.disconnect()
    except ScpctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    if failed:
        raise typer.Exit(code=1)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
