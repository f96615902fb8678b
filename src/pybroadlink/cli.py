"""Command line interface for PyBroadlink."""
from __future__ import annotations

import contextlib
from typing import Iterator, Optional

import click
from rich.console import Console
from rich.table import Table

from .device import BroadlinkDevice, create_device, relay_mask
from .errors import BroadlinkError
from .handshake import HandshakeResult, perform_handshake
from .logging_config import configure_logging
from .models import KNOWN_MODELS, describe_model
from .session import SessionConfig

console = Console()


def _parse_int(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value, 0)
    except ValueError as exc:
        raise click.BadParameter(f"'{value}' is not an integer", ctx=ctx, param=param) from exc


def _device_options(func):
    func = click.option(
        "--interface",
        help="Network interface to send from, e.g. eth0.",
    )(func)
    func = click.option(
        "--timeout",
        default=1.0,
        show_default=True,
        type=float,
        help="Reply timeout for commands in seconds.",
    )(func)
    func = click.option("--port", default=80, show_default=True, type=int, help="Device UDP port.")(func)
    func = click.option(
        "--model",
        required=True,
        callback=_parse_int,
        help="Vendor model code, e.g. 0x2711.",
    )(func)
    func = click.argument("mac")(func)
    func = click.argument("host")(func)
    return func


def _open_device(
    host: str, mac: str, model: int, port: int, timeout: float, interface: Optional[str]
) -> BroadlinkDevice:
    config = SessionConfig(port=port, command_timeout=timeout, network_interface=interface)
    try:
        return create_device(model, host, mac, config=config)
    except (BroadlinkError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc


@contextlib.contextmanager
def _authenticated(
    host: str, mac: str, model: int, port: int, timeout: float, interface: Optional[str]
) -> Iterator[BroadlinkDevice]:
    device = _open_device(host, mac, model, port, timeout, interface)
    try:
        device.authenticate()
        yield device
    except BroadlinkError as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        device.close()


@click.group()
@click.option("--verbose", is_flag=True, help="Enable verbose logging output.")
def cli(verbose: bool) -> None:
    """Control networked power plugs and strips."""

    configure_logging(verbose=verbose)


@cli.command()
def models() -> None:
    """Display the known model codes."""

    table = Table(title="Known Models")
    table.add_column("Code")
    table.add_column("Name")
    table.add_column("Family")
    for code, (family, name) in sorted(KNOWN_MODELS.items()):
        table.add_row(f"0x{code:04x}", name, family.value)
    console.print(table)


@cli.command()
@_device_options
def auth(
    host: str, mac: str, model: int, port: int, timeout: float, interface: Optional[str]
) -> None:
    """Authenticate against a device and show the assigned identifier."""

    device = _open_device(host, mac, model, port, timeout, interface)
    try:
        result = perform_handshake(device.session)
    finally:
        device.close()
    _render_handshake(result)
    if not result.success:
        raise click.ClickException(result.error or "Authentication failed")


@cli.command()
@_device_options
@click.option("--on/--off", "state", required=True, help="Desired relay state.")
def power(
    host: str,
    mac: str,
    model: int,
    port: int,
    timeout: float,
    interface: Optional[str],
    state: bool,
) -> None:
    """Switch a single-relay device on or off."""

    with _authenticated(host, mac, model, port, timeout, interface) as device:
        device.set_power(state)
    console.print(f"{describe_model(model)} at {host} switched {'on' if state else 'off'}")


@cli.command()
@_device_options
def status(
    host: str, mac: str, model: int, port: int, timeout: float, interface: Optional[str]
) -> None:
    """Show the relay state of a single-relay device."""

    with _authenticated(host, mac, model, port, timeout, interface) as device:
        state = device.query_power()
    console.print(f"{describe_model(model)} at {host} is {'[green]on[/green]' if state else '[red]off[/red]'}")


@cli.command()
@_device_options
@click.option("--index", type=int, help="1-based outlet index.")
@click.option("--mask", callback=_parse_int, help="Outlet bitmask, e.g. 0x05.")
@click.option("--on/--off", "state", required=True, help="Desired relay state.")
def strip(
    host: str,
    mac: str,
    model: int,
    port: int,
    timeout: float,
    interface: Optional[str],
    index: Optional[int],
    mask: Optional[int],
    state: bool,
) -> None:
    """Switch outlets of a multi-relay strip."""

    if (index is None) == (mask is None):
        raise click.UsageError("Provide exactly one of --index or --mask")
    if index is not None:
        try:
            mask = relay_mask(index)
        except ValueError as exc:
            raise click.BadParameter(str(exc), param_hint="--index") from exc
    elif not 0 <= mask <= 0xFF:  # type: ignore[operator]
        raise click.BadParameter(f"Relay mask {mask} must fit in one byte", param_hint="--mask")
    with _authenticated(host, mac, model, port, timeout, interface) as device:
        device.set_power_mask(mask, state)  # type: ignore[arg-type]
    target = f"outlet {index}" if index is not None else f"mask 0x{mask:02x}"
    console.print(f"{target} switched {'on' if state else 'off'}")


@cli.command("strip-status")
@_device_options
def strip_status(
    host: str, mac: str, model: int, port: int, timeout: float, interface: Optional[str]
) -> None:
    """Show the outlet states of a multi-relay strip."""

    with _authenticated(host, mac, model, port, timeout, interface) as device:
        states = device.query_power_states()
    table = Table(title=f"{describe_model(model)} at {host}")
    table.add_column("Outlet")
    table.add_column("State")
    for outlet, on in states.items():
        table.add_row(str(outlet), "on" if on else "off")
    console.print(table)


def _render_handshake(result: HandshakeResult) -> None:
    table = Table(title="Authentication")
    table.add_column("Phase")
    table.add_column("Result")
    table.add_column("Detail")
    for step in result.steps:
        table.add_row(step.phase.value, "ok" if step.success else "failed", step.detail)
    console.print(table)
    if result.success:
        console.print(f"Device id: {result.device_id} ({result.duration_ms:.2f}ms)")


def main() -> None:  # pragma: no cover - thin wrapper
    cli()
