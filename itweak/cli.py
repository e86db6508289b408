"""Command Line Interface for iTweakSuite."""

import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

from .config import ITweakConfig, get_config, load_config, set_config
from .errors import ITweakError, OperationInProgressError
from .idevice import LibimobiledeviceGateway, LocationSimulator
from .images import ImageMounter, ReleaseAcquirer
from .session import Tweak
from .storage import StorageLayout
from .tweaks import TweakPipeline, available_tweaks, describe
from .util import setup_logging
from .workspace import WorkspaceManager, build_tree

console = Console()


def setup_cli_logging(verbose: bool = False, level: str = "INFO"):
    """Setup logging for CLI."""
    setup_logging(level="DEBUG" if verbose else level)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--config", "-c", type=click.Path(exists=True, path_type=Path), help="Configuration file path")
def cli(verbose: bool, config: Optional[Path]):
    """iTweakSuite - iOS configuration tweaks and developer disk images."""
    if config:
        set_config(load_config(config))
    setup_cli_logging(verbose, get_config().log_level)


def _config() -> ITweakConfig:
    return get_config()


def _gateway() -> LibimobiledeviceGateway:
    return LibimobiledeviceGateway.from_config(_config())


def _layout() -> StorageLayout:
    return StorageLayout.from_config(_config())


def _workspaces() -> WorkspaceManager:
    return WorkspaceManager(_layout(), min_supported_major=_config().min_supported_major)


def _get_target_device(gateway, udid: Optional[str]):
    """Get target device for operations, exiting when there is none."""
    try:
        devices = gateway.list_devices()
    except ITweakError as e:
        console.print(f"[red]Device tool error: {e}[/red]")
        sys.exit(1)

    if not devices:
        console.print("[red]No devices found[/red]")
        sys.exit(1)

    if udid:
        device = next((d for d in devices if d.identifier == udid), None)
        if not device:
            console.print(f"[red]Device {udid} not found[/red]")
            sys.exit(1)
        return device
    elif len(devices) == 1:
        return devices[0]
    else:
        console.print("[yellow]Multiple devices found. Please specify --udid[/yellow]")
        _list_devices(devices)
        sys.exit(1)


def _open_session(udid: Optional[str], gateway=None):
    gateway = gateway or _gateway()
    device = _get_target_device(gateway, udid)
    try:
        session = _workspaces().open_session(device)
    except ITweakError as e:
        console.print(f"[red]Workspace error: {e}[/red]")
        sys.exit(1)
    return gateway, session


def _list_devices(devices):
    """Helper to display device list."""
    if not devices:
        console.print("[yellow]No devices found[/yellow]")
        return

    min_major = _config().min_supported_major
    table = Table(title="Connected Devices")
    table.add_column("UDID", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("iOS", style="white")
    table.add_column("Supported", style="green")

    for device in devices:
        supported = "Yes" if device.is_supported(min_major) else "[red]No[/red]"
        table.add_row(device.identifier, device.name, device.version, supported)

    console.print(table)


@cli.group()
def device():
    """Device management commands."""
    pass


@device.command("list")
def device_list():
    """List connected devices."""
    try:
        _list_devices(_gateway().list_devices())
    except ITweakError as e:
        console.print(f"[red]Device tool error: {e}[/red]")
        sys.exit(1)


@device.command("info")
@click.option("--udid", "-u", help="Device UDID")
def device_info(udid: Optional[str]):
    """Show device information."""
    gateway = _gateway()
    target = _get_target_device(gateway, udid)
    layout = _layout()

    table = Table(title=f"Device Information - {target.name}")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("UDID", target.identifier)
    table.add_row("Name", target.name)
    table.add_row("iOS Version", target.version)
    table.add_row("Supported", "Yes" if target.is_supported(_config().min_supported_major) else "No")
    table.add_row("Workspace", str(layout.get_workspace_dir(target.identifier)))

    version = target.parsed_version
    if version is not None:
        table.add_row("Disk Image Cached", "Yes" if layout.has_image(version) else "No")

    console.print(table)


@cli.command("tweaks")
@click.option("--udid", "-u", help="Show which tweaks the device workspace provides")
def tweaks_list(udid: Optional[str]):
    """List tweak categories."""
    workspace = None
    if udid:
        workspace = _layout().get_workspace_dir(udid)

    table = Table(title="Tweaks")
    table.add_column("Name", style="cyan")
    table.add_column("Description", style="white")
    if workspace is not None:
        table.add_column("In Workspace", style="green")

    for tweak, present in available_tweaks(workspace):
        row = [tweak.value, describe(tweak)]
        if workspace is not None:
            row.append("Yes" if present else "[red]No[/red]")
        table.add_row(*row)

    console.print(table)


@cli.group()
def workspace():
    """Workspace commands."""
    pass


@workspace.command("init")
@click.option("--udid", "-u", help="Device UDID")
def workspace_init(udid: Optional[str]):
    """Create or refresh the device workspace from the template."""
    _, session = _open_session(udid)
    if not session.available:
        console.print(f"[red]{session.device.display_name} is not supported[/red]")
        sys.exit(1)
    console.print(f"[green]Workspace ready:[/green] {session.current_workspace}")


@workspace.command("tree")
@click.option("--udid", "-u", required=True, help="Device UDID")
def workspace_tree(udid: str):
    """Print the workspace directory tree."""
    path = _layout().get_workspace_dir(udid)
    if not path.is_dir():
        console.print(f"[yellow]No workspace for {udid}; run 'itweak workspace init' first[/yellow]")
        return
    console.print(build_tree(path))


@cli.group()
def image():
    """Developer disk image commands."""
    pass


@image.command("ensure")
@click.option("--udid", "-u", help="Device UDID")
@click.option("--mount", "mount_after", is_flag=True, help="Mount the image once it is available")
def image_ensure(udid: Optional[str], mount_after: bool):
    """Download the best disk image for the device's iOS version."""
    gateway, session = _open_session(udid)
    acquirer = ReleaseAcquirer.from_config(_config(), layout=_layout(), show_progress=True)

    try:
        console.print(f"[yellow]Looking for a disk image for iOS {session.device.version}...[/yellow]")
        result = acquirer.acquire_for_async(session).result()
    except OperationInProgressError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    finally:
        acquirer.shutdown()

    if not result.ok:
        console.print(f"[red]Could not get a disk image: {result.reason}[/red]")
        sys.exit(1)

    if result.resolved and result.resolved != result.target:
        console.print(f"Using image {result.resolved} for iOS {result.target}")
    console.print(f"[green]Disk image {result.status.value}:[/green] {result.image_path}")

    if mount_after:
        _mount(gateway, session)


@image.command("mount")
@click.option("--udid", "-u", help="Device UDID")
def image_mount(udid: Optional[str]):
    """Mount the cached disk image on the device."""
    gateway, session = _open_session(udid)
    _mount(gateway, session)


def _mount(gateway, session):
    if not gateway.needs_mount(session.device_id):
        console.print("[green]A developer disk image is already mounted[/green]")
        return
    result = ImageMounter(gateway, _layout()).mount(session)
    if not result.ok:
        console.print(f"[red]{result.reason}[/red]")
        sys.exit(1)
    console.print("[bold green]Developer disk image mounted[/bold green]")


@cli.group()
def location():
    """Location simulation commands."""
    pass


@location.command("set")
@click.option("--udid", "-u", help="Device UDID")
@click.argument("latitude", type=float)
@click.argument("longitude", type=float)
def location_set(udid: Optional[str], latitude: float, longitude: float):
    """Simulate a GPS location."""
    gateway = _gateway()
    target = _get_target_device(gateway, udid)
    simulator = LocationSimulator(gateway, target.identifier)

    if simulator.needs_mount():
        console.print("[yellow]Mount a developer disk image first ('itweak image ensure --mount')[/yellow]")
        sys.exit(1)
    if not simulator.set_location(latitude, longitude):
        console.print("[red]Failed to set location[/red]")
        sys.exit(1)
    console.print(f"[green]Location set to {latitude}, {longitude}[/green]")


@location.command("reset")
@click.option("--udid", "-u", help="Device UDID")
def location_reset(udid: Optional[str]):
    """Stop simulating a location."""
    gateway = _gateway()
    target = _get_target_device(gateway, udid)
    if not LocationSimulator(gateway, target.identifier).reset_location():
        console.print("[red]Failed to reset location[/red]")
        sys.exit(1)
    console.print("[green]Location reset[/green]")


@cli.command("apps")
@click.option("--udid", "-u", help="Device UDID")
def home_screen_apps(udid: Optional[str]):
    """List home screen apps."""
    gateway = _gateway()
    target = _get_target_device(gateway, udid)
    try:
        apps = gateway.home_screen_apps(target.identifier)
        pages = gateway.home_screen_pages(target.identifier)
    except ITweakError as e:
        console.print(f"[red]Error processing apps: {e}[/red]")
        sys.exit(1)

    table = Table(title=f"Home Screen Apps ({pages} pages)")
    table.add_column("Bundle ID", style="cyan")
    table.add_column("Name", style="white")
    for bundle_id, name in sorted(apps.items()):
        table.add_row(bundle_id, name)
    console.print(table)


@cli.command("apply")
@click.option("--udid", "-u", help="Device UDID")
@click.option("--tweak", "-t", "tweak_names", multiple=True, required=True, help="Tweak to enable (repeatable)")
def apply(udid: Optional[str], tweak_names: List[str]):
    """Stage the chosen tweaks and restore them to the device."""
    try:
        tweaks = [Tweak.from_name(name) for name in tweak_names]
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--tweak")

    gateway, session = _open_session(udid)
    if not session.available:
        console.print(f"[red]{session.device.display_name} is not supported[/red]")
        sys.exit(1)

    for tweak in tweaks:
        session.set_enabled(tweak, True)

    def progress(message: str, current: int, total: int):
        console.print(f"[cyan][{current}/{total}][/cyan] {message}")

    pipeline = TweakPipeline(gateway, _layout())
    try:
        result = pipeline.run(session, progress_callback=progress)
    except OperationInProgressError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if not result.ok:
        console.print(f"[red]Apply failed during '{result.stage.value}': {result.error}[/red]")
        sys.exit(1)
    console.print(f"[bold green]Applied {len(result.staged)} tweak(s). The device will reboot.[/bold green]")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
