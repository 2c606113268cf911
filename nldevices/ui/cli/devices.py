"""
CLI commands for the device inventory.

Thin wrappers over ``nldevices.core.use_cases.inventory``.
"""

from __future__ import annotations

import json

import click

from nldevices.ui.cli.common import fail, resolve_settings


@click.group()
def devices() -> None:
    """Devices — list, inspect and remove registered devices."""


@devices.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_cmd(ctx: click.Context, as_json: bool) -> None:
    """List registered devices."""
    from nldevices.core.use_cases.inventory import list_devices

    result = list_devices(resolve_settings(ctx))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if not result.devices and not result.broken:
        click.secho("No devices registered.", fg="yellow")
        return

    click.secho("\n🖥  Registered devices", fg="cyan", bold=True)
    for device in result.devices:
        click.echo(f"   {device.hostname:<24} {device.os:<8} {device.profile:<20} {device.ip}")
    for hostname, error in result.broken.items():
        click.secho(f"   ✗ {hostname:<22} ", fg="red", nl=False)
        click.echo(error)
    click.echo()


@devices.command()
@click.argument("hostname")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def show(ctx: click.Context, hostname: str, as_json: bool) -> None:
    """Show a device record and its applied state."""
    from nldevices.core.use_cases.inventory import show_device

    result = show_device(hostname, resolve_settings(ctx))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    device, state = result.device, result.state
    if result.error or device is None or state is None:
        fail(result.error or f"Device '{hostname}' could not be loaded")

    click.secho(f"\n🖥  {device.hostname}", fg="cyan", bold=True)
    click.echo(f"   OS:        {device.os} {device.os_version}")
    click.echo(f"   IP:        {device.ip or '-'}")
    click.echo(f"   Profile:   {device.profile}")
    click.echo(f"   Tags:      {', '.join(device.tags) or '-'}")
    click.echo(f"   Login:     {device.ssh_user}@{device.hostname}:{device.ssh_port} ({device.connection})")
    click.echo(f"   Hardware:  {device.hardware.cpu}, {device.hardware.memory_gb} GB")
    if device.hardware.nics:
        click.echo(f"   NICs:      {', '.join(device.hardware.nics)}")
    click.echo(f"   Last seen: {device.last_seen.isoformat()}")

    click.echo()
    click.secho("   Applied recipes:", fg="white", bold=True)
    if not state.applied_recipes:
        click.echo("     (none)")
    for entry in state.applied_recipes:
        click.echo(f"     • {entry.name}  {entry.applied_at.isoformat()}  [{entry.session_id}]")

    populated = {k: v for k, v in state.optimizations.items() if v}
    if populated:
        click.echo()
        click.secho("   Optimizations:", fg="white", bold=True)
        for category, values in populated.items():
            click.echo(f"     {category}:")
            for key, value in values.items():
                click.echo(f"       {key} = {value}")
    if state.software:
        click.echo()
        click.secho("   Software:", fg="white", bold=True)
        for name, info in state.software.items():
            click.echo(f"     • {name} ({info.get('manager', '?')})")
    click.echo()


@devices.command()
@click.argument("hostname")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def remove(ctx: click.Context, hostname: str, yes: bool) -> None:
    """Remove a device and its history from the inventory."""
    from nldevices.core.use_cases.inventory import remove_device

    if not yes:
        click.confirm(f"Remove {hostname} and all of its history?", abort=True)

    result = remove_device(hostname, resolve_settings(ctx))
    if result.error:
        fail(result.error)

    click.secho(f"✓ Removed {hostname}", fg="green")
    if result.commit and result.commit.failed:
        click.secho(f"⚠️  Not committed: {result.commit.error}", fg="yellow")
