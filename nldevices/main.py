"""
nldevicessetup — CLI entrypoint.

Usage:
    nldevices --help
    nldevices register iem.lan dante-node
    nldevices run iem.lan network-optimize
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from nldevices import __version__
from nldevices.core.observability.logging_config import resolve_level, setup_from_env
from nldevices.ui.cli.common import fail, resolve_settings

if TYPE_CHECKING:
    from nldevices.core.engine.reconciler import ExecutionPlan


@click.group()
@click.version_option(version=__version__, prog_name="nldevices")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to nldevices.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """nldevicessetup — idempotent device configuration for AV production."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj.setdefault("settings", None)

    # ── Logging setup (once, at process start) ──────────────────
    setup_from_env(resolve_level(verbose=verbose, quiet=quiet, debug=debug))


@cli.command()
@click.argument("hostname")
@click.argument("profile", required=False)
@click.argument("user", required=False)
@click.option("--port", "-p", type=int, default=None, help="SSH port.")
@click.option("--local", is_flag=True, help="Manage this machine directly, without SSH.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def register(
    ctx: click.Context,
    hostname: str,
    profile: str | None,
    user: str | None,
    port: int | None,
    local: bool,
    as_json: bool,
) -> None:
    """Register a device (or refresh an existing one).

    Examples:

        nldevices register iem.lan dante-node

        nldevices register studio-pc base-workstation admin --port 2222
    """
    from nldevices.core.use_cases.register import register_device

    result = register_device(
        hostname,
        resolve_settings(ctx),
        profile=profile,
        ssh_user=user,
        ssh_port=port,
        local=local,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error:
            sys.exit(1)
        return

    device = result.device
    if result.error or device is None:
        fail(result.error or f"Registration of {hostname} failed")

    verb = "Registered" if result.created else "Refreshed"
    click.secho(f"✓ {verb} {device.hostname}", fg="green", bold=True)
    click.echo(f"   OS:      {device.os} ({device.os_version})")
    click.echo(f"   Profile: {device.profile}")
    click.echo(f"   CPU:     {device.hardware.cpu}, {device.hardware.memory_gb} GB")
    if result.commit and result.commit.failed:
        click.secho(f"⚠️  Not committed: {result.commit.error}", fg="yellow")


@cli.command()
@click.argument("hostname")
@click.argument("recipe")
@click.option("--dry-run", is_flag=True, help="Plan but don't apply.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def run(
    ctx: click.Context,
    hostname: str,
    recipe: str,
    dry_run: bool,
    as_json: bool,
) -> None:
    """Apply a recipe to a device.

    Only actions whose desired state is not already present are applied.
    Re-running after a partial failure retries just the failed actions.

    Examples:

        nldevices run iem.lan network-optimize

        nldevices run iem.lan network-optimize --dry-run
    """
    from nldevices.core.use_cases.run import run_recipe

    result = run_recipe(hostname, recipe, resolve_settings(ctx), dry_run=dry_run or None)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if not result.ok:
            sys.exit(1)
        return

    outcome = result.outcome
    if outcome is None:
        fail(result.error or "run failed")

    if outcome.session is None:
        _print_plan(outcome.plan)
        return

    session = outcome.session
    click.secho(f"\n⚡ {recipe} → {hostname}", fg="cyan", bold=True)
    click.echo(f"   Session: {session.session_id}")
    click.echo()

    for record in session.actions:
        if record.result == "success":
            click.secho(f"   ✓ {record.action}", fg="green")
            if ctx.obj.get("verbose") and record.output:
                for line in record.output.split("\n")[:10]:
                    click.echo(f"     │ {line}")
        elif record.result == "failed":
            click.secho(f"   ✗ {record.action}", fg="red")
            for line in record.output.split("\n")[:5]:
                click.echo(f"     │ {line}")
        else:
            click.secho(f"   ⊘ {record.action} ", fg="yellow", nl=False)
            click.echo(f"({record.output})")

    if session.error:
        click.echo()
        click.secho(f"❌ {session.error}", fg="red")

    summary = session.summary
    status_color = {"success": "green", "partial": "yellow", "failed": "red"}.get(
        session.status, "white"
    )
    click.echo()
    click.secho(
        f"   Result: {session.status} — {summary.succeeded} succeeded, "
        f"{summary.failed} failed, {summary.skipped} skipped",
        fg=status_color,
        bold=True,
    )

    failed = session.failed_actions
    if failed:
        click.echo(f"   Failed: {', '.join(failed)}")
        click.echo(f"   Re-run to retry: nldevices run {hostname} {recipe}")

    for commit in outcome.commits:
        if commit.failed:
            click.secho(f"⚠️  Not committed: {commit.error}", fg="yellow")
            break

    click.echo()
    if not result.ok:
        sys.exit(1)


def _print_plan(plan: ExecutionPlan) -> None:
    markers = {
        "needs-apply": ("→", "cyan"),
        "already-satisfied": ("⊘", "green"),
        "unsupported-on-platform": ("⊘", "yellow"),
    }
    click.secho(f"\n⚡ [dry-run] {plan.recipe} → {plan.hostname} ({plan.platform})", fg="cyan", bold=True)
    click.echo()
    for entry in plan.entries:
        marker, color = markers.get(str(entry.disposition), ("?", "white"))
        click.secho(f"   {marker} {entry.name} ", fg=color, nl=False)
        click.echo(f"({entry.reason})")
    click.echo()
    click.echo(f"   {len(plan.to_apply)} action(s) would be applied. Nothing was changed.")
    click.echo()


@cli.command()
@click.argument("hostname")
@click.argument("limit", type=int, required=False, default=10)
@click.option("--commits", is_flag=True, help="Show the git log instead of session records.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def history(ctx: click.Context, hostname: str, limit: int, commits: bool, as_json: bool) -> None:
    """Show recent sessions of a device."""
    from nldevices.core.use_cases.history import get_history

    result = get_history(hostname, resolve_settings(ctx), limit=limit, commits=commits)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error:
            sys.exit(1)
        return

    if result.error:
        fail(result.error)

    if commits:
        if not result.commits:
            click.secho("No commits found.", fg="yellow")
        for line in result.commits:
            sha, _, message = line.partition(" ")
            click.secho(f"  {sha}", fg="yellow", nl=False)
            click.echo(f"  {message}")
        return

    if not result.sessions:
        click.secho(f"No sessions recorded for {hostname}.", fg="yellow")
        return

    click.secho(f"\n🕑 {hostname}", fg="cyan", bold=True)
    colors = {"success": "green", "partial": "yellow", "failed": "red", "in_progress": "white"}
    for session in result.sessions:
        s = session.summary
        click.echo(f"   {session.session_id}  {session.recipe:<24} ", nl=False)
        click.secho(f"{session.status:<12}", fg=colors.get(session.status, "white"), nl=False)
        click.echo(f" {s.succeeded}✓ {s.failed}✗ {s.skipped}⊘")
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def profiles(ctx: click.Context, as_json: bool) -> None:
    """List device profiles (after parent inheritance)."""
    from nldevices.core.use_cases.inventory import list_profiles

    found = list_profiles(resolve_settings(ctx))

    if as_json:
        click.echo(json.dumps([p.model_dump(mode="json") for p in found], indent=2))
        return

    if not found:
        click.secho("No profiles found.", fg="yellow")
        return

    click.secho("\n🏷  Profiles", fg="cyan", bold=True)
    for profile in found:
        parent = f" (extends {profile.parent})" if profile.parent else ""
        click.echo(f"   {profile.name}{parent}")
        if profile.description:
            click.echo(f"     {profile.description}")
        if profile.tags:
            click.echo(f"     tags: {', '.join(profile.tags)}")
    click.echo()


# ── Register sub-command groups from nldevices/ui/cli/ ────────────

from nldevices.ui.cli.devices import devices  # noqa: E402
from nldevices.ui.cli.recipes import list_cmd as recipes_list  # noqa: E402
from nldevices.ui.cli.recipes import recipes  # noqa: E402
from nldevices.ui.cli.recipes import show as recipes_show  # noqa: E402

cli.add_command(devices)
cli.add_command(recipes)
cli.add_command(recipes_list, name="list")
cli.add_command(recipes_show, name="show")


if __name__ == "__main__":
    cli()
