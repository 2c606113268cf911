"""
CLI commands for recipes.

``recipes list`` and ``recipes show`` are also exposed at the top level
as ``list`` and ``show``.
"""

from __future__ import annotations

import json

import click

from nldevices.ui.cli.common import fail, resolve_settings


@click.group()
def recipes() -> None:
    """Recipes — list and inspect recipe definitions."""


@recipes.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_cmd(ctx: click.Context, as_json: bool) -> None:
    """List available recipes."""
    from nldevices.core.use_cases.inventory import list_recipes

    summaries = list_recipes(resolve_settings(ctx))

    if as_json:
        click.echo(json.dumps([s.model_dump(mode="json") for s in summaries], indent=2))
        return

    if not summaries:
        click.secho("No recipes found.", fg="yellow")
        return

    click.secho("\n📜 Recipes", fg="cyan", bold=True)
    for summary in summaries:
        if summary.error:
            click.secho(f"   ✗ {summary.name:<26}", fg="red", nl=False)
            click.echo(f" {summary.error.splitlines()[0]}")
            continue
        platforms = ",".join(summary.platforms)
        click.echo(f"   {summary.name:<28} [{platforms}] {summary.description}")
    click.echo()


@recipes.command()
@click.argument("name")
@click.option("--parsed", is_flag=True, help="Show the validated per-platform view.")
@click.pass_context
def show(ctx: click.Context, name: str, parsed: bool) -> None:
    """Show a recipe definition."""
    from nldevices.core.use_cases.inventory import show_recipe

    result = show_recipe(name, resolve_settings(ctx), parsed=parsed)
    if result.error:
        fail(result.error)

    if not parsed:
        click.echo(result.text, nl=not result.text.endswith("\n"))
        return

    recipe = result.recipe
    if recipe is None:
        fail(f"Recipe '{name}' could not be parsed")
    click.secho(f"\n📜 {recipe.name}", fg="cyan", bold=True)
    if recipe.description:
        click.echo(f"   {recipe.description}")
    click.echo(f"   Platforms: {', '.join(recipe.platforms) or '-'}")
    click.echo()
    for action in recipe.actions:
        click.secho(f"   • {action.name}", bold=True)
        if action.description:
            click.echo(f"     {action.description}")
        for platform, spec in action.specs.items():
            verify = " (verified)" if spec.verify else ""
            click.echo(f"     {platform:<8} {spec.module}{verify}")
    click.echo()
