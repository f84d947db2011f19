"""
CLI command for inspecting module dependencies.

Usage::

    plugin-manifest dependencies
    plugin-manifest dependencies -m Blog --tree
    plugin-manifest dependencies -m Blog --status
"""

from __future__ import annotations

import json
import sys

import click


@click.command()
@click.option("--module", "-m", "module", default=None, help="Only this module.")
@click.option("--tree", "-t", is_flag=True, help="Show the full resolved install order.")
@click.option("--status", "-s", "show_status", is_flag=True, help="Show what the ledger has recorded.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def dependencies(
    ctx: click.Context,
    module: str | None,
    tree: bool,
    show_status: bool,
    as_json: bool,
) -> None:
    """Show declared dependencies between modules."""
    from plugin_manifest.core.use_cases.dependencies import get_dependencies

    result = get_dependencies(config_path=ctx.obj.get("config_path"), module=module, tree=tree)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    if not result.modules:
        click.secho("No modules declare dependencies.", fg="yellow")
        return

    failed = False
    for report in result.modules:
        click.echo()
        click.secho(f"📦 {report.module}", fg="cyan", bold=True)

        if not report.direct:
            click.echo("   (no dependencies)")
        for row in report.direct:
            kind = "required" if row.required else "optional"
            color = "red" if row.required else "white"
            click.echo("   • ", nl=False)
            click.secho(f"{row.name}", bold=True, nl=False)
            click.secho(f" [{kind}]", fg=color, nl=False)
            tags = f" tags: {', '.join(row.tags)}" if row.tags else ""
            click.echo(f"{tags}  {row.reason}")
            if not row.available:
                click.secho("       not available", fg="yellow")
            elif not row.condition_met:
                click.secho("       condition not met", fg="yellow")
            if show_status:
                if row.recorded:
                    click.secho("       ✓ installed", fg="green")
                else:
                    click.echo("       ○ not installed")

        if show_status and report.dependents:
            click.echo(f"   Required by: {', '.join(report.dependents)}")

        if report.error:
            failed = True
            click.secho(f"   ❌ {report.error}", fg="red")
        elif report.install_order is not None:
            click.secho("   Install order:", fg="white", bold=True)
            for position, name in enumerate(report.install_order, start=1):
                click.echo(f"     {position}. {name}")

    if failed:
        sys.exit(1)
