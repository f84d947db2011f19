"""
Plugin Manifest — CLI entrypoint.

Usage:
    plugin-manifest --help
    plugin-manifest install -m Blog --with-dependencies
    plugin-manifest list
    plugin-manifest status -d
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from plugin_manifest import __version__
from plugin_manifest.core.observability.logging_config import resolve_level, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="plugin-manifest")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to manifest.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Plugin Manifest — install module assets into your application."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        quiet_third_party=not debug,
    )


# ── install ─────────────────────────────────────────────────────


def _choose(session, prompt: str, options: list[str], default: str = "") -> str | None:
    """Pick one of ``options`` by number or by name."""
    for i, option in enumerate(options, start=1):
        session.out(f"  {i}. {option}")
    answer = session.ask(prompt, default=default).strip()
    if answer.isdigit() and 1 <= int(answer) <= len(options):
        return options[int(answer) - 1]
    return answer if answer in options else None


@cli.command()
@click.option("--module", "-m", "module", default=None, help="Module to install.")
@click.option("--tag", "-t", default=None, help="Only install assets with this tag.")
@click.option("--force", "-f", is_flag=True, help="Overwrite existing files and repeat completed operations.")
@click.option("--existing", "-e", is_flag=True, help="Update files that already exist.")
@click.option("--all", "-a", "install_all", is_flag=True, help="Install every discovered module.")
@click.option("--dry-run", "-d", is_flag=True, help="Show what would change without writing.")
@click.option("--with-dependencies", is_flag=True, help="Install declared dependencies too.")
@click.option("--all-deps", is_flag=True, help="Install optional dependencies without prompting.")
@click.option("--no-dependencies", is_flag=True, help="Never install dependencies.")
@click.option("--update-dependencies", is_flag=True, help="Reinstall dependencies, updating existing files.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(
    ctx: click.Context,
    module: str | None,
    tag: str | None,
    force: bool,
    existing: bool,
    install_all: bool,
    dry_run: bool,
    with_dependencies: bool,
    all_deps: bool,
    no_dependencies: bool,
    update_dependencies: bool,
    as_json: bool,
) -> None:
    """Install a module's assets (config, migrations, env vars, ...)."""
    from plugin_manifest.core.engine.installer import InstallOptions
    from plugin_manifest.core.use_cases.install import run_install
    from plugin_manifest.core.use_cases.listing import list_modules
    from plugin_manifest.ui.cli.formatting import echo_module_report, echo_run_summary
    from plugin_manifest.ui.cli.session import ClickSession

    config_path = ctx.obj.get("config_path")
    session = ClickSession(err=as_json)

    if not module and not install_all:
        listing = list_modules(config_path=config_path)
        if listing.error:
            click.secho(f"❌ {listing.error}", fg="red", err=True)
            sys.exit(1)
        if not listing.modules:
            click.secho("No modules with manifests found.", fg="yellow", err=True)
            sys.exit(1)

        session.out("Available modules:")
        module = _choose(session, "Select module (number or name)", [m.name for m in listing.modules])
        if module is None:
            click.secho("❌ Unknown module", fg="red", err=True)
            sys.exit(1)

        chosen = next(m for m in listing.modules if m.name == module)
        session.out(f"Tags in {module}:")
        tag = _choose(session, "Select tag (number or name)", ["all", *chosen.tags], default="all")
        if tag is None:
            click.secho("❌ Unknown tag", fg="red", err=True)
            sys.exit(1)

    options = InstallOptions(
        force=force,
        existing=existing,
        dry_run=dry_run,
        with_dependencies=with_dependencies,
        all_deps=all_deps,
        no_dependencies=no_dependencies,
        update_dependencies=update_dependencies,
        session=session,
    )

    result = run_install(
        config_path=config_path,
        modules=[module] if module else None,
        tag=tag,
        install_all=install_all,
        options=options,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    if dry_run:
        click.secho("🔍 Dry run: no files will be changed", fg="cyan")

    for report in result.reports:
        echo_module_report(report)
    echo_run_summary(result)

    if not result.ok:
        sys.exit(1)


# ── list ────────────────────────────────────────────────────────


@cli.command("list")
@click.option("--module", "-m", "module", default=None, help="Only this module.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_cmd(ctx: click.Context, module: str | None, as_json: bool) -> None:
    """List modules, their tags and assets."""
    from plugin_manifest.core.use_cases.listing import list_modules

    result = list_modules(config_path=ctx.obj.get("config_path"), module=module)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    if not result.modules:
        click.secho("No modules with manifests found.", fg="yellow")
        return

    for listing in result.modules:
        click.echo()
        click.secho(f"📦 {listing.name}", fg="cyan", bold=True, nl=False)
        click.echo(f"  ({listing.asset_count} assets)")
        for tag, assets in listing.tags.items():
            click.secho(f"   [{tag}]", fg="white", bold=True)
            for asset in assets:
                if asset.completed:
                    click.secho("     ✓ ", fg="green", nl=False)
                else:
                    click.secho("     ○ ", fg="white", nl=False)
                reinstall = " (reinstallable)" if asset.completed and asset.can_reinstall else ""
                click.echo(f"{asset.operation_type:<12} {asset.label}{reinstall}")


# ── status ──────────────────────────────────────────────────────


@cli.command()
@click.option("--module", "-m", "module", default=None, help="Only this module.")
@click.option("--all", "-a", "show_all", is_flag=True, help="Every known module (default).")
@click.option("--dependencies", "-d", "show_dependencies", is_flag=True, help="Include recorded dependencies.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(
    ctx: click.Context,
    module: str | None,
    show_all: bool,
    show_dependencies: bool,
    as_json: bool,
) -> None:
    """Show what has been installed, according to the ledger."""
    from plugin_manifest.core.use_cases.status import get_status

    result = get_status(
        config_path=ctx.obj.get("config_path"),
        module=None if show_all else module,
        include_dependencies=show_dependencies,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    quiet = ctx.obj.get("quiet", False)
    if not quiet:
        project_name = result.project.name if result.project else ""
        click.secho(f"\n📋 {project_name}", fg="cyan", bold=True)
        click.echo(f"   Ledger: {result.ledger_path}")
        click.echo()

    click.secho(
        f"   Modules: {result.installed_count} installed of {len(result.modules)}",
        fg="white",
        bold=True,
    )
    for name, info in result.modules.items():
        if info.get("installed"):
            counts = ", ".join(f"{op}: {n}" for op, n in info["operation_counts"].items())
            click.secho(f"     ✓ {name}", fg="green", nl=False)
            click.echo(f"  [{counts}]  last: {info.get('last_installed')}")
        else:
            click.echo(f"     ○ {name}  (not installed)")

    if result.dependencies is not None:
        click.echo()
        click.secho("   Dependencies:", fg="white", bold=True)
        if not result.dependencies:
            click.echo("     (none recorded)")
        for parent, deps in result.dependencies.items():
            for dep, edge in deps.items():
                kind = "required" if edge.get("required") else "optional"
                click.echo(f"     {parent} → {dep} ({kind})")


# ── Register sub-commands from plugin_manifest/ui/cli/ ─────────────

from plugin_manifest.ui.cli.dependencies import dependencies  # noqa: E402

cli.add_command(dependencies)


if __name__ == "__main__":
    cli()
