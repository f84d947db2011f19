"""
Terminal rendering of install results.
"""

from __future__ import annotations

import click

from plugin_manifest.core.models.result import InstallResult
from plugin_manifest.core.use_cases.install import InstallRunResult, ModuleReport

_STYLE: dict[str, tuple[str, str]] = {
    "installed": ("✓", "green"),
    "batch-installed": ("✓", "green"),
    "appended": ("✓", "green"),
    "merged": ("✓", "green"),
    "would-install": ("○", "cyan"),
    "would-append": ("○", "cyan"),
    "would-merge": ("○", "cyan"),
    "skipped": ("–", "yellow"),
    "partial": ("◐", "yellow"),
    "cancelled": ("✗", "yellow"),
    "error": ("✗", "red"),
}


def echo_result(result: InstallResult, indent: str = "  ") -> None:
    """One line per result; batch children are indented underneath."""
    icon, color = _STYLE.get(result.status, ("•", "white"))
    target = result.destination or result.source
    click.secho(f"{indent}{icon} {result.status:<15}", fg=color, nl=False)
    click.echo(f" {target}" + (f"  ({result.message})" if result.message else ""))
    for child in result.batch_results or []:
        echo_result(child, indent + "    ")


def echo_module_report(report: ModuleReport) -> None:
    click.echo()
    click.secho(f"📦 {report.module}", fg="cyan", bold=True)
    if report.error:
        click.secho(f"   ❌ {report.error}", fg="red")
        return

    current_tag = None
    for outcome in report.outcomes:
        if outcome.tag != current_tag:
            current_tag = outcome.tag
            click.secho(f"   [{current_tag}]", fg="white", bold=True)
        echo_result(outcome.result, indent="     ")


def echo_run_summary(run: InstallRunResult) -> None:
    installed = sum(r.installed for r in run.reports)
    skipped = sum(r.skipped for r in run.reports)
    failed = sum(r.failed for r in run.reports) + sum(1 for r in run.reports if r.error)

    click.echo()
    prefix = "🔍 Dry run: " if run.dry_run else ""
    color = "green" if failed == 0 else "red"
    icon = "✅" if failed == 0 else "❌"
    click.secho(
        f"{icon} {prefix}{installed} installed, {skipped} skipped, {failed} failed",
        fg=color,
        bold=True,
    )
