"""
deskprov — CLI entrypoint.

Usage:
    python -m deskprov.main --help
    deskprov run --dry-run
    deskprov plan
    deskprov config check
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from deskprov import __version__
from deskprov.core.config.loader import ConfigError, load_config
from deskprov.core.errors import FatalPrecondition
from deskprov.core.models.config import DesktopConfig
from deskprov.core.observability.logging_config import setup_logging

GPU_CHOICES = ["auto", "nvidia", "amd", "intel", "none"]

_STATUS_STYLE = {
    "ok": ("✓", "green"),
    "installed": ("✓", "green"),
    "planned": ("…", "cyan"),
    "skipped": ("⊘", "yellow"),
    "skipped (empty)": ("⊘", "yellow"),
    "not run": ("·", "white"),
    "failed": ("✗", "red"),
}


def _load(ctx: click.Context) -> DesktopConfig:
    """Load the configuration or exit 2 with the reason."""
    try:
        return load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(2)


@click.group()
@click.version_option(version=__version__, prog_name="deskprov")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to desktop.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """deskprov — provision a minimal suckless X11 desktop."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("DESKPROV_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("DESKPROV_LOG_FILE"),
        log_file_level=os.environ.get("DESKPROV_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


# ── run ─────────────────────────────────────────────────────────


def _print_report(report, verbose: bool = False) -> None:
    mode = "[dry-run] " if report.dry_run else ""
    click.secho(f"\n⚡ {mode}Provisioning summary — {report.run_id}", fg="cyan", bold=True)
    click.echo(f"   GPU: {report.gpu_vendor}")

    for section, items in report.sections().items():
        if not items:
            continue
        click.echo()
        click.secho(f"   {section.capitalize()}:", fg="white", bold=True)
        for item in items:
            icon, color = _STATUS_STYLE.get(item.status, ("•", "white"))
            click.secho(f"     {icon} {item.name} ", fg=color, nl=False)
            click.echo(f"({item.status})")
            if item.detail and (verbose or item.status == "failed"):
                click.echo(f"       │ {item.detail}")

    if report.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in report.warnings:
            click.echo(f"   • {warn}")

    click.echo()
    if report.aborted_by:
        click.secho(f"❌ Aborted: {report.aborted_by}", fg="red", bold=True)
    else:
        color = {"ok": "green", "partial": "yellow"}.get(report.status, "red")
        click.secho(f"   Result: {report.status}", fg=color, bold=True)

    if report.next_steps:
        click.echo()
        click.secho("   Next steps:", fg="white", bold=True)
        for hint in report.next_steps:
            click.echo(f"     • {hint}")
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--dry-run", is_flag=True, help="Plan and validate but change nothing.")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Continue past advisory warnings without asking.")
@click.option("--gpu", "gpu", type=click.Choice(GPU_CHOICES), default=None, help="Override GPU detection.")
@click.option("--mock", is_flag=True, help="Use mock adapter (no real execution).")
@click.pass_context
def run(
    ctx: click.Context,
    as_json: bool,
    dry_run: bool,
    assume_yes: bool,
    gpu: str | None,
    mock: bool,
) -> None:
    """Provision the desktop.

    Examples:

        deskprov run --dry-run

        deskprov run --yes --gpu intel
    """
    from deskprov.core.use_cases.run import run_provisioning

    config = _load(ctx)

    def _confirm(advisories: list[str]) -> bool:
        click.secho("⚠️  Before starting:", fg="yellow", err=True)
        for advisory in advisories:
            click.echo(f"   • {advisory}", err=True)
        return click.confirm("Continue anyway?", default=False, err=True)

    try:
        result = run_provisioning(
            config,
            dry_run=dry_run,
            mock_mode=mock,
            gpu_override=gpu,
            confirm=None if assume_yes else _confirm,
        )
    except FatalPrecondition as e:
        if as_json:
            click.echo(json.dumps({"error": str(e), "problems": e.problems, "exit_code": e.exit_code}, indent=2))
        else:
            click.secho("❌ Cannot provision this host:", fg="red", bold=True, err=True)
            for problem in e.problems:
                click.echo(f"   • {problem}", err=True)
        sys.exit(e.exit_code)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.cancelled:
        click.secho("⊘ Cancelled — nothing was changed", fg="yellow")
        sys.exit(result.exit_code)

    assert result.report is not None
    _print_report(result.report, verbose=ctx.obj.get("verbose", False))
    sys.exit(result.exit_code)


# ── plan / gpu ──────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--gpu", "gpu", type=click.Choice(GPU_CHOICES), default=None, help="Override GPU detection.")
@click.pass_context
def plan(ctx: click.Context, as_json: bool, gpu: str | None) -> None:
    """Show the steps a run would take."""
    from deskprov.core.engine.planner import describe_step
    from deskprov.core.use_cases.run import plan_for

    config = _load(ctx)
    the_plan = plan_for(config, gpu_override=gpu)

    if as_json:
        click.echo(json.dumps(the_plan.model_dump(mode="json"), indent=2))
        return

    click.secho(f"\n📋 Plan: {the_plan.total_steps} steps (GPU: {the_plan.gpu_vendor})", fg="cyan", bold=True)
    category = None
    for step in the_plan.steps:
        if step.category != category:
            category = step.category
            click.echo()
            click.secho(f"   {category.capitalize()}:", fg="white", bold=True)
        click.echo(f"     • {describe_step(step)}")
    if the_plan.skipped_groups:
        click.echo()
        click.secho(f"   ⊘ Empty groups skipped: {', '.join(the_plan.skipped_groups)}", fg="yellow")
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option(
    "--from-file",
    "listing_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Classify a saved lspci listing instead of this machine.",
)
@click.pass_context
def gpu(ctx: click.Context, as_json: bool, listing_file: Path | None) -> None:
    """Detect the GPU vendor."""
    from deskprov.core.use_cases.detect import detect_gpu

    result = detect_gpu(_load(ctx), listing_file=listing_file)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.secho(f"🔍 GPU: {result.vendor}", fg="cyan", bold=True)
    if result.detected != result.vendor:
        click.echo(f"   detected {result.detected}, overridden by configuration")
    click.echo(f"   source: {result.source}")
    if result.packages:
        click.echo(f"   packages: {' '.join(result.packages)}")


# ── status / history ────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show what has been provisioned."""
    from deskprov.core.use_cases.status import get_status

    result = get_status(_load(ctx))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.secho("\n📋 deskprov status", fg="cyan", bold=True)
    click.echo(f"   State: {result.state_path}")
    state = result.state
    if state and state.gpu_vendor:
        click.echo(f"   GPU: {state.gpu_vendor}")

    click.echo()
    click.secho("   Tools:", fg="white", bold=True)
    for tool in result.tools:
        icon, color = _STATUS_STYLE.get(tool.phase, ("•", "white"))
        click.secho(f"     {icon} {tool.name} ", fg=color, nl=False)
        click.echo(f"({tool.phase})  → {tool.source_dir}")
        if tool.last_error:
            click.echo(f"       │ {tool.last_error}")

    if state and state.last_run.run_id:
        run_rec = state.last_run
        click.echo()
        click.secho("   Last run:", fg="white", bold=True)
        color = {"ok": "green", "partial": "yellow"}.get(run_rec.status, "red")
        click.echo(f"     {run_rec.run_id} — ", nl=False)
        click.secho(run_rec.status, fg=color)
        click.echo(
            f"     {run_rec.steps_succeeded} ok, {run_rec.steps_skipped} skipped, "
            f"{run_rec.steps_failed} failed"
        )
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("-n", "count", default=20, show_default=True, help="Number of runs to show.")
@click.pass_context
def history(ctx: click.Context, as_json: bool, count: int) -> None:
    """Show recent runs from the run ledger."""
    from deskprov.core.use_cases.status import get_history

    entries = get_history(_load(ctx), n=count)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.echo("No runs recorded yet.")
        return

    for entry in entries:
        color = {"ok": "green", "partial": "yellow"}.get(entry.status, "red")
        mode = " [dry-run]" if entry.dry_run else ""
        click.echo(f"{entry.timestamp}  {entry.run_id}{mode}  ", nl=False)
        click.secho(entry.status, fg=color, nl=False)
        click.echo(f"  ({entry.steps_succeeded}/{entry.steps_total} ok, {entry.steps_failed} failed)")


# ── config ──────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Desktop configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate desktop.yml configuration."""
    from deskprov.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 2)

    if result.valid:
        assert result.config is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   Source: {result.config_path or 'built-in defaults'}")
        click.echo(f"   Window manager: {result.config.window_manager}")
        click.echo(f"   Groups: {len(result.config.groups)}")
        click.echo(f"   Tools: {len(result.config.tools)}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    click.echo()
    if not result.valid:
        sys.exit(2)


@config.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing file.")
@click.pass_context
def config_init(ctx: click.Context, force: bool) -> None:
    """Write the built-in defaults to desktop.yml."""
    from deskprov.core.config.loader import default_config_yaml, user_config_path

    target: Path = ctx.obj.get("config_path") or user_config_path()
    if target.exists() and not force:
        click.secho(f"❌ {target} already exists (use --force to overwrite)", fg="red")
        sys.exit(1)

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(default_config_yaml(), encoding="utf-8")
    click.secho(f"✅ Wrote {target}", fg="green")


if __name__ == "__main__":
    cli()
