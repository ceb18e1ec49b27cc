#!/usr/bin/env python3
"""
capture-graph CLI - capture related platform records and write them to a bundle
"""

import logging

import click
from rich.console import Console
from rich.table import Table

from .builder import CaptureGraphBuilder
from .errors import CaptureError
from .settings import settings

console = Console()


def _configure_logging() -> None:
    level = (settings.log_level or "INFO").upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def build_backend():
    """Backend selected by CAPTURE_GRAPH_BACKEND"""
    if settings.backend == "memory":
        from .store.memory import MemoryBackend

        return MemoryBackend.from_settings(settings)
    if settings.backend == "arango":
        from .store.arango import ArangoBackend

        return ArangoBackend.from_settings(settings)
    raise click.BadParameter(f"unknown backend {settings.backend!r}", param_hint="CAPTURE_GRAPH_BACKEND")


def _parse_params(pairs):
    params = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got {pair!r}", param_hint="--param")
        params[key.strip()] = value.strip()
    return params


def _print_captured(builder):
    table = Table(title=f"Captured objects ({builder.count()})")
    table.add_column("Container", style="cyan")
    table.add_column("sys_id", style="white")
    for ref in sorted(builder.capture_set, key=lambda r: (r.container_name, r.store_identifier)):
        table.add_row(ref.container_name, ref.store_identifier)
    console.print(table)


def _print_warnings(builder):
    for warning in builder.warnings:
        console.print(f"[yellow]WARNING:[/yellow] {warning}")


def _print_commit(result):
    status = "created" if result.created else "existing"
    console.print(
        f"[green]Wrote {result.written}/{result.attempted}[/green] objects to {status} bundle "
        f"'{result.bundle.name}' ({result.bundle.sys_id})"
    )
    for skipped in result.skipped:
        console.print(f"[yellow]Skipped[/yellow] {skipped.ref}: {skipped.reason}")
    for warning in result.warnings:
        console.print(f"[red]WARNING:[/red] {warning}")


def _finish(builder, bundle, dry_run):
    _print_warnings(builder)
    if dry_run or not bundle:
        _print_captured(builder)
        console.print("[dim]Dry run: nothing written[/dim]")
        return
    result = builder.commit(bundle)
    _print_commit(result)
    if not result.restored:
        raise SystemExit(2)


@click.group()
def cli():
    """capture-graph - build bundles from graphs of related records"""
    pass


@cli.command()
def version():
    """Show the installed version"""
    from . import __version__

    click.echo(__version__)


@cli.command()
def strategies():
    """List the capture strategies"""
    from .traversal.strategies import STRATEGIES

    table = Table(title="Capture strategies")
    table.add_column("Strategy", style="cyan")
    table.add_column("Parameters", style="magenta")
    table.add_column("Captures", style="white", overflow="fold")
    for strategy in STRATEGIES.values():
        table.add_row(strategy.name, ", ".join(strategy.required), strategy.description)
    console.print(table)


@cli.command()
@click.argument("strategy")
@click.option("--param", "-p", "pairs", multiple=True, help="Strategy parameter as key=value")
@click.option("--bundle", "-b", default=None, help="Bundle to write to; omit for a dry run")
def capture(strategy, pairs, bundle):
    """Run one capture strategy"""
    _configure_logging()
    params = _parse_params(pairs)
    backend = build_backend()
    try:
        builder = CaptureGraphBuilder(backend.store, backend.bundles, backend.scope)
        builder.begin_traversal(strategy, params)
        _finish(builder, bundle, dry_run=False)
    except CaptureError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)
    finally:
        backend.close()


@cli.command()
@click.argument("plan_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--bundle", "-b", default=None, help="Override the plan's bundle name")
@click.option("--dry-run", is_flag=True, help="Capture only; do not write a bundle")
def run(plan_file, bundle, dry_run):
    """Run a JSON capture plan"""
    _configure_logging()
    from .plan import apply_plan, load_plan

    plan = load_plan(plan_file)
    backend = build_backend()
    try:
        builder = CaptureGraphBuilder(backend.store, backend.bundles, backend.scope)
        apply_plan(builder, plan)
        _finish(builder, bundle or plan.bundle, dry_run)
    except CaptureError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)
    finally:
        backend.close()


if __name__ == "__main__":
    cli()
