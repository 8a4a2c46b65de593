#!/usr/bin/env python3
"""
CLI interface for Reader Printer - print newly saved Reader articles.

This module provides the command-line interface using the Click framework:
the sync run itself plus printer listing, state inspection and a setup check.
"""

import sys
import shutil
from typing import Optional
import click
from rich.console import Console
from rich.table import Table

from .config import Config, set_config
from .exceptions import ConfigMissing, ReaderPrinterError, SourceError
from .models import Printer, PrintOptions, SyncReport
from .pipeline import SyncPipeline
from .printing import PrintDispatcher
from .processors import ArticleConverter, PercollateRunner
from .sources import ReaderAPI
from .state import StateStore
from .utils import format_timestamp, setup_logging

console = Console()

API_KEY_HINT = "set the API_KEY environment variable or reader.api_key in the config file"
PRINTER_HINT = "set PRINTER_NAME, printing.printer in the config file, or pass --printer"


def _stdin_is_interactive() -> bool:
    return sys.stdin.isatty()


def _printer_table(printers) -> Table:
    table = Table(title="Available printers")
    table.add_column("#", style="dim")
    table.add_column("Printer", style="cyan")
    table.add_column("Description", style="blue")
    table.add_column("Status")
    for index, printer in enumerate(printers, 1):
        table.add_row(str(index), printer.printer_id, printer.description, printer.status)
    return table


def select_printer(dispatcher: PrintDispatcher) -> str:
    """
    Ask the user to pick a printer when none is configured.

    Raises:
        ConfigMissing: If there is no terminal to ask on, no printers exist,
            or the user declines the only printer
    """
    if not _stdin_is_interactive():
        raise ConfigMissing('printing.printer', PRINTER_HINT)

    printers = dispatcher.list_printers()
    if not printers:
        raise ConfigMissing('printing.printer', "no printers found")

    console.print(_printer_table(printers))

    if len(printers) == 1:
        only: Printer = printers[0]
        if click.confirm(f"Do you want to use {only.description}?", default=True):
            return only.printer_id
        raise ConfigMissing('printing.printer', "no other printers found")

    choice = click.prompt(f"Select printer number (1-{len(printers)})",
                          type=click.IntRange(1, len(printers)))
    return printers[choice - 1].printer_id


def _print_options(config: Config, duplex: Optional[bool]) -> PrintOptions:
    options = config.get_print_options()
    if duplex is True:
        options.sides = 'two-sided-long-edge'
    elif duplex is False:
        options.sides = 'one-sided'
    return options


def _print_summary(report: SyncReport) -> None:
    if report.dry_run:
        console.print(f"\n[blue]Dry run:[/blue] {report.new} of {report.fetched} fetched articles would be printed")
        return

    console.print(f"\n[green]✅ Printed: {len(report.printed)}[/green]  "
                  f"[yellow]Skipped: {len(report.skipped)}[/yellow]  "
                  f"[blue]Fetched: {report.fetched}[/blue]")

    if report.has_failures:
        table = Table(title="Failed articles")
        table.add_column("Article", style="blue")
        table.add_column("Error", style="red")
        for identifier, error in report.failed:
            table.add_row(identifier[:60], error[:80])
        console.print(table)
        console.print("[yellow]Failed articles will be retried on the next run[/yellow]")


@click.group(help="Print newly saved Readwise Reader articles")
@click.version_option(version="1.0.0", prog_name="reader-printer")
@click.option('--config', '-c', 'config_file',
              type=click.Path(exists=True, readable=True),
              help="Path to custom configuration file")
@click.option("-v", "--verbose", is_flag=True,
              help="Enable verbose output")
@click.pass_context
def main(ctx, config_file, verbose):
    """Main CLI entry point."""
    ctx.ensure_object(dict)
    setup_logging(verbose)

    config = Config(config_file)
    set_config(config)

    ctx.obj['config'] = config
    ctx.obj['verbose'] = verbose


@main.command("sync")
@click.option("-p", "--printer", "printer_id",
              help="Target printer (overrides PRINTER_NAME)")
@click.option("-s", "--state-file", "state_file",
              type=click.Path(dir_okay=False),
              help="Path of the JSON state file")
@click.option("--duplex/--no-duplex", default=None,
              help="Force two-sided or one-sided printing")
@click.option("--location",
              type=click.Choice(['new', 'later', 'shortlist', 'archive', 'feed']),
              help="Only sync documents in this location")
@click.option("--category",
              type=click.Choice(['article', 'email', 'rss', 'highlight', 'note',
                                 'pdf', 'epub', 'tweet', 'video']),
              help="Only sync documents of this category")
@click.option("--settle-delay", type=click.FloatRange(min=0),
              help="Seconds to wait after printing before deleting the PDF")
@click.option("--dry-run", is_flag=True,
              help="Show what would be printed without printing or saving state")
@click.pass_context
def sync_cmd(ctx, printer_id: Optional[str], state_file: Optional[str],
             duplex: Optional[bool], location: Optional[str], category: Optional[str],
             settle_delay: Optional[float], dry_run: bool):
    """Fetch new articles and print them."""

    config = ctx.obj['config']

    try:
        api_key = config.require('reader.api_key', API_KEY_HINT)

        store = StateStore(state_file or config.get('state.path', 'db.json'))
        state = store.load()

        dispatcher = PrintDispatcher(config=config)
        printer_id = printer_id or config.get('printing.printer') or select_printer(dispatcher)

        if settle_delay is None:
            settle_delay = config.get('printing.settle_delay', 5)

        pipeline = SyncPipeline(
            state=state,
            store=store,
            source=ReaderAPI(api_key, config=config),
            converter=ArticleConverter(config=config),
            dispatcher=dispatcher,
            printer_id=printer_id,
            print_options=_print_options(config, duplex),
            settle_delay=settle_delay,
            location=location or config.get('reader.location'),
            category=category or config.get('reader.category'),
            temp_dir=config.get('state.temp_dir'),
        )
        report = pipeline.run(dry_run=dry_run)

    except ReaderPrinterError as e:
        console.print(f"[red]Error:[/red] {e}")
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)

    _print_summary(report)


@main.command("printers")
@click.pass_context
def printers_cmd(ctx):
    """List available printers."""

    dispatcher = PrintDispatcher(config=ctx.obj['config'])
    printers = dispatcher.list_printers()

    if not printers:
        console.print("[red]No printers found![/red]")
        sys.exit(1)

    console.print(_printer_table(printers))


@main.command("status")
@click.option("-s", "--state-file", "state_file",
              type=click.Path(dir_okay=False),
              help="Path of the JSON state file")
@click.pass_context
def status_cmd(ctx, state_file: Optional[str]):
    """Show the sync watermark and processed article counts."""

    config = ctx.obj['config']
    store = StateStore(state_file or config.get('state.path', 'db.json'))

    if not store.exists():
        console.print(f"[yellow]No state file at {store.path}; the next sync is a first run[/yellow]")
        return

    try:
        state = store.load()
    except ReaderPrinterError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    console.print(f"[blue]State file:[/blue] {store.path}")
    console.print(f"[blue]Last sync:[/blue] {format_timestamp(state.last_sync_timestamp)}")
    console.print(f"[blue]Printed articles:[/blue] {len(state.processed_identifiers)}")
    console.print(f"[blue]Skipped articles:[/blue] {len(state.skipped_identifiers)}")


@main.command("check")
@click.pass_context
def check_cmd(ctx):
    """Check the access token and the external tools."""

    config = ctx.obj['config']
    problems = 0

    api_key = config.get('reader.api_key')
    if not api_key:
        console.print(f"[red]❌[/red] Access token: not configured ({API_KEY_HINT})")
        problems += 1
    else:
        try:
            if ReaderAPI(api_key, config=config).validate_token():
                console.print("[green]✅[/green] Access token: valid")
            else:
                console.print("[red]❌[/red] Access token: rejected")
                problems += 1
        except SourceError as e:
            console.print(f"[red]❌[/red] Access token: {e}")
            problems += 1

    renderer = PercollateRunner(config=config)
    if renderer.is_available():
        console.print(f"[green]✅[/green] Renderer: {renderer.command[0]}")
    else:
        console.print(f"[red]❌[/red] Renderer: '{renderer.command[0]}' not found")
        problems += 1

    lp_command = config.get('printing.lp_command', 'lp')
    if shutil.which(lp_command):
        console.print(f"[green]✅[/green] Print spooler: {lp_command}")
    else:
        console.print(f"[red]❌[/red] Print spooler: '{lp_command}' not found")
        problems += 1

    if problems:
        sys.exit(1)


if __name__ == "__main__":
    main()
