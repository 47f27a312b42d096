import logging
import signal
import sys
import threading
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .config import DEFAULT_BITRATE, DEFAULT_WORKERS, LOG_FILE
from .confirm import Confirmation, TerminalConfirmation
from .converter import (
    ConversionResult,
    DeletionOutcome,
    DeletionResult,
    RunState,
    RunSummary,
    convert_all,
    delete_sources,
)
from .exceptions import InvalidInputError, RunInterrupted
from .ledger import Ledger
from .scanner import WorkItem, build_work_set, find_target_collisions, scan_directory, validate_root
from .transcoder import FfmpegTranscoder, Transcoder

app = typer.Typer(help="Convert a tree of FLAC files to MP3, keeping layout and tags.")
console = Console()
err_console = Console(stderr=True)

RULE = "[blue]----------------------------------------------------[/blue]"
USAGE_ERROR_EXIT_CODE = 2


def build_transcoder() -> FfmpegTranscoder:
    return FfmpegTranscoder()


def build_confirmation() -> Confirmation:
    return TerminalConfirmation(console)


def print_start(index: int, total: int, item: WorkItem) -> None:
    console.print(f"[yellow]\\[{index}/{total}] Processing: {escape(item.source_path.name)}[/yellow]")
    console.print(f"[blue]  Output to: {escape(str(item.target_path))}[/blue]", highlight=False)


def print_conversion(result: ConversionResult) -> None:
    if result.ok:
        console.print(f"[green]  SUCCESS: {escape(result.message)}[/green]", highlight=False)
    else:
        console.print(f"[red]  ERROR: {escape(result.message)}[/red]", highlight=False)
    console.print()


def print_deletion(result: DeletionResult) -> None:
    if result.outcome is DeletionOutcome.DELETED:
        console.print(f"[green]  DELETED: {escape(result.message)}[/green]", highlight=False)
    elif result.outcome is DeletionOutcome.NOT_FOUND:
        console.print(f"[yellow]  WARNING: {escape(result.message)}[/yellow]", highlight=False)
    else:
        console.print(f"[red]  ERROR: {escape(result.message)}[/red]", highlight=False)


def print_summary(summary: RunSummary, log_path: Path) -> None:
    table = Table(title="Conversion Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Total files scanned", str(summary.total))
    table.add_row("Successfully converted", f"[green]{summary.succeeded}[/green]")
    table.add_row("Failed conversions", f"[red]{summary.failed}[/red]" if summary.failed else "0")

    console.print(table)
    console.print(f"[blue]Check '{escape(str(log_path))}' for a detailed log of conversions.[/blue]", highlight=False)


def run_pipeline(
    input_dir: Path,
    transcoder: Transcoder,
    confirmation: Confirmation,
    log_path: Path,
    cancel: threading.Event,
    bitrate: str = DEFAULT_BITRATE,
    workers: int = DEFAULT_WORKERS,
) -> RunSummary | None:
    """Scan, confirm, convert, confirm, delete. Returns None when nothing ran."""
    console.print(f"[blue]Starting FLAC to MP3 conversion in '{escape(str(input_dir))}'...[/blue]", highlight=False)
    console.print(f"[blue]Output bitrate: {bitrate}[/blue]")
    console.print(f"[blue]Log file: {escape(str(log_path))}[/blue]", highlight=False)
    console.print(RULE)

    ledger = Ledger(log_path)
    try:
        console.print("[yellow]Scanning for FLAC files...[/yellow]")
        files = scan_directory(input_dir)
        if not files:
            console.print(
                f"[yellow]No FLAC files found in '{escape(str(input_dir))}' or its subdirectories.[/yellow]",
                highlight=False,
            )
            return None

        items = build_work_set(files, input_dir)
        find_target_collisions(items)
        console.print(f"[blue]Found {len(items)} FLAC files.[/blue]")

        if not confirmation.ask(f"Do you want to proceed with converting {len(items)} FLAC files to MP3?"):
            console.print("[blue]Conversion process cancelled by user. Exiting.[/blue]")
            return None

        console.print("[blue]Proceeding with conversion...[/blue]")
        console.print(RULE)

        state = RunState(len(items))
        report = convert_all(
            items,
            transcoder,
            ledger,
            bitrate=bitrate,
            workers=workers,
            cancel=cancel,
            on_start=print_start,
            on_result=print_conversion,
            state=state,
        )

        console.print(RULE)
        console.print("[blue]Conversion process completed.[/blue]")
        print_summary(report.summary, log_path)

        candidates = report.candidates
        if candidates:
            if confirmation.ask(
                f"Do you want to delete the {len(candidates)} original FLAC files "
                "that were successfully converted to MP3s?"
            ):
                console.print("[yellow]Initiating deletion of successfully converted FLAC files...[/yellow]")
                deletion = delete_sources(candidates, ledger, cancel=cancel, on_result=print_deletion, state=state)
                console.print(
                    f"[yellow]Deletion process completed: {deletion.deleted} deleted, "
                    f"{deletion.not_found} not found, {deletion.failed} failed.[/yellow]"
                )
            else:
                console.print("[blue]Deletion skipped. Original FLAC files remain.[/blue]")

        return state.snapshot()
    finally:
        ledger.close()


@app.command()
def run(
    input_dir: Path = typer.Argument(..., help="The root directory containing your FLAC files"),
):
    """Convert every .flac file under INPUT_DIR to an MP3 alongside it."""
    try:
        validate_root(input_dir)
    except InvalidInputError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]", highlight=False)
        raise typer.Exit(1)

    transcoder = build_transcoder()
    try:
        transcoder.ensure_available()
    except InvalidInputError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]", highlight=False)
        raise typer.Exit(1)

    cancel = threading.Event()
    try:
        summary = run_pipeline(
            input_dir.resolve(),
            transcoder,
            build_confirmation(),
            Path(LOG_FILE),
            cancel,
        )
    except InvalidInputError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]", highlight=False)
        raise typer.Exit(1)
    except (KeyboardInterrupt, RunInterrupted):
        cancel.set()
        err_console.print("\n[bold white]INTERRUPTED BY USER! Exiting.[/bold white]")
        raise typer.Exit(1)

    if summary is not None:
        console.print(RULE)
        console.print("[blue]Script finished.[/blue]")


def _raise_interrupt(signum, frame):
    raise KeyboardInterrupt


def main():
    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )
    signal.signal(signal.SIGTERM, _raise_interrupt)
    try:
        app()
    except SystemExit as e:
        # usage errors exit 1 like every other pre-flight failure
        if e.code == USAGE_ERROR_EXIT_CODE:
            sys.exit(1)
        raise
