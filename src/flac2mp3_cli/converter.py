import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

from .config import DEFAULT_BITRATE, DEFAULT_WORKERS
from .exceptions import RunInterrupted, TranscodeError
from .ledger import Ledger
from .scanner import WorkItem
from .transcoder import Transcoder

logger = logging.getLogger(__name__)


class ConversionOutcome(str, Enum):
    SUCCESS = "success"
    DIRECTORY_CREATE_FAILURE = "directory_create_failure"
    TRANSCODE_FAILURE = "transcode_failure"


class DeletionOutcome(str, Enum):
    DELETED = "deleted"
    NOT_FOUND = "not_found"
    DELETE_FAILURE = "delete_failure"


@dataclass(frozen=True)
class ConversionResult:
    item: WorkItem
    outcome: ConversionOutcome
    timestamp: datetime
    message: str
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is ConversionOutcome.SUCCESS


@dataclass(frozen=True)
class DeletionResult:
    source_path: Path
    outcome: DeletionOutcome
    timestamp: datetime
    message: str


@dataclass(frozen=True)
class RunSummary:
    total: int
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    deleted: int = 0
    delete_not_found: int = 0
    delete_failed: int = 0


class RunState:
    """Counters and success list for one run, safe to update from workers."""

    def __init__(self, total: int):
        self.total = total
        self.processed = 0
        self.succeeded = 0
        self.failed = 0
        self.deleted = 0
        self.delete_not_found = 0
        self.delete_failed = 0
        self.successes: list[WorkItem] = []
        self._lock = threading.Lock()

    def start_item(self) -> int:
        with self._lock:
            self.processed += 1
            return self.processed

    def record_conversion(self, result: ConversionResult) -> None:
        with self._lock:
            if result.ok:
                self.succeeded += 1
                self.successes.append(result.item)
            else:
                self.failed += 1

    def record_deletion(self, result: DeletionResult) -> None:
        with self._lock:
            if result.outcome is DeletionOutcome.DELETED:
                self.deleted += 1
            elif result.outcome is DeletionOutcome.NOT_FOUND:
                self.delete_not_found += 1
            else:
                self.delete_failed += 1

    def snapshot(self) -> RunSummary:
        with self._lock:
            return RunSummary(
                total=self.total,
                processed=self.processed,
                succeeded=self.succeeded,
                failed=self.failed,
                deleted=self.deleted,
                delete_not_found=self.delete_not_found,
                delete_failed=self.delete_failed,
            )


@dataclass(frozen=True)
class ConversionReport:
    results: tuple[ConversionResult, ...]
    summary: RunSummary

    @property
    def candidates(self) -> list[Path]:
        """Source files eligible for deletion: exactly the successful ones."""
        return [r.item.source_path for r in self.results if r.ok]


@dataclass(frozen=True)
class DeletionReport:
    results: tuple[DeletionResult, ...] = field(default_factory=tuple)

    def _count(self, outcome: DeletionOutcome) -> int:
        return sum(1 for r in self.results if r.outcome is outcome)

    @property
    def deleted(self) -> int:
        return self._count(DeletionOutcome.DELETED)

    @property
    def not_found(self) -> int:
        return self._count(DeletionOutcome.NOT_FOUND)

    @property
    def failed(self) -> int:
        return self._count(DeletionOutcome.DELETE_FAILURE)


StartCallback = Callable[[int, int, WorkItem], None]
ConversionCallback = Callable[[ConversionResult], None]
DeletionCallback = Callable[[DeletionResult], None]


def convert_item(
    item: WorkItem,
    transcoder: Transcoder,
    ledger: Ledger,
    bitrate: str = DEFAULT_BITRATE,
) -> ConversionResult:
    """Run one item to a terminal state. Never raises for per-item failures."""
    output_dir = item.target_path.parent
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        logger.debug("Ensured output directory %s", output_dir)
    except OSError as e:
        now = datetime.now()
        event = ledger.record(
            item.source_path,
            f"FAILED to create output directory '{output_dir}': {e.strerror or e}",
            now,
        )
        return ConversionResult(item, ConversionOutcome.DIRECTORY_CREATE_FAILURE, now, event.line, str(e))

    try:
        transcoder.transcode(item.source_path, item.target_path, bitrate)
    except TranscodeError as e:
        now = datetime.now()
        event = ledger.record(
            item.source_path,
            f"FAILED to convert to mp3: {e.diagnostic_text}",
            now,
        )
        return ConversionResult(item, ConversionOutcome.TRANSCODE_FAILURE, now, event.line, e.diagnostics or str(e))

    now = datetime.now()
    event = ledger.record(item.source_path, "successfully converted to mp3", now)
    return ConversionResult(item, ConversionOutcome.SUCCESS, now, event.line)


def convert_all(
    items: list[WorkItem],
    transcoder: Transcoder,
    ledger: Ledger,
    bitrate: str = DEFAULT_BITRATE,
    workers: int = DEFAULT_WORKERS,
    cancel: threading.Event | None = None,
    on_start: StartCallback | None = None,
    on_result: ConversionCallback | None = None,
    state: RunState | None = None,
) -> ConversionReport:
    """Convert every item in the work set, isolating per-item failures.

    With workers > 1 items are converted on a bounded thread pool; the call
    still returns only after every item has reached a terminal state.
    Raises RunInterrupted if cancel is set before all items have started.
    """
    cancel = cancel or threading.Event()
    state = state or RunState(len(items))
    total = len(items)
    results: list[ConversionResult] = []
    results_lock = threading.Lock()

    def process(item: WorkItem) -> ConversionResult | None:
        if cancel.is_set():
            return None
        index = state.start_item()
        if on_start:
            on_start(index, total, item)
        result = convert_item(item, transcoder, ledger, bitrate)
        state.record_conversion(result)
        with results_lock:
            results.append(result)
        if on_result:
            on_result(result)
        return result

    if workers <= 1:
        for item in items:
            if cancel.is_set():
                break
            process(item)
    else:
        logger.debug("Converting %d files with %d workers", total, workers)
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(process, item) for item in items]
            try:
                for future in as_completed(futures):
                    future.result()
            except BaseException:
                cancel.set()
                executor.shutdown(wait=True, cancel_futures=True)
                raise

    if cancel.is_set() and len(results) < total:
        raise RunInterrupted(partial_summary=state.snapshot())

    return ConversionReport(tuple(results), state.snapshot())


def delete_item(source: Path, ledger: Ledger) -> DeletionResult:
    if not source.is_file():
        now = datetime.now()
        event = ledger.record(source, "not found for deletion (already removed?).", now)
        return DeletionResult(source, DeletionOutcome.NOT_FOUND, now, event.line)

    try:
        source.unlink()
    except OSError as e:
        now = datetime.now()
        event = ledger.record(source, f"FAILED to delete: {e.strerror or e}", now)
        return DeletionResult(source, DeletionOutcome.DELETE_FAILURE, now, event.line)

    logger.debug("Removed %s", source)
    now = datetime.now()
    event = ledger.record(source, "successfully deleted.", now)
    return DeletionResult(source, DeletionOutcome.DELETED, now, event.line)


def delete_sources(
    candidates: list[Path],
    ledger: Ledger,
    cancel: threading.Event | None = None,
    on_result: DeletionCallback | None = None,
    state: RunState | None = None,
) -> DeletionReport:
    """Delete the given source files one at a time; failures do not stop the pass."""
    results = []
    for source in candidates:
        if cancel is not None and cancel.is_set():
            raise RunInterrupted(partial_summary=state.snapshot() if state else None)
        result = delete_item(source, ledger)
        if state is not None:
            state.record_deletion(result)
        results.append(result)
        if on_result:
            on_result(result)
    return DeletionReport(tuple(results))
