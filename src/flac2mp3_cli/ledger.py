import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from .config import TIMESTAMP_FORMAT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerEvent:
    sequence: int
    timestamp: datetime
    line: str


class Ledger:
    """Append-only outcome log for a single run.

    The file is truncated when the ledger is opened. Appends are serialized
    so that concurrent writers produce whole lines in sequence order.
    """

    def __init__(self, log_path: Path):
        self.log_path = log_path
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.log_path, "w", encoding="utf-8")  # noqa: SIM115
        self._lock = threading.Lock()
        self._sequence = 0

    def record(self, path: Path, phrase: str, timestamp: datetime | None = None) -> LedgerEvent:
        timestamp = timestamp or datetime.now()
        phrase = " ".join(part.strip() for part in phrase.splitlines() if part.strip())
        line = f"{timestamp.strftime(TIMESTAMP_FORMAT)} {path.name} {phrase}"
        with self._lock:
            self._sequence += 1
            event = LedgerEvent(self._sequence, timestamp, line)
            self._file.write(line + "\n")
            self._file.flush()
        logger.debug("ledger #%d: %s", event.sequence, line)
        return event

    def close(self) -> None:
        with self._lock:
            if not self._file.closed:
                self._file.close()
