"""Per-run state: diagnostic log, progress reporting and cancellation."""

import threading
from collections import deque
from datetime import datetime
from typing import Callable, List, Optional

from axis_archive.errors import RunCancelled

ProgressCallback = Callable[[int, str], None]


class RunContext:
    """State shared by the stages of one archiving run.

    The diagnostic log keeps the most recent ``log_max_entries`` entries and
    lists them newest first. Progress only moves forward: a percentage lower
    than the last reported one is raised to it.
    """

    def __init__(
        self,
        progress: Optional[ProgressCallback] = None,
        log_max_entries: int = 200,
        echo: bool = False,
    ):
        self._progress_callback = progress
        self._entries: deque = deque(maxlen=max(1, log_max_entries))
        self._lock = threading.Lock()
        self._cancelled = threading.Event()
        self.echo = echo
        self.percent = 0
        self.status = ""

    def log(self, message: str) -> None:
        """Add a timestamped entry to the diagnostic log."""
        entry = f"{datetime.now().strftime('%H:%M:%S')} — {message}"
        with self._lock:
            self._entries.appendleft(entry)
        if self.echo:
            print(f"         {message}", flush=True)

    @property
    def entries(self) -> List[str]:
        """Log entries, most recent first."""
        with self._lock:
            return list(self._entries)

    def report(self, percent: int, status: str) -> None:
        """Report a phase boundary to the progress sink."""
        self.percent = max(self.percent, min(int(percent), 100))
        self.status = status
        if self.echo:
            print(f"[{self.percent:3d}%] {status}", flush=True)
        if self._progress_callback is not None:
            self._progress_callback(self.percent, status)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def check_cancelled(self) -> None:
        """Raise RunCancelled if the caller aborted the run."""
        if self._cancelled.is_set():
            raise RunCancelled("Run cancelled by caller")
