"""Reporter implementations for sequencing runs."""

from __future__ import annotations

import sys
import threading
import time

import click
from tqdm import tqdm

from denovo_runner.services.interfaces import Reporter


class BufferedReporter(Reporter):
    """Thread-safe in-memory reporter.

    Report lines are kept in ``lines``; a report appended with ``new_line=False``
    stays pending and is completed by the next report. The run-canceled and
    run-finished flags are ``threading.Event`` objects so workers can poll them
    without taking the lock.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.lines: list[str] = []
        self._pending = ""
        self.waiting_text = ""
        self.primary_max = 0
        self.primary_counter = 0
        self.secondary_max = 0
        self._secondary_counter = 0
        self.secondary_indeterminate = True
        self._canceled = threading.Event()
        self._finished = threading.Event()

    @staticmethod
    def _timestamp() -> str:
        return time.strftime("%Y-%m-%d %H:%M:%S")

    def _emit(self, line: str) -> None:
        """Hook called with every completed report line."""

    def _should_emit(self, tool_output: bool) -> bool:
        return True

    def append_report(
        self,
        report: str,
        *,
        timestamp: bool = True,
        new_line: bool = True,
        tool_output: bool = False,
    ) -> None:
        text = f"{self._timestamp()}\t{report}" if timestamp else report
        with self._lock:
            self._pending += text
            if not new_line:
                return
            line, self._pending = self._pending, ""
            self.lines.append(line)
            if self._should_emit(tool_output):
                self._emit(line)

    def append_report_end_line(self) -> None:
        with self._lock:
            line, self._pending = self._pending, ""
            self.lines.append(line)
            self._emit(line)

    @property
    def report(self) -> str:
        with self._lock:
            return "\n".join(self.lines + ([self._pending] if self._pending else []))

    def set_waiting_text(self, text: str) -> None:
        with self._lock:
            self.waiting_text = text

    def set_max_primary_progress_counter(self, value: int) -> None:
        with self._lock:
            self.primary_max = value

    def increase_primary_progress_counter(self, amount: int = 1) -> None:
        with self._lock:
            self.primary_counter += amount

    def set_max_secondary_progress_counter(self, value: int) -> None:
        with self._lock:
            self.secondary_max = value
            self.secondary_indeterminate = False

    def reset_secondary_progress_counter(self) -> None:
        with self._lock:
            self._secondary_counter = 0

    def increase_secondary_progress_counter(self, amount: int = 1) -> int:
        with self._lock:
            previous = self._secondary_counter
            self._secondary_counter += amount
            return previous

    @property
    def secondary_progress_counter(self) -> int:
        with self._lock:
            return self._secondary_counter

    def set_secondary_progress_counter_indeterminate(self, indeterminate: bool) -> None:
        with self._lock:
            self.secondary_indeterminate = indeterminate

    def is_run_canceled(self) -> bool:
        return self._canceled.is_set()

    def set_run_canceled(self) -> None:
        self._canceled.set()

    def is_run_finished(self) -> bool:
        return self._finished.is_set()

    def set_run_finished(self) -> None:
        self._finished.set()


class ConsoleReporter(BufferedReporter):
    """Echoes report lines with click and shows the secondary counter as a tqdm bar."""

    def __init__(self, *, show_progress: bool = True, echo_tool_output: bool = True) -> None:
        super().__init__()
        self.show_progress = show_progress and sys.stderr.isatty()
        self.echo_tool_output = echo_tool_output
        self.start_time = time.monotonic()
        self._bar: tqdm | None = None

    @staticmethod
    def _fmt_duration(s: float) -> str:
        """Format duration in seconds to HH:MM:SS format."""
        s = max(0.0, float(s))
        m, sec = divmod(int(s + 0.5), 60)
        h, min_ = divmod(m, 60)
        if h > 0:
            return f"{h:02d}:{min_:02d}:{sec:02d}"
        return f"{min_:02d}:{sec:02d}"

    def elapsed_text(self) -> str:
        return self._fmt_duration(time.monotonic() - self.start_time)

    def _should_emit(self, tool_output: bool) -> bool:
        return self.echo_tool_output or not tool_output

    def _emit(self, line: str) -> None:
        if self._bar is not None:
            self._bar.write(line)
        else:
            click.echo(line)

    def set_waiting_text(self, text: str) -> None:
        super().set_waiting_text(text)
        with self._lock:
            if self._bar is not None:
                self._bar.set_description(text)

    def set_max_secondary_progress_counter(self, value: int) -> None:
        super().set_max_secondary_progress_counter(value)
        with self._lock:
            self._close_bar()
            if self.show_progress and value > 0:
                self._bar = tqdm(total=value, desc=self.waiting_text or "Sequencing", leave=False)

    def reset_secondary_progress_counter(self) -> None:
        super().reset_secondary_progress_counter()
        with self._lock:
            if self._bar is not None:
                self._bar.reset()

    def increase_secondary_progress_counter(self, amount: int = 1) -> int:
        previous = super().increase_secondary_progress_counter(amount)
        with self._lock:
            if self._bar is not None:
                self._bar.update(amount)
        return previous

    def set_secondary_progress_counter_indeterminate(self, indeterminate: bool) -> None:
        super().set_secondary_progress_counter_indeterminate(indeterminate)
        if indeterminate:
            with self._lock:
                self._close_bar()

    def set_run_canceled(self) -> None:
        super().set_run_canceled()
        with self._lock:
            self._close_bar()

    def set_run_finished(self) -> None:
        super().set_run_finished()
        with self._lock:
            self._close_bar()

    def _close_bar(self) -> None:
        bar, self._bar = self._bar, None
        if bar is not None:
            bar.close()
