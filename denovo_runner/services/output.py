from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Callable, Iterable

from denovo_runner.core.errors import StreamFault
from denovo_runner.services.interfaces import Reporter
from denovo_runner.tools.profile import OutputHandling, SinkKind

logger = logging.getLogger("denovo_runner.output")


class NullSink:
    """Pass-through sink: nothing is persisted."""

    path: Path | None = None

    def open(self) -> NullSink:
        return self

    def write_line(self, line: str) -> None:
        return None

    def close(self) -> None:
        return None

    def discard(self) -> None:
        return None

    def __enter__(self) -> NullSink:
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class FileSink:
    """Persists every consumed line, newline-normalized, to ``path``."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._handle: IO[str] | None = None

    def open(self) -> FileSink:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = self.path.open("w", encoding="utf-8", newline="\n")
        except OSError as e:
            raise StreamFault(f"Could not open {self.path}: {e}") from e
        return self

    def write_line(self, line: str) -> None:
        if self._handle is None:
            raise StreamFault(f"Sink {self.path} is not open")
        try:
            self._handle.write(line)
            self._handle.write("\n")
        except OSError as e:
            raise StreamFault(f"Could not write {self.path}: {e}") from e

    def close(self) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            handle.flush()
            handle.close()
        except OSError as e:
            raise StreamFault(f"Could not close {self.path}: {e}") from e

    def discard(self) -> None:
        if self._handle is not None:
            try:
                self._handle.close()
            except OSError:
                pass
            self._handle = None
        self.path.unlink(missing_ok=True)

    def __enter__(self) -> FileSink:
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


OutputSink = NullSink | FileSink


def sink_path(kind: SinkKind, output_path: Path) -> Path | None:
    if kind is SinkKind.RESULT:
        return output_path
    if kind is SinkKind.LOG:
        return output_path.with_name(output_path.name + ".log")
    return None


def make_sink(kind: SinkKind, output_path: Path) -> OutputSink:
    path = sink_path(kind, output_path)
    return FileSink(path) if path is not None else NullSink()


@dataclass
class ConsumeStats:
    lines: int = 0
    items: int = 0
    stopped: bool = False


class OutputConsumer:
    """Reads a tool's stdout line by line and routes each line per the profile."""

    def __init__(self, handling: OutputHandling, reporter: Reporter, *, total_items: int) -> None:
        self.handling = handling
        self.reporter = reporter
        self.total_items = max(0, int(total_items))
        self.step = handling.cadence.step_for(self.total_items)

    def consume(
        self,
        stream: Iterable[str],
        sink: OutputSink,
        *,
        should_stop: Callable[[], bool] = lambda: False,
    ) -> ConsumeStats:
        """Consume until EOF or until ``should_stop`` returns True between lines."""
        stats = ConsumeStats()
        marker = self.handling.progress_marker
        try:
            for raw in stream:
                line = raw.rstrip("\r\n")
                stats.lines += 1
                sink.write_line(line)
                if self.handling.echo:
                    self.reporter.append_report(
                        line, timestamp=False, new_line=True, tool_output=True
                    )
                if marker is not None and line.startswith(marker):
                    self._advance()
                    stats.items += 1
                if should_stop():
                    stats.stopped = True
                    break
        except OSError as e:
            raise StreamFault(f"Failed reading tool output: {e}") from e
        logger.debug(
            "Consumed %d line(s), %d marker(s)%s",
            stats.lines,
            stats.items,
            " (stopped)" if stats.stopped else "",
        )
        return stats

    def _advance(self) -> None:
        # The counter is shared by every consumer of one file.
        counter = self.reporter.increase_secondary_progress_counter()
        if self.total_items > 0 and counter % self.step == 0:
            last = min(counter + self.step, self.total_items)
            self.reporter.append_report(
                f"Processing {self.handling.item_label} {counter + 1}-{last} of {self.total_items}.",
                timestamp=True,
                new_line=True,
            )
