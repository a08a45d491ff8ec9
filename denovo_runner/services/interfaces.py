from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Protocol, Sequence

from denovo_runner.core.models import Chunk


class Reporter(ABC):
    """Progress and feedback sink the engine reports into.

    Implementations must be safe to call from worker threads.
    """

    @abstractmethod
    def append_report(
        self,
        report: str,
        *,
        timestamp: bool = True,
        new_line: bool = True,
        tool_output: bool = False,
    ) -> None:
        """Append a report line; ``tool_output`` marks text echoed from an external tool."""

    @abstractmethod
    def append_report_end_line(self) -> None: ...

    @abstractmethod
    def set_waiting_text(self, text: str) -> None: ...

    @abstractmethod
    def set_max_primary_progress_counter(self, value: int) -> None: ...

    @abstractmethod
    def increase_primary_progress_counter(self, amount: int = 1) -> None: ...

    @abstractmethod
    def set_max_secondary_progress_counter(self, value: int) -> None: ...

    @abstractmethod
    def reset_secondary_progress_counter(self) -> None: ...

    @abstractmethod
    def increase_secondary_progress_counter(self, amount: int = 1) -> int:
        """Atomically add ``amount`` and return the value before the increase."""

    @property
    @abstractmethod
    def secondary_progress_counter(self) -> int: ...

    @abstractmethod
    def set_secondary_progress_counter_indeterminate(self, indeterminate: bool) -> None: ...

    @abstractmethod
    def is_run_canceled(self) -> bool: ...

    @abstractmethod
    def set_run_canceled(self) -> None: ...

    @abstractmethod
    def is_run_finished(self) -> bool: ...

    @abstractmethod
    def set_run_finished(self) -> None: ...


class ChunkingService(ABC):
    @abstractmethod
    def chunk(
        self,
        input_file: Path,
        chunk_size: int,
        remainder: int,
        total_records: int,
        *,
        reporter: Reporter | None = None,
    ) -> list[Chunk]: ...


class MergingService(ABC):
    @abstractmethod
    def merge(
        self,
        output_parts: Sequence[Path],
        destination: Path,
        *,
        input_parts: Sequence[Path] = (),
        reporter: Reporter | None = None,
    ) -> Path | None: ...

    @abstractmethod
    def discard(
        self,
        output_parts: Sequence[Path],
        *,
        input_parts: Sequence[Path] = (),
        reporter: Reporter | None = None,
    ) -> None: ...


class RecordCounts(Protocol):
    def count(self, path: Path) -> int: ...

    @property
    def total(self) -> int: ...
