from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class JobStatus(Enum):
    WAITING = "waiting"
    RUNNING = "running"
    FINISHED = "finished"
    ERROR = "error"
    CANCELED = "canceled"

    @property
    def terminal(self) -> bool:
        return self in (JobStatus.FINISHED, JobStatus.ERROR, JobStatus.CANCELED)


class RunStatus(Enum):
    FINISHED = "finished"
    FAILED = "failed"
    CANCELED = "canceled"


@dataclass(frozen=True)
class Chunk:
    """A contiguous range of records of ``parent`` materialized at ``path``."""

    parent: Path
    index: int
    start: int
    end: int
    path: Path

    @property
    def size(self) -> int:
        return self.end - self.start

    def exists(self) -> bool:
        return self.path.exists()


@dataclass(frozen=True)
class PartitionPlan:
    total_records: int
    threads: int
    chunk_size: int
    remainder: int

    @classmethod
    def for_records(cls, total_records: int, threads: int) -> PartitionPlan:
        if threads <= 0:
            raise ValueError(f"threads must be > 0, got {threads}")
        if total_records < 0:
            raise ValueError(f"total_records must be >= 0, got {total_records}")
        return cls(
            total_records=total_records,
            threads=threads,
            chunk_size=total_records // threads,
            remainder=total_records % threads,
        )

    @property
    def n_chunks(self) -> int:
        if self.chunk_size == 0:
            return self.remainder
        return (self.total_records - self.remainder) // self.chunk_size

    def describe(self, label: str = "spectra") -> str:
        text = f"{self.total_records} {label}, {self.chunk_size}"
        if self.remainder > 0:
            text += f"-{self.chunk_size + 1}"
        return text + f" {label} per thread"


@dataclass
class SequencingOutcome:
    status: RunStatus
    result_files: list[Path] = field(default_factory=list)
    job_errors: list[tuple[str, str]] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.FINISHED
