from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping

logger = logging.getLogger("denovo_runner.records")

MGF_RECORD_START = "BEGIN IONS"


def count_records(path: Path, *, record_start: str = MGF_RECORD_START) -> int:
    """Count records in a line-oriented file by their opening line."""
    n = 0
    with Path(path).open("r", encoding="utf-8", errors="replace") as handle:
        for line in handle:
            if line.startswith(record_start):
                n += 1
    return n


def _key(path: Path | str) -> Path:
    return Path(path).resolve()


@dataclass(frozen=True)
class RecordIndex:
    """Read-only record counts per input file, handed to the runner at construction."""

    counts: Mapping[Path, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        normalized = {_key(p): int(n) for p, n in self.counts.items()}
        for path, n in normalized.items():
            if n < 0:
                raise ValueError(f"Record count for {path} must be >= 0, got {n}")
        object.__setattr__(self, "counts", normalized)

    @classmethod
    def from_files(
        cls, paths: Iterable[Path], *, record_start: str = MGF_RECORD_START
    ) -> RecordIndex:
        counts: dict[Path, int] = {}
        for path in paths:
            counts[Path(path)] = count_records(Path(path), record_start=record_start)
            logger.debug("%s: %d records", Path(path).name, counts[Path(path)])
        return cls(counts)

    def count(self, path: Path) -> int:
        key = _key(path)
        if key not in self.counts:
            raise KeyError(f"No record count known for {path}")
        return self.counts[key]

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def __len__(self) -> int:
        return len(self.counts)
