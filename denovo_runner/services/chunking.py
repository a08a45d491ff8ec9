from __future__ import annotations

import logging
from pathlib import Path
from typing import IO

from denovo_runner.core.errors import PartitionFailure
from denovo_runner.core.models import Chunk
from denovo_runner.core.paths import chunk_path
from denovo_runner.services.interfaces import ChunkingService, Reporter
from denovo_runner.services.records import MGF_RECORD_START

logger = logging.getLogger("denovo_runner.chunking")


def partition_ranges(chunk_size: int, remainder: int, total_records: int) -> list[tuple[int, int]]:
    """Half-open record ranges; the first ``remainder`` ranges hold one extra record."""
    if chunk_size < 0 or remainder < 0 or total_records < 0:
        raise ValueError("chunk_size, remainder and total_records must be >= 0")
    n_chunks = (total_records - remainder) // chunk_size if chunk_size else remainder
    if n_chunks * chunk_size + remainder != total_records or (chunk_size and remainder > n_chunks):
        raise ValueError(
            f"Inconsistent partition: {total_records} records, "
            f"chunk size {chunk_size}, remainder {remainder}"
        )
    ranges: list[tuple[int, int]] = []
    start = 0
    for i in range(n_chunks):
        size = chunk_size + (1 if i < remainder else 0)
        ranges.append((start, start + size))
        start += size
    return ranges


class MgfChunkingService(ChunkingService):
    """Splits a spectrum file into near-equal record partitions written beside it."""

    def __init__(self, *, chunk_dir: Path | None = None, record_start: str = MGF_RECORD_START) -> None:
        self.chunk_dir = chunk_dir
        self.record_start = record_start

    def plan(
        self, input_file: Path, chunk_size: int, remainder: int, total_records: int
    ) -> list[Chunk]:
        return [
            Chunk(
                parent=input_file,
                index=i,
                start=start,
                end=end,
                path=chunk_path(input_file, i, self.chunk_dir),
            )
            for i, (start, end) in enumerate(
                partition_ranges(chunk_size, remainder, total_records), start=1
            )
        ]

    def chunk(
        self,
        input_file: Path,
        chunk_size: int,
        remainder: int,
        total_records: int,
        *,
        reporter: Reporter | None = None,
    ) -> list[Chunk]:
        """Write the planned chunks and return them in index order.

        A write failure is reported, not raised: the chunks that could not be
        written are simply missing on disk and callers must check for them.
        """
        chunks = self.plan(Path(input_file), chunk_size, remainder, total_records)
        if not chunks:
            return chunks
        try:
            self._write(Path(input_file), chunks, reporter)
        except PartitionFailure as e:
            logger.warning("Chunking %s failed: %s", Path(input_file).name, e)
            if reporter is not None:
                reporter.append_report(f"Could not split {Path(input_file).name}: {e}")
        return chunks

    def _write(self, input_file: Path, chunks: list[Chunk], reporter: Reporter | None) -> None:
        preamble: list[str] = []
        writer: IO[str] | None = None
        current = -1
        record = -1
        try:
            with input_file.open("r", encoding="utf-8", errors="replace") as src:
                for raw in src:
                    line = raw.rstrip("\r\n") + "\n"
                    if line.startswith(self.record_start):
                        record += 1
                        target = current if current >= 0 else 0
                        while target < len(chunks) - 1 and record >= chunks[target].end:
                            target += 1
                        if target != current:
                            if reporter is not None and reporter.is_run_canceled():
                                break
                            self._close(writer, chunks[current] if current >= 0 else None)
                            writer = None
                            current = target
                            writer = self._open(chunks[current], preamble)
                    if writer is None:
                        preamble.append(line)
                        continue
                    try:
                        writer.write(line)
                    except OSError as e:
                        raise PartitionFailure(f"{chunks[current].path.name}: {e}") from e
        except (OSError, PartitionFailure) as e:
            if writer is not None and current >= 0:
                self._abort(writer, chunks[current])
                writer = None
            if isinstance(e, PartitionFailure):
                raise
            raise PartitionFailure(f"{input_file.name}: {e}") from e
        finally:
            if writer is not None:
                self._close(writer, chunks[current])
        if record + 1 > chunks[-1].end:
            logger.warning(
                "%s holds %d records, expected %d; extra records went to the last chunk",
                input_file.name,
                record + 1,
                chunks[-1].end,
            )

    @staticmethod
    def _open(chunk: Chunk, preamble: list[str]) -> IO[str]:
        try:
            chunk.path.parent.mkdir(parents=True, exist_ok=True)
            handle = chunk.path.open("w", encoding="utf-8", newline="\n")
        except OSError as e:
            raise PartitionFailure(f"{chunk.path.name}: {e}") from e
        try:
            handle.writelines(preamble)
        except OSError as e:
            MgfChunkingService._abort(handle, chunk)
            raise PartitionFailure(f"{chunk.path.name}: {e}") from e
        logger.debug("Writing chunk %s (records %d-%d)", chunk.path.name, chunk.start, chunk.end)
        return handle

    @staticmethod
    def _close(writer: IO[str] | None, chunk: Chunk | None) -> None:
        if writer is None or chunk is None:
            return
        try:
            writer.close()
        except OSError as e:
            chunk.path.unlink(missing_ok=True)
            raise PartitionFailure(f"{chunk.path.name}: {e}") from e

    @staticmethod
    def _abort(writer: IO[str], chunk: Chunk) -> None:
        try:
            writer.close()
        except OSError:
            pass
        chunk.path.unlink(missing_ok=True)
