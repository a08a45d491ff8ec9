from __future__ import annotations

import logging
import os
import shutil
import uuid
from pathlib import Path
from typing import Iterable, Sequence

from denovo_runner.core.errors import OutputMissing
from denovo_runner.services.interfaces import MergingService, Reporter

logger = logging.getLogger("denovo_runner.merging")


def delete_files(paths: Iterable[Path], reporter: Reporter | None = None) -> int:
    """Delete ``paths`` that exist; failures are reported and skipped."""
    deleted = 0
    for path in paths:
        try:
            path.unlink()
            deleted += 1
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning("Could not delete %s: %s", path, e)
            if reporter is not None:
                reporter.append_report(f"Could not delete {path.name}: {e}")
    return deleted


class FileMergingService(MergingService):
    """Concatenates partition outputs, in the order given, into one result file."""

    def merge(
        self,
        output_parts: Sequence[Path],
        destination: Path,
        *,
        input_parts: Sequence[Path] = (),
        reporter: Reporter | None = None,
    ) -> Path | None:
        if not output_parts:
            delete_files(input_parts, reporter)
            return None

        missing = [p for p in output_parts if not p.exists()]
        if missing:
            raise OutputMissing(
                "Missing partition output(s): " + ", ".join(p.name for p in missing)
            )

        destination.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = destination.with_name(f".{destination.name}.tmp.{uuid.uuid4().hex}")
        try:
            with tmp_path.open("wb") as out:
                for part in output_parts:
                    with part.open("rb") as src:
                        shutil.copyfileobj(src, out)
            os.replace(tmp_path, destination)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        logger.info("Merged %d part(s) into %s", len(output_parts), destination)

        delete_files([p for p in output_parts if p != destination], reporter)
        delete_files(input_parts, reporter)
        return destination

    def discard(
        self,
        output_parts: Sequence[Path],
        *,
        input_parts: Sequence[Path] = (),
        reporter: Reporter | None = None,
    ) -> None:
        delete_files(output_parts, reporter)
        delete_files(input_parts, reporter)
