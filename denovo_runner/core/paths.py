from __future__ import annotations

from pathlib import Path
from typing import Iterable

from denovo_runner.tools.profile import ToolProfile


def chunk_path(input_file: Path, index: int, chunk_dir: Path | None = None) -> Path:
    folder = chunk_dir if chunk_dir is not None else input_file.parent
    return folder / f"{input_file.stem}_{index}{input_file.suffix}"


def output_path(profile: ToolProfile, input_file: Path, output_root: Path) -> Path:
    """Raw output the tool produces for ``input_file``."""
    return output_root / profile.output_name(input_file)


def result_path(profile: ToolProfile, input_file: Path, output_root: Path) -> Path:
    """Final result location once post-processing has run."""
    raw = output_path(profile, input_file, output_root)
    if profile.rename is None:
        return raw
    return profile.rename.apply(raw)


def find_result_files(
    output_root: Path, spectrum_files: Iterable[Path], profiles: Iterable[ToolProfile]
) -> list[Path]:
    profiles = list(profiles)
    found: list[Path] = []
    for spectrum_file in spectrum_files:
        for profile in profiles:
            path = result_path(profile, Path(spectrum_file), output_root)
            if path.exists():
                found.append(path)
    return found
