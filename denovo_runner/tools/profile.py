from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping


class SinkKind(Enum):
    """Where a tool's stdout is persisted."""

    NONE = "none"
    RESULT = "result"
    LOG = "log"


@dataclass(frozen=True)
class ProgressCadence:
    """Reporting interval for marker-driven progress, chosen by total item count.

    ``thresholds`` holds ``(max_total, step)`` pairs checked in order; totals above
    every threshold use ``default``.
    """

    thresholds: tuple[tuple[int, int], ...] = ((100, 10), (1000, 100))
    default: int = 1000

    def step_for(self, total: int) -> int:
        for max_total, step in self.thresholds:
            if total <= max_total:
                return max(1, step)
        return max(1, self.default)


@dataclass(frozen=True)
class OutputHandling:
    sink: SinkKind = SinkKind.NONE
    echo: bool = True
    progress_marker: str | None = None
    cadence: ProgressCadence = field(default_factory=ProgressCadence)
    item_label: str = "spectrum"

    @property
    def persists(self) -> bool:
        return self.sink is not SinkKind.NONE


@dataclass(frozen=True)
class RenameRule:
    """Replace the last suffix of the raw output name with ``new_suffix``."""

    new_suffix: str

    def apply(self, path: Path) -> Path:
        name = path.name
        if "." in name:
            name = name[: name.rindex(".")]
        return path.with_name(name + self.new_suffix)


@dataclass(frozen=True)
class ToolInvocation:
    """Everything a command builder needs for one job."""

    executable: Path
    tool_folder: Path
    input_path: Path
    output_path: Path
    output_folder: Path
    threads: int | None = None
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def require(self, key: str) -> Any:
        if key not in self.parameters or self.parameters[key] in (None, ""):
            raise ValueError(f"Missing required tool parameter '{key}'")
        return self.parameters[key]


CommandBuilder = Callable[[ToolInvocation], list[str]]


@dataclass(frozen=True)
class ToolProfile:
    name: str
    display_name: str
    internal_parallelism: bool
    build_command: CommandBuilder
    output_pattern: str
    output: OutputHandling = field(default_factory=OutputHandling)
    rename: RenameRule | None = None
    executables: Mapping[str, str] = field(default_factory=dict)

    def output_name(self, input_file: Path) -> str:
        return self.output_pattern.format(name=input_file.name, stem=input_file.stem)

    def default_executable(self, platform: str | None = None) -> str:
        platform = platform or sys.platform
        if platform.startswith("win") and "win" in self.executables:
            return self.executables["win"]
        if "posix" in self.executables:
            return self.executables["posix"]
        if self.executables:
            return next(iter(self.executables.values()))
        raise ValueError(f"No default executable known for {self.display_name}")


def flag_arguments(parameters: Mapping[str, Any], *, prefix: str = "-") -> list[str]:
    """Expand ``{"TagLength": 3, "Verbose": True}`` into ``-TagLength 3 -Verbose``."""
    args: list[str] = []
    for key, value in parameters.items():
        if value is None or value is False:
            continue
        args.append(f"{prefix}{key}")
        if value is not True:
            args.append(str(value))
    return args
