from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


def _ensure_positive(value: int, name: str) -> int:
    if value <= 0:
        raise ValueError(f"{name} must be > 0, got {value}")
    return value


def _ensure_positive_float(value: float, name: str) -> float:
    if value <= 0:
        raise ValueError(f"{name} must be > 0, got {value}")
    return value


@dataclass
class ToolSettings:
    """Install location and already-parsed parameters for one external tool."""

    folder: Path
    executable: str | None = None
    enabled: bool = True
    parameters: dict[str, Any] = field(default_factory=dict)

    def validated(self) -> ToolSettings:
        if self.enabled and not self.folder.is_dir():
            raise FileNotFoundError(f"Tool folder not found: {self.folder}")
        if self.executable is not None and not self.executable.strip():
            raise ValueError("executable must not be blank")
        return self


@dataclass
class ProcessingConfig:
    input_path: Path
    recursive: bool = False

    def validated(self) -> ProcessingConfig:
        if not self.input_path.exists():
            raise FileNotFoundError(f"Input path not found: {self.input_path}")
        return self


@dataclass
class OutputConfig:
    output_root: Path
    chunk_dir: Path | None = None

    def validated(self) -> OutputConfig:
        self.output_root.mkdir(parents=True, exist_ok=True)
        if self.chunk_dir is not None:
            self.chunk_dir.mkdir(parents=True, exist_ok=True)
        return self


@dataclass
class ExecutionConfig:
    threads: int | None = None
    max_wait_hours: float = 12.0

    def validated(self) -> ExecutionConfig:
        if self.threads is None:
            self.threads = max(1, int(os.cpu_count() or 1))
        _ensure_positive(self.threads, "threads")
        _ensure_positive_float(self.max_wait_hours, "max_wait_hours")
        return self

    @property
    def max_wait_seconds(self) -> float:
        return self.max_wait_hours * 3600.0


@dataclass
class AppConfig:
    output: OutputConfig
    tools: dict[str, ToolSettings]
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    processing: ProcessingConfig | None = None

    def validated(self) -> AppConfig:
        if self.processing is not None:
            self.processing = self.processing.validated()
        self.output = self.output.validated()
        self.execution = self.execution.validated()
        self.tools = {name.lower(): s.validated() for name, s in self.tools.items()}
        return self

    def enabled_tools(self) -> dict[str, ToolSettings]:
        return {name: s for name, s in self.tools.items() if s.enabled}
