"""Core configuration and domain models."""

from .config import (
    AppConfig,
    ExecutionConfig,
    OutputConfig,
    ProcessingConfig,
    ToolSettings,
)
from .models import Chunk, JobStatus, PartitionPlan, RunStatus, SequencingOutcome

__all__ = [
    "AppConfig",
    "ExecutionConfig",
    "OutputConfig",
    "ProcessingConfig",
    "ToolSettings",
    "Chunk",
    "JobStatus",
    "PartitionPlan",
    "RunStatus",
    "SequencingOutcome",
]
