"""Orchestration layer: jobs, the worker pool and the per-file sequencing runner."""

from .job import Job
from .parallel import JobExecutor, JobTracker
from .runner import SequencingRunner

__all__ = ["Job", "JobExecutor", "JobTracker", "SequencingRunner"]
