"""Failure taxonomy shared by jobs, services and the runner."""

from __future__ import annotations


class SequencingError(RuntimeError):
    """Base class for failures raised inside the sequencing engine."""


class SpawnFailure(SequencingError):
    """The external tool process could not be started."""


class StreamFault(SequencingError):
    """Reading tool output or writing the output sink failed."""


class InterruptedWait(SequencingError):
    """Waiting for the tool to exit was cut short."""


class PartitionFailure(SequencingError):
    """A chunk of the input file could not be written."""


class OutputMissing(SequencingError):
    """An expected partition output was not found when merging."""
