from __future__ import annotations

from denovo_runner.tools.directag import DIRECTAG, register_directag
from denovo_runner.tools.novor import NOVOR, register_novor
from denovo_runner.tools.pepnovo import PEPNOVO, register_pepnovo
from denovo_runner.tools.pnovo import PNOVO, register_pnovo
from denovo_runner.tools.profile import (
    OutputHandling,
    ProgressCadence,
    RenameRule,
    SinkKind,
    ToolInvocation,
    ToolProfile,
)
from denovo_runner.tools.registry import ToolProfileRegistry

__all__ = [
    "DIRECTAG",
    "NOVOR",
    "PEPNOVO",
    "PNOVO",
    "OutputHandling",
    "ProgressCadence",
    "RenameRule",
    "SinkKind",
    "ToolInvocation",
    "ToolProfile",
    "ToolProfileRegistry",
    "build_default_registry",
]


def build_default_registry() -> ToolProfileRegistry:
    """Factory that registers the built-in tool profiles."""
    registry = ToolProfileRegistry()
    register_pepnovo(registry)
    register_directag(registry)
    register_pnovo(registry)
    register_novor(registry)
    return registry
