from __future__ import annotations

from .profile import OutputHandling, SinkKind, ToolInvocation, ToolProfile
from .registry import ToolProfileRegistry


def build_novor_command(invocation: ToolInvocation) -> list[str]:
    param_file = invocation.require("param_file")
    return [
        str(invocation.executable),
        "-f",
        "-o",
        str(invocation.output_path),
        "-p",
        str(param_file),
        str(invocation.input_path),
    ]


NOVOR = ToolProfile(
    name="novor",
    display_name="Novor",
    internal_parallelism=True,
    build_command=build_novor_command,
    output_pattern="{stem}.novor.csv",
    output=OutputHandling(sink=SinkKind.NONE, echo=True),
    executables={"win": "novor.bat", "posix": "novor.sh"},
)


def register_novor(registry: ToolProfileRegistry) -> None:
    registry.register(NOVOR)
