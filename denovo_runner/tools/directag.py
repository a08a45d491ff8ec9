from __future__ import annotations

from .profile import OutputHandling, SinkKind, ToolInvocation, ToolProfile, flag_arguments
from .registry import ToolProfileRegistry


def build_directag_command(invocation: ToolInvocation) -> list[str]:
    command = [str(invocation.executable)]
    if invocation.threads:
        command.extend(["-ProcessingThreads", str(invocation.threads)])
    command.extend(["-workdir", str(invocation.output_folder)])
    command.extend(flag_arguments(invocation.parameters))
    command.append(str(invocation.input_path))
    return command


# DirecTag writes <stem>.tags into its workdir; stdout is kept as a log and echoed.
DIRECTAG = ToolProfile(
    name="directag",
    display_name="DirecTag",
    internal_parallelism=True,
    build_command=build_directag_command,
    output_pattern="{stem}.tags",
    output=OutputHandling(sink=SinkKind.LOG, echo=True),
    executables={"win": "directag.exe", "posix": "directag"},
)


def register_directag(registry: ToolProfileRegistry) -> None:
    registry.register(DIRECTAG)
