from __future__ import annotations

from .profile import OutputHandling, RenameRule, SinkKind, ToolInvocation, ToolProfile
from .registry import ToolProfileRegistry


def build_pnovo_command(invocation: ToolInvocation) -> list[str]:
    # pNovo+ reads the spectra, output folder and thread count from its
    # parameter file, so every spectrum file needs a parameter file of its own.
    # "{stem}" and "{name}" in param_file select it per input file.
    template = str(invocation.require("param_file"))
    try:
        param_file = template.format(stem=invocation.input_path.stem, name=invocation.input_path.name)
    except (KeyError, IndexError, ValueError) as e:
        raise ValueError(f"Invalid pNovo+ param_file template {template!r}: {e}") from e
    return [str(invocation.executable), param_file, str(invocation.output_folder)]


PNOVO = ToolProfile(
    name="pnovo",
    display_name="pNovo+",
    internal_parallelism=True,
    build_command=build_pnovo_command,
    output_pattern="{stem}.txt",
    output=OutputHandling(sink=SinkKind.NONE, echo=True),
    rename=RenameRule(new_suffix=".pnovo.txt"),
    executables={"win": "pNovoplus.exe"},
)


def register_pnovo(registry: ToolProfileRegistry) -> None:
    registry.register(PNOVO)
