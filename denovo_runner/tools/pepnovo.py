from __future__ import annotations

from .profile import (
    OutputHandling,
    ProgressCadence,
    SinkKind,
    ToolInvocation,
    ToolProfile,
)
from .registry import ToolProfileRegistry

# PepNovo+ prints one ">>" header per spectrum before its solutions.
SPECTRUM_MARKER = ">>"

DEFAULTS = {
    "model": "CID_IT_TRYP",
    "fragment_tolerance": 0.5,
    "precursor_tolerance": 2.5,
    "num_solutions": 10,
    "digest": "TRYPSIN",
}

_SWITCHES = {
    "correct_precursor_mass": "-correct_pm",
    "use_spectrum_charge": "-use_spectrum_charge",
    "use_spectrum_mz": "-use_spectrum_mz",
    "no_quality_filter": "-no_quality_filter",
}


def build_pepnovo_command(invocation: ToolInvocation) -> list[str]:
    params = {**DEFAULTS, **dict(invocation.parameters)}
    command = [
        str(invocation.executable),
        "-file",
        str(invocation.input_path),
        "-model",
        str(params["model"]),
        "-fragment_tolerance",
        str(params["fragment_tolerance"]),
        "-pm_tolerance",
        str(params["precursor_tolerance"]),
        "-digest",
        str(params["digest"]),
        "-num_solutions",
        str(params["num_solutions"]),
    ]
    ptms = params.get("ptms") or []
    if ptms:
        command.extend(["-PTMs", ":".join(str(p) for p in ptms)])
    tag_length = params.get("tag_length")
    if tag_length:
        command.extend(["-tag_length", str(tag_length)])
    for key, switch in _SWITCHES.items():
        if params.get(key):
            command.append(switch)
    command.extend(["-model_dir", str(invocation.tool_folder / "Models")])
    return command


PEPNOVO = ToolProfile(
    name="pepnovo",
    display_name="PepNovo+",
    internal_parallelism=False,
    build_command=build_pepnovo_command,
    output_pattern="{name}.out",
    output=OutputHandling(
        sink=SinkKind.RESULT,
        echo=False,
        progress_marker=SPECTRUM_MARKER,
        cadence=ProgressCadence(),
    ),
    executables={"win": "PepNovo.exe", "posix": "PepNovo_bin"},
)


def register_pepnovo(registry: ToolProfileRegistry) -> None:
    registry.register(PEPNOVO)
