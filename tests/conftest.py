"""Pytest configuration and shared fixtures."""

import sys
import time
from pathlib import Path

import pytest

from denovo_runner.tools.profile import (
    OutputHandling,
    ProgressCadence,
    SinkKind,
    ToolInvocation,
    ToolProfile,
)
from denovo_runner.utils.progress import BufferedReporter

FAKE_TOOL = Path(__file__).parent / "fake_tool.py"


def write_mgf(path, n_records, *, first=0):
    """Write an MGF file with a one-line preamble and ``n_records`` spectra titled specN."""
    lines = ["COM=test file"]
    for i in range(first, first + n_records):
        lines += ["BEGIN IONS", f"TITLE=spec{i}", "PEPMASS=500.0", "100.0 10.0", "END IONS", ""]
    path.write_text("\n".join(lines) + "\n")
    return path


def fake_profile(
    name,
    mode,
    *,
    internal=False,
    sink=SinkKind.RESULT,
    marker=">>",
    pattern="{name}.out",
    rename=None,
    echo=False,
    executable=None,
):
    """Tool profile that runs tests/fake_tool.py in ``mode``."""

    def build(invocation: ToolInvocation) -> list[str]:
        program = [str(executable)] if executable is not None else [sys.executable, str(FAKE_TOOL)]
        command = program + [mode, str(invocation.input_path), str(invocation.output_path)]
        if invocation.threads:
            command += ["--threads", str(invocation.threads)]
        return command

    return ToolProfile(
        name=name,
        display_name=name.title(),
        internal_parallelism=internal,
        build_command=build,
        output_pattern=pattern,
        output=OutputHandling(
            sink=sink, echo=echo, progress_marker=marker, cadence=ProgressCadence()
        ),
        rename=rename,
        executables={"posix": "fake", "win": "fake.exe"},
    )


def wait_for(predicate, timeout=10.0, interval=0.02):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def reporter():
    return BufferedReporter()


@pytest.fixture
def tool_dir(tmp_path):
    folder = tmp_path / "tools"
    folder.mkdir()
    return folder


@pytest.fixture
def spectra_dir(tmp_path):
    folder = tmp_path / "spectra"
    folder.mkdir()
    return folder


@pytest.fixture
def output_dir(tmp_path):
    folder = tmp_path / "out"
    folder.mkdir()
    return folder


@pytest.fixture
def invocation_for(tool_dir, output_dir):
    """Build a ToolInvocation for ``profile`` on ``input_path``."""

    def _make(profile, input_path, *, threads=None, parameters=None):
        return ToolInvocation(
            executable=tool_dir / "fake",
            tool_folder=tool_dir,
            input_path=input_path,
            output_path=output_dir / profile.output_name(input_path),
            output_folder=output_dir,
            threads=threads,
            parameters=parameters or {},
        )

    return _make
