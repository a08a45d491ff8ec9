import threading

import pytest

from conftest import fake_profile, wait_for, write_mgf
from denovo_runner.core.config import AppConfig, ExecutionConfig, OutputConfig, ToolSettings
from denovo_runner.core.models import RunStatus
from denovo_runner.orchestration.runner import SequencingRunner
from denovo_runner.services.chunking import MgfChunkingService
from denovo_runner.services.records import RecordIndex
from denovo_runner.tools.profile import SinkKind
from denovo_runner.tools.registry import ToolProfileRegistry


def _registry(*profiles):
    registry = ToolProfileRegistry()
    for profile in profiles:
        registry.register(profile)
    return registry


def _config(output_dir, tool_dir, names, *, threads=3, parameters=None, max_wait_hours=0.05):
    return AppConfig(
        output=OutputConfig(output_root=output_dir),
        execution=ExecutionConfig(threads=threads, max_wait_hours=max_wait_hours),
        tools={
            name: ToolSettings(folder=tool_dir, parameters=(parameters or {}).get(name, {}))
            for name in names
        },
    )


def _runner(output_dir, tool_dir, files, *profiles, threads=3, max_wait_hours=0.05, **kwargs):
    return SequencingRunner(
        _config(
            output_dir,
            tool_dir,
            [p.name for p in profiles],
            threads=threads,
            max_wait_hours=max_wait_hours,
        ),
        _registry(*profiles),
        RecordIndex.from_files(files),
        **kwargs,
    )


def _chunk_files(spectra_dir):
    return sorted(p.name for p in spectra_dir.glob("*_*.mgf"))


class DroppingChunker(MgfChunkingService):
    """Writes every chunk, then loses the second one."""

    def chunk(self, input_file, chunk_size, remainder, total_records, *, reporter=None):
        chunks = super().chunk(input_file, chunk_size, remainder, total_records, reporter=reporter)
        chunks[1].path.unlink()
        return chunks


def test_partition_outputs_merged_in_chunk_order(spectra_dir, output_dir, tool_dir, reporter):
    source = write_mgf(spectra_dir / "sample.mgf", 10)
    profile = fake_profile("fakeseq", "markers")
    runner = _runner(output_dir, tool_dir, [source], profile)

    outcome = runner.start_sequencing([source], reporter)

    merged = output_dir / "sample.mgf.out"
    assert outcome.status is RunStatus.FINISHED
    assert outcome.result_files == [merged]
    assert merged.read_text().splitlines() == [f">> spec{i}" for i in range(10)]
    assert sorted(p.name for p in output_dir.iterdir()) == ["sample.mgf.out"]
    assert _chunk_files(spectra_dir) == []
    assert reporter.is_run_finished()
    text = reporter.report
    assert "Processing sample.mgf (10 spectra, 3-4 spectra per thread)." in text
    assert "Starting de novo sequencing: 10 spectra in 1 file using 3 threads." in text
    assert "Sequencing of sample.mgf finished." in text
    assert "Total sequencing time:" in text


def test_internal_tool_gets_thread_count(spectra_dir, output_dir, tool_dir, reporter):
    source = write_mgf(spectra_dir / "sample.mgf", 4)
    profile = fake_profile(
        "fakeint", "write", internal=True, sink=SinkKind.NONE, marker=None, pattern="{stem}.res"
    )
    runner = _runner(output_dir, tool_dir, [source], profile, threads=2)

    outcome = runner.start_sequencing([source], reporter)

    assert outcome.status is RunStatus.FINISHED
    assert (output_dir / "sample.res").read_text().splitlines() == [f"spec{i}" for i in range(4)]
    assert "--threads 2" in reporter.report
    assert _chunk_files(spectra_dir) == []


def test_partitioned_and_internal_tools_together(spectra_dir, output_dir, tool_dir, reporter):
    files = [write_mgf(spectra_dir / "a.mgf", 5), write_mgf(spectra_dir / "b.mgf", 3, first=5)]
    partitioned = fake_profile("fakeseq", "markers")
    internal = fake_profile(
        "fakeint", "write", internal=True, sink=SinkKind.NONE, marker=None, pattern="{stem}.res"
    )
    runner = _runner(output_dir, tool_dir, files, partitioned, internal, threads=2)

    outcome = runner.start_sequencing(files, reporter)

    assert outcome.status is RunStatus.FINISHED
    assert sorted(p.name for p in outcome.result_files) == [
        "a.mgf.out",
        "a.res",
        "b.mgf.out",
        "b.res",
    ]
    assert (output_dir / "b.mgf.out").read_text().splitlines() == [
        ">> spec5",
        ">> spec6",
        ">> spec7",
    ]
    assert reporter.primary_counter == 3


def test_missing_chunk_falls_back_to_single_job(spectra_dir, output_dir, tool_dir, reporter):
    source = write_mgf(spectra_dir / "sample.mgf", 10)
    profile = fake_profile("fakeseq", "markers")
    runner = _runner(output_dir, tool_dir, [source], profile, chunker=DroppingChunker())

    outcome = runner.start_sequencing([source], reporter)

    assert outcome.status is RunStatus.FINISHED
    assert "Only one thread will be used for Fakeseq." in reporter.report
    merged = output_dir / "sample.mgf.out"
    assert merged.read_text().splitlines() == [f">> spec{i}" for i in range(10)]
    assert _chunk_files(spectra_dir) == []
    assert source.exists()


def test_wait_ceiling_stops_jobs_and_fails_run(spectra_dir, output_dir, tool_dir, reporter):
    source = write_mgf(spectra_dir / "sample.mgf", 4)
    profile = fake_profile("fakeseq", "hang")
    runner = _runner(output_dir, tool_dir, [source], profile, threads=2, max_wait_hours=0.0005)

    outcome = runner.start_sequencing([source], reporter)

    assert outcome.status is RunStatus.FAILED
    assert outcome.job_errors
    assert all(err == "timed out" for _, err in outcome.job_errors)
    text = reporter.report
    assert "Sequencing of sample.mgf did not complete within 0.0005 hours" in text
    assert "Fakeseq did not complete 2 of 2 chunks of sample.mgf" in text
    assert _chunk_files(spectra_dir) == []
    assert list(output_dir.iterdir()) == []


def test_zero_records_runs_single_job(spectra_dir, output_dir, tool_dir, reporter):
    source = write_mgf(spectra_dir / "empty.mgf", 0)
    profile = fake_profile("fakeseq", "markers")
    runner = _runner(output_dir, tool_dir, [source], profile)

    outcome = runner.start_sequencing([source], reporter)

    assert outcome.status is RunStatus.FINISHED
    assert (output_dir / "empty.mgf.out").read_text() == ""
    assert "Only one thread" not in reporter.report


def test_no_tools_reports_missing_output(spectra_dir, output_dir, tool_dir, reporter):
    source = write_mgf(spectra_dir / "sample.mgf", 3)
    runner = _runner(output_dir, tool_dir, [source])

    outcome = runner.start_sequencing([source], reporter)

    assert outcome.status is RunStatus.FAILED
    assert "The de novo sequencing did not generate any output files!" in reporter.report
    assert reporter.is_run_canceled()
    assert not reporter.is_run_finished()


def test_spawn_failure_discards_partitions(spectra_dir, output_dir, tool_dir, tmp_path, reporter):
    source = write_mgf(spectra_dir / "sample.mgf", 6)
    profile = fake_profile("fakeseq", "markers", executable=tmp_path / "missing-binary")
    runner = _runner(output_dir, tool_dir, [source], profile)

    outcome = runner.start_sequencing([source], reporter)

    assert outcome.status is RunStatus.FAILED
    assert len(outcome.job_errors) == 3
    assert "Fakeseq did not complete 3 of 3 chunks of sample.mgf" in reporter.report
    assert list(output_dir.iterdir()) == []
    assert _chunk_files(spectra_dir) == []


def test_preparation_failure_fails_run(spectra_dir, output_dir, tool_dir, reporter):
    source = write_mgf(spectra_dir / "sample.mgf", 3)

    def boom():
        raise OSError("disk full")

    runner = _runner(
        output_dir,
        tool_dir,
        [source],
        fake_profile("fakeseq", "markers"),
        preparation=[("writing the modification file", boom)],
    )

    outcome = runner.start_sequencing([source], reporter)

    assert outcome.status is RunStatus.FAILED
    assert "An error occurred while writing the modification file: disk full" in reporter.report
    assert _chunk_files(spectra_dir) == []


def test_command_build_error_fails_run(spectra_dir, output_dir, tool_dir, reporter):
    from denovo_runner.tools.pnovo import PNOVO

    source = write_mgf(spectra_dir / "sample.mgf", 3)
    runner = _runner(output_dir, tool_dir, [source], PNOVO)

    outcome = runner.start_sequencing([source], reporter)

    assert outcome.status is RunStatus.FAILED
    assert "Missing required tool parameter 'param_file'" in reporter.report


def test_cancel_cleans_up_partitions(spectra_dir, output_dir, tool_dir, reporter):
    source = write_mgf(spectra_dir / "sample.mgf", 4)
    profile = fake_profile("fakeseq", "hang")
    runner = _runner(output_dir, tool_dir, [source], profile, threads=2)
    outcomes = []
    worker = threading.Thread(
        target=lambda: outcomes.append(runner.start_sequencing([source], reporter))
    )
    worker.start()
    assert wait_for(lambda: "Starting de novo sequencing of sample.mgf." in reporter.report)

    runner.cancel_sequencing(reporter)
    worker.join(timeout=60)

    assert not worker.is_alive()
    assert outcomes[0].status is RunStatus.CANCELED
    assert "Sequencing canceled." in reporter.report
    assert _chunk_files(spectra_dir) == []
    assert list(output_dir.iterdir()) == []
    assert source.exists()


@pytest.mark.parametrize("threads", [1, 4])
def test_single_chunk_plan(spectra_dir, output_dir, tool_dir, reporter, threads):
    source = write_mgf(spectra_dir / "sample.mgf", 1)
    runner = _runner(output_dir, tool_dir, [source], fake_profile("fakeseq", "markers"), threads=threads)

    outcome = runner.start_sequencing([source], reporter)

    assert outcome.status is RunStatus.FINISHED
    assert (output_dir / "sample.mgf.out").read_text() == ">> spec0\n"
