from __future__ import annotations

import itertools
import logging
import threading
import time
from pathlib import Path
from typing import Callable, Iterable, Sequence

from denovo_runner.core.config import AppConfig, ToolSettings
from denovo_runner.core.errors import OutputMissing
from denovo_runner.core.models import (
    Chunk,
    JobStatus,
    PartitionPlan,
    RunStatus,
    SequencingOutcome,
)
from denovo_runner.core.paths import find_result_files, output_path, result_path
from denovo_runner.orchestration.job import Job, RunnerFactory
from denovo_runner.orchestration.parallel import JobExecutor, JobTracker
from denovo_runner.services.chunking import MgfChunkingService
from denovo_runner.services.interfaces import (
    ChunkingService,
    MergingService,
    RecordCounts,
    Reporter,
)
from denovo_runner.services.merging import FileMergingService, delete_files
from denovo_runner.services.process import ProcessRunner
from denovo_runner.tools.profile import ToolInvocation, ToolProfile
from denovo_runner.tools.registry import ToolProfileRegistry

logger = logging.getLogger("denovo_runner.runner")

PreparationStep = tuple[str, Callable[[], object]]
ConfiguredTool = tuple[ToolProfile, ToolSettings]


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" + ("s" if n != 1 else "")


class SequencingRunner:
    """Runs the enabled tools over a sequence of spectrum files, one file at a time.

    Per file: report the partition plan, chunk the input for tools that do not
    parallelize internally (falling back to one whole-file job when any chunk is
    missing), submit every job to a fixed-size pool, wait with a bounded ceiling,
    then merge partition outputs in chunk order and delete the chunks.
    ``cancel_sequencing`` may be called from another thread at any time.
    """

    def __init__(
        self,
        config: AppConfig,
        registry: ToolProfileRegistry,
        records: RecordCounts,
        *,
        chunker: ChunkingService | None = None,
        merger: MergingService | None = None,
        preparation: Sequence[PreparationStep] = (),
        runner_factory: RunnerFactory = ProcessRunner,
    ) -> None:
        self.config = config.validated()
        self.registry = registry
        self.records = records
        self.chunker = chunker or MgfChunkingService(chunk_dir=self.config.output.chunk_dir)
        self.merger = merger or FileMergingService()
        self.preparation = list(preparation)
        self._runner_factory = runner_factory
        self._job_ids = itertools.count(1)

        self._lock = threading.Lock()
        self._cleanup_lock = threading.RLock()
        self._jobs: list[Job] = []
        self._tracker: JobTracker | None = None
        self._executor: JobExecutor | None = None
        self._chunks: list[Chunk] = []
        self._partition_outputs: list[Path] = []
        self._cancel_requested = threading.Event()
        self._failed = False

    @property
    def threads(self) -> int:
        return int(self.config.execution.threads or 1)

    @property
    def output_root(self) -> Path:
        return self.config.output.output_root

    def enabled_tools(self) -> list[ConfiguredTool]:
        return [
            (self.registry.get(name), settings)
            for name, settings in self.config.enabled_tools().items()
        ]

    def start_sequencing(
        self, spectrum_files: Iterable[Path], reporter: Reporter
    ) -> SequencingOutcome:
        files = [Path(f) for f in spectrum_files]
        start = time.monotonic()
        self._cancel_requested.clear()
        self._failed = False
        tools = self.enabled_tools()
        job_errors: list[tuple[str, str]] = []

        reporter.set_max_primary_progress_counter(len(files) + 1)
        reporter.set_secondary_progress_counter_indeterminate(True)

        for description, step in self.preparation:
            try:
                step()
            except Exception as e:  # noqa: BLE001
                logger.exception("Preparation step failed: %s", description)
                reporter.append_report(f"An error occurred while {description}: {e}")
                self._fail_run(reporter)
                return self._outcome(reporter, start, job_errors)

        try:
            n_records = sum(self.records.count(f) for f in files)
        except KeyError as e:
            reporter.append_report(f"Could not count the spectra: {e}")
            self._fail_run(reporter)
            return self._outcome(reporter, start, job_errors)

        reporter.append_report(
            f"Starting de novo sequencing: {n_records} spectra in "
            f"{_plural(len(files), 'file')} using {_plural(self.threads, 'thread')}."
        )
        reporter.append_report_end_line()
        reporter.increase_primary_progress_counter()

        for spectrum_file in files:
            job_errors.extend(
                self._sequence_file(spectrum_file, tools, reporter, secondary_progress=len(files) > 1)
            )
            reporter.increase_primary_progress_counter()
            if reporter.is_run_canceled():
                break

        if reporter.is_run_canceled():
            return self._outcome(reporter, start, job_errors)

        elapsed = time.monotonic() - start
        reporter.append_report(f"Total sequencing time: {elapsed:.2f} sec.")

        result_files = find_result_files(self.output_root, files, [p for p, _ in tools])
        if not result_files:
            reporter.append_report_end_line()
            reporter.append_report("The de novo sequencing did not generate any output files!")
            self._fail_run(reporter)
            return self._outcome(reporter, start, job_errors)

        reporter.set_run_finished()
        return SequencingOutcome(
            status=RunStatus.FINISHED,
            result_files=result_files,
            job_errors=job_errors,
            elapsed=elapsed,
        )

    def cancel_sequencing(self, reporter: Reporter) -> None:
        """Cancel every tracked job, drain the pool and delete partition files."""
        self._cancel_requested.set()
        reporter.set_run_canceled()
        with self._lock:
            jobs = list(self._jobs)
            tracker = self._tracker
            executor = self._executor
        for job in jobs:
            job.cancel()
        if tracker is not None and not tracker.wait_all(
            timeout=self.config.execution.max_wait_seconds
        ):
            logger.warning("Jobs still running after cancellation wait")
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)
        self._cleanup_partitions(reporter)

    def _sequence_file(
        self,
        spectrum_file: Path,
        tools: Sequence[ConfiguredTool],
        reporter: Reporter,
        *,
        secondary_progress: bool,
    ) -> list[tuple[str, str]]:
        try:
            n_records = self.records.count(spectrum_file)
        except KeyError as e:
            reporter.append_report(f"Could not count the spectra in {spectrum_file.name}: {e}")
            self._fail_run(reporter)
            return []

        plan = PartitionPlan.for_records(n_records, self.threads)
        reporter.append_report(f"Processing {spectrum_file.name} ({plan.describe()}).")

        partitioned = [(p, s) for p, s in tools if not p.internal_parallelism]
        internal = [(p, s) for p, s in tools if p.internal_parallelism]

        chunks: list[Chunk] = []
        if partitioned and plan.n_chunks > 0:
            reporter.append_report("Preparing the spectra.")
            chunks = self.chunker.chunk(
                spectrum_file, plan.chunk_size, plan.remainder, n_records, reporter=reporter
            )
            with self._lock:
                self._chunks = list(chunks)

        if reporter.is_run_canceled():
            self._cleanup_partitions(reporter)
            return []

        reporter.set_waiting_text(f"Processing {spectrum_file.name}.")
        if secondary_progress:
            reporter.reset_secondary_progress_counter()
            reporter.set_max_secondary_progress_counter(n_records)
        else:
            reporter.set_secondary_progress_counter_indeterminate(True)

        chunked = bool(chunks) and all(chunk.exists() for chunk in chunks)
        if partitioned and chunks and not chunked:
            names = ", ".join(p.display_name for p, _ in partitioned)
            logger.warning("Chunking of %s incomplete, falling back to one job", spectrum_file.name)
            reporter.append_report(
                f"Processing of the spectra failed. Only one thread will be used for {names}."
            )
            self._cleanup_partitions(reporter)
            chunks = []

        if (partitioned and not chunked) or internal:
            if not spectrum_file.exists():
                reporter.append_report(f"Spectrum file {spectrum_file.name} not found.")
                return []

        jobs: list[Job] = []
        partition_jobs: dict[str, list[Job]] = {}
        try:
            for profile, settings in partitioned:
                if chunked:
                    part = [
                        self._make_job(profile, settings, chunk.path, reporter, n_records)
                        for chunk in chunks
                    ]
                    partition_jobs[profile.name] = part
                    jobs.extend(part)
                else:
                    jobs.append(self._make_job(profile, settings, spectrum_file, reporter, n_records))
            for profile, settings in internal:
                jobs.append(
                    self._make_job(
                        profile, settings, spectrum_file, reporter, n_records, threads=self.threads
                    )
                )
            for job in jobs:
                job.write_command()
        except ValueError as e:
            reporter.append_report(f"Could not build the command line for {spectrum_file.name}: {e}")
            self._fail_run(reporter)
            self._cleanup_partitions(reporter)
            return []

        with self._lock:
            self._jobs = list(jobs)
            self._partition_outputs = [j.result_path for part in partition_jobs.values() for j in part]

        reporter.append_report_end_line()
        reporter.append_report(f"Starting de novo sequencing of {spectrum_file.name}.")
        reporter.append_report_end_line()

        completed = self._run_jobs(jobs, reporter, spectrum_file)
        errors = [(j.description, j.error or "") for j in jobs if j.status is JobStatus.ERROR]

        if reporter.is_run_canceled():
            self._cleanup_partitions(reporter)
            return errors
        if not completed:
            errors.extend(
                (j.description, "timed out") for j in jobs if j.status is JobStatus.CANCELED
            )

        reporter.append_report_end_line()
        reporter.append_report(f"Sequencing of {spectrum_file.name} finished.")
        reporter.append_report_end_line()
        reporter.set_secondary_progress_counter_indeterminate(True)

        self._merge_partitions(spectrum_file, partitioned, partition_jobs, chunks, reporter)
        with self._lock:
            self._jobs = []
        return errors

    def _make_job(
        self,
        profile: ToolProfile,
        settings: ToolSettings,
        input_path: Path,
        reporter: Reporter,
        total_items: int,
        *,
        threads: int | None = None,
    ) -> Job:
        executable = settings.folder / (settings.executable or profile.default_executable())
        invocation = ToolInvocation(
            executable=executable,
            tool_folder=settings.folder,
            input_path=input_path,
            output_path=output_path(profile, input_path, self.output_root),
            output_folder=self.output_root,
            threads=threads,
            parameters=dict(settings.parameters),
        )
        return Job(
            next(self._job_ids),
            profile,
            invocation,
            reporter,
            total_items=total_items,
            wait_timeout=self.config.execution.max_wait_seconds,
            runner_factory=self._runner_factory,
        )

    def _run_jobs(self, jobs: Sequence[Job], reporter: Reporter, spectrum_file: Path) -> bool:
        tracker = JobTracker()
        executor = JobExecutor(self.threads)
        with self._lock:
            self._tracker = tracker
            self._executor = executor
        max_wait = self.config.execution.max_wait_seconds
        completed = True
        try:
            for job in jobs:
                if reporter.is_run_canceled():
                    break
                tracker.submit(job, executor)
            completed = tracker.wait_all(timeout=max_wait)
            if not completed:
                hours = self.config.execution.max_wait_hours
                reporter.append_report(
                    f"Sequencing of {spectrum_file.name} did not complete within "
                    f"{hours:g} hours, stopping the remaining jobs."
                )
                tracker.cancel_all()
        except KeyboardInterrupt:
            if not reporter.is_run_canceled():
                self.cancel_sequencing(reporter)
            raise
        finally:
            executor.shutdown(wait=True, cancel_futures=True)
            with self._lock:
                self._tracker = None
                self._executor = None
        logger.debug("Peak running jobs for %s: %d", spectrum_file.name, tracker.peak_running)
        return completed

    def _merge_partitions(
        self,
        spectrum_file: Path,
        partitioned: Sequence[ConfiguredTool],
        partition_jobs: dict[str, list[Job]],
        chunks: Sequence[Chunk],
        reporter: Reporter,
    ) -> None:
        chunk_paths = [c.path for c in chunks]
        with self._cleanup_lock:
            if reporter.is_run_canceled():
                self._cleanup_partitions(reporter)
                return
            for profile, _ in partitioned:
                part = partition_jobs.get(profile.name)
                if not part:
                    continue
                outputs = [j.result_path for j in part]
                failed = [j for j in part if j.status is not JobStatus.FINISHED]
                if failed:
                    reporter.append_report(
                        f"{profile.display_name} did not complete {len(failed)} of "
                        f"{len(part)} chunks of {spectrum_file.name}, partial results discarded."
                    )
                    self.merger.discard(outputs, reporter=reporter)
                    continue
                destination = result_path(profile, spectrum_file, self.output_root)
                try:
                    self.merger.merge(
                        outputs, destination, input_parts=chunk_paths, reporter=reporter
                    )
                except (OutputMissing, OSError) as e:
                    reporter.append_report(
                        f"An error occurred while merging the {profile.display_name} "
                        f"results for {spectrum_file.name}: {e}"
                    )
                    self.merger.discard(outputs, reporter=reporter)
                    self._fail_run(reporter)
            delete_files(chunk_paths, reporter)
            with self._lock:
                self._chunks = []
                self._partition_outputs = []

    def _cleanup_partitions(self, reporter: Reporter) -> None:
        with self._cleanup_lock:
            with self._lock:
                chunks, self._chunks = self._chunks, []
                outputs, self._partition_outputs = self._partition_outputs, []
            if not chunks and not outputs:
                return
            self.merger.discard(outputs, input_parts=[c.path for c in chunks], reporter=reporter)
            logger.info("Removed %d partition output(s) and %d chunk(s)", len(outputs), len(chunks))

    def _fail_run(self, reporter: Reporter) -> None:
        self._failed = True
        reporter.set_run_canceled()

    def _outcome(
        self, reporter: Reporter, start: float, job_errors: list[tuple[str, str]]
    ) -> SequencingOutcome:
        elapsed = time.monotonic() - start
        if self._cancel_requested.is_set() and not self._failed:
            reporter.append_report("Sequencing canceled.")
            status = RunStatus.CANCELED
        else:
            status = RunStatus.FAILED
        return SequencingOutcome(status=status, job_errors=job_errors, elapsed=elapsed)
