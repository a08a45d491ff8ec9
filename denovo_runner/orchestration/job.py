from __future__ import annotations

import logging
import shlex
import subprocess
import threading
from concurrent.futures import Executor, Future
from pathlib import Path
from typing import Callable, Sequence

from denovo_runner.core.errors import InterruptedWait, SequencingError, StreamFault
from denovo_runner.core.models import JobStatus
from denovo_runner.services.interfaces import Reporter
from denovo_runner.services.output import OutputConsumer, OutputSink, make_sink
from denovo_runner.services.process import ProcessRunner
from denovo_runner.tools.profile import ToolInvocation, ToolProfile

logger = logging.getLogger("denovo_runner.job")

StatusListener = Callable[["Job", JobStatus], None]
RunnerFactory = Callable[..., ProcessRunner]


class Job:
    """One invocation of one external tool against one input unit.

    Lifecycle: WAITING -> RUNNING -> FINISHED | ERROR, or CANCELED from WAITING or
    RUNNING. Every status change goes through ``_transition`` under one lock, so a
    cancel request racing the worker's terminal transition resolves to exactly one
    terminal state which is never left again.
    """

    def __init__(
        self,
        job_id: int,
        profile: ToolProfile,
        invocation: ToolInvocation,
        reporter: Reporter,
        *,
        total_items: int = 0,
        wait_timeout: float | None = None,
        runner_factory: RunnerFactory = ProcessRunner,
    ) -> None:
        self.id = job_id
        self.profile = profile
        self.invocation = invocation
        self.reporter = reporter
        self.total_items = total_items
        self.wait_timeout = wait_timeout
        self.returncode: int | None = None
        self._runner_factory = runner_factory
        self._lock = threading.Lock()
        self._status = JobStatus.WAITING
        self._error: str | None = None
        self._failure: Exception | None = None
        self._process: ProcessRunner | None = None
        self._command: list[str] | None = None
        self._future: Future | None = None
        self._listeners: list[StatusListener] = []

    def __repr__(self) -> str:
        return f"Job(id={self.id}, tool={self.profile.name}, input={self.input_path.name}, status={self.status.name})"

    @property
    def description(self) -> str:
        return f"{self.profile.display_name} ({self.input_path.name})"

    @property
    def input_path(self) -> Path:
        return self.invocation.input_path

    @property
    def output_path(self) -> Path:
        return self.invocation.output_path

    @property
    def result_path(self) -> Path:
        if self.profile.rename is None:
            return self.output_path
        return self.profile.rename.apply(self.output_path)

    @property
    def command(self) -> list[str] | None:
        return list(self._command) if self._command is not None else None

    @property
    def status(self) -> JobStatus:
        with self._lock:
            return self._status

    @property
    def error(self) -> str | None:
        with self._lock:
            return self._error

    @property
    def failure(self) -> Exception | None:
        with self._lock:
            return self._failure

    @property
    def process(self) -> ProcessRunner | None:
        with self._lock:
            return self._process

    def add_listener(self, listener: StatusListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def write_command(self) -> list[str]:
        """Build and record the command line; only valid before ``execute``."""
        with self._lock:
            if self._future is not None or self._status is not JobStatus.WAITING:
                raise RuntimeError(f"{self.description}: command must be written before execution")
        command = [str(c) for c in self.profile.build_command(self.invocation)]
        self._command = command
        text = " ".join(shlex.quote(c) for c in command)
        logger.info("%s command: %s", self.description, text)
        self.reporter.append_report(f"{self.profile.display_name} command: {text}", timestamp=False)
        return command

    def execute(self, executor: Executor) -> Future:
        """Submit the job to ``executor`` without blocking."""
        with self._lock:
            if self._future is not None and self._status is JobStatus.WAITING:
                return self._future
            if self._status is JobStatus.CANCELED and self._future is None:
                done: Future = Future()
                done.set_result(JobStatus.CANCELED)
                self._future = done
                return done
            if self._future is not None or self._status is not JobStatus.WAITING:
                raise RuntimeError(f"{self.description} was already executed ({self._status.name})")
        if self._command is None:
            self.write_command()
        with self._lock:
            self._future = executor.submit(self.run)
            return self._future

    def cancel(self) -> None:
        """Cancel from any thread; kills the attached process without waiting for it."""
        if not self._transition(JobStatus.CANCELED):
            return
        process = self.process
        if process is not None:
            process.kill()
            logger.info("%s canceled, process killed.", self.description)
        else:
            logger.info("%s canceled.", self.description)

    def run(self) -> JobStatus:
        """Worker body: spawn, consume output, wait for exit, post-process."""
        if not self._transition(JobStatus.RUNNING, expected=(JobStatus.WAITING,)):
            return self.status
        sink = make_sink(self.profile.output.sink, self.output_path)
        try:
            self._run_process(sink)
        except SequencingError as e:
            self._fail(e, sink)
        except Exception as e:  # noqa: BLE001
            logger.exception("Unexpected failure in %s", self.description)
            self._fail(e, sink)
        finally:
            with self._lock:
                self._process = None
            if self.status is JobStatus.CANCELED:
                sink.discard()
        return self.status

    def _run_process(self, sink: OutputSink) -> None:
        if self._command is None:
            self._command = [str(c) for c in self.profile.build_command(self.invocation)]
        sink.open()
        runner = self._runner_factory(self._command, cwd=self.invocation.tool_folder)
        runner.start()
        with self._lock:
            self._process = runner
            canceled = self._status is JobStatus.CANCELED
        if canceled:
            runner.kill()

        consumer = OutputConsumer(
            self.profile.output, self.reporter, total_items=self.total_items
        )
        try:
            stats = consumer.consume(runner.stdout, sink, should_stop=self._should_stop)
            sink.close()
        except StreamFault:
            runner.kill()
            raise
        finally:
            runner.close()

        if stats.stopped:
            # Nobody drains the pipe any more; the process must not outlive the run.
            self.cancel()

        try:
            self.returncode = runner.wait(timeout=self.wait_timeout)
        except subprocess.TimeoutExpired as e:
            if self.status is JobStatus.CANCELED:
                return
            logger.warning("SUBPROCESS KILLED: %s", self.description)
            runner.kill()
            raise InterruptedWait(
                f"{self.description} did not exit within {self.wait_timeout:.0f} s"
            ) from e

        if self.status is JobStatus.CANCELED:
            return
        if self.returncode != 0:
            logger.warning("%s exited with code %s", self.description, self.returncode)
            self.reporter.append_report(
                f"{self.description} exited with code {self.returncode}.", timestamp=True
            )
        if self.profile.rename is not None:
            self._rename_output()
        self._transition(JobStatus.FINISHED)

    def _should_stop(self) -> bool:
        return self.reporter.is_run_canceled() or self.status is JobStatus.CANCELED

    def _rename_output(self) -> None:
        source = self.output_path
        destination = self.result_path
        if not source.exists():
            logger.warning("%s produced no %s to rename", self.description, source.name)
            return
        try:
            destination.unlink(missing_ok=True)
            source.replace(destination)
        except OSError as e:
            raise StreamFault(f"Could not rename {source.name} to {destination.name}: {e}") from e

    def _fail(self, failure: Exception, sink: OutputSink) -> None:
        sink.discard()
        if self.status.terminal:
            return
        message = str(failure) or failure.__class__.__name__
        logger.error("%s failed: %s", self.description, message)
        self.reporter.append_report(f"{self.description} failed: {message}", timestamp=True)
        self._transition(JobStatus.ERROR, error=message, failure=failure)

    def _transition(
        self,
        new: JobStatus,
        *,
        expected: Sequence[JobStatus] | None = None,
        error: str | None = None,
        failure: Exception | None = None,
    ) -> bool:
        with self._lock:
            current = self._status
            if current.terminal or (expected is not None and current not in expected):
                return False
            self._status = new
            if new is JobStatus.ERROR:
                self._error = error or "unknown error"
                self._failure = failure
            listeners = list(self._listeners)
        logger.debug("%s: %s -> %s", self.description, current.name, new.name)
        for listener in listeners:
            try:
                listener(self, new)
            except Exception:  # noqa: BLE001
                logger.exception("Status listener failed for %s", self.description)
        return True
