from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait

from denovo_runner.core.models import JobStatus
from denovo_runner.orchestration.job import Job

logger = logging.getLogger("denovo_runner.parallel")


class JobExecutor(Executor):
    """Fixed-size worker pool; each job holds one worker for its whole lifetime."""

    def __init__(self, max_workers: int | None = None) -> None:
        self.max_workers = self._resolve_workers(max_workers)
        self._pool = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="denovo-job"
        )

    @staticmethod
    def _resolve_workers(requested: int | None) -> int:
        if requested is not None:
            return max(1, int(requested))
        return max(1, int(os.cpu_count() or 4))

    def submit(self, fn, /, *args, **kwargs) -> Future:
        return self._pool.submit(fn, *args, **kwargs)

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        self._pool.shutdown(wait=wait, cancel_futures=cancel_futures)


class JobTracker:
    """Thread-safe tracker for submitted jobs, their futures and RUNNING count."""

    def __init__(self) -> None:
        self._jobs: list[Job] = []
        self._futures: dict[Future, Job] = {}
        self._running: set[int] = set()
        self._lock = threading.Lock()
        self.peak_running = 0

    def submit(self, job: Job, executor: Executor) -> Future:
        job.add_listener(self._on_status)
        with self._lock:
            self._jobs.append(job)
        fut = job.execute(executor)
        with self._lock:
            self._futures[fut] = job
        fut.add_done_callback(self._on_done)
        return fut

    def _on_status(self, job: Job, status: JobStatus) -> None:
        with self._lock:
            if status is JobStatus.RUNNING:
                # A racing cancel() may have been delivered first.
                if job.status.terminal:
                    return
                self._running.add(id(job))
                self.peak_running = max(self.peak_running, len(self._running))
            elif status.terminal:
                self._running.discard(id(job))

    def _on_done(self, fut: Future) -> None:
        with self._lock:
            job = self._futures.get(fut)
        if job is None:
            return
        try:
            fut.result()
        except Exception as e:  # noqa: BLE001
            logger.error("Worker for %s raised: %s", job.description, e)
            return
        status = job.status
        if status is JobStatus.FINISHED:
            logger.info("Processed %s -> %s", job.description, job.result_path)
        elif status is JobStatus.ERROR:
            logger.error("Failed to process %s: %s", job.description, job.error)
        else:
            logger.info("%s ended as %s", job.description, status.name)

    @property
    def jobs(self) -> list[Job]:
        with self._lock:
            return list(self._jobs)

    @property
    def running(self) -> int:
        with self._lock:
            return len(self._running)

    def wait_all(self, timeout: float | None = None) -> bool:
        """Block until every submitted job is done; False if ``timeout`` elapsed first."""
        with self._lock:
            futures = list(self._futures.keys())
        if not futures:
            return True
        _, not_done = wait(futures, timeout=timeout)
        return not not_done

    def cancel_all(self) -> None:
        for job in self.jobs:
            job.cancel()
