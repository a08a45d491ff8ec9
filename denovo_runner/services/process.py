from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import IO, Mapping, Sequence

from denovo_runner.core.errors import SpawnFailure

logger = logging.getLogger("denovo_runner.process")


class ProcessRunner:
    """Owns one external process: start, stdout access, wait and forceful kill."""

    def __init__(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.command = [str(c) for c in command]
        self.cwd = cwd
        self.env = dict(env) if env is not None else None
        self._proc: subprocess.Popen[str] | None = None

    def start(self) -> None:
        if self._proc is not None:
            raise RuntimeError("Process already started")
        try:
            self._proc = subprocess.Popen(
                self.command,
                cwd=str(self.cwd) if self.cwd is not None else None,
                env=self.env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                bufsize=1,
            )
        except (OSError, ValueError) as e:
            raise SpawnFailure(f"Could not start {self.command[0]}: {e}") from e
        logger.debug("Started pid %s: %s", self._proc.pid, " ".join(self.command))

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc is not None else None

    @property
    def stdout(self) -> IO[str]:
        if self._proc is None or self._proc.stdout is None:
            raise RuntimeError("Process not started")
        return self._proc.stdout

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode if self._proc is not None else None

    def is_running(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    def wait(self, timeout: float | None = None) -> int:
        """Block until exit; raises ``subprocess.TimeoutExpired`` past ``timeout``."""
        if self._proc is None:
            raise RuntimeError("Process not started")
        return self._proc.wait(timeout=timeout)

    def kill(self) -> None:
        """Forcefully terminate without waiting for the process to exit."""
        proc = self._proc
        if proc is None or proc.poll() is not None:
            return
        try:
            proc.kill()
            logger.info("Killed pid %s", proc.pid)
        except ProcessLookupError:
            pass

    def close(self) -> None:
        if self._proc is not None and self._proc.stdout is not None:
            try:
                self._proc.stdout.close()
            except OSError:
                pass
