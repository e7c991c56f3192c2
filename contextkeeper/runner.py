# contextkeeper/runner.py
"""
External command execution with a hard wall-clock timeout.

Every failure mode is returned as a typed `CommandResult`; nothing raises
past `ExternalCommandRunner.run`.
"""

from __future__ import annotations

import os
import shutil
import signal
import subprocess
import threading
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence, Set

from pydantic import BaseModel

from contextkeeper.logger import get_logger

logger = get_logger("runner")

DEFAULT_TIMEOUT = 3.0


class CommandStatus(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    NON_ZERO_EXIT = "non_zero_exit"
    IO_FAILURE = "io_failure"


class CommandResult(BaseModel):
    """
    Outcome of one external command.

    Attributes:
        program (str): Program that was invoked.
        status (CommandStatus): Machine-readable outcome.
        stdout (str): Captured standard output (decoded, may be empty).
        stderr (str): Captured standard error.
        returncode (Optional[int]): Exit code, when the process exited.
        error (Optional[str]): Human-readable failure description.
    """

    program: str
    status: CommandStatus
    stdout: str = ""
    stderr: str = ""
    returncode: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is CommandStatus.OK

    def describe(self) -> str:
        if self.ok:
            return f"{self.program}: ok"
        if self.status is CommandStatus.NON_ZERO_EXIT:
            detail = self.stderr.strip().splitlines()[:1]
            suffix = f": {detail[0]}" if detail else ""
            return f"{self.program} exited with code {self.returncode}{suffix}"
        return f"{self.program}: {self.error or self.status.value}"


class ExternalCommandRunner:
    """Runs programs without a shell; kills the process group on expiry."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout
        self._lock = threading.Lock()
        self._active: Set[subprocess.Popen] = set()
        self._aborted = False

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def which(self, program: str) -> Optional[str]:
        return shutil.which(program)

    def spawn(self) -> "ExternalCommandRunner":
        """Independent runner with the same timeout (one per collector)."""
        return type(self)(timeout=self.timeout)

    def abort(self) -> None:
        """Kill everything still running and refuse further invocations."""
        with self._lock:
            self._aborted = True
            procs = list(self._active)
        for proc in procs:
            _kill_group(proc)
        if procs:
            logger.warning("Aborted %d running command(s)", len(procs))

    def run(
        self,
        program: str,
        args: Sequence[str] = (),
        timeout: Optional[float] = None,
        cwd: Optional[Path] = None,
    ) -> CommandResult:
        limit = self.timeout if timeout is None else timeout
        argv = [program, *args]

        with self._lock:
            if self._aborted:
                return CommandResult(
                    program=program, status=CommandStatus.TIMEOUT, error="runner aborted"
                )

        logger.debug("Running %s (timeout=%ss, cwd=%s)", argv, limit, cwd)
        try:
            proc = subprocess.Popen(
                argv,
                cwd=str(cwd) if cwd else None,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                start_new_session=True,
            )
        except FileNotFoundError:
            return CommandResult(
                program=program, status=CommandStatus.NOT_FOUND, error="not found on PATH"
            )
        except OSError as exc:
            logger.warning("Failed to start %s: %s", program, exc)
            return CommandResult(
                program=program, status=CommandStatus.IO_FAILURE, error=str(exc)
            )

        with self._lock:
            self._active.add(proc)
        try:
            stdout, stderr = proc.communicate(timeout=limit)
        except subprocess.TimeoutExpired:
            _kill_group(proc)
            proc.communicate()
            logger.warning("%s timed out after %ss", argv, limit)
            return CommandResult(
                program=program,
                status=CommandStatus.TIMEOUT,
                error=f"timed out after {limit:g}s",
            )
        except OSError as exc:
            _kill_group(proc)
            return CommandResult(
                program=program, status=CommandStatus.IO_FAILURE, error=str(exc)
            )
        finally:
            with self._lock:
                self._active.discard(proc)

        if proc.returncode != 0:
            # negative code: killed by signal (abort() from another thread)
            status = (
                CommandStatus.TIMEOUT
                if proc.returncode < 0 and self._aborted
                else CommandStatus.NON_ZERO_EXIT
            )
            return CommandResult(
                program=program,
                status=status,
                stdout=stdout,
                stderr=stderr,
                returncode=proc.returncode,
                error=None if status is CommandStatus.NON_ZERO_EXIT else "runner aborted",
            )

        return CommandResult(
            program=program,
            status=CommandStatus.OK,
            stdout=stdout,
            stderr=stderr,
            returncode=0,
        )


def _kill_group(proc: subprocess.Popen) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        pass
    except OSError:
        proc.kill()
