"""External process execution with optional deadlines."""

from __future__ import annotations

import shlex
import subprocess
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

REDACTED = "***"
MISSING_EXECUTABLE_EXIT_CODE = 127


@dataclass(frozen=True)
class ProcessResult:
    """Completed external process."""

    command: tuple[str, ...]
    return_code: int
    stdout: str
    stderr: str

    @property
    def succeeded(self) -> bool:
        return self.return_code == 0

    @property
    def output(self) -> str:
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


class ProcessTimeout(Exception):
    """Raised when a process outlives its deadline; the process has been killed."""

    def __init__(self, command: Sequence[str], timeout_seconds: float, output: str = "") -> None:
        super().__init__(f"Process exceeded {timeout_seconds:g}s deadline and was terminated")
        self.command = tuple(command)
        self.timeout_seconds = timeout_seconds
        self.output = output


class ProcessRunner(Protocol):  # pylint: disable=too-few-public-methods
    """Protocol for running one external command to completion."""

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        timeout_seconds: float | None = None,
    ) -> ProcessResult: ...


class SubprocessRunner:  # pylint: disable=too-few-public-methods
    """Real runner based on subprocess.Popen; kills and reaps the child on timeout."""

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        timeout_seconds: float | None = None,
    ) -> ProcessResult:
        command_tuple = tuple(str(part) for part in command)
        try:
            process = subprocess.Popen(  # pylint: disable=consider-using-with
                list(command_tuple),
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as exc:
            return ProcessResult(
                command=command_tuple,
                return_code=MISSING_EXECUTABLE_EXIT_CODE,
                stdout="",
                stderr=f"Failed to start {command_tuple[0]}: {exc}",
            )

        with process:
            try:
                stdout, stderr = process.communicate(timeout=timeout_seconds)
            except subprocess.TimeoutExpired:
                process.kill()
                stdout, stderr = process.communicate()
                partial = "\n".join(part for part in (stdout, stderr) if part)
                raise ProcessTimeout(command_tuple, float(timeout_seconds or 0), partial) from None
        return ProcessResult(
            command=command_tuple,
            return_code=process.returncode,
            stdout=stdout or "",
            stderr=stderr or "",
        )


def describe_command(command: Sequence[str], secrets: Iterable[str | None] = ()) -> str:
    """Render a command for logs with every secret value masked."""
    rendered = shlex.join(str(part) for part in command)
    for secret in sorted((value for value in secrets if value), key=len, reverse=True):
        rendered = rendered.replace(secret, REDACTED)
    return rendered
