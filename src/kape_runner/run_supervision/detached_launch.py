"""Inline or detached execution of a run plan.

Both launchers hand back a RunHandle. The caller either blocks on it (synchronous
mode) or waits only the grace period and then lets it go (background mode). A
detached worker is a separate `python -m kape_runner supervise` process that reads
the plan file, writes the outcome file next to it, and logs for itself. Its
error output goes to a `.worker.err` file beside them, which catches failures
that happen before the worker has opened the run log.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, Protocol

from kape_runner.command_composition import RunIdentity, RunPlan, read_plan, write_plan

from .pipeline_supervisor import RunSupervisor
from .run_outcomes import RunOutcome, RunStatus

LOGGER = logging.getLogger(__name__)

PopenFactory = Callable[..., Any]


class RunHandle(Protocol):
    """Completion channel for a launched pipeline."""

    @property
    def pid(self) -> int:
        """Process executing the pipeline."""

    def wait(self, timeout_seconds: float | None = None) -> RunOutcome | None:
        """Return the outcome, or None if the pipeline is still running at the deadline."""


class Launcher(Protocol):  # pylint: disable=too-few-public-methods
    """Starts a pipeline for a composed plan."""

    def launch(self, plan: RunPlan, identity: RunIdentity) -> RunHandle: ...


class CompletedRun:  # pylint: disable=too-few-public-methods
    """Handle of a pipeline that already finished on the caller's thread."""

    def __init__(self, outcome: RunOutcome) -> None:
        self._outcome = outcome

    @property
    def pid(self) -> int:
        return os.getpid()

    def wait(self, timeout_seconds: float | None = None) -> RunOutcome | None:
        return self._outcome


class InlineLauncher:  # pylint: disable=too-few-public-methods
    """Runs the pipeline synchronously in the calling process."""

    def __init__(self, supervisor_factory: Callable[[], RunSupervisor] | None = None) -> None:
        self._supervisor_factory = supervisor_factory or RunSupervisor

    def launch(self, plan: RunPlan, identity: RunIdentity) -> RunHandle:
        LOGGER.info("Running pipeline for %s in the foreground", identity.archive_name)
        return CompletedRun(self._supervisor_factory().execute(plan))


class DetachedRun:  # pylint: disable=too-few-public-methods
    """Handle of a pipeline running in a detached worker process."""

    def __init__(
        self, process: Any, outcome_path: Path, plan_path: Path, stderr_path: Path
    ) -> None:
        self._process = process
        self._outcome_path = outcome_path
        self._plan_path = plan_path
        self._stderr_path = stderr_path

    @property
    def pid(self) -> int:
        return int(self._process.pid)

    def wait(self, timeout_seconds: float | None = None) -> RunOutcome | None:
        try:
            return_code = self._process.wait(timeout=timeout_seconds)
        except subprocess.TimeoutExpired:
            return None
        # A worker that died before reading its plan leaves the secrets on disk.
        self._plan_path.unlink(missing_ok=True)
        outcome = read_outcome(self._outcome_path)
        if outcome is not None:
            if _is_empty(self._stderr_path):
                self._stderr_path.unlink(missing_ok=True)
            return outcome
        return RunOutcome.failed(
            RunStatus.FAILED_LAUNCH,
            f"Background worker {self.pid} exited with code {return_code} "
            f"before reporting an outcome; its error output is in {self._stderr_path} "
            "(the run log may hold nothing for this run).",
        )


class DetachedLauncher:  # pylint: disable=too-few-public-methods
    """Starts the pipeline in a new session so it outlives the launching process."""

    def __init__(
        self,
        *,
        config_path: Path | str | None = None,
        python_executable: str | None = None,
        popen: PopenFactory | None = None,
    ) -> None:
        # The worker starts in the work directory; a relative path would resolve there.
        self._config_path = Path(config_path).resolve() if config_path is not None else None
        self._python = python_executable or sys.executable
        self._popen = popen or subprocess.Popen

    def launch(self, plan: RunPlan, identity: RunIdentity) -> RunHandle:
        plan_path = plan.work_dir / f".run_{identity.stamp}.plan.json"
        outcome_path = plan.work_dir / f".run_{identity.stamp}.outcome.json"
        stderr_path = plan.work_dir / f".run_{identity.stamp}.worker.err"
        outcome_path.unlink(missing_ok=True)
        write_plan(plan, plan_path)

        command: list[str] = [self._python, "-m", "kape_runner"]
        if self._config_path is not None:
            command += ["--config", str(self._config_path)]
        command += ["supervise", "--plan", str(plan_path), "--outcome", str(outcome_path)]

        try:
            with stderr_path.open("w", encoding="utf-8") as stderr:
                process = self._popen(
                    command,
                    cwd=str(plan.work_dir),
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=stderr,
                    close_fds=True,
                    **_detach_options(),
                )
        except OSError as exc:
            plan_path.unlink(missing_ok=True)
            LOGGER.error("Could not start background worker: %s", exc)
            return CompletedRun(
                RunOutcome.failed(
                    RunStatus.FAILED_LAUNCH, f"Could not start background worker: {exc}"
                )
            )
        LOGGER.info("Started background worker pid %s for %s", process.pid, identity.archive_name)
        return DetachedRun(process, outcome_path, plan_path, stderr_path)


def run_detached_worker(
    plan_path: Path,
    outcome_path: Path,
    *,
    supervisor: RunSupervisor | None = None,
) -> RunOutcome:
    """Worker-side entry: execute the handed-over plan and publish its outcome."""
    plan = read_plan(plan_path)
    plan_path.unlink(missing_ok=True)
    LOGGER.info("Background worker pid %d executing plan for %s", os.getpid(), plan.archive_path)
    outcome = (supervisor or RunSupervisor()).execute(plan)
    write_outcome(outcome, outcome_path)
    return outcome


def write_outcome(outcome: RunOutcome, destination: Path) -> None:
    destination.write_text(json.dumps(outcome.to_dict(), indent=2), encoding="utf-8")


def read_outcome(source: Path) -> RunOutcome | None:
    if not source.exists():
        return None
    try:
        payload = json.loads(source.read_text(encoding="utf-8"))
        return RunOutcome.from_dict(payload)
    except (OSError, ValueError, KeyError, TypeError) as exc:
        LOGGER.warning("Unreadable outcome file %s: %s", source, exc)
        return None


def _detach_options() -> dict[str, Any]:
    if sys.platform.startswith("win"):
        flags: Sequence[int] = (
            getattr(subprocess, "DETACHED_PROCESS", 0),
            getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0),
        )
        creationflags = 0
        for flag in flags:
            creationflags |= flag
        return {"creationflags": creationflags}
    return {"start_new_session": True}


def _is_empty(path: Path) -> bool:
    try:
        return path.stat().st_size == 0
    except FileNotFoundError:
        return True
    except OSError:
        return False
