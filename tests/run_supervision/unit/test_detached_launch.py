"""Inline and detached launcher tests."""

from __future__ import annotations

import subprocess
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any

from kape_runner.command_composition import RunIdentity, RunPlan, read_plan
from kape_runner.run_supervision import (
    DetachedLauncher,
    InlineLauncher,
    RunOutcome,
    RunStatus,
    RunSupervisor,
    read_outcome,
    run_detached_worker,
    write_outcome,
)

_IDENTITY = RunIdentity(host_name="WS01", started_at=datetime(2024, 5, 1, 13, 45, 9))


def _plan(tmp_path: Path) -> RunPlan:
    archive = tmp_path / "outputs" / "WS01_20240501_134509.zip"
    return RunPlan(
        work_dir=tmp_path,
        target_dir=tmp_path / "targets",
        module_dir=None,
        archive_path=archive,
        collection_command=("KAPE/kape.exe", "--tdest", str(tmp_path / "targets")),
        compression_command=("KAPE/7za.exe", "a", "-tzip", "-sdel", str(archive)),
        upload_command=None,
        remote_location=None,
        upload_timeout_seconds=300,
    )


class _FakeProcess:
    def __init__(self, *, pid: int = 4242, return_code: int | None = None) -> None:
        self.pid = pid
        self.return_code = return_code
        self.wait_timeouts: list[float | None] = []

    def wait(self, timeout: float | None = None) -> int:
        self.wait_timeouts.append(timeout)
        if self.return_code is None:
            raise subprocess.TimeoutExpired(cmd="worker", timeout=timeout or 0)
        return self.return_code


class _RecordingPopen:
    def __init__(self, process: _FakeProcess) -> None:
        self.process = process
        self.calls: list[tuple[list[str], dict[str, Any]]] = []

    def __call__(self, command: list[str], **options: Any) -> _FakeProcess:
        self.calls.append((command, options))
        return self.process


def test_inline_launcher_runs_pipeline_to_completion(tmp_path: Path, fake_tool_runner) -> None:
    launcher = InlineLauncher(lambda: RunSupervisor(fake_tool_runner()))

    handle = launcher.launch(_plan(tmp_path), _IDENTITY)

    outcome = handle.wait()
    assert outcome is not None
    assert outcome.status is RunStatus.SUCCEEDED


def test_detached_launcher_hands_plan_to_worker_process(tmp_path: Path) -> None:
    popen = _RecordingPopen(_FakeProcess())
    launcher = DetachedLauncher(
        config_path=tmp_path / "kape-runner.yaml", python_executable="python3", popen=popen
    )
    plan = _plan(tmp_path)

    handle = launcher.launch(plan, _IDENTITY)

    plan_path = tmp_path / ".run_20240501_134509.plan.json"
    outcome_path = tmp_path / ".run_20240501_134509.outcome.json"
    command, options = popen.calls[0]
    assert command == [
        "python3",
        "-m",
        "kape_runner",
        "--config",
        str(tmp_path / "kape-runner.yaml"),
        "supervise",
        "--plan",
        str(plan_path),
        "--outcome",
        str(outcome_path),
    ]
    assert options["cwd"] == str(tmp_path)
    assert options["stdin"] is subprocess.DEVNULL
    assert "start_new_session" in options or "creationflags" in options
    assert read_plan(plan_path) == plan
    assert handle.pid == 4242


def test_worker_still_running_after_grace_period_yields_no_outcome(tmp_path: Path) -> None:
    process = _FakeProcess()
    handle = DetachedLauncher(popen=_RecordingPopen(process)).launch(_plan(tmp_path), _IDENTITY)

    assert handle.wait(15) is None
    assert process.wait_timeouts == [15]


def test_worker_that_exits_early_reports_its_outcome_file(tmp_path: Path) -> None:
    handle = DetachedLauncher(popen=_RecordingPopen(_FakeProcess(return_code=1))).launch(
        _plan(tmp_path), _IDENTITY
    )
    write_outcome(
        RunOutcome.failed(RunStatus.FAILED_COLLECTION, "collection stage failed"),
        tmp_path / ".run_20240501_134509.outcome.json",
    )

    outcome = handle.wait(15)

    assert outcome is not None
    assert outcome.status is RunStatus.FAILED_COLLECTION


def test_worker_that_dies_silently_is_a_launch_failure(tmp_path: Path) -> None:
    stale = tmp_path / ".run_20240501_134509.outcome.json"
    write_outcome(RunOutcome.succeeded("old", archive_path=None, remote_location=None), stale)

    handle = DetachedLauncher(popen=_RecordingPopen(_FakeProcess(return_code=3))).launch(
        _plan(tmp_path), _IDENTITY
    )
    outcome = handle.wait(15)

    assert outcome is not None
    assert outcome.status is RunStatus.FAILED_LAUNCH
    assert "exited with code 3" in outcome.diagnostic
    assert ".run_20240501_134509.worker.err" in outcome.diagnostic
    assert not (tmp_path / ".run_20240501_134509.plan.json").exists()


def test_worker_executes_plan_and_publishes_outcome(tmp_path: Path, fake_tool_runner) -> None:
    plan_path = tmp_path / ".run.plan.json"
    outcome_path = tmp_path / ".run.outcome.json"
    DetachedLauncher(popen=_RecordingPopen(_FakeProcess())).launch(_plan(tmp_path), _IDENTITY)
    (tmp_path / ".run_20240501_134509.plan.json").rename(plan_path)

    outcome = run_detached_worker(
        plan_path, outcome_path, supervisor=RunSupervisor(fake_tool_runner())
    )

    assert outcome.status is RunStatus.SUCCEEDED
    assert not plan_path.exists()
    assert read_outcome(outcome_path) == outcome


def test_unreadable_outcome_file_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "outcome.json"
    path.write_text("{not json", encoding="utf-8")

    assert read_outcome(path) is None
    assert read_outcome(tmp_path / "absent.json") is None


def test_relative_config_path_is_resolved_before_the_worker_changes_directory(
    tmp_path: Path, monkeypatch
) -> None:
    monkeypatch.chdir(tmp_path)
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    popen = _RecordingPopen(_FakeProcess())
    plan = replace(_plan(tmp_path), work_dir=work_dir)

    DetachedLauncher(config_path=Path("cfg/kape.yaml"), popen=popen).launch(plan, _IDENTITY)

    command, options = popen.calls[0]
    assert command[command.index("--config") + 1] == str(tmp_path / "cfg" / "kape.yaml")
    assert options["cwd"] == str(work_dir)


def test_worker_that_cannot_start_removes_plan_and_fails_launch(tmp_path: Path) -> None:
    def _failing_popen(command: list[str], **options: Any) -> _FakeProcess:
        raise FileNotFoundError("python3: not found")

    handle = DetachedLauncher(popen=_failing_popen).launch(_plan(tmp_path), _IDENTITY)
    outcome = handle.wait(15)

    assert outcome is not None
    assert outcome.status is RunStatus.FAILED_LAUNCH
    assert "Could not start background worker" in outcome.diagnostic
    assert not (tmp_path / ".run_20240501_134509.plan.json").exists()


def test_worker_error_output_is_kept_only_when_not_empty(tmp_path: Path) -> None:
    handle = DetachedLauncher(popen=_RecordingPopen(_FakeProcess(return_code=0))).launch(
        _plan(tmp_path), _IDENTITY
    )
    write_outcome(
        RunOutcome.succeeded("done", archive_path=None, remote_location=None),
        tmp_path / ".run_20240501_134509.outcome.json",
    )

    handle.wait(15)

    assert not (tmp_path / ".run_20240501_134509.worker.err").exists()
