"""Sequential collect -> compress -> upload -> cleanup pipeline."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from kape_runner.command_composition.run_plan import PipelineStage, RunPlan
from kape_runner.process_execution import (
    ProcessResult,
    ProcessRunner,
    SubprocessRunner,
    describe_command,
    run_bounded_transfer,
)

from .run_outcomes import STAGE_FAILURE_STATUS, PipelineState, RunOutcome, StageError

LOGGER = logging.getLogger(__name__)


class RunSupervisor:
    """Executes one RunPlan, verifying each stage's output before the next starts.

    Collection and compression run to completion; only the upload is deadline-bound.
    Staging directories are removed on every path, whichever stage failed.
    """

    def __init__(self, runner: ProcessRunner | None = None) -> None:
        self._runner = runner or SubprocessRunner()
        self._transitions: list[PipelineState] = [PipelineState.IDLE]

    @property
    def state(self) -> PipelineState:
        return self._transitions[-1]

    @property
    def transitions(self) -> tuple[PipelineState, ...]:
        return tuple(self._transitions)

    def execute(self, plan: RunPlan) -> RunOutcome:
        if self.state is not PipelineState.IDLE:
            raise RuntimeError("A supervisor executes exactly one plan.")
        for notice in plan.notices:
            LOGGER.warning(notice)

        uploaded = False
        failure: StageError | None = None
        try:
            uploaded = self._advance(plan)
        except StageError as exc:
            failure = exc
            LOGGER.error("Pipeline stopped: %s", exc)
        finally:
            self._enter(PipelineState.CLEANING_UP)
            self._cleanup(plan, archive_uploaded=uploaded)

        if failure is not None:
            self._enter(PipelineState.FAILED)
            return RunOutcome.failed(
                STAGE_FAILURE_STATUS[failure.stage],
                str(failure),
                archive_path=plan.archive_path if plan.archive_path.exists() else None,
            )

        self._enter(PipelineState.DONE)
        if uploaded:
            message = f"Archive uploaded to {plan.remote_location}"
            LOGGER.info(message)
            return RunOutcome.succeeded(
                message, archive_path=None, remote_location=plan.remote_location
            )
        message = f"Archive written to {plan.archive_path}"
        LOGGER.info(message)
        return RunOutcome.succeeded(message, archive_path=plan.archive_path, remote_location=None)

    def _advance(self, plan: RunPlan) -> bool:
        """Run every stage in order; True once the archive has been uploaded."""
        stage = PipelineStage.COLLECTION
        try:
            self._collect(plan)
            stage = PipelineStage.COMPRESSION
            self._compress(plan)
            if not plan.uploads:
                return False
            stage = PipelineStage.UPLOAD
            self._upload(plan)
            return True
        except OSError as exc:
            raise StageError(stage, f"{type(exc).__name__}: {exc}") from exc

    def _collect(self, plan: RunPlan) -> None:
        self._enter(PipelineState.COLLECTING)
        for stale in plan.staging_dirs:
            _remove_tree(stale)
        result = self._run_stage(plan, plan.collection_command)
        if not plan.target_dir.is_dir():
            raise StageError(
                PipelineStage.COLLECTION,
                f"expected output {plan.target_dir} is missing "
                f"(collector exit code {result.return_code})",
            )
        if plan.module_dir is not None and not plan.module_dir.is_dir():
            LOGGER.warning("Module output %s was not produced", plan.module_dir)

    def _compress(self, plan: RunPlan) -> None:
        self._enter(PipelineState.COMPRESSING)
        plan.archive_path.parent.mkdir(parents=True, exist_ok=True)
        result = self._run_stage(plan, plan.compression_command)
        if not plan.archive_path.is_file():
            raise StageError(
                PipelineStage.COMPRESSION,
                f"expected archive {plan.archive_path} is missing "
                f"(compressor exit code {result.return_code})",
            )

    def _upload(self, plan: RunPlan) -> None:
        self._enter(PipelineState.UPLOADING)
        command = plan.upload_command or ()
        failure = run_bounded_transfer(
            self._runner,
            command,
            timeout_seconds=plan.upload_timeout_seconds,
            secrets=plan.secrets,
        )
        if failure is not None:
            raise StageError(
                PipelineStage.UPLOAD, failure.diagnostic, transfer_failure=failure.kind
            )

    def _run_stage(self, plan: RunPlan, command: tuple[str, ...]) -> ProcessResult:
        LOGGER.info("Running: %s", describe_command(command, plan.secrets))
        result = self._runner.run(command, cwd=plan.work_dir)
        log = LOGGER.info if result.succeeded else LOGGER.warning
        log("%s exited with code %d", Path(command[0]).name, result.return_code)
        if result.output:
            LOGGER.debug("%s output:\n%s", Path(command[0]).name, result.output)
        return result

    def _cleanup(self, plan: RunPlan, *, archive_uploaded: bool) -> None:
        if archive_uploaded and plan.archive_path.exists():
            LOGGER.info("Removing local archive %s after upload", plan.archive_path)
            try:
                plan.archive_path.unlink()
            except OSError as exc:
                LOGGER.warning("Could not remove %s: %s", plan.archive_path, exc)
        for directory in plan.staging_dirs:
            _remove_tree(directory)

    def _enter(self, state: PipelineState) -> None:
        LOGGER.debug("Pipeline state %s -> %s", self.state.value, state.value)
        self._transitions.append(state)


def _remove_tree(directory: Path) -> None:
    if not directory.exists():
        return
    LOGGER.info("Removing %s", directory)
    try:
        shutil.rmtree(directory)
    except OSError as exc:
        LOGGER.warning("Could not remove %s: %s", directory, exc)
