"""Collection run use-case service."""

from __future__ import annotations

import logging
from collections.abc import Callable

from kape_runner.capacity_planning import CapacityError, HostResources
from kape_runner.capacity_planning import check as check_capacity
from kape_runner.command_composition import RunIdentity, RunPlan, compose
from kape_runner.host_preflight import PreflightError, run_preflight
from kape_runner.input_validation import ValidationError, validate_modules, validate_targets
from kape_runner.process_execution import ProcessRunner, SubprocessRunner
from kape_runner.remote_connectivity import ConnectivityError, probe
from kape_runner.run_supervision import (
    DetachedLauncher,
    InlineLauncher,
    Launcher,
    RunOutcome,
    RunStatus,
    RunSupervisor,
)
from kape_runner.tool_provisioning import (
    MODULE_DEFINITION_SUFFIX,
    TARGET_DEFINITION_SUFFIX,
    BinaryProvisioner,
    ProvisioningError,
)
from kape_runner.tool_provisioning.binary_provisioner import ReleaseFetcher

from .run_contracts import RunRequest

LOGGER = logging.getLogger(__name__)


def execute_collection_run(  # pylint: disable=too-many-arguments,too-many-locals
    request: RunRequest,
    *,
    runner: ProcessRunner | None = None,
    resources: HostResources | None = None,
    fetcher: ReleaseFetcher | None = None,
    admin_check: Callable[[], bool] | None = None,
    launcher: Launcher | None = None,
    identity: RunIdentity | None = None,
) -> RunOutcome:
    """Execute one run end to end and return its outcome.

    Every fatal condition is detected before the collector is started, except
    failures of the pipeline stages themselves.
    """
    config = request.config
    settings = request.settings
    work_dir = settings.work_dir
    process_runner = runner or SubprocessRunner()
    run_identity = identity or RunIdentity.capture()

    try:
        run_preflight(
            config.source_volume,
            require_admin=request.require_admin,
            admin_check=admin_check,
        )
        installation = BinaryProvisioner(
            settings.provisioning, work_dir, fetcher=fetcher
        ).ensure(config.minimum_version)
        targets = validate_targets(
            config.targets, installation.target_catalog, TARGET_DEFINITION_SUFFIX
        )
        modules = validate_modules(
            config.modules, installation.module_catalog, MODULE_DEFINITION_SUFFIX
        )
        budget = check_capacity(
            config.source_volume,
            not modules.is_empty,
            base_mib=settings.policy.base_free_space_mib,
            resources=resources,
        )
        if config.remote_storage is not None:
            probe(
                config.remote_storage,
                installation.uploader,
                work_dir=work_dir,
                timeout_seconds=settings.policy.probe_timeout_seconds,
                runner=process_runner,
                host_name=run_identity.host_name,
            )
    except PreflightError as exc:
        return _fail(RunStatus.FAILED_PREFLIGHT, exc)
    except ProvisioningError as exc:
        return _fail(RunStatus.FAILED_PROVISIONING, exc)
    except ValidationError as exc:
        return _fail(RunStatus.FAILED_VALIDATION, exc)
    except CapacityError as exc:
        return _fail(RunStatus.FAILED_CAPACITY, exc)
    except ConnectivityError as exc:
        return _fail(RunStatus.FAILED_CONNECTIVITY, exc)

    plan = compose(
        config,
        installation,
        targets,
        modules,
        budget,
        work_dir=work_dir,
        identity=run_identity,
        upload_timeout_seconds=settings.policy.upload_timeout_seconds,
    )

    if config.background:
        return _launch_in_background(
            plan,
            run_identity,
            launcher or DetachedLauncher(config_path=settings.path),
            settings.policy.launch_grace_seconds,
        )

    foreground = launcher or InlineLauncher(lambda: RunSupervisor(process_runner))
    outcome = foreground.launch(plan, run_identity).wait()
    if outcome is None:
        raise RuntimeError("Foreground launcher returned without an outcome.")
    return _report(outcome)


def _launch_in_background(
    plan: RunPlan, identity: RunIdentity, launcher: Launcher, grace_seconds: float
) -> RunOutcome:
    handle = launcher.launch(plan, identity)
    LOGGER.info("Watching background worker %d for %ss", handle.pid, grace_seconds)
    early = handle.wait(grace_seconds)
    if early is not None:
        LOGGER.warning("Background worker %d finished within the grace period", handle.pid)
        return _report(early)
    LOGGER.info("Background worker %d is running; progress continues in the log", handle.pid)
    return RunOutcome.detached(
        handle.pid,
        f"Collection continues in background worker {handle.pid}; "
        f"the archive will be {plan.archive_path.name}.",
    )


def _report(outcome: RunOutcome) -> RunOutcome:
    if outcome.status.succeeded:
        LOGGER.info("Run succeeded: %s", outcome.diagnostic)
    else:
        LOGGER.error("Run ended with %s: %s", outcome.status.value, outcome.diagnostic)
    return outcome


def _fail(status: RunStatus, error: Exception) -> RunOutcome:
    LOGGER.error("Run aborted (%s): %s", status.value, error)
    return RunOutcome.failed(status, str(error))
