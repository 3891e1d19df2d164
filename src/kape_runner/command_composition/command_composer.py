"""Build the argument lists for collection, compression and upload."""

from __future__ import annotations

from pathlib import Path

from kape_runner.capacity_planning import CapacityBudget, drive_selector
from kape_runner.configuration.runtime_settings import RunConfig
from kape_runner.input_validation import CatalogValidation
from kape_runner.tool_provisioning import ToolInstallation

from .run_plan import (
    MODULES_DIR_NAME,
    OUTPUTS_DIR_NAME,
    TARGETS_DIR_NAME,
    RunIdentity,
    RunPlan,
)


def compose(  # pylint: disable=too-many-arguments
    config: RunConfig,
    installation: ToolInstallation,
    targets: CatalogValidation,
    modules: CatalogValidation,
    budget: CapacityBudget,
    *,
    work_dir: Path,
    identity: RunIdentity,
    upload_timeout_seconds: int,
) -> RunPlan:
    """Compose the run plan. Pure: equal inputs always give an equal plan."""
    if targets.is_empty:
        raise ValueError("A run plan needs at least one validated target.")

    work_dir = Path(work_dir)
    target_dir = work_dir / TARGETS_DIR_NAME
    archive_path = work_dir / OUTPUTS_DIR_NAME / identity.archive_name
    notices: list[str] = []

    collection = [
        str(installation.collector),
        "--tsource",
        drive_selector(config.source_volume),
        "--tdest",
        str(target_dir),
        "--tflush",
        "--target",
        targets.joined(),
    ]

    module_dir = _module_dir(config, modules, budget, work_dir, notices)
    if module_dir is not None:
        collection += ["--mdest", str(module_dir), "--mflush", "--module", modules.joined()]

    if config.container_format is not None:
        collection += [f"--{config.container_format.value}", identity.host_name, "--zv", "false"]

    compression = [str(installation.compressor), "a", "-tzip", "-sdel", str(archive_path)]
    compression.append(str(target_dir))
    if module_dir is not None:
        compression.append(str(module_dir))
    secrets: list[str] = []
    if config.archive_password:
        compression.append(f"-p{config.archive_password}")
        secrets.append(config.archive_password)

    upload: tuple[str, ...] | None = None
    remote_location: str | None = None
    storage = config.remote_storage
    if storage is not None:
        blob_url = storage.blob_url(archive_path.name)
        upload = (str(installation.uploader), "copy", str(archive_path), blob_url)
        remote_location = blob_url.split("?", 1)[0]
        secrets.append(storage.token.lstrip("?"))

    return RunPlan(
        work_dir=work_dir,
        target_dir=target_dir,
        module_dir=module_dir,
        archive_path=archive_path,
        collection_command=tuple(collection),
        compression_command=tuple(compression),
        upload_command=upload,
        remote_location=remote_location,
        upload_timeout_seconds=upload_timeout_seconds,
        secrets=tuple(secrets),
        notices=tuple(notices),
    )


def _module_dir(
    config: RunConfig,
    modules: CatalogValidation,
    budget: CapacityBudget,
    work_dir: Path,
    notices: list[str],
) -> Path | None:
    if not config.wants_modules:
        return None
    if modules.is_empty:
        notices.append("No requested module exists in the catalog; module capture disabled.")
        return None
    if not budget.module_capture_allowed:
        notices.append(
            f"Module capture skipped: {budget.free_mib} MiB free, "
            f"{budget.base_mib + budget.memory_mib} MiB needed to include a memory capture."
        )
        return None
    return work_dir / MODULES_DIR_NAME
