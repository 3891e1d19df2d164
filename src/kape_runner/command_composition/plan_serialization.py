"""JSON hand-off of a RunPlan to a detached worker process."""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .run_plan import RunPlan

PLAN_FORMAT_VERSION = 1


class PlanFormatError(Exception):
    """Raised when a serialized plan cannot be read back."""


def plan_to_dict(plan: RunPlan) -> dict[str, Any]:
    return {
        "format_version": PLAN_FORMAT_VERSION,
        "work_dir": str(plan.work_dir),
        "target_dir": str(plan.target_dir),
        "module_dir": str(plan.module_dir) if plan.module_dir else None,
        "archive_path": str(plan.archive_path),
        "collection_command": list(plan.collection_command),
        "compression_command": list(plan.compression_command),
        "upload_command": list(plan.upload_command) if plan.upload_command else None,
        "remote_location": plan.remote_location,
        "upload_timeout_seconds": plan.upload_timeout_seconds,
        "secrets": list(plan.secrets),
        "notices": list(plan.notices),
    }


def plan_from_dict(payload: Mapping[str, Any]) -> RunPlan:
    if payload.get("format_version") != PLAN_FORMAT_VERSION:
        raise PlanFormatError(
            f"Unsupported run plan format version: {payload.get('format_version')!r}"
        )
    try:
        upload_command = payload.get("upload_command")
        module_dir = payload.get("module_dir")
        return RunPlan(
            work_dir=Path(payload["work_dir"]),
            target_dir=Path(payload["target_dir"]),
            module_dir=Path(module_dir) if module_dir else None,
            archive_path=Path(payload["archive_path"]),
            collection_command=tuple(payload["collection_command"]),
            compression_command=tuple(payload["compression_command"]),
            upload_command=tuple(upload_command) if upload_command else None,
            remote_location=payload.get("remote_location"),
            upload_timeout_seconds=int(payload["upload_timeout_seconds"]),
            secrets=tuple(payload.get("secrets") or ()),
            notices=tuple(payload.get("notices") or ()),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise PlanFormatError(f"Malformed run plan: {exc}") from exc


def write_plan(plan: RunPlan, destination: Path) -> Path:
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(json.dumps(plan_to_dict(plan), indent=2), encoding="utf-8")
    return destination


def read_plan(source: Path) -> RunPlan:
    try:
        payload = json.loads(Path(source).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise PlanFormatError(f"Cannot read run plan {source}: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise PlanFormatError("Run plan root must be a JSON object.")
    return plan_from_dict(payload)
