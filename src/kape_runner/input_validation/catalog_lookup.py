"""Resolve requested target/module names against the on-disk definition catalog."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

LOGGER = logging.getLogger(__name__)


class ValidationError(Exception):
    """Raised when a run request names no valid targets."""


@dataclass(frozen=True)
class CatalogValidation:
    """Requested names split into resolvable and unknown entries, in request order."""

    valid: tuple[str, ...]
    invalid: tuple[str, ...]

    @property
    def is_empty(self) -> bool:
        return not self.valid

    def joined(self) -> str:
        return ",".join(self.valid)


def split_names(names: str | Iterable[str]) -> tuple[str, ...]:
    """Split comma-separated input into trimmed, de-duplicated, non-empty entries."""
    raw_items = names.split(",") if isinstance(names, str) else list(names)
    ordered: dict[str, None] = {}
    for item in raw_items:
        for part in item.split(","):
            stripped = part.strip()
            if stripped:
                ordered.setdefault(stripped, None)
    return tuple(ordered)


def validate(names: str | Iterable[str], catalog_dir: Path, suffix: str) -> CatalogValidation:
    """Check each entry for a `<entry><suffix>` definition anywhere under `catalog_dir`."""
    available = _index_catalog(catalog_dir, suffix)
    valid: list[str] = []
    invalid: list[str] = []
    for entry in split_names(names):
        if entry.lower() in available:
            valid.append(entry)
        else:
            invalid.append(entry)
            LOGGER.warning("'%s' has no %s definition under %s", entry, suffix, catalog_dir)
    return CatalogValidation(valid=tuple(valid), invalid=tuple(invalid))


def validate_targets(names: str, catalog_dir: Path, suffix: str) -> CatalogValidation:
    """Validate the target list; an empty valid set is fatal."""
    result = validate(names, catalog_dir, suffix)
    if result.is_empty:
        raise ValidationError(
            f"None of the requested targets exist in {catalog_dir}: {names}"
        )
    LOGGER.info("Validated targets: %s", result.joined())
    return result


def validate_modules(names: str | None, catalog_dir: Path, suffix: str) -> CatalogValidation:
    """Validate the module list; an empty valid set disables module capture."""
    if not names:
        return CatalogValidation(valid=(), invalid=())
    result = validate(names, catalog_dir, suffix)
    if result.is_empty:
        LOGGER.warning("No valid modules in '%s'; module capture disabled for this run", names)
    else:
        LOGGER.info("Validated modules: %s", result.joined())
    return result


def _index_catalog(catalog_dir: Path, suffix: str) -> set[str]:
    if not catalog_dir.is_dir():
        LOGGER.warning("Definition catalog %s does not exist", catalog_dir)
        return set()
    suffix_lower = suffix.lower()
    return {
        path.name[: -len(suffix)].lower()
        for path in catalog_dir.rglob("*")
        if path.is_file() and path.name.lower().endswith(suffix_lower)
    }
