"""Input validation exports."""

from .catalog_lookup import (
    CatalogValidation,
    ValidationError,
    split_names,
    validate,
    validate_modules,
    validate_targets,
)

__all__ = [
    "CatalogValidation",
    "ValidationError",
    "split_names",
    "validate",
    "validate_modules",
    "validate_targets",
]
