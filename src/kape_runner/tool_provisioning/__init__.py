"""Tool provisioning exports."""

from .binary_provisioner import (
    BinaryProvisioner,
    HttpOrPathReleaseFetcher,
    IncompleteInstallationError,
    ProvisioningError,
    ReleaseFetchError,
    ReleaseUnpackError,
)
from .installation_models import (
    MODULE_DEFINITION_SUFFIX,
    TARGET_DEFINITION_SUFFIX,
    ToolInstallation,
)

__all__ = [
    "BinaryProvisioner",
    "HttpOrPathReleaseFetcher",
    "ProvisioningError",
    "ReleaseFetchError",
    "ReleaseUnpackError",
    "IncompleteInstallationError",
    "ToolInstallation",
    "TARGET_DEFINITION_SUFFIX",
    "MODULE_DEFINITION_SUFFIX",
]
