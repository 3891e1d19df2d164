"""Tool installation entities."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

TARGET_DEFINITION_SUFFIX = ".tkape"
MODULE_DEFINITION_SUFFIX = ".mkape"


@dataclass(frozen=True)
class ToolInstallation:
    """On-disk state of the unpacked tool package.

    Never mutated in place: a stale installation is removed and replaced.
    """

    install_dir: Path
    collector: Path
    compressor: Path
    uploader: Path
    version_marker: Path
    version: tuple[int, ...]

    @property
    def target_catalog(self) -> Path:
        return self.install_dir / "Targets"

    @property
    def module_catalog(self) -> Path:
        return self.install_dir / "Modules"

    @property
    def executables(self) -> tuple[Path, Path, Path]:
        return (self.collector, self.compressor, self.uploader)
