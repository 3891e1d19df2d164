"""Shared pytest fixtures."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import pytest
from kape_runner.process_execution import ProcessResult, ProcessTimeout


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Undo handler changes made by commands that configure run logging."""
    logger = logging.getLogger("kape_runner")
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


class FakeToolRunner:
    """Stands in for the collector, compressor and uploader executables.

    Each tool produces (or withholds) the outputs the pipeline checks for.
    """

    def __init__(
        self,
        *,
        collector_writes: bool = True,
        compressor_writes: bool = True,
        upload_output: str = "Final Job Status: Completed",
        upload_exit_code: int = 0,
        upload_times_out: bool = False,
    ) -> None:
        self.collector_writes = collector_writes
        self.compressor_writes = compressor_writes
        self.upload_output = upload_output
        self.upload_exit_code = upload_exit_code
        self.upload_times_out = upload_times_out
        self.commands: list[tuple[str, ...]] = []

    def tools_invoked(self) -> list[str]:
        return [Path(command[0]).name for command in self.commands]

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        timeout_seconds: float | None = None,
    ) -> ProcessResult:
        command = tuple(command)
        self.commands.append(command)
        tool = Path(command[0]).name
        if tool == "kape.exe":
            return self._collect(command)
        if tool == "7za.exe":
            return self._compress(command)
        if self.upload_times_out:
            raise ProcessTimeout(command, timeout_seconds or 0, "INFO: 12% done")
        return ProcessResult(command, self.upload_exit_code, self.upload_output, "")

    def _collect(self, command: tuple[str, ...]) -> ProcessResult:
        if not self.collector_writes:
            return ProcessResult(command, 0, "", "Target not found")
        for flag in ("--tdest", "--mdest"):
            if flag in command:
                destination = Path(command[command.index(flag) + 1])
                destination.mkdir(parents=True, exist_ok=True)
                (destination / "collected.txt").write_text("evidence", encoding="utf-8")
        return ProcessResult(command, 0, "Collection complete", "")

    def _compress(self, command: tuple[str, ...]) -> ProcessResult:
        if not self.compressor_writes:
            return ProcessResult(command, 2, "", "Cannot open archive")
        Path(command[4]).write_bytes(b"PK\x05\x06" + b"\x00" * 18)
        return ProcessResult(command, 0, "Everything is Ok", "")


class FakeHostResources:
    """Fixed disk and memory figures."""

    def __init__(self, *, free_mib: int, memory_mib: int = 16_384) -> None:
        self._free = free_mib * 1024 * 1024
        self._memory = memory_mib * 1024 * 1024

    def free_bytes(self, volume_root: str) -> int:
        return self._free

    def total_memory_bytes(self) -> int:
        return self._memory


@pytest.fixture
def fake_tool_runner() -> type[FakeToolRunner]:
    return FakeToolRunner


@pytest.fixture
def fake_host_resources() -> type[FakeHostResources]:
    return FakeHostResources


def install_fake_tools(
    work_dir: Path,
    *,
    version: str = "1.3.0.2",
    targets: Sequence[str] = ("Browsers/Chrome", "Windows/EventLogs"),
    modules: Sequence[str] = ("LiveResponse/LiveResponse",),
) -> Path:
    """Lay out a complete tool installation with the given catalog entries."""
    install_dir = work_dir / "KAPE"
    install_dir.mkdir(parents=True, exist_ok=True)
    for name in ("kape.exe", "7za.exe", "azcopy.exe"):
        (install_dir / name).write_bytes(b"MZ")
    (install_dir / "version.txt").write_text(version, encoding="utf-8")
    for relative in targets:
        entry = install_dir / "Targets" / f"{relative}.tkape"
        entry.parent.mkdir(parents=True, exist_ok=True)
        entry.write_text("Description: target", encoding="utf-8")
    for relative in modules:
        entry = install_dir / "Modules" / f"{relative}.mkape"
        entry.parent.mkdir(parents=True, exist_ok=True)
        entry.write_text("Description: module", encoding="utf-8")
    return install_dir


@pytest.fixture
def installed_tools():
    return install_fake_tools
