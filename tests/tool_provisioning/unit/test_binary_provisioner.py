"""Binary provisioner tests."""

from __future__ import annotations

import zipfile
from pathlib import Path

import pytest
import requests
from kape_runner.configuration.runtime_settings import ProvisioningSettings
from kape_runner.tool_provisioning.binary_provisioner import (
    BinaryProvisioner,
    HttpOrPathReleaseFetcher,
    IncompleteInstallationError,
    ProvisioningError,
    ReleaseFetchError,
    ReleaseUnpackError,
)

_FULL_RELEASE = {
    "KAPE/kape.exe": "collector",
    "KAPE/7za.exe": "compressor",
    "KAPE/azcopy.exe": "uploader",
    "KAPE/version.txt": "1.3.0.2\n",
    "KAPE/Targets/Browsers/Chrome.tkape": "target",
    "KAPE/Modules/LiveResponse/LiveResponse.mkape": "module",
}


def _write_release(path: Path, members: dict[str, str]) -> Path:
    with zipfile.ZipFile(path, "w") as bundle:
        for name, text in members.items():
            bundle.writestr(name, text)
    return path


def _provisioner(work_dir: Path, source: Path | str | None) -> BinaryProvisioner:
    settings = ProvisioningSettings(release_source=str(source) if source else None)
    return BinaryProvisioner(settings, work_dir)


def test_installs_release_when_nothing_is_installed(tmp_path: Path) -> None:
    release = _write_release(tmp_path / "release.zip", _FULL_RELEASE)
    work_dir = tmp_path / "work"

    installation = _provisioner(work_dir, release).ensure()

    assert installation.install_dir == work_dir / "KAPE"
    assert installation.version == (1, 3, 0, 2)
    assert all(path.is_file() for path in installation.executables)
    assert (installation.target_catalog / "Browsers" / "Chrome.tkape").is_file()
    assert not (work_dir / "kape_release.zip").exists()
    assert not (work_dir / ".kape_staging").exists()


def test_installs_flat_release_layout(tmp_path: Path) -> None:
    flat = {name.removeprefix("KAPE/"): text for name, text in _FULL_RELEASE.items()}
    release = _write_release(tmp_path / "release.zip", flat)

    installation = _provisioner(tmp_path / "work", release).ensure()

    assert installation.collector == tmp_path / "work" / "KAPE" / "kape.exe"


def test_reuses_current_installation_without_fetching(tmp_path: Path) -> None:
    release = _write_release(tmp_path / "release.zip", _FULL_RELEASE)
    work_dir = tmp_path / "work"
    first = _provisioner(work_dir, release).ensure()
    sentinel = first.install_dir / "operator-note.txt"
    sentinel.write_text("keep", encoding="utf-8")
    release.unlink()

    second = _provisioner(work_dir, release).ensure((1, 3))

    assert second == first
    assert sentinel.exists()


def test_replaces_stale_installation_wholesale(tmp_path: Path) -> None:
    old_release = _write_release(
        tmp_path / "old.zip", {**_FULL_RELEASE, "KAPE/version.txt": "1.2.9"}
    )
    work_dir = tmp_path / "work"
    _provisioner(work_dir, old_release).ensure()
    leftover = work_dir / "KAPE" / "stale.txt"
    leftover.write_text("old", encoding="utf-8")
    new_release = _write_release(tmp_path / "new.zip", _FULL_RELEASE)

    installation = _provisioner(work_dir, new_release).ensure((1, 3))

    assert installation.version == (1, 3, 0, 2)
    assert not leftover.exists()


def test_reinstalls_when_an_executable_is_missing(tmp_path: Path) -> None:
    release = _write_release(tmp_path / "release.zip", _FULL_RELEASE)
    work_dir = tmp_path / "work"
    installation = _provisioner(work_dir, release).ensure()
    installation.uploader.unlink()

    repaired = _provisioner(work_dir, release).ensure()

    assert repaired.uploader.is_file()


def test_release_older_than_required_version_fails(tmp_path: Path) -> None:
    release = _write_release(tmp_path / "release.zip", _FULL_RELEASE)

    with pytest.raises(ProvisioningError, match="older than the required 2"):
        _provisioner(tmp_path / "work", release).ensure((2,))


def test_missing_release_source_is_a_fetch_error(tmp_path: Path) -> None:
    with pytest.raises(ReleaseFetchError, match="No release source"):
        _provisioner(tmp_path / "work", None).ensure()
    with pytest.raises(ReleaseFetchError, match="not found"):
        _provisioner(tmp_path / "work", tmp_path / "absent.zip").ensure()


def test_corrupt_archive_is_an_unpack_error_and_leaves_no_installation(tmp_path: Path) -> None:
    release = tmp_path / "release.zip"
    release.write_bytes(b"this is not a zip archive")
    work_dir = tmp_path / "work"

    with pytest.raises(ReleaseUnpackError):
        _provisioner(work_dir, release).ensure()

    assert not (work_dir / "KAPE").exists()
    assert not (work_dir / "kape_release.zip").exists()


def test_incomplete_release_is_removed(tmp_path: Path) -> None:
    members = {name: text for name, text in _FULL_RELEASE.items() if "azcopy" not in name}
    release = _write_release(tmp_path / "release.zip", members)
    work_dir = tmp_path / "work"

    with pytest.raises(IncompleteInstallationError, match="azcopy.exe"):
        _provisioner(work_dir, release).ensure()

    assert not (work_dir / "KAPE").exists()


class _FakeResponse:
    def __init__(self, chunks: list[bytes], error: Exception | None = None) -> None:
        self._chunks = chunks
        self._error = error

    def __enter__(self) -> _FakeResponse:
        return self

    def __exit__(self, *_exc: object) -> None:
        return None

    def raise_for_status(self) -> None:
        if self._error is not None:
            raise self._error

    def iter_content(self, chunk_size: int):
        yield from self._chunks


class _FakeSession:
    def __init__(self, response: _FakeResponse) -> None:
        self.response = response
        self.calls: list[tuple[str, int]] = []

    def get(self, url: str, *, stream: bool, timeout: int) -> _FakeResponse:
        assert stream is True
        self.calls.append((url, timeout))
        return self.response


def test_http_fetcher_streams_release_to_disk(tmp_path: Path) -> None:
    session = _FakeSession(_FakeResponse([b"PK", b"", b"data"]))
    fetcher = HttpOrPathReleaseFetcher(session=session)  # type: ignore[arg-type]
    destination = tmp_path / "download.zip"

    fetcher.fetch("https://example.com/kape.zip", destination, 45)

    assert destination.read_bytes() == b"PKdata"
    assert session.calls == [("https://example.com/kape.zip", 45)]


def test_http_fetcher_wraps_http_errors(tmp_path: Path) -> None:
    session = _FakeSession(_FakeResponse([], error=requests.HTTPError("404 Not Found")))
    fetcher = HttpOrPathReleaseFetcher(session=session)  # type: ignore[arg-type]

    with pytest.raises(ReleaseFetchError, match="404"):
        fetcher.fetch("https://example.com/kape.zip", tmp_path / "download.zip", 45)
