"""Runner configuration scaffold generation helpers."""

from __future__ import annotations

from pathlib import Path

DEFAULT_CONFIG_FILENAME = "kape-runner.yaml"

_CONFIG_SCAFFOLD_TEMPLATE = """# Runner configuration for kape-runner.
# Every key is optional; remove a key to fall back to its default.
# Run parameters (targets, modules, storage account, ...) are command-line options.

workspace:
  # Directory holding the tool installation, targets/, modules/, outputs/ and the log file.
  # Relative paths resolve against this file's directory. Default: current directory.
  work_dir: "."

provisioning:
  # URL (http/https) or local/UNC path of the release zip. Required for the first run.
  release_source: "<REQUIRED>"
  install_dir_name: "KAPE"
  collector_name: "kape.exe"
  compressor_name: "7za.exe"
  uploader_name: "azcopy.exe"
  version_marker_name: "version.txt"
  download_timeout_seconds: 120

policy:
  # Free space always required on the source volume; installed RAM is added for modules.
  base_free_space_mib: 2048
  probe_timeout_seconds: 60
  upload_timeout_seconds: 300
  # Seconds a background launch is watched for an early crash before returning.
  launch_grace_seconds: 15

logging:
  file_name: "kape_runner.log"
  # Size threshold for rotation; rotated files get a date suffix.
  max_bytes: 10485760
  level: "INFO"
"""


def build_placeholder_configuration() -> str:
    """Build a YAML runner configuration template with defaults and inline guidance."""
    return _CONFIG_SCAFFOLD_TEMPLATE


def write_placeholder_configuration(output_path: Path | str) -> Path:
    """Write the runner configuration template to the requested output path.

    Args:
      output_path: Destination file path for the scaffold.

    Returns:
      The resolved destination path.

    Raises:
      FileExistsError: If the destination file already exists.
      OSError: If writing the scaffold fails.
    """
    destination = Path(output_path)
    if destination.exists():
        raise FileExistsError(f"Runner configuration file already exists: {destination.resolve()}")
    destination.write_text(build_placeholder_configuration(), encoding="utf-8")
    return destination.resolve()
