"""Filesystem writers for generated service scaffolds."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from pathlib import Path
import subprocess
import sys

log = logging.getLogger(__name__)

_GENERATED_RUFF_IGNORE_CODES: tuple[str, ...] = (
    "E501",
    "UP",
)


class WriteError(RuntimeError):
    """Raised when output files cannot be written."""


def write_scaffold(output_dir: Path, files: Mapping[str, str]) -> list[Path]:
    """Write generated scaffold files into a fresh directory.

    Args:
        output_dir (Path): Directory to create; must not exist yet.
        files (Mapping[str, str]): File contents keyed by relative path.

    Returns:
        list[Path]: Written paths, in ``files`` order.
    """
    if output_dir.exists():
        raise WriteError(f"Output directory already exists: {output_dir}")

    try:
        output_dir.mkdir(parents=True, exist_ok=False)
    except OSError as exc:
        raise WriteError(f"Failed to create output directory {output_dir}: {exc}") from exc

    written: list[Path] = []
    for relative_path, content in files.items():
        path = output_dir / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        _write_file(path, content)
        written.append(path)
    log.info("Wrote %d scaffold files to %s", len(written), output_dir)
    return written


def format_generated_tree(*, output_dir: Path) -> None:
    """Run Ruff auto-fixes and formatter against generated Python files.

    Args:
        output_dir (Path): Generated scaffold directory to format.
    """
    _run_ruff(output_dir=output_dir, args=("format", str(output_dir)))
    _run_ruff(
        output_dir=output_dir,
        args=(
            "check",
            "--fix",
            "--ignore",
            ",".join(_GENERATED_RUFF_IGNORE_CODES),
            str(output_dir),
        ),
    )
    _run_ruff(output_dir=output_dir, args=("format", str(output_dir)))


def _run_ruff(*, output_dir: Path, args: tuple[str, ...]) -> None:
    command = [sys.executable, "-m", "ruff", *args]
    command_desc = " ".join(args)
    log.debug("Running ruff %s", command_desc)
    try:
        subprocess.run(
            command,
            check=True,
            capture_output=True,
            text=True,
        )
    except OSError as exc:
        raise WriteError(f"Failed to execute ruff {command_desc} for {output_dir}: {exc}") from exc
    except subprocess.CalledProcessError as exc:
        error_text = exc.stderr.strip() or exc.stdout.strip() or str(exc)
        raise WriteError(f"ruff {command_desc} failed for {output_dir}: {error_text}") from exc


def _write_file(path: Path, content: str) -> None:
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise WriteError(f"Failed to write file {path}: {exc}") from exc
