# hhi_map/external.py
"""Thin wrapper for the command-line tools the pipeline hands work to (mapshaper, tippecanoe)."""

from __future__ import annotations

import logging
import shutil
import subprocess

logger = logging.getLogger(__name__)


def run_command(cmd: list[str]) -> None:
    """Run an external tool, failing loudly if it is missing or exits non-zero."""
    if shutil.which(cmd[0]) is None:
        raise RuntimeError(f"Required command not found on PATH: {cmd[0]}")

    logger.info("Command: %s", " ".join(cmd))
    r = subprocess.run(cmd, check=False, capture_output=True, text=True)
    if r.returncode != 0:
        stderr = (r.stderr or "").strip()[-500:]
        raise RuntimeError(f"Command failed with return code {r.returncode}: {' '.join(cmd)}\n{stderr}")
