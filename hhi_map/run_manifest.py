# hhi_map/run_manifest.py
from __future__ import annotations

import json
import platform
import subprocess
import sys
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path


def _safe_git_commit(repo_root: Path) -> str | None:
    """Best-effort git commit retrieval without depending on GitPython."""
    try:
        r = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=str(repo_root),
            check=False,
            capture_output=True,
            text=True,
        )
    except OSError:
        return None
    if r.returncode != 0:
        return None
    return r.stdout.strip() or None


def write_run_manifest(
    *,
    output_dir: str | Path,
    command: str,
    registry_fingerprint: str,
    inputs: Mapping[str, str | Path],
    outputs: Mapping[str, str | Path | None],
    counts: Mapping[str, int],
    years: list[int],
    repo_root: str | Path | None = None,
) -> Path:
    """Write run_manifest.json next to the artifacts.

    The registry fingerprint ties the tiles and the viewer config from one run together:
    a config is only valid for tiles built with the same code tables.
    """
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    created_utc = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    git_commit = _safe_git_commit(Path(repo_root)) if repo_root is not None else None

    manifest = {
        "created_utc": created_utc,
        "python": sys.version.replace("\n", " "),
        "platform": f"{platform.system()} {platform.release()} ({platform.machine()})",
        "git_commit": git_commit,
        "command": command,
        "registry_fingerprint": registry_fingerprint,
        "inputs": {k: str(v) for k, v in inputs.items()},
        "outputs": {k: str(v) if v is not None else None for k, v in outputs.items()},
        "counts": dict(counts),
        "years": list(years),
    }

    manifest_path = out / "run_manifest.json"
    manifest_path.write_text(json.dumps(manifest, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return manifest_path
