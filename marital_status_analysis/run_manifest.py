# marital_status_analysis/run_manifest.py
from __future__ import annotations

import json
import platform
import subprocess
import sys
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class AnalysisRunManifest:
    """Lightweight, reproducible metadata for one analysis run."""

    created_utc: str
    python: str
    platform: str
    git_commit: str | None
    command: str
    output_dir: str

    # Inputs
    data_path: str
    config_path: str | None

    # Key parameters
    outcome: str
    reference_level: str
    reduced_predictors: list[str]
    full_predictors: list[str]
    predictor_references: dict[str, str]
    vif_threshold: float

    # Dataset sizes
    n_rows: int

    # Outputs
    outputs: dict[str, str]
    run_log_path: str | None


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
    if r.returncode == 0:
        return r.stdout.strip() or None
    return None


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def write_analysis_manifest(
    *,
    output_dir: str | Path,
    command: str,
    repo_root: str | Path | None = None,
    data_path: str | Path,
    config_path: str | Path | None,
    outcome: str,
    reference_level: str,
    reduced_predictors: Iterable[str],
    full_predictors: Iterable[str],
    predictor_references: Mapping[str, str],
    vif_threshold: float,
    n_rows: int,
    outputs: Mapping[str, str | Path],
    run_log_path: str | Path | None,
) -> Path:
    """Writes analysis_manifest.json (run metadata) into output_dir."""
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    repo_root_path = Path(repo_root) if repo_root is not None else None
    git_commit = _safe_git_commit(repo_root_path) if repo_root_path else None

    manifest = AnalysisRunManifest(
        created_utc=utc_now_iso(),
        python=sys.version.replace("\n", " "),
        platform=f"{platform.system()} {platform.release()} ({platform.machine()})",
        git_commit=git_commit,
        command=command,
        output_dir=str(out),
        data_path=str(data_path),
        config_path=str(config_path) if config_path else None,
        outcome=outcome,
        reference_level=reference_level,
        reduced_predictors=list(reduced_predictors),
        full_predictors=list(full_predictors),
        predictor_references=dict(predictor_references),
        vif_threshold=float(vif_threshold),
        n_rows=int(n_rows),
        outputs={k: str(v) for k, v in outputs.items()},
        run_log_path=str(run_log_path) if run_log_path else None,
    )

    manifest_path = out / "analysis_manifest.json"
    manifest_path.write_text(json.dumps(asdict(manifest), indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return manifest_path


def load_manifest(path: str | Path) -> dict[str, Any]:
    return json.loads(Path(path).read_text(encoding="utf-8"))
