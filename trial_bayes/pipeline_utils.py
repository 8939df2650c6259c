"""
Shared utilities for the generate and analysis pipelines.

Functions provided:
- configure_logging: one-time logging setup for an entry point (stdout plus
  an optional log file).
- parse_analyses: normalize the --analyses argument to an ordered list.
- library_versions: versions of the numerical stack, for manifests.
- write_run_manifest: write a manifest.json alongside outputs capturing
  CLI args, inputs, outputs and row counts.
"""

from __future__ import annotations

import json
import logging
import platform
import sys
from importlib import metadata
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def configure_logging(log_path: Optional[Path] = None, level: int = logging.INFO) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_path is not None:
        log_path = Path(log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, mode="w"))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


def parse_analyses(selection: str | Iterable[str] | None, known: Iterable[str]) -> List[str]:
    """Ordered subset of ``known`` selected by a comma list or 'all'.

    Unknown names raise ValueError.
    """
    known = list(known)
    if selection is None:
        return known
    if isinstance(selection, str):
        s = selection.strip().lower()
        if s in ("", "all"):
            return known
        parts = [p.strip().lower() for p in s.split(",") if p.strip()]
    else:
        parts = [str(p).strip().lower() for p in selection if str(p).strip()]
    unknown = sorted(set(parts) - set(known))
    if unknown:
        raise ValueError(f"Unknown analyses {unknown}; choose from {known}")
    return [k for k in known if k in parts]


def library_versions(packages: Iterable[str] = ("numpy", "pandas", "scipy", "pymc", "arviz",
                                                "matplotlib", "seaborn")) -> Dict[str, str]:
    versions = {"python": platform.python_version()}
    for name in packages:
        try:
            versions[name] = metadata.version(name)
        except metadata.PackageNotFoundError:
            versions[name] = "not installed"
    return versions


def write_run_manifest(results_dir: Path, info: Dict[str, Any]) -> Path:
    results_dir = Path(results_dir)
    results_dir.mkdir(parents=True, exist_ok=True)
    out_path = results_dir / "manifest.json"
    with out_path.open("w", encoding="utf-8") as f:
        json.dump(info, f, indent=2, sort_keys=True, default=str)
    return out_path
