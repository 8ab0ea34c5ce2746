"""Run records for provider commands."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Mapping


def write_run_record(step: str, payload: Mapping[str, Any], *, root: Path) -> Path:
    """Write ``payload`` under root/runs as ``<step>_<timestamp>.json``."""

    runs_dir = root / "runs"
    runs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S%fZ")
    dest = runs_dir / f"{step}_{timestamp}.json"
    record = {"step": step, "recorded_at": timestamp, **payload}
    dest.write_text(json.dumps(record, indent=2, default=str), encoding="utf-8")
    return dest


__all__ = ["write_run_record"]
