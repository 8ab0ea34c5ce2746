"""Path helpers for provider state."""

from __future__ import annotations

from pathlib import Path


def state_root_from_config(state_root: str | Path) -> Path:
    """Return the resolved state root."""
    return Path(state_root).expanduser().resolve()


__all__ = ["state_root_from_config"]
