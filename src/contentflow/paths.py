"""Path helpers for the contentflow state directory."""

from __future__ import annotations

import os
from pathlib import Path
from urllib.parse import quote

__all__ = [
    "DEFAULT_STATE_ROOT",
    "resolve_state_path",
    "ensure_directory",
    "session_filename",
]

DEFAULT_STATE_ROOT = Path(os.getenv("CONTENTFLOW_STATE_ROOT", ".contentflow")) / "state"


def _normalise(path: Path | str) -> Path:
    return Path(path).expanduser()


def ensure_directory(path: Path | str) -> Path:
    resolved = _normalise(path)
    resolved.mkdir(parents=True, exist_ok=True)
    return resolved


def resolve_state_path(path: Path | str | None = None, *, create: bool = True) -> Path:
    candidate = _normalise(path or DEFAULT_STATE_ROOT)
    if create:
        candidate.mkdir(parents=True, exist_ok=True)
    return candidate


def session_filename(session_key: str) -> str:
    """Map a session key onto its own ``<key>.json`` filename.

    Keys are percent-encoded, so distinct keys never share a file and plain
    keys such as ``workflowContext`` keep a readable name.
    """

    if not session_key:
        raise ValueError("Session key must not be empty.")
    return f"{quote(session_key, safe='')}.json"
