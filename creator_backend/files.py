"""Workflow file writes under the orchestrator root."""

from __future__ import annotations

import logging
from pathlib import Path

from .errors import FileWriteError, ValidationError

logger = logging.getLogger(__name__)


def resolve_target_path(root: Path, target: str) -> Path:
    """
    Resolve a requested path against the orchestrator root.

    Relative paths are joined under `root`. Absolute paths are accepted only
    when they already point inside `root`.

    Raises:
        ValidationError: If the path is empty, malformed or escapes the root
    """
    if not target or not target.strip():
        raise ValidationError("Missing path")

    base = root.resolve()
    candidate = Path(target)
    if not candidate.is_absolute():
        candidate = base / candidate
    try:
        resolved = candidate.resolve()
    except (ValueError, OSError) as e:
        raise ValidationError(f"Invalid path: {target!r}") from e

    if resolved == base or not resolved.is_relative_to(base):
        raise ValidationError(f"Path is outside the orchestrator directory: {target}")
    return resolved


def write_file(root: Path, target: str, content: str) -> Path:
    """
    Write text content to a file under the orchestrator root.

    Missing parent directories are created and an existing file is
    truncated. The write is not atomic.

    Args:
        root: Orchestrator root directory
        target: Requested path (relative to root, or absolute inside it)
        content: Text to write

    Returns:
        The absolute path that was written

    Raises:
        ValidationError: If the path is rejected
        FileWriteError: If the directories or file cannot be written
    """
    path = resolve_target_path(root, target)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(content)
    except OSError as e:
        raise FileWriteError(str(e)) from e

    logger.info("[write] %s (%d chars)", path, len(content))
    return path
