"""Locked JSON file access shared by the file-backed stores (fcntl.flock + atomic write)."""

import fcntl
import json
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

from sproutling.storage.errors import StorageError


def read_json(path: Path, default: Any) -> Any:
    """Read a JSON document under a shared lock, or return ``default`` if missing."""
    if not path.exists():
        return default
    try:
        with open(path, encoding="utf-8") as f:
            fcntl.flock(f, fcntl.LOCK_SH)
            data = json.load(f)
            fcntl.flock(f, fcntl.LOCK_UN)
    except (OSError, ValueError) as e:
        raise StorageError(f"Failed to read {path.name}: {e}", path=str(path)) from e
    return data


def update_json(
    path: Path,
    default: Any,
    mutate: Callable[[Any], Any],
    mode: int | None = None,
) -> Any:
    """Read-modify-write a JSON document under an exclusive lock.

    Args:
        path: Target file.
        default: Document to start from when the file does not exist.
        mutate: Receives the current document and returns the new one.
        mode: Optional permission bits applied to the written file.

    Returns:
        The document that was written.
    """
    lock_path = path.with_name(path.name + ".lock")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(lock_path, "w") as lock_file:
            fcntl.flock(lock_file, fcntl.LOCK_EX)

            if path.exists():
                data = json.loads(path.read_text(encoding="utf-8"))
            else:
                data = default

            data = mutate(data)
            with tempfile.NamedTemporaryFile(
                "w", dir=path.parent, delete=False, suffix=".json", encoding="utf-8"
            ) as tmp:
                json.dump(data, tmp, indent=2, default=str)
            if mode is not None:
                os.chmod(tmp.name, mode)
            os.replace(tmp.name, path)
    except (OSError, ValueError) as e:
        raise StorageError(f"Failed to write {path.name}: {e}", path=str(path)) from e
    return data
