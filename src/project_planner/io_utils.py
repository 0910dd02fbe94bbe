from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from .constants import WINDOWS_LOCK_BYTES
from .utils import _now_iso


class FileLock:
    """Exclusive lock on a planner lock file.

    Guards ``plans/<project_id>.lock`` for a project's plan and
    ``projects.lock`` / ``tasks.lock`` for the catalog files.  A plan lock
    file is unlinked when its project is dropped, so on POSIX the lock is
    only considered held once the locked handle still matches the file at
    ``lock_path``; a waiter that wakes up on an unlinked file retries on the
    new one.  Not re-entrant: a second ``FileLock`` on the same path in the
    same thread blocks forever.
    """

    def __init__(self, lock_path: Path):
        self.lock_path = lock_path
        self.handle: Optional[Any] = None
        self.lock_bytes = WINDOWS_LOCK_BYTES

    def __enter__(self) -> "FileLock":
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        while True:
            handle = open(self.lock_path, "a")
            try:
                if self._acquire(handle):
                    self.handle = handle
                    return self
            except BaseException:
                handle.close()
                raise
            handle.close()

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self.handle:
            return
        try:
            self._release(self.handle)
        finally:
            self.handle.close()
            self.handle = None

    def _acquire(self, handle: Any) -> bool:
        """Lock *handle*; False when the path was replaced while waiting."""
        try:
            import fcntl
        except ImportError:
            if os.name == "nt":
                import msvcrt
                handle.seek(0)
                msvcrt.locking(handle.fileno(), msvcrt.LK_LOCK, self.lock_bytes)
            return True
        fcntl.flock(handle, fcntl.LOCK_EX)
        try:
            current = os.stat(self.lock_path)
        except FileNotFoundError:
            fcntl.flock(handle, fcntl.LOCK_UN)
            return False
        if current.st_ino != os.fstat(handle.fileno()).st_ino:
            fcntl.flock(handle, fcntl.LOCK_UN)
            return False
        return True

    def _release(self, handle: Any) -> None:
        try:
            import fcntl
        except ImportError:
            if os.name == "nt":
                import msvcrt
                handle.seek(0)
                msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, self.lock_bytes)
            return
        fcntl.flock(handle, fcntl.LOCK_UN)


def _load_yaml_with_error(
    path: Path,
    default: dict[str, Any],
) -> tuple[dict[str, Any], str | None]:
    """
    Load a YAML mapping and return (data, error_message).

    Parse and IO failures are reported instead of raised so callers can avoid
    overwriting a corrupted file.
    """
    if not path.exists():
        return default, None
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except OSError as exc:
        return default, f"{path.name}: {exc.__class__.__name__}: {exc}"
    except yaml.YAMLError as exc:
        return default, f"{path.name}: YAMLError: {exc}"
    if data is None:
        return default, None
    if not isinstance(data, dict):
        return default, f"{path.name}: expected object, got {type(data).__name__}"
    return data, None


def _atomic_write_yaml(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8") as handle:
            yaml.safe_dump(
                data,
                handle,
                sort_keys=False,
                default_flow_style=False,
                allow_unicode=True,
            )
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def _append_event(events_path: Path, event: dict[str, Any]) -> None:
    events_path.parent.mkdir(parents=True, exist_ok=True)
    payload = dict(event)
    payload.setdefault("ts", _now_iso())
    line = json.dumps(payload, ensure_ascii=False) + "\n"
    with open(events_path, "a", encoding="utf-8") as handle:
        handle.write(line)
        handle.flush()
        os.fsync(handle.fileno())


def _read_events(events_path: Path) -> list[dict[str, Any]]:
    if not events_path.exists():
        return []
    lines = events_path.read_text(encoding="utf-8").splitlines()
    events: list[dict[str, Any]] = []
    for line in lines:
        try:
            payload = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict):
            events.append(payload)
    return events
