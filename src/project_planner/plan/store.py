"""File-based plan store with per-project locking.

Each project's plan lives in its own YAML file (``plans/<project_id>.yaml``)
inside the planner state directory.  Every read-compute-write goes through
:meth:`PlanStore.transaction`, which holds the project's critical section (a
process-local lock from a mutex table plus an exclusive file lock) for the
whole operation.  Nothing is written unless the transaction body completes,
so a failure half-way through a shift leaves the file untouched.

Events recorded on a transaction are delivered to the store's listeners
after the save and before the critical section is released, so listeners
see changes in commit order.

This is the only module that changes ``sequence_order`` values.
"""

from __future__ import annotations

import logging
import os
import re
import threading
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Optional

import yaml

from ..constants import STORE_SCHEMA_VERSION
from ..io_utils import FileLock, _atomic_write_yaml, _load_yaml_with_error
from .errors import AlreadyExists, InvalidArgument, NotInPlan, StorageFailure
from .model import PlanEntry, TaskSequence

logger = logging.getLogger(__name__)

_SAFE_PROJECT_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")

# (event_type, project_id, task_id, details)
PlanListener = Callable[[str, str, Optional[str], dict[str, Any]], None]


# ---------------------------------------------------------------------------
# PlanStore
# ---------------------------------------------------------------------------

class PlanStore:
    """Thread-safe, file-backed store for per-project plan entries.

    Parameters
    ----------
    plans_dir:
        Directory that holds one ``<project_id>.yaml`` per project plan.
    """

    def __init__(self, plans_dir: Path) -> None:
        self._plans_dir = plans_dir
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        self._listeners: list[PlanListener] = []

    def subscribe(self, listener: PlanListener) -> None:
        """Call *listener* for every event of every committed transaction."""
        self._listeners.append(listener)

    # -- internal helpers ---------------------------------------------------

    def _check_project_id(self, project_id: str) -> None:
        if not _SAFE_PROJECT_ID.match(project_id or ""):
            raise InvalidArgument(f"Invalid project id: {project_id!r}")

    def _path(self, project_id: str) -> Path:
        return self._plans_dir / f"{project_id}.yaml"

    def _lock_path(self, project_id: str) -> Path:
        return self._plans_dir / f"{project_id}.lock"

    def _project_lock(self, project_id: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(project_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[project_id] = lock
            return lock

    def _forget_project(self, project_id: str) -> None:
        # Threads still queued on the old lock stay serialized with new ones
        # through the file lock.
        with self._locks_guard:
            self._locks.pop(project_id, None)

    def _unlink(self, project_id: str) -> None:
        try:
            self._path(project_id).unlink(missing_ok=True)
            if os.name != "nt":
                # Open lock files cannot be unlinked on Windows.
                self._lock_path(project_id).unlink(missing_ok=True)
        except OSError as exc:
            raise StorageFailure(f"Cannot delete plan of project {project_id}: {exc}") from exc

    def _notify(self, tx: _PlanTx) -> None:
        for event_type, task_id, details in tx.events:
            for listener in self._listeners:
                try:
                    listener(event_type, tx.project_id, task_id, details)
                except Exception:
                    logger.exception("Plan listener failed on %s for %s", event_type, tx.project_id)

    def _load(self, project_id: str) -> list[PlanEntry]:
        data, err = _load_yaml_with_error(self._path(project_id), {})
        if err:
            raise StorageFailure(f"Cannot read plan of project {project_id}: {err}")
        raw = data.get("entries", [])
        if not isinstance(raw, list):
            raise StorageFailure(f"Cannot read plan of project {project_id}: 'entries' is not a list")
        return [PlanEntry.from_dict(item) for item in raw if isinstance(item, dict)]

    def _save(self, project_id: str, entries: list[PlanEntry]) -> None:
        payload: dict[str, Any] = {
            "version": STORE_SCHEMA_VERSION,
            "project_id": project_id,
            "entries": [e.to_dict() for e in sorted(entries, key=lambda e: e.sequence_order)],
        }
        try:
            _atomic_write_yaml(self._path(project_id), payload)
        except (OSError, yaml.YAMLError) as exc:
            logger.exception("Failed to write plan of project %s", project_id)
            raise StorageFailure(f"Cannot write plan of project {project_id}: {exc}") from exc

    # -- public API ---------------------------------------------------------

    @contextmanager
    def transaction(self, project_id: str) -> Iterator[_PlanTx]:
        """Hold *project_id*'s critical section, yield a transaction, save on exit.

        Usage::

            with store.transaction("proj-1") as tx:
                tx.set_order("task-a", 3)
                # saved on clean exit, discarded if the block raises

        The critical section is not re-entrant across transactions: do not
        call other store methods for the same project inside the block.
        """
        self._check_project_id(project_id)
        with self._project_lock(project_id), ExitStack() as stack:
            try:
                stack.enter_context(FileLock(self._lock_path(project_id)))
            except OSError as exc:
                raise StorageFailure(f"Cannot lock plan of project {project_id}: {exc}") from exc
            tx = _PlanTx(project_id, self._load(project_id))
            yield tx
            if tx.dropped:
                self._unlink(project_id)
            elif tx.dirty:
                self._save(project_id, tx.entries)
            self._notify(tx)
        if tx.dropped:
            self._forget_project(project_id)

    def read_snapshot(self, project_id: str) -> list[PlanEntry]:
        """Return the project's entries ordered by ``sequence_order``."""
        with self.transaction(project_id) as tx:
            return tx.list_all()

    def get_one(self, project_id: str, task_id: str) -> Optional[PlanEntry]:
        with self.transaction(project_id) as tx:
            return tx.get(task_id)

    def contains(self, project_id: str, task_id: str) -> bool:
        return self.get_one(project_id, task_id) is not None

    def position(self, project_id: str, task_id: str) -> int:
        entry = self.get_one(project_id, task_id)
        if entry is None:
            raise NotInPlan(f"Task {task_id} is not in the plan of project {project_id}")
        return entry.sequence_order

    # -- ordering algorithms ------------------------------------------------

    def add(
        self,
        project_id: str,
        task_id: str,
        guard: Optional[Callable[[], Any]] = None,
    ) -> PlanEntry:
        """Append *task_id* at ``max(sequence_order) + 1`` (1 for an empty plan).

        *guard* runs inside the critical section before the insert; raising
        from it aborts the add.
        """
        with self.transaction(project_id) as tx:
            if guard is not None:
                guard()
            entry = tx.insert(task_id)
            tx.record("plan.task_added", task_id, position=entry.sequence_order)
            return entry

    def remove(self, project_id: str, task_id: str) -> PlanEntry:
        """Delete the entry and close the gap it leaves behind."""
        with self.transaction(project_id) as tx:
            entry = tx.remove_compacting(task_id)
            tx.record("plan.task_removed", task_id, position=entry.sequence_order)
            return entry

    def reorder(
        self,
        project_id: str,
        sequences: Iterable[TaskSequence],
        require_dense: bool = False,
    ) -> None:
        """Overwrite the order of every listed task.

        By default the caller is trusted to supply a valid permutation.  With
        ``require_dense`` the resulting orders must be exactly ``1..N``,
        otherwise :class:`InvalidArgument` is raised and nothing is written.
        """
        sequences = list(sequences)
        with self.transaction(project_id) as tx:
            for seq in sequences:
                tx.set_order(seq.task_id, seq.sequence_order)
            if require_dense and not tx.is_dense():
                orders = [e.sequence_order for e in tx.list_all()]
                raise InvalidArgument(
                    f"Reorder of project {project_id} must yield positions 1..{len(orders)}, got {orders}"
                )
            tx.record(
                "plan.reordered",
                None,
                sequences=[{"task_id": s.task_id, "sequence_order": s.sequence_order} for s in sequences],
            )

    def move(self, project_id: str, task_id: str, target: int, bounded: bool = False) -> int:
        """Move *task_id* to *target*, shifting the entries in between.

        Returns the task's previous position.  *target* is only range-checked
        against the plan size when ``bounded`` is set.
        """
        with self.transaction(project_id) as tx:
            entry = tx.get(task_id)
            if entry is None:
                raise NotInPlan(f"Task {task_id} is not in the plan of project {project_id}")
            if bounded and target > len(tx.entries):
                raise InvalidArgument(
                    f"Position {target} is out of range for a plan of {len(tx.entries)} tasks"
                )
            current = entry.sequence_order
            if current == target:
                return current
            if current < target:
                tx.shift(current + 1, target, -1)
            else:
                tx.shift(target, current - 1, +1)
            tx.set_order(task_id, target)
            tx.record("plan.task_moved", task_id, from_position=current, to_position=target)
            return current

    def drop_project(self, project_id: str) -> int:
        """Remove a project's whole plan and its lock.  Returns the number of entries dropped."""
        with self.transaction(project_id) as tx:
            return tx.drop()


class _PlanTx:
    """In-memory transaction over one project's plan entries.

    Mutations are collected and flushed back to disk when the
    ``transaction`` context-manager exits cleanly.  Recorded events are
    handed to the store's listeners once the flush succeeds.
    """

    def __init__(self, project_id: str, entries: list[PlanEntry]) -> None:
        self.project_id = project_id
        self.entries = entries
        self.dirty = False
        self.dropped = False
        self.events: list[tuple[str, Optional[str], dict[str, Any]]] = []
        self._index: dict[str, PlanEntry] = {e.task_id: e for e in entries}

    def record(self, event_type: str, task_id: Optional[str] = None, **details: Any) -> None:
        self.events.append((event_type, task_id, details))

    # -- lookups ------------------------------------------------------------

    def get(self, task_id: str) -> Optional[PlanEntry]:
        return self._index.get(task_id)

    def list_all(self) -> list[PlanEntry]:
        return sorted(self.entries, key=lambda e: e.sequence_order)

    def max_order(self) -> int:
        return max((e.sequence_order for e in self.entries), default=0)

    def is_dense(self) -> bool:
        orders = sorted(e.sequence_order for e in self.entries)
        return orders == list(range(1, len(orders) + 1))

    # -- mutations ----------------------------------------------------------

    def insert(self, task_id: str) -> PlanEntry:
        if task_id in self._index:
            raise AlreadyExists(f"Task {task_id} is already in the plan of project {self.project_id}")
        entry = PlanEntry(
            project_id=self.project_id,
            task_id=task_id,
            sequence_order=self.max_order() + 1,
        )
        self.entries.append(entry)
        self._index[task_id] = entry
        self.dirty = True
        return entry

    def delete(self, task_id: str) -> PlanEntry:
        entry = self._index.pop(task_id, None)
        if entry is None:
            raise NotInPlan(f"Task {task_id} is not in the plan of project {self.project_id}")
        self.entries.remove(entry)
        self.dirty = True
        return entry

    def remove_compacting(self, task_id: str) -> PlanEntry:
        """Delete the entry and shift every later entry up by one."""
        entry = self.delete(task_id)
        self.shift(entry.sequence_order + 1, None, -1)
        return entry

    def drop(self) -> int:
        """Discard every entry; the plan file and its lock go on commit."""
        count = len(self.entries)
        self.entries.clear()
        self._index.clear()
        self.dropped = True
        return count

    def set_order(self, task_id: str, order: int) -> PlanEntry:
        entry = self._index.get(task_id)
        if entry is None:
            raise NotInPlan(f"Task {task_id} is not in the plan of project {self.project_id}")
        if entry.sequence_order != order:
            entry.sequence_order = order
            entry.touch()
            self.dirty = True
        return entry

    def shift(self, low: int, high: Optional[int], delta: int) -> int:
        """Add *delta* to every order in ``[low, high]`` (``high=None``: unbounded).

        Returns the number of entries touched.
        """
        touched = 0
        for entry in self.entries:
            order = entry.sequence_order
            if order < low or (high is not None and order > high):
                continue
            entry.sequence_order = order + delta
            entry.touch()
            touched += 1
        if touched:
            self.dirty = True
        return touched
