"""
Working copy container for one board session.

`BoardState` owns the client's copy of tasks and projects. Every change builds
a whole new `WorkingCopy` and swaps it in, so no reader ever sees a half-applied
mutation. Optimistic mutations go through `apply` and end with either `commit`
or `rollback`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from moby_kanban.domain.project_models import Project
from moby_kanban.domain.task_models import Task

logger = logging.getLogger("moby_kanban.sync")

Listener = Callable[["WorkingCopy"], None]
Mutation = Callable[["WorkingCopy"], "WorkingCopy"]


@dataclass(frozen=True)
class WorkingCopy:
    tasks: Tuple[Task, ...] = ()
    projects: Tuple[Project, ...] = ()

    def task(self, task_id: str) -> Optional[Task]:
        return next((t for t in self.tasks if t.id == task_id), None)

    def project(self, project_id: Optional[str]) -> Optional[Project]:
        return next((p for p in self.projects if p.id == project_id), None)

    def with_tasks(self, tasks: Iterable[Task]) -> "WorkingCopy":
        return replace(self, tasks=tuple(tasks))

    def with_projects(self, projects: Iterable[Project]) -> "WorkingCopy":
        return replace(self, projects=tuple(projects))

    def adopt_tasks(self, canonical: Iterable[Task]) -> "WorkingCopy":
        """Replace tasks by id with server records; ids not present yet are appended."""
        by_id = {t.id: t for t in canonical}
        tasks = [by_id.pop(t.id, t) for t in self.tasks]
        return self.with_tasks(tasks + list(by_id.values()))

    def adopt_projects(self, canonical: Iterable[Project]) -> "WorkingCopy":
        by_id = {p.id: p for p in canonical}
        projects = [by_id.pop(p.id, p) for p in self.projects]
        return self.with_projects(projects + list(by_id.values()))


@dataclass
class PendingMutation:
    label: str
    snapshot: WorkingCopy
    applied: WorkingCopy
    version: int


def _merge_back(current: Sequence, snapshot: Sequence, applied: Sequence) -> Tuple:
    """Undo, inside `current`, only the entities that differ between `snapshot` and `applied`."""
    before: Dict[str, object] = {e.id: e for e in snapshot}
    after: Dict[str, object] = {e.id: e for e in applied}
    touched = {i for i in before.keys() | after.keys() if before.get(i) != after.get(i)}

    merged: List = []
    seen = set()
    for entity in current:
        seen.add(entity.id)
        if entity.id not in touched:
            merged.append(entity)
        elif entity.id in before:
            merged.append(before[entity.id])
    merged.extend(before[i] for i in before if i in touched and i not in seen)
    return tuple(merged)


class BoardState:
    def __init__(self, initial: Optional[WorkingCopy] = None):
        self.current: WorkingCopy = initial or WorkingCopy()
        self.rollback_snapshot: Optional[WorkingCopy] = None
        self.loaded = initial is not None
        self.version = 0
        self._pending: List[PendingMutation] = []
        self._listeners: List[Listener] = []

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _swap(self, copy: WorkingCopy) -> None:
        self.current = copy
        self.version += 1
        for listener in list(self._listeners):
            listener(copy)

    def _settle(self, pending: PendingMutation) -> None:
        self._pending.remove(pending)
        self.rollback_snapshot = self._pending[-1].snapshot if self._pending else None

    def replace(self, copy: WorkingCopy) -> None:
        """Wholesale replacement from a full load."""
        self.loaded = True
        self._swap(copy)

    def update(self, mutation: Mutation) -> None:
        """Non-optimistic change, e.g. appending a record the server just created."""
        self._swap(mutation(self.current))

    def apply(self, mutation: Mutation, label: str = "") -> PendingMutation:
        snapshot = self.current
        applied = mutation(snapshot)
        self.rollback_snapshot = snapshot
        self._swap(applied)
        pending = PendingMutation(label, snapshot, applied, self.version)
        self._pending.append(pending)
        return pending

    def commit(self, pending: PendingMutation, adopt: Optional[Mutation] = None) -> None:
        self._settle(pending)
        if adopt is not None:
            self._swap(adopt(self.current))

    def rollback(self, pending: PendingMutation) -> bool:
        """
        Undo `pending`. Returns True when the working copy was restored to the
        snapshot in full, False when other changes landed after this mutation
        and only the entities it touched were put back.
        """
        self._settle(pending)
        if self.version == pending.version:
            self._swap(pending.snapshot)
            return True

        logger.warning(
            "sync.rollback.merge",
            extra={"category": "sync", "event": "sync.rollback.merge", "label": pending.label},
        )
        merged = WorkingCopy(
            tasks=_merge_back(self.current.tasks, pending.snapshot.tasks, pending.applied.tasks),
            projects=_merge_back(self.current.projects, pending.snapshot.projects, pending.applied.projects),
        )
        self._swap(merged)
        return False
