"""
Local reordering engine.

Pure functions from (working copy, dragged id, drop) to a new working copy.
No clocks, no randomness and no hidden state: the same inputs always give the
same output, so a result can be recomputed for optimistic replay. Positions in
every touched column come out dense (0..n-1); ties keep incoming order.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from moby_kanban.client.drag import DropDescriptor, DropKind
from moby_kanban.domain import ranking
from moby_kanban.domain.project_models import Project
from moby_kanban.domain.task_models import Task, TaskStatus


class ReorderKind(str, Enum):
    NOOP = "NOOP"
    PROJECT = "PROJECT"  # project reassignment
    MOVE = "MOVE"  # status changed
    REORDER = "REORDER"  # new rank within the same column


@dataclass(frozen=True)
class ReorderResult:
    kind: ReorderKind
    tasks: Tuple[Task, ...]
    changed_ids: Tuple[str, ...] = ()
    task: Optional[Task] = None  # the dragged task as it ends up

    @property
    def is_noop(self) -> bool:
        return self.kind is ReorderKind.NOOP


def _with_position(item, position: int):
    return item if item.position == position else item.model_copy(update={"position": position})


def column(tasks: Sequence[Task], status: TaskStatus) -> List[Task]:
    return ranking.ranked(t for t in tasks if t.status == status)


def _find(tasks: Sequence[Task], task_id: Optional[str]) -> Optional[Task]:
    return next((t for t in tasks if t.id == task_id), None)


def _result(kind: ReorderKind, original: Tuple[Task, ...], updated: dict, dragged_id: str) -> ReorderResult:
    tasks = tuple(updated.get(t.id, t) for t in original)
    changed = tuple(new.id for old, new in zip(original, tasks) if new != old)
    if not changed:
        return ReorderResult(ReorderKind.NOOP, original)
    return ReorderResult(kind, tasks, changed, _find(tasks, dragged_id))


def _move(original: Tuple[Task, ...], dragged: Task, status: TaskStatus, index: int) -> ReorderResult:
    updated = {}
    if status != dragged.status:
        source = [t for t in column(original, dragged.status) if t.id != dragged.id]
        for t in ranking.densify(source, _with_position):
            updated[t.id] = t

    siblings = [t for t in column(original, status) if t.id != dragged.id]
    moved = dragged if status == dragged.status else dragged.model_copy(update={"status": status})
    for t in ranking.densify(ranking.insert_at(siblings, moved, index), _with_position):
        updated[t.id] = t

    kind = ReorderKind.REORDER if status == dragged.status else ReorderKind.MOVE
    return _result(kind, original, updated, dragged.id)


def reorder(tasks: Sequence[Task], dragged_id: str, drop: DropDescriptor) -> ReorderResult:
    original = tuple(tasks)
    dragged = _find(original, dragged_id)
    if dragged is None or drop.is_none:
        return ReorderResult(ReorderKind.NOOP, original)

    if drop.kind is DropKind.PROJECT:
        if dragged.project_id == drop.target_id:
            return ReorderResult(ReorderKind.NOOP, original)
        moved = dragged.model_copy(update={"project_id": drop.target_id})
        return _result(ReorderKind.PROJECT, original, {moved.id: moved}, dragged.id)

    if drop.kind is DropKind.COLUMN:
        status = TaskStatus(drop.target_id)
        others = [t for t in original if t.status == status and t.id != dragged.id]
        return _move(original, dragged, status, len(others))

    target = _find(original, drop.target_id)
    if target is None or target.id == dragged.id:
        return ReorderResult(ReorderKind.NOOP, original)
    index = [t.id for t in column(original, target.status)].index(target.id)
    return _move(original, dragged, target.status, index)


def remove_task(tasks: Sequence[Task], task_id: str) -> Tuple[Task, ...]:
    """Drop `task_id` and close the gap it leaves in its column."""
    original = tuple(tasks)
    removed = _find(original, task_id)
    if removed is None:
        return original
    remaining = [t for t in column(original, removed.status) if t.id != task_id]
    updated = {t.id: t for t in ranking.densify(remaining, _with_position)}
    return tuple(updated.get(t.id, t) for t in original if t.id != task_id)


def append_task(tasks: Sequence[Task], task: Task) -> Tuple[Task, ...]:
    return tuple(t for t in tasks if t.id != task.id) + (task,)


def unassign_project(tasks: Sequence[Task], project_id: str) -> Tuple[Task, ...]:
    return tuple(t.model_copy(update={"project_id": None}) if t.project_id == project_id else t for t in tasks)


def move_task(tasks: Sequence[Task], task_id: str, status: TaskStatus, index: Optional[int] = None) -> ReorderResult:
    """Place a task at `index` of `status` (end of column when None), as an edit form would."""
    original = tuple(tasks)
    task = _find(original, task_id)
    if task is None:
        return ReorderResult(ReorderKind.NOOP, original)
    if index is None:
        index = len([t for t in original if t.status == status and t.id != task_id])
    return _move(original, task, status, index)


def move_project(projects: Sequence[Project], project_id: str, index: int) -> Optional[Tuple[Project, ...]]:
    """Sidebar ordering; None when the move changes nothing."""
    ordered = ranking.ranked(projects)
    ids = [p.id for p in ordered]
    if project_id not in ids:
        return None
    index = max(0, min(index, len(ids) - 1))
    moved = ranking.array_move(ordered, ids.index(project_id), index)
    result = tuple(ranking.densify(moved, _with_position))
    return None if result == tuple(ordered) else result


def reorder_projects(projects: Sequence[Project], dragged_id: str, target_id: str) -> Optional[Tuple[Project, ...]]:
    """Drop one sidebar project onto another; it takes the target's rank."""
    ids = [p.id for p in ranking.ranked(projects)]
    if dragged_id == target_id or target_id not in ids:
        return None
    return move_project(projects, dragged_id, ids.index(target_id))


def remove_project(projects: Sequence[Project], project_id: str) -> Tuple[Project, ...]:
    remaining = [p for p in ranking.ranked(projects) if p.id != project_id]
    return tuple(ranking.densify(remaining, _with_position))
