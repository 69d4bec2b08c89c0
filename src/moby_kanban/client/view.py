"""
Filter/view projection for rendering the board.

Pure derivation from (working copy, active filter, selected project). The
creator/flag filter and the project selection are independent predicates that
are ANDed, so their evaluation order never matters.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from moby_kanban.client.state import BoardState, WorkingCopy
from moby_kanban.domain import ranking
from moby_kanban.domain.task_models import STATUS_ORDER, Task, TaskCreator, TaskStatus


class FilterKind(str, Enum):
    ALL = "all"
    FLAGGED = "flagged"
    CREATOR = "creator"


@dataclass(frozen=True)
class BoardFilter:
    kind: FilterKind = FilterKind.ALL
    creator: Optional[TaskCreator] = None

    @classmethod
    def all(cls) -> "BoardFilter":
        return cls()

    @classmethod
    def flagged(cls) -> "BoardFilter":
        return cls(FilterKind.FLAGGED)

    @classmethod
    def by_creator(cls, creator: TaskCreator) -> "BoardFilter":
        return cls(FilterKind.CREATOR, TaskCreator(creator))

    @classmethod
    def parse(cls, text: str) -> "BoardFilter":
        """Accepts "all", "flagged", "creator=MOBY" and the bare creator names."""
        value = text.strip()
        lowered = value.lower()
        if lowered in ("", "all"):
            return cls.all()
        if lowered == "flagged":
            return cls.flagged()
        if lowered.startswith("creator="):
            value = value.split("=", 1)[1]
        try:
            return cls.by_creator(TaskCreator(value.upper()))
        except ValueError:
            raise ValueError(f"unknown filter: {text!r}") from None

    def matches(self, task: Task) -> bool:
        if self.kind is FilterKind.FLAGGED:
            return task.needs_review
        if self.kind is FilterKind.CREATOR:
            return task.creator == self.creator
        return True


def in_project(project_id: Optional[str]) -> Callable[[Task], bool]:
    if project_id is None:
        return lambda task: True
    return lambda task: task.project_id == project_id


@dataclass(frozen=True)
class BoardView:
    columns: Dict[TaskStatus, Tuple[Task, ...]] = field(default_factory=dict)
    flagged_count: int = 0

    @property
    def tasks(self) -> Tuple[Task, ...]:
        """Flat list: column order, then position."""
        return tuple(t for status in STATUS_ORDER for t in self.columns.get(status, ()))


def project_view(tasks: Sequence[Task], board_filter: BoardFilter = BoardFilter(), project_id: Optional[str] = None) -> BoardView:
    selected = in_project(project_id)
    scoped = [t for t in tasks if selected(t)]
    visible = [t for t in scoped if board_filter.matches(t)]
    columns = {status: tuple(ranking.ranked(t for t in visible if t.status == status)) for status in STATUS_ORDER}
    return BoardView(columns, flagged_count=sum(1 for t in scoped if t.needs_review))


class BoardProjector:
    """Keeps a `BoardView` current as the working copy, filter or selected project change."""

    def __init__(self, state: BoardState, board_filter: Optional[BoardFilter] = None, project_id: Optional[str] = None):
        self.board_filter = board_filter or BoardFilter.all()
        self.project_id = project_id
        self._tasks = state.current.tasks
        self._listeners: List[Callable[[BoardView], None]] = []
        self.view = self._project()
        self._unsubscribe = state.subscribe(self._on_copy)

    def subscribe(self, listener: Callable[[BoardView], None]) -> None:
        self._listeners.append(listener)

    def close(self) -> None:
        self._unsubscribe()

    def set_filter(self, board_filter: BoardFilter) -> BoardView:
        self.board_filter = board_filter
        return self._refresh()

    def select_project(self, project_id: Optional[str]) -> BoardView:
        self.project_id = project_id
        return self._refresh()

    def _on_copy(self, copy: WorkingCopy) -> None:
        self._tasks = copy.tasks
        self._refresh()

    def _project(self) -> BoardView:
        return project_view(self._tasks, self.board_filter, self.project_id)

    def _refresh(self) -> BoardView:
        self.view = self._project()
        for listener in list(self._listeners):
            listener(self.view)
        return self.view
