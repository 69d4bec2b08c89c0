"""
Drag gesture interpretation.

Turns pointer positions during a card drag into a `DropDescriptor`. Droppable
regions are registered with their measured rectangles in a `DropZones`
registry; each hover or release is resolved with this priority:

1. a project bucket containing the pointer wins outright (the sidebar is
   narrow and must not lose to nearby cards);
2. otherwise the column overlapping the dragged card most is chosen;
3. within that column only, the card whose centre is nearest the pointer;
4. a column with no cards is itself the target (drop at end);
5. outside every column there is no target.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

from moby_kanban.config import Settings
from moby_kanban.domain.task_models import TaskStatus

logger = logging.getLogger("moby_kanban.drag")


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def distance_to(self, other: "Point") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def center(self) -> Point:
        return Point(self.left + self.width / 2, self.top + self.height / 2)

    @property
    def area(self) -> float:
        return self.width * self.height

    def contains(self, point: Point) -> bool:
        return self.left <= point.x <= self.right and self.top <= point.y <= self.bottom

    def intersection_area(self, other: "Rect") -> float:
        width = min(self.right, other.right) - max(self.left, other.left)
        height = min(self.bottom, other.bottom) - max(self.top, other.top)
        if width <= 0 or height <= 0:
            return 0.0
        return width * height

    def centered_on(self, point: Point) -> "Rect":
        return Rect(point.x - self.width / 2, point.y - self.height / 2, self.width, self.height)


class DropKind(str, Enum):
    COLUMN = "COLUMN"
    TASK = "TASK"
    PROJECT = "PROJECT"
    NONE = "NONE"


DropTarget = Union[TaskStatus, str, None]


@dataclass(frozen=True)
class DropDescriptor:
    """
    Semantic result of a drag.

    `target_id` is a `TaskStatus` for COLUMN, a task id for TASK, a project id
    (or None for the "no project" bucket) for PROJECT, and None for NONE.
    """

    kind: DropKind
    target_id: DropTarget = None

    @classmethod
    def none(cls) -> "DropDescriptor":
        return cls(DropKind.NONE)

    @classmethod
    def column(cls, status: TaskStatus) -> "DropDescriptor":
        return cls(DropKind.COLUMN, status)

    @classmethod
    def task(cls, task_id: str) -> "DropDescriptor":
        return cls(DropKind.TASK, task_id)

    @classmethod
    def project(cls, project_id: Optional[str]) -> "DropDescriptor":
        return cls(DropKind.PROJECT, project_id)

    @property
    def is_none(self) -> bool:
        return self.kind is DropKind.NONE


@dataclass(frozen=True)
class _Zone:
    rect: Rect
    status: Optional[TaskStatus] = None
    target_id: DropTarget = None


@dataclass
class DropZones:
    """Measured droppable regions, re-registered whenever the layout changes."""

    columns: List[_Zone] = field(default_factory=list)
    cards: List[_Zone] = field(default_factory=list)
    projects: List[_Zone] = field(default_factory=list)

    def add_column(self, status: TaskStatus, rect: Rect) -> None:
        self.columns.append(_Zone(rect, status, status))

    def add_task(self, task_id: str, status: TaskStatus, rect: Rect) -> None:
        self.cards.append(_Zone(rect, status, task_id))

    def add_project(self, project_id: Optional[str], rect: Rect) -> None:
        self.projects.append(_Zone(rect, None, project_id))

    def clear(self) -> None:
        self.columns.clear()
        self.cards.clear()
        self.projects.clear()

    def resolve(self, pointer: Point, collision_rect: Rect) -> DropDescriptor:
        for zone in self.projects:
            if zone.rect.contains(pointer):
                return DropDescriptor.project(zone.target_id)

        column = self._best_column(collision_rect)
        if column is None:
            return DropDescriptor.none()

        candidates = [c for c in self.cards if c.status == column.status]
        if not candidates:
            return DropDescriptor.column(column.status)
        # min() keeps the first of equally near cards
        nearest = min(candidates, key=lambda c: c.rect.center.distance_to(pointer))
        return DropDescriptor.task(nearest.target_id)

    def _best_column(self, collision_rect: Rect) -> Optional[_Zone]:
        best, best_ratio = None, 0.0
        for zone in self.columns:
            overlap = zone.rect.intersection_area(collision_rect)
            if overlap <= 0:
                continue
            # Intersection over union, as a ratio comparable across column sizes
            ratio = overlap / (zone.rect.area + collision_rect.area - overlap)
            if ratio > best_ratio:
                best, best_ratio = zone, ratio
        return best


class DragSession:
    """
    One pointer-driven drag of a task card.

    `hover` may be called any number of times for live feedback; `release`
    commits the gesture once. The drag only activates after the pointer has
    travelled `activation_distance` from where it went down, so a plain click
    on a card never produces a drop.
    """

    def __init__(self, zones: DropZones, activation_distance: float = 8.0):
        self.zones = zones
        self.activation_distance = activation_distance
        self.task_id: Optional[str] = None
        self.active = False
        self.finished = False
        self.last_drop = DropDescriptor.none()
        self._origin: Optional[Point] = None
        self._card_rect: Optional[Rect] = None

    @classmethod
    def from_settings(cls, zones: DropZones, settings: Settings) -> "DragSession":
        return cls(zones, settings.drag_activation_distance)

    def start(self, task_id: str, origin: Point, card_rect: Rect) -> None:
        self.task_id = task_id
        self.active = False
        self.finished = False
        self.last_drop = DropDescriptor.none()
        self._origin = origin
        self._card_rect = card_rect

    def _evaluate(self, pointer: Point) -> DropDescriptor:
        if self.task_id is None or self.finished:
            return DropDescriptor.none()
        if not self.active:
            if pointer.distance_to(self._origin) < self.activation_distance:
                return DropDescriptor.none()
            self.active = True
            logger.debug("drag.activate", extra={"category": "drag", "event": "drag.activate", "task_id": self.task_id})
        return self.zones.resolve(pointer, self._card_rect.centered_on(pointer))

    def hover(self, pointer: Point) -> DropDescriptor:
        self.last_drop = self._evaluate(pointer)
        return self.last_drop

    def release(self, pointer: Optional[Point] = None) -> DropDescriptor:
        if self.finished:
            return DropDescriptor.none()
        drop = self._evaluate(pointer) if pointer is not None else self.last_drop
        if not self.active:
            drop = DropDescriptor.none()
        self.finished = True
        logger.debug(
            "drag.release",
            extra={"category": "drag", "event": "drag.release", "task_id": self.task_id,
                   "kind": drop.kind.value, "target_id": drop.target_id},
        )
        return drop

    def cancel(self) -> DropDescriptor:
        self.finished = True
        self.last_drop = DropDescriptor.none()
        return self.last_drop
