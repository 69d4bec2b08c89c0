from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from moby_kanban.domain import ranking
from moby_kanban.domain.errors import DbError, DbErrorCode
from moby_kanban.domain.task_models import (
    STATUS_ORDER,
    Task,
    TaskCreate,
    TaskCreator,
    TaskPriority,
    TaskStatus,
    new_id,
)
from moby_kanban.infra.db.project_repo_sqlite import ProjectRow
from moby_kanban.infra.db.sqlite import Base, session_scope


class TaskRow(Base):
    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    priority: Mapped[str] = mapped_column(String(10), nullable=False)
    creator: Mapped[str] = mapped_column(String(10), nullable=False)
    needs_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    project_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey(ProjectRow.id), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_domain(self) -> Task:
        return Task(
            id=self.id,
            title=self.title,
            description=self.description,
            status=TaskStatus(self.status),
            priority=TaskPriority(self.priority),
            creator=TaskCreator(self.creator),
            needs_review=self.needs_review,
            position=self.position,
            project_id=self.project_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


def _set_position(row: TaskRow, position: int) -> TaskRow:
    row.position = position
    return row


def _column_key(row: TaskRow) -> tuple:
    return STATUS_ORDER.index(TaskStatus(row.status)), row.position


class SQLiteTaskRepo:
    def __init__(self, sessionmaker):
        self.sessionmaker = sessionmaker

    async def _column(self, session: AsyncSession, status: str) -> List[TaskRow]:
        res = await session.execute(
            select(TaskRow).where(TaskRow.status == status).order_by(TaskRow.position, TaskRow.id)
        )
        return list(res.scalars().all())

    async def _require(self, session: AsyncSession, task_id: str) -> TaskRow:
        row = await session.get(TaskRow, task_id)
        if row is None:
            raise DbError.not_found("Task", task_id)
        return row

    async def _require_project(self, session: AsyncSession, project_id: Optional[str]) -> None:
        if project_id is not None and await session.get(ProjectRow, project_id) is None:
            raise DbError(f"Project {project_id} does not exist", DbErrorCode.constraint)

    async def _place(self, session: AsyncSession, row: TaskRow, status: str, position: Optional[int]) -> None:
        """Move `row` to `status` at `position` (end of column when None), keeping both columns dense."""
        source = row.status
        if status != source:
            remaining = [r for r in await self._column(session, source) if r.id != row.id]
            ranking.densify(remaining, _set_position)

        siblings = [r for r in await self._column(session, status) if r.id != row.id]
        index = len(siblings) if position is None else position
        row.status = status
        ranking.densify(ranking.insert_at(siblings, row, index), _set_position)

    async def list(self) -> List[Task]:
        async with session_scope(self.sessionmaker) as session:
            res = await session.execute(select(TaskRow))
            rows = sorted(res.scalars().all(), key=_column_key)
            return [r.to_domain() for r in rows]

    async def get(self, task_id: str) -> Optional[Task]:
        async with session_scope(self.sessionmaker) as session:
            row = await session.get(TaskRow, task_id)
            return row.to_domain() if row else None

    async def create(self, data: TaskCreate) -> Task:
        now = datetime.now(timezone.utc)
        async with session_scope(self.sessionmaker) as session:
            await self._require_project(session, data.project_id)
            count = await session.scalar(
                select(func.count()).select_from(TaskRow).where(TaskRow.status == TaskStatus.backlog.value)
            )
            row = TaskRow(
                id=new_id(),
                title=data.title,
                description=data.description,
                status=TaskStatus.backlog.value,
                priority=data.priority.value,
                creator=data.creator.value,
                needs_review=False,
                position=count or 0,
                project_id=data.project_id,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            await session.commit()
            return row.to_domain()

    async def update(self, task_id: str, changes: dict) -> Task:
        """Partial update. A status or position change re-ranks the affected columns."""
        async with session_scope(self.sessionmaker) as session:
            row = await self._require(session, task_id)
            if not changes:
                return row.to_domain()

            changes = dict(changes)
            if "project_id" in changes:
                await self._require_project(session, changes["project_id"])

            status = changes.pop("status", None)
            position = changes.pop("position", None)
            if status is not None or position is not None:
                target_status = TaskStatus(status).value if status is not None else row.status
                if target_status == row.status and position is None:
                    position = row.position
                await self._place(session, row, target_status, position)

            for field, value in changes.items():
                setattr(row, field, value.value if isinstance(value, (TaskPriority, TaskCreator)) else value)

            row.updated_at = datetime.now(timezone.utc)
            await session.commit()
            return row.to_domain()

    async def delete(self, task_id: str) -> None:
        async with session_scope(self.sessionmaker) as session:
            row = await self._require(session, task_id)
            status = row.status
            await session.delete(row)
            await session.flush()
            ranking.densify(await self._column(session, status), _set_position)
            await session.commit()

    async def toggle_flag(self, task_id: str) -> Task:
        async with session_scope(self.sessionmaker) as session:
            row = await self._require(session, task_id)
            row.needs_review = not row.needs_review
            row.updated_at = datetime.now(timezone.utc)
            await session.commit()
            return row.to_domain()

    async def reorder(self, task_ids: List[str], status: TaskStatus) -> List[Task]:
        """
        Rank `task_ids` first, in order, within `status`; tasks of that column not
        listed follow in their current order. Any unknown id fails the whole batch.
        """
        now = datetime.now(timezone.utc)
        async with session_scope(self.sessionmaker) as session:
            listed = list(dict.fromkeys(task_ids))
            rows = []
            for task_id in listed:
                rows.append(await self._require(session, task_id))

            for row in rows:
                if row.status != status.value:
                    source = row.status
                    row.status = status.value
                    await session.flush()
                    ranking.densify(await self._column(session, source), _set_position)

            listed_set = set(listed)
            column = await self._column(session, status.value)
            ordered = rows + [r for r in column if r.id not in listed_set]
            ranking.densify(ordered, _set_position)
            for row in rows:
                row.updated_at = now

            await session.commit()
            return [r.to_domain() for r in ordered]
