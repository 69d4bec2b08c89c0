from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import DateTime, Integer, String, Text, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from moby_kanban.domain import ranking
from moby_kanban.domain.errors import DbError
from moby_kanban.domain.project_models import Project, ProjectCreate
from moby_kanban.domain.task_models import new_id
from moby_kanban.infra.db.sqlite import Base, session_scope


class ProjectRow(Base):
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color: Mapped[str] = mapped_column(String(7), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_domain(self) -> Project:
        return Project(
            id=self.id,
            name=self.name,
            description=self.description,
            color=self.color,
            position=self.position,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


def _set_position(row: ProjectRow, position: int) -> ProjectRow:
    row.position = position
    return row


class SQLiteProjectRepo:
    def __init__(self, sessionmaker):
        self.sessionmaker = sessionmaker

    async def _ordered(self, session: AsyncSession) -> List[ProjectRow]:
        res = await session.execute(select(ProjectRow).order_by(ProjectRow.position, ProjectRow.id))
        return list(res.scalars().all())

    async def _require(self, session: AsyncSession, project_id: str) -> ProjectRow:
        row = await session.get(ProjectRow, project_id)
        if row is None:
            raise DbError.not_found("Project", project_id)
        return row

    async def list(self) -> List[Project]:
        async with session_scope(self.sessionmaker) as session:
            return [r.to_domain() for r in await self._ordered(session)]

    async def get(self, project_id: str) -> Optional[Project]:
        async with session_scope(self.sessionmaker) as session:
            row = await session.get(ProjectRow, project_id)
            return row.to_domain() if row else None

    async def create(self, data: ProjectCreate) -> Project:
        now = datetime.now(timezone.utc)
        async with session_scope(self.sessionmaker) as session:
            count = await session.scalar(select(func.count()).select_from(ProjectRow))
            row = ProjectRow(
                id=new_id(),
                name=data.name,
                description=data.description,
                color=data.color,
                position=count or 0,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            await session.commit()
            return row.to_domain()

    async def update(self, project_id: str, changes: dict) -> Project:
        async with session_scope(self.sessionmaker) as session:
            row = await self._require(session, project_id)
            if not changes:
                return row.to_domain()

            position = changes.pop("position", None)
            for field, value in changes.items():
                setattr(row, field, value)
            if position is not None and position != row.position:
                others = [r for r in await self._ordered(session) if r.id != row.id]
                ranking.densify(ranking.insert_at(others, row, position), _set_position)

            row.updated_at = datetime.now(timezone.utc)
            await session.commit()
            return row.to_domain()

    async def delete(self, project_id: str) -> None:
        """Unassign every task of the project, then remove the row and compact positions."""
        # Imported here: task_repo_sqlite imports this module for the FK target.
        from moby_kanban.infra.db.task_repo_sqlite import TaskRow

        async with session_scope(self.sessionmaker) as session:
            row = await self._require(session, project_id)
            await session.execute(
                update(TaskRow).where(TaskRow.project_id == project_id).values(project_id=None)
            )
            await session.delete(row)
            await session.flush()
            ranking.densify(await self._ordered(session), _set_position)
            await session.commit()

    async def reorder(self, project_ids: List[str]) -> List[Project]:
        """Positions follow `project_ids`; projects not listed keep their relative order after them."""
        now = datetime.now(timezone.utc)
        async with session_scope(self.sessionmaker) as session:
            rows = await self._ordered(session)
            by_id = {r.id: r for r in rows}
            missing = [pid for pid in project_ids if pid not in by_id]
            if missing:
                raise DbError.not_found("Project", ", ".join(missing))

            listed = list(dict.fromkeys(project_ids))
            listed_set = set(listed)
            ordered = [by_id[pid] for pid in listed] + [r for r in rows if r.id not in listed_set]
            for r in ranking.densify(ordered, _set_position):
                if r.id in listed_set:
                    r.updated_at = now
            await session.commit()
            return [r.to_domain() for r in ordered]
