import logging
from typing import List

from moby_kanban.domain.errors import DbError
from moby_kanban.domain.project_models import Project, ProjectCreate, ProjectReorder, ProjectUpdate

logger = logging.getLogger("moby_kanban.projects")


class ProjectService:
    def __init__(self, repo):
        self.repo = repo

    async def create_project(self, data: ProjectCreate) -> Project:
        project = await self.repo.create(data)
        logger.info(
            "project.create",
            extra={"category": "projects", "event": "project.create", "project_id": project.id, "project_name": project.name},
        )
        return project

    async def require_project(self, project_id: str) -> Project:
        project = await self.repo.get(project_id)
        if project is None:
            raise DbError.not_found("Project", project_id)
        return project

    async def list_projects(self) -> List[Project]:
        return await self.repo.list()

    async def update_project(self, project_id: str, data: ProjectUpdate) -> Project:
        changes = data.changes()
        project = await self.repo.update(project_id, changes)
        logger.info(
            "project.update",
            extra={"category": "projects", "event": "project.update", "project_id": project_id, "fields": sorted(changes)},
        )
        return project

    async def delete_project(self, project_id: str) -> None:
        await self.repo.delete(project_id)
        logger.info(
            "project.delete",
            extra={"category": "projects", "event": "project.delete", "project_id": project_id},
        )

    async def reorder_projects(self, data: ProjectReorder) -> List[Project]:
        projects = await self.repo.reorder(data.project_ids)
        logger.info(
            "project.reorder",
            extra={"category": "projects", "event": "project.reorder", "count": len(data.project_ids)},
        )
        return projects
