from typing import List

from fastapi import APIRouter, status

from moby_kanban.domain.project_models import Project, ProjectCreate, ProjectReorder, ProjectUpdate
from moby_kanban.domain.task_models import WireModel
from moby_kanban.services.project_service import ProjectService

router = APIRouter(prefix="/api/projects", tags=["projects"])


class ProjectReorderResult(WireModel):
    success: bool = True
    projects: List[Project]


def get_service() -> ProjectService:
    # Overwritten in main.py:
    # projects.get_service = lambda: svc
    raise RuntimeError("ProjectService not wired")


@router.get("", response_model=list[Project])
async def list_projects():
    svc = get_service()
    return await svc.list_projects()


@router.post("", response_model=Project, status_code=status.HTTP_201_CREATED)
async def create_project(payload: ProjectCreate):
    svc = get_service()
    return await svc.create_project(payload)


@router.post("/reorder", response_model=ProjectReorderResult)
async def reorder_projects(payload: ProjectReorder):
    svc = get_service()
    return ProjectReorderResult(projects=await svc.reorder_projects(payload))


@router.get("/{project_id}", response_model=Project)
async def get_project(project_id: str):
    svc = get_service()
    return await svc.require_project(project_id)


@router.patch("/{project_id}", response_model=Project)
async def update_project(project_id: str, payload: ProjectUpdate):
    svc = get_service()
    return await svc.update_project(project_id, payload)


@router.delete("/{project_id}")
async def delete_project(project_id: str):
    svc = get_service()
    await svc.delete_project(project_id)
    return {"success": True}
