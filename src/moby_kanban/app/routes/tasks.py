from typing import List

from fastapi import APIRouter, status

from moby_kanban.domain.task_models import Task, TaskCreate, TaskReorder, TaskUpdate, WireModel
from moby_kanban.services.task_service import TaskService

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


class TaskReorderResult(WireModel):
    success: bool = True
    tasks: List[Task]


def get_service() -> TaskService:
    # Overwritten in main.py:
    # tasks.get_service = lambda: svc
    raise RuntimeError("TaskService not wired")


@router.get("", response_model=list[Task])
async def list_tasks():
    svc = get_service()
    return await svc.list_tasks()


@router.post("", response_model=Task, status_code=status.HTTP_201_CREATED)
async def create_task(payload: TaskCreate):
    svc = get_service()
    return await svc.create_task(payload)


@router.post("/reorder", response_model=TaskReorderResult)
async def reorder_tasks(payload: TaskReorder):
    svc = get_service()
    return TaskReorderResult(tasks=await svc.reorder_tasks(payload))


@router.get("/{task_id}", response_model=Task)
async def get_task(task_id: str):
    svc = get_service()
    return await svc.require_task(task_id)


@router.patch("/{task_id}", response_model=Task)
async def update_task(task_id: str, payload: TaskUpdate):
    svc = get_service()
    return await svc.update_task(task_id, payload)


@router.delete("/{task_id}")
async def delete_task(task_id: str):
    svc = get_service()
    await svc.delete_task(task_id)
    return {"success": True}


@router.post("/{task_id}/flag", response_model=Task)
async def toggle_flag(task_id: str):
    svc = get_service()
    return await svc.toggle_flag(task_id)
