import logging
from typing import List, Optional

from moby_kanban.domain.errors import DbError
from moby_kanban.domain.task_models import Task, TaskCreate, TaskReorder, TaskUpdate

logger = logging.getLogger("moby_kanban.tasks")


class TaskService:
    def __init__(self, repo):
        self.repo = repo

    async def create_task(self, data: TaskCreate) -> Task:
        task = await self.repo.create(data)
        logger.info(
            "task.create",
            extra={"category": "tasks", "event": "task.create", "task_id": task.id, "title": task.title},
        )
        return task

    async def get_task(self, task_id: str) -> Optional[Task]:
        return await self.repo.get(task_id)

    async def require_task(self, task_id: str) -> Task:
        task = await self.repo.get(task_id)
        if task is None:
            raise DbError.not_found("Task", task_id)
        return task

    async def list_tasks(self) -> List[Task]:
        return await self.repo.list()

    async def update_task(self, task_id: str, data: TaskUpdate) -> Task:
        changes = data.changes()
        task = await self.repo.update(task_id, changes)
        logger.info(
            "task.update",
            extra={"category": "tasks", "event": "task.update", "task_id": task_id, "fields": sorted(changes)},
        )
        return task

    async def delete_task(self, task_id: str) -> None:
        await self.repo.delete(task_id)
        logger.info("task.delete", extra={"category": "tasks", "event": "task.delete", "task_id": task_id})

    async def toggle_flag(self, task_id: str) -> Task:
        task = await self.repo.toggle_flag(task_id)
        logger.info(
            "task.flag",
            extra={"category": "tasks", "event": "task.flag", "task_id": task_id, "needs_review": task.needs_review},
        )
        return task

    async def reorder_tasks(self, data: TaskReorder) -> List[Task]:
        tasks = await self.repo.reorder(data.task_ids, data.status)
        logger.info(
            "task.reorder",
            extra={
                "category": "tasks",
                "event": "task.reorder",
                "status": data.status.value,
                "count": len(data.task_ids),
            },
        )
        return tasks
