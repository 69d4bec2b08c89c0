"""
Persistence collaborator used by the sync controller.

`BoardApi` is the contract; `HttpBoardApi` talks to the board service's JSON
API. Every failure is raised as a `BoardApiError` subclass so the controller
can tell "couldn't reach server" from "item no longer exists".
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Protocol

import httpx

from moby_kanban.client.errors import ApiValidationError, BoardApiError, NotFoundError, TransientError
from moby_kanban.config import Settings
from moby_kanban.domain.project_models import Project, ProjectCreate, ProjectUpdate
from moby_kanban.domain.task_models import Task, TaskCreate, TaskStatus, TaskUpdate

logger = logging.getLogger("moby_kanban.api")


class BoardApi(Protocol):
    async def fetch_tasks(self) -> List[Task]: ...

    async def create_task(self, data: TaskCreate) -> Task: ...

    async def update_task(self, task_id: str, changes: dict) -> Task: ...

    async def delete_task(self, task_id: str) -> None: ...

    async def toggle_task_flag(self, task_id: str) -> Task: ...

    async def reorder_tasks(self, task_ids: List[str], status: TaskStatus) -> List[Task]: ...

    async def fetch_projects(self) -> List[Project]: ...

    async def create_project(self, data: ProjectCreate) -> Project: ...

    async def update_project(self, project_id: str, changes: dict) -> Project: ...

    async def delete_project(self, project_id: str) -> None: ...

    async def reorder_projects(self, project_ids: List[str]) -> List[Project]: ...


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        if body.get("error"):
            return str(body["error"])
        detail = body.get("detail")
        if isinstance(detail, list):
            return ", ".join(str(d.get("msg", d)) if isinstance(d, dict) else str(d) for d in detail)
        if detail:
            return str(detail)
    return response.reason_phrase


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    code = response.status_code
    message = _error_message(response)
    if code == 404:
        raise NotFoundError(message, code)
    if 400 <= code < 500:
        raise ApiValidationError(message, code)
    raise TransientError(message, code)


class HttpBoardApi:
    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "HttpBoardApi":
        return cls(settings.api_base_url, settings.api_key, settings.request_timeout, transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpBoardApi":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            raise TransientError(f"{method} {path} timed out") from e
        except httpx.TransportError as e:
            raise TransientError(f"{method} {path} failed: {e}") from e

        logger.debug(
            "api.response",
            extra={"category": "api", "event": "api.response", "method": method, "path": path,
                   "status_code": response.status_code},
        )
        _raise_for_status(response)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise BoardApiError(f"{method} {path} returned invalid JSON", response.status_code) from e

    # Tasks

    async def fetch_tasks(self) -> List[Task]:
        data = await self._request("GET", "/api/tasks")
        return [Task.model_validate(t) for t in data]

    async def create_task(self, data: TaskCreate) -> Task:
        body = data.model_dump(mode="json", by_alias=True, exclude_none=True)
        return Task.model_validate(await self._request("POST", "/api/tasks", json=body))

    async def update_task(self, task_id: str, changes: dict) -> Task:
        body = TaskUpdate(**changes).model_dump(mode="json", by_alias=True, exclude_unset=True)
        return Task.model_validate(await self._request("PATCH", f"/api/tasks/{task_id}", json=body))

    async def delete_task(self, task_id: str) -> None:
        await self._request("DELETE", f"/api/tasks/{task_id}")

    async def toggle_task_flag(self, task_id: str) -> Task:
        return Task.model_validate(await self._request("POST", f"/api/tasks/{task_id}/flag"))

    async def reorder_tasks(self, task_ids: List[str], status: TaskStatus) -> List[Task]:
        data = await self._request("POST", "/api/tasks/reorder", json={"taskIds": task_ids, "status": status.value})
        return [Task.model_validate(t) for t in data["tasks"]]

    # Projects

    async def fetch_projects(self) -> List[Project]:
        data = await self._request("GET", "/api/projects")
        return [Project.model_validate(p) for p in data]

    async def create_project(self, data: ProjectCreate) -> Project:
        body = data.model_dump(mode="json", by_alias=True, exclude_none=True)
        return Project.model_validate(await self._request("POST", "/api/projects", json=body))

    async def update_project(self, project_id: str, changes: dict) -> Project:
        body = ProjectUpdate(**changes).model_dump(mode="json", by_alias=True, exclude_unset=True)
        return Project.model_validate(await self._request("PATCH", f"/api/projects/{project_id}", json=body))

    async def delete_project(self, project_id: str) -> None:
        await self._request("DELETE", f"/api/projects/{project_id}")

    async def reorder_projects(self, project_ids: List[str]) -> List[Project]:
        data = await self._request("POST", "/api/projects/reorder", json={"projectIds": project_ids})
        return [Project.model_validate(p) for p in data["projects"]]
