import json

import httpx
import pytest

from moby_kanban.app.main import create_app
from moby_kanban.client.api import HttpBoardApi
from moby_kanban.client.drag import DropDescriptor
from moby_kanban.client.errors import ApiValidationError, BoardApiError, NotFoundError, TransientError
from moby_kanban.client.sync import MutationOutcome, SyncController
from moby_kanban.config import Settings
from moby_kanban.domain.task_models import TaskCreate, TaskStatus
from moby_kanban.infra.db.sqlite import init_models

from factories import make_task


def mock_api(handler) -> HttpBoardApi:
    return HttpBoardApi("http://board.test", api_key="secret", transport=httpx.MockTransport(handler))


async def test_update_sends_only_set_fields_in_camel_case():
    task = make_task("a", needs_review=True)
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=task.model_dump(mode="json", by_alias=True))

    async with mock_api(handler) as api:
        result = await api.update_task(task.id, {"needs_review": True, "project_id": None})

    assert seen["auth"] == "Bearer secret"
    assert seen["body"] == {"needsReview": True, "projectId": None}
    assert result == task


async def test_create_omits_unset_optionals():
    task = make_task("New")

    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content) == {"title": "New", "priority": "MEDIUM", "creator": "MOBY"}
        return httpx.Response(201, json=task.model_dump(mode="json", by_alias=True))

    async with mock_api(handler) as api:
        assert await api.create_task(TaskCreate(title="New")) == task


@pytest.mark.parametrize(
    "status, body, error",
    [
        (404, {"error": "Task x not found", "code": "NOT_FOUND"}, NotFoundError),
        (400, {"error": "Project y does not exist", "code": "CONSTRAINT"}, ApiValidationError),
        (422, {"detail": [{"msg": "Field required"}]}, ApiValidationError),
        (500, {"error": "disk I/O error", "code": "CONNECTION"}, TransientError),
        (503, None, TransientError),
    ],
)
async def test_http_failures_map_to_error_types(status, body, error):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json=body) if body is not None else httpx.Response(status)

    async with mock_api(handler) as api:
        with pytest.raises(error) as exc_info:
            await api.toggle_task_flag("x")

    assert exc_info.value.status_code == status
    if body and "error" in body:
        assert exc_info.value.message == body["error"]


async def test_unreachable_server_is_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with mock_api(handler) as api:
        with pytest.raises(TransientError):
            await api.fetch_tasks()


async def test_invalid_json_is_a_board_error():
    async with mock_api(lambda request: httpx.Response(200, content=b"<html>")) as api:
        with pytest.raises(BoardApiError):
            await api.fetch_projects()


async def test_sync_against_running_service(tmp_path):
    app = create_app(Settings(db_path=str(tmp_path / "board.db"), log_dir=str(tmp_path / "logs")))
    await init_models(app.state.engine)
    transport = httpx.ASGITransport(app=app)

    async with HttpBoardApi("http://board.test", transport=transport) as api:
        controller = SyncController(api)
        await controller.load()
        a = await controller.create_task(title="a")
        b = await controller.create_task(title="b")
        c = await controller.create_task(title="c")

        assert await controller.drop(c.id, DropDescriptor.task(a.id)) is MutationOutcome.COMMITTED
        assert await controller.drop(b.id, DropDescriptor.column(TaskStatus.done)) is MutationOutcome.COMMITTED

        server = {t.id: t for t in await api.fetch_tasks()}
        assert [(server[i].status, server[i].position) for i in (c.id, a.id, b.id)] == [
            (TaskStatus.backlog, 0), (TaskStatus.backlog, 1), (TaskStatus.done, 0)
        ]
        assert {t.id: (t.status, t.position) for t in controller.board.tasks} == {
            i: (t.status, t.position) for i, t in server.items()
        }

        assert await controller.update_task(a.id, title="a2") is MutationOutcome.COMMITTED
        assert controller.board.task(a.id).title == "a2"

    await app.state.engine.dispose()
