import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from moby_kanban.app.middleware.access_log import AccessLogMiddleware
from moby_kanban.app.routes import logs, projects, tasks
from moby_kanban.config import Settings, get_settings
from moby_kanban.domain.errors import DbError
from moby_kanban.infra.db.project_repo_sqlite import SQLiteProjectRepo
from moby_kanban.infra.db.sqlite import init_models, make_engine, make_sessionmaker, make_sqlite_url
from moby_kanban.infra.db.task_repo_sqlite import SQLiteTaskRepo
from moby_kanban.observability.logging import setup_logging
from moby_kanban.services.project_service import ProjectService
from moby_kanban.services.task_service import TaskService

logger = logging.getLogger("moby_kanban.system")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)
    logger.info("system.start", extra={"category": "system", "event": "system.start"})

    # --- SQLite wiring ---
    sqlite_url = make_sqlite_url(settings.db_path)
    engine = make_engine(sqlite_url)
    sessionmaker = make_sessionmaker(engine)

    task_svc = TaskService(SQLiteTaskRepo(sessionmaker))
    project_svc = ProjectService(SQLiteProjectRepo(sessionmaker))
    tasks.get_service = lambda: task_svc
    projects.get_service = lambda: project_svc

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        await init_models(engine)
        logger.info(
            "db.ready",
            extra={"category": "system", "event": "db.ready", "db_path": settings.db_path},
        )
        yield
        await engine.dispose()

    app = FastAPI(title="Moby Kanban", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.add_middleware(AccessLogMiddleware)

    @app.exception_handler(DbError)
    async def _db_error(request: Request, exc: DbError):
        logger.warning(
            "db.error",
            extra={
                "category": "system",
                "event": "db.error",
                "code": exc.code.value,
                "path": request.url.path,
                "error": exc.message,
            },
        )
        return JSONResponse({"error": exc.message, "code": exc.code.value}, status_code=exc.http_status)

    # Routers
    app.include_router(tasks.router)
    app.include_router(projects.router)
    app.include_router(logs.router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
