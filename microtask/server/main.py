"""
SOLE RESPONSIBILITY: Builds the FastAPI app, defines the HTTP endpoints and manages
the server lifecycle. Endpoints are thin: they parse input, call crud and map
typed failures to HTTP responses.
"""

import logging
from contextlib import asynccontextmanager
from typing import Annotated, List, Optional

from fastapi import FastAPI, Depends, Path, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.engine import Engine
from sqlmodel import Session

from microtask import __version__
from microtask.core.error_codes import ErrorCategory, ErrorCode, MicrotaskError
from . import models, crud
from .config import get_config
from .database import check_connection, create_db_and_tables, get_session, init_database
from .query import TaskQuery
from .server_logger import initialize_logging, log_crash, log_lifecycle, log_request_response


logger = logging.getLogger("microtask.server")

WELCOME_MESSAGE = "🚀 API is running! Welcome to MicroTask Manager."

# Ids SQLite cannot bind are rejected like any other malformed id
TaskId = Annotated[int, Path(ge=models.SQLITE_INTEGER_MIN, le=models.SQLITE_INTEGER_MAX)]


def _validation_error_body(exc: RequestValidationError) -> dict:
    errors = exc.errors()
    # A non-integer path id is reported the way clients already expect
    if any(err.get("loc", ())[:1] == ("path",) for err in errors):
        message = "Invalid task ID"
    else:
        message = "Invalid input"
    return {
        "error": message,
        "code": ErrorCode.VALIDATION_REQUEST_INVALID.value,
        "category": ErrorCategory.VALIDATION.value,
        "details": [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")} for err in errors
        ],
    }


def create_app(engine: Optional[Engine] = None, configure_logging: bool = True) -> FastAPI:
    """
    Application factory.
    The engine is the process-wide storage handle: injected for tests or
    embedding, otherwise built from configuration at startup and disposed at shutdown.
    """
    config = get_config()
    if configure_logging:
        initialize_logging(debug=config.logging.debug)

    owns_engine = engine is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup: ensure schema. Shutdown: release the storage handle if we created it."""
        async with log_lifecycle("microtask"):
            try:
                logger.info("Initializing database...")
                if app.state.engine is None:
                    app.state.engine = init_database()
                else:
                    create_db_and_tables(app.state.engine)
                logger.info("Server startup complete - ready to accept requests")
            except Exception as e:
                logger.error(f"Startup failed: {e}", exc_info=True)
                log_crash(e, {"phase": "startup"})
                raise

            try:
                yield
            finally:
                if owns_engine and app.state.engine is not None:
                    app.state.engine.dispose()
                    app.state.engine = None
                logger.info("Server shutdown complete")

    app = FastAPI(
        title="MicroTask API",
        description="Tasks with ordered steps, written and read atomically",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.engine = engine

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        return await log_request_response(request, call_next)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(MicrotaskError)
    async def microtask_error_handler(request: Request, exc: MicrotaskError):
        if exc.http_status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc} (cause: {exc.__cause__!r})")
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content=_validation_error_body(exc))

    register_routes(app)
    return app


def register_routes(app: FastAPI):
    """Attach the task endpoints."""

    @app.get("/", response_class=PlainTextResponse)
    def welcome():
        return WELCOME_MESSAGE

    @app.get("/health")
    def health_check(request: Request):
        """Health check with version info; 503 when storage is unreachable."""
        check_connection(request.app.state.engine)
        return {"status": "healthy", "service": "microtask", "version": __version__}

    @app.post("/tasks", response_model=models.TaskRead, status_code=201)
    def create_task(task_in: models.TaskCreate, session: Session = Depends(get_session)):
        """Create a task together with its steps."""
        return crud.create_task(session, task_in)

    @app.get("/tasks", response_model=List[models.TaskRead])
    def list_tasks(
        completed: Optional[str] = None,
        sort: Optional[str] = None,
        order: Optional[str] = None,
        session: Session = Depends(get_session),
    ):
        """List tasks. ?completed=true|false, ?sort=due_date|priority, ?order=asc|desc; other values are ignored."""
        return crud.get_all_tasks(session, TaskQuery.from_params(completed, sort, order))

    @app.get("/tasks/{task_id}", response_model=models.TaskRead)
    def get_task(task_id: TaskId, session: Session = Depends(get_session)):
        return crud.get_task(session, task_id)

    @app.put("/tasks/{task_id}", response_model=models.TaskRead)
    def update_task(task_id: TaskId, task_in: models.TaskUpdate, session: Session = Depends(get_session)):
        """Replace a task and all of its steps."""
        return crud.update_task(session, task_id, task_in)

    @app.patch("/tasks/{task_id}", response_model=models.MessageResponse)
    def toggle_task_completion(task_id: TaskId, session: Session = Depends(get_session)):
        crud.toggle_task_completion(session, task_id)
        return models.MessageResponse(message="Task completion status toggled")

    @app.delete("/tasks/{task_id}", response_model=models.MessageResponse)
    def delete_task(task_id: TaskId, session: Session = Depends(get_session)):
        crud.delete_task(session, task_id)
        return models.MessageResponse(message="Task and all steps deleted successfully")


def run(host: Optional[str] = None, port: Optional[int] = None, reload: Optional[bool] = None):
    """Serve the app with uvicorn using configured defaults."""
    import uvicorn

    server = get_config().server
    uvicorn.run(
        "microtask.server.main:create_app",
        factory=True,
        host=host or server.host,
        port=port or server.port,
        reload=server.reload if reload is None else reload,
    )


if __name__ == "__main__":
    run()
