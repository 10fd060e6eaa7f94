import logging
import time
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from .config import Settings
from .db import Database
from .errors import ServerError, StoreError, TaskApiError
from .routes import tasks
from .schemas import ErrorResponse

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

# Messages reported when the store fails, keyed by route endpoint name
_STORE_ERROR_MESSAGES = {
    "get_tasks": "An error occurred while retrieving tasks",
    "get_task": "An error occurred while retrieving the task",
    "create_task": "An error occurred while creating the task",
    "update_task": "An error occurred while updating the task",
    "delete_task": "An error occurred while deleting the task",
}


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def error_response(status_code: int, message: str, error: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(message=message, error=error)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _store_error_message(request: Request) -> str:
    endpoint = request.scope.get("endpoint")
    name = getattr(endpoint, "__name__", None)
    return _STORE_ERROR_MESSAGES.get(name, "An error occurred while processing the request")


async def handle_store_error(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Store error on %s %s: %s", request.method, request.url.path, exc.message, exc_info=exc)
    return error_response(exc.status_code, _store_error_message(request), exc.error or exc.message)


async def handle_server_error(request: Request, exc: ServerError) -> JSONResponse:
    logger.critical("Invariant violation on %s %s: %s", request.method, request.url.path, exc.message)
    return error_response(exc.status_code, exc.message, exc.error)


async def handle_task_api_error(request: Request, exc: TaskApiError) -> JSONResponse:
    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return error_response(exc.status_code, exc.message, exc.error)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', '')}"
        for err in exc.errors()
    )
    return error_response(400, "Invalid request", details or None)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI application around an explicit Settings object"""
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = Database(settings.database)
        app.state.database = database
        if settings.database.create_schema:
            await database.create_schema()
        logger.info("Task API started")
        try:
            yield
        finally:
            await database.dispose()

    app = FastAPI(
        title="Task API",
        description="CRUD API for tracking tasks",
        version=API_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Location"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "%s %s -> %s (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response

    app.add_exception_handler(StoreError, handle_store_error)
    app.add_exception_handler(ServerError, handle_server_error)
    app.add_exception_handler(TaskApiError, handle_task_api_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)

    app.include_router(tasks.router)

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": "Task API",
            "version": API_VERSION,
            "docs": "/docs",
            "health": "/health",
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "task-api",
            "version": API_VERSION,
        }

    return app


settings = Settings.from_env()
configure_logging(settings.log_level)
app = create_app(settings)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "taskapi.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
