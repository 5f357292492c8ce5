"""Back-office FastAPI application."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .. import __version__
from ..config import get_settings
from ..database import Database
from ..errors import BackofficeError
from .routers import (
    benchmarks,
    client_activity,
    clients,
    collaboration,
    consultants,
    contracts,
    financial_reports,
    helpdesk,
    projects,
    subtasks,
    timecard_headers,
    timecard_lines,
    users,
)

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("backoffice-core")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database handle on startup and dispose of it on shutdown."""
    owns_database = getattr(app.state, "database", None) is None
    if owns_database:
        app.state.database = Database(settings.database_url, settings).init()
    logger.info(f"Starting Back-office API {__version__}")
    try:
        yield
    finally:
        if owns_database:
            app.state.database.shutdown()
            app.state.database = None
        logger.info("Back-office API stopped")


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain and storage errors to HTTP responses."""

    @app.exception_handler(BackofficeError)
    async def backoffice_error_handler(request: Request, exc: BackofficeError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Build the application.

    Args:
        database: Pre-initialized handle to use instead of one built from
            settings at startup (tests pass an in-memory SQLite handle)

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="Back-office API",
        description="Timecards, benchmarks, client reporting, helpdesk and collaboration",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(users.router, prefix="/api/users")
    app.include_router(consultants.router, prefix="/api/consultants")
    app.include_router(clients.router, prefix="/api/clients")
    app.include_router(contracts.router, prefix="/api/contracts")
    app.include_router(projects.router, prefix="/api/projects")
    app.include_router(subtasks.router, prefix="/api/subtasks")
    app.include_router(timecard_headers.router, prefix="/api/timecardHeaders")
    app.include_router(timecard_lines.router, prefix="/api/timecardLines")
    app.include_router(benchmarks.router, prefix="/api/benchmarks")
    app.include_router(client_activity.router, prefix="/api/clientActivity")
    app.include_router(financial_reports.router, prefix="/api/financialReports")
    app.include_router(helpdesk.router, prefix="/api/helpdesk")
    app.include_router(collaboration.router, prefix="/api/collaboration")

    @app.get("/")
    def root():
        """Root endpoint with server info."""
        return {
            "name": "Back-office API",
            "version": __version__,
            "docs": "/docs",
        }

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("backoffice_core.api.main:app", host="0.0.0.0", port=8000)
