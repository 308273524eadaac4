"""
Workhub FastAPI application entry point.

Workspaces → teams and projects → issues, gated by workspace and team roles.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from workhub import __version__
from workhub.config import get_settings
from workhub.db.session import check_db_connection, engine
from workhub.errors import WorkhubError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Request locations that carry no meaning in a field message
_LOCATION_PREFIXES = ("body", "query", "path", "header", "cookie")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info("Workhub starting")
    try:
        try:
            check_db_connection()
            logger.info("Database connection verified")
        except Exception as e:
            logger.critical("Database unreachable: %s", e)
            raise
        yield
    finally:
        logger.info("Workhub shutting down")
        engine.dispose()
        logger.info("Database connection pool closed")


def format_validation_error(exc: RequestValidationError) -> str:
    """Turn the first validation error into a human-readable field message."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(p) for p in first.get("loc", ()) if p not in _LOCATION_PREFIXES]
    field = ".".join(loc)
    error_type = first.get("type", "")
    if error_type == "json_invalid":
        return "Invalid JSON body"
    if error_type == "value_error":
        ctx_error = (first.get("ctx") or {}).get("error")
        return str(ctx_error) if ctx_error else first.get("msg", "Invalid value")
    if error_type == "extra_forbidden":
        return f"Unknown field: {field}"
    if error_type == "missing":
        return f"{field} is required" if field else "Request body is required"
    message = first.get("msg", "Invalid value")
    return f"{field}: {message}" if field else message


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure as ``{"error": message}`` with a matching status."""

    @app.exception_handler(WorkhubError)
    async def _workhub_error(request: Request, exc: WorkhubError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=exc.headers)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": format_validation_error(exc)})

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "An unexpected error occurred"})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["Retry-After", "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
        )

    register_exception_handlers(app)

    # Mount API routes
    from workhub.api.auth import router as auth_router
    from workhub.api.invitations import router as invitations_router
    from workhub.api.invitations import workspace_router as workspace_invitations_router
    from workhub.api.issues import router as issues_router
    from workhub.api.issues import workspace_router as workspace_issues_router
    from workhub.api.projects import router as projects_router
    from workhub.api.teams import router as teams_router
    from workhub.api.users import router as users_router
    from workhub.api.workspaces import router as workspaces_router

    app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
    app.include_router(users_router, prefix="/api/users", tags=["users"])
    app.include_router(workspaces_router, prefix="/api/workspaces", tags=["workspaces"])
    app.include_router(workspace_invitations_router, prefix="/api/workspaces", tags=["invitations"])
    app.include_router(teams_router, prefix="/api/workspaces", tags=["teams"])
    app.include_router(projects_router, prefix="/api/workspaces", tags=["projects"])
    app.include_router(workspace_issues_router, prefix="/api/workspaces", tags=["issues"])
    app.include_router(invitations_router, prefix="/api/invitations", tags=["invitations"])
    app.include_router(issues_router, prefix="/api/issues", tags=["issues"])

    @app.get("/health")
    def health() -> dict:
        """Health check endpoint. Confirms DB connectivity."""
        from sqlalchemy import text

        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return {
                "status": "ok",
                "version": __version__,
                "database": "connected",
            }
        except Exception:
            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "version": __version__,
                    "database": "disconnected",
                },
            )

    return app


app = create_app()
