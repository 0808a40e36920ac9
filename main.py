import os
import sys
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Ensure local imports resolve
sys.path.append(os.path.dirname(__file__))

# Core
from core.config import settings
from core.logging_config import logger
from core.errors import error_code_for
from core.scheduler import start_scheduler, shutdown_scheduler

# -------------------------------------------------
# Routers
# -------------------------------------------------
from routers.users import router as users_router
from routers.jurisdictions import router as jurisdictions_router
from routers.properties import router as properties_router

from routers.permits import router as permits_router
from routers.milestones import router as milestones_router
from routers.inspections import router as inspections_router
from routers.parties import router as parties_router
from routers.tasks import router as tasks_router
from routers.workflows import router as workflows_router
from routers.forms import router as forms_router
from routers.documents import router as documents_router
from routers.messages import router as messages_router
from routers.notifications import router as notifications_router

from routers.vendors import router as vendors_router
from routers.subscriptions import router as subscriptions_router
from routers.stripe_webhooks import router as stripe_webhooks_router

from routers.chat import router as chat_router
from routers.knowledge import router as knowledge_router

from routers.health import router as health_router


# -------------------------------------------------
# Error body
# -------------------------------------------------
def error_response(status_code: int, detail, headers=None) -> JSONResponse:
    """
    `{"success": false, "detail": ..., "code": ...}`.
    A dict detail carries a `message` plus extra keys (e.g. form `errors`),
    which are lifted to the top level.
    """
    content = {"success": False, "code": error_code_for(status_code)}
    if isinstance(detail, dict):
        extra = dict(detail)
        content["detail"] = extra.pop("message", None)
        content.update(extra)
    else:
        content["detail"] = detail
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid input"
    first = errors[0]
    field = ".".join(str(p) for p in first.get("loc", []) if p not in ("body", "query", "path"))
    message = first.get("msg", "Invalid input")
    return f"{field}: {message}" if field else message


# -------------------------------------------------
# Create the Application
# -------------------------------------------------
def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="1.0.0",
        description="Permits API: permit tracking, tasks, vendors and an AI assistant on Supabase",
    )

    # -------------------------------------------------
    # CORS
    # -------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------
    # Startup / shutdown
    # -------------------------------------------------
    @app.on_event("startup")
    async def on_startup():
        logger.info(f"Starting {settings.PROJECT_NAME} ({settings.ENV})")
        for route in app.routes:
            # mounts and custom routes may not expose a path or methods
            path = getattr(route, "path", None)
            if path is None:
                continue
            methods = ",".join(sorted(getattr(route, "methods", None) or []))
            logger.debug(f"{methods:10s} {path}")

        if settings.ENABLE_SCHEDULER:
            start_scheduler()

    @app.on_event("shutdown")
    async def on_shutdown():
        shutdown_scheduler()

    # -------------------------------------------------
    # Error handling
    # -------------------------------------------------
    @app.exception_handler(StarletteHTTPException)
    async def handle_http(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (401, 403, 500):
            logger.warning(
                f"HTTP {exc.status_code} at {request.url}: {exc.detail}"
            )
        return error_response(exc.status_code, exc.detail, getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def handle_validation(request: Request, exc: RequestValidationError):
        return error_response(400, first_validation_message(exc))

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.error("Unhandled error at %s", request.url, exc_info=exc)
        return error_response(500, "Internal server error")

    # -------------------------------------------------
    # Register Routers
    # -------------------------------------------------

    # Account
    app.include_router(users_router)
    app.include_router(subscriptions_router)
    app.include_router(notifications_router)

    # Places
    app.include_router(jurisdictions_router)
    app.include_router(properties_router)

    # Permits and everything hanging off them
    app.include_router(permits_router)
    app.include_router(milestones_router)
    app.include_router(inspections_router)
    app.include_router(parties_router)
    app.include_router(tasks_router)
    app.include_router(workflows_router)
    app.include_router(forms_router)
    app.include_router(documents_router)
    app.include_router(messages_router)

    # Marketplace
    app.include_router(vendors_router)

    # AI assistant
    app.include_router(chat_router)
    app.include_router(knowledge_router)

    # Webhooks
    app.include_router(stripe_webhooks_router)

    # Health
    app.include_router(health_router)

    return app


# Create the global FastAPI instance
app = create_app()
