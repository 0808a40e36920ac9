# routers/health.py

from fastapi import APIRouter

from core.config import settings
from core.supabase_client import ping_supabase

router = APIRouter(
    prefix="/health",
    tags=["Health"],
)


def configured_integrations() -> dict:
    """Which outside services have credentials; never exposes the values."""
    return {
        "supabase": bool(settings.SUPABASE_URL and settings.SUPABASE_SERVICE_ROLE_KEY),
        "stripe": bool(settings.STRIPE_SECRET_KEY),
        "email": bool(settings.SMTP_HOST and settings.EMAIL_FROM),
        "assistant": bool(settings.ANTHROPIC_API_KEY),
        "embeddings": bool(settings.OPENAI_API_KEY),
        "scheduler": settings.ENABLE_SCHEDULER,
    }


@router.get("/app", summary="App health check")
def health_app():
    """Liveness for uptime monitors. No database calls, no auth."""
    return {
        "service": settings.PROJECT_NAME,
        "status": "ok",
        "env": settings.ENV,
        "integrations": configured_integrations(),
    }


@router.get(
    "/db",
    summary="Database health check",
    description="""
    Reads one row from each core table. `status` is `ok`, `degraded`
    (some tables failed), `not_configured` or `error`. No auth required.
    """,
)
def health_db():
    report = ping_supabase()
    return {
        "service": "Supabase",
        "status": report["status"],
        "details": report,
    }
