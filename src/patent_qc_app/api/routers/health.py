"""Health check endpoints."""

from fastapi import APIRouter

from patent_qc_app.config.settings import get_settings
from patent_qc_app.llm.context import get_inference_context

router = APIRouter(tags=["health"])


@router.get("/healthz", summary="Liveness probe")
async def healthcheck() -> dict[str, str]:
    """Return basic app health and the currently active model."""
    settings = get_settings()
    context = get_inference_context()
    return {
        "status": "ok",
        "environment": settings.environment,
        "model_tier": context.tier.value,
        "model": context.active_model(),
    }
