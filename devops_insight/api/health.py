"""Liveness and readiness endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from devops_insight.clients.ollama import OllamaClient, get_ollama_client
from devops_insight.core.config import get_settings
from devops_insight.db.session import get_db

router = APIRouter()


@router.get("/")
async def health_check() -> dict:
    """Basic health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/ready")
async def readiness_check(
    db: AsyncSession = Depends(get_db),
    ollama: OllamaClient = Depends(get_ollama_client),
) -> dict:
    """
    Readiness check.

    Only the database gates readiness. Without the generation service
    health checks still answer with the fallback assessment, so its
    state is reported but does not fail readiness.
    """
    generation = "available" if await ollama.is_available() else "unavailable"

    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        return {
            "status": "not_ready",
            "database": "disconnected",
            "generation_service": generation,
            "error": str(e),
        }

    return {"status": "ready", "database": "connected", "generation_service": generation}
