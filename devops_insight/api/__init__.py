"""API routes and endpoints."""

from fastapi import APIRouter

from devops_insight.api import health, insights

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(insights.router, prefix="/api/v1", tags=["insights"])
