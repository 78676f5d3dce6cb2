"""
Platform, agent status and AI health route handlers.
"""
import logging

from fastapi import APIRouter, Depends

from carscout.core import AI_FEATURES, SearchService

from .search import get_search_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["platforms"])


@router.get("/platforms")
async def get_platforms(service: SearchService = Depends(get_search_service)):
    """Enabled platforms with trust scores."""
    return {
        "success": True,
        "platforms": service.supported_platforms(),
        "aiFeatures": {name: service.oracle.enabled for name in AI_FEATURES},
    }


@router.get("/agents/status")
async def get_agents_status(service: SearchService = Depends(get_search_service)):
    return {"success": True, "status": service.status()}


@router.get("/ai/health")
async def get_ai_health(service: SearchService = Depends(get_search_service)):
    """Oracle availability; a failing oracle reports ``degraded`` rather than erroring."""
    health = await service.oracle.health()
    return {
        "success": True,
        "ai": {
            **health,
            "openaiConfigured": bool(service.settings.openai_api_key),
            "features": {name: service.oracle.enabled for name in AI_FEATURES},
        },
    }
