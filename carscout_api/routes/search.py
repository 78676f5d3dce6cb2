"""
Search, insights and export route handlers.
"""
import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from carscout.core import SearchService
from carscout.export import results_to_frame
from carscout.models import InvalidFiltersError
from carscout.utils import now_iso

from ..config import config
from ..models import (
    AnalysisOut,
    InsightsOut,
    InsightsResponseOut,
    ListingOut,
    MetadataOut,
    RecommendationOut,
    SearchRequest,
    SearchResponseOut,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["search"])

_service: Optional[SearchService] = None


def get_search_service() -> SearchService:
    """Dependency returning the process-wide search service."""
    global _service
    if _service is None:
        _service = SearchService()
    return _service


@router.post("/search", response_model=SearchResponseOut)
async def search(request: SearchRequest, service: SearchService = Depends(get_search_service)):
    """Search all enabled platforms, then match, deduplicate and rank."""
    filters = request.to_filters()
    logger.info(f"Search request received: {filters.to_dict()}")
    started = time.perf_counter()
    try:
        response = await service.search(filters)
    except InvalidFiltersError:
        raise
    except Exception as e:
        logger.error(f"Search error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Search failed")

    processing_ms = int((time.perf_counter() - started) * 1000)
    logger.info(f"Search completed in {processing_ms}ms. Found {len(response.results)} results")

    return SearchResponseOut(
        success=True,
        data=[ListingOut.model_validate(r) for r in response.results],
        analysis=AnalysisOut.model_validate(response.analysis),
        recommendations=[RecommendationOut.model_validate(r) for r in response.recommendations],
        metadata=MetadataOut(
            processing_time=processing_ms,
            timestamp=now_iso(),
            ai_enhanced=service.oracle.enabled,
            confidence=response.search_context.confidence if response.search_context else "low",
        ),
    )


@router.post("/insights", response_model=InsightsResponseOut)
async def insights(request: SearchRequest, service: SearchService = Depends(get_search_service)):
    """Market summary over a fresh search; ``insights`` is null when nothing matched."""
    filters = request.to_filters()
    logger.info(f"Market insights request: {filters.to_dict()}")
    try:
        result = await service.market_insights(filters)
    except InvalidFiltersError:
        raise
    except Exception as e:
        logger.error(f"Market insights error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Insights generation failed")

    return InsightsResponseOut(
        success=True,
        insights=InsightsOut.model_validate(result) if result is not None else None,
        timestamp=now_iso(),
    )


@router.post("/export/csv")
async def export_csv(request: SearchRequest, service: SearchService = Depends(get_search_service)):
    """Run a search and return the ranked results as CSV."""
    filters = request.to_filters()
    try:
        response = await service.search(filters)
        csv_content = results_to_frame(response.results).to_csv(index=False).encode("utf-8")
    except InvalidFiltersError:
        raise
    except Exception as e:
        logger.error(f"Error exporting CSV: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error generating CSV export")

    return StreamingResponse(
        iter([csv_content]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{config.EXPORT_FILENAME}"'},
    )
