from fastapi import APIRouter, Depends, HTTPException, Path
from typing import Any, Dict, List, Literal
import logging

from app.services.recommendations import RecommendationService, get_recommendation_service
from app.services.tmdb_client import CatalogError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/genres")
async def movie_genres(service: RecommendationService = Depends(get_recommendation_service)) -> List[Dict[str, Any]]:
    try:
        return await service.list_genres()
    except CatalogError as e:
        raise HTTPException(status_code=502, detail=f"Genre lookup failed: {str(e)}")


@router.get("/{media_type}/{tmdb_id}")
async def title_details(
    media_type: Literal["movie", "tv"],
    tmdb_id: int = Path(..., ge=1),
    service: RecommendationService = Depends(get_recommendation_service),
) -> Dict[str, Any]:
    """Full TMDB record with videos, credits and recommendations appended."""
    try:
        return await service.get_title_details(tmdb_id, media_type)
    except CatalogError as e:
        if e.status == 404:
            raise HTTPException(status_code=404, detail=f"{media_type} {tmdb_id} not found")
        logger.error(f"Detail fetch failed for {media_type}/{tmdb_id}: {e}")
        raise HTTPException(status_code=502, detail=f"Detail fetch failed: {str(e)}")
