"""
search.py - Catalog title search
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Any, Dict, List
import logging

from app.services.recommendations import RecommendationService, get_recommendation_service
from app.services.tmdb_client import CatalogError

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("/search", response_model=List[Dict[str, Any]])
async def search_titles(
    q: str = Query(..., min_length=1, description="Search query"),
    service: RecommendationService = Depends(get_recommendation_service),
):
    """
    Free-text search across movies and TV shows.

    Returns TMDB entries unscored, with `title` and `release_date` normalized
    for series. People are excluded.
    """
    try:
        results = await service.search_titles(q)
    except CatalogError as e:
        logger.error(f"Search for '{q}' failed: {e}")
        raise HTTPException(status_code=502, detail=f"Search failed: {str(e)}")
    logger.info(f"Search for '{q}' returned {len(results)} results")
    return results
