from fastapi import FastAPI
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.middleware.cors import CORSMiddleware
from datetime import datetime, timezone
import logging

from app.core.config import settings
from app.utils.logger import setup_logging
from app.api import recommendations, search, metadata

setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="MovieVerse API", version="1.0.0")

app.add_middleware(GZipMiddleware, minimum_size=1000)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(recommendations.router, prefix="/api/recommendations", tags=["Recommendations"])
app.include_router(search.router, prefix="/api", tags=["Search"])
app.include_router(metadata.router, prefix="/api/metadata", tags=["Metadata"])


@app.get("/")
def root():
    return {"status": "MovieVerse API Running"}

@app.get("/health")
async def health_check():
    """Health check; the Redis cache is optional, so its absence is reported, not fatal."""
    cache = "disabled"
    if settings.catalog_cache_enabled:
        try:
            from app.core.redis_client import get_redis
            await get_redis().ping()
            cache = "ok"
        except Exception as e:
            logger.warning(f"Catalog cache unreachable: {e}")
            cache = "unavailable"
    return {
        "status": "healthy",
        "cache": cache,
        "tmdb_configured": bool(settings.tmdb_api_key),
        "llm_configured": bool(settings.ai_llm_api_key) or settings.ai_llm_provider == "ollama",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.on_event("shutdown")
async def shutdown_event():
    from app.core.redis_client import close_redis
    await close_redis()
