import os
from pydantic_settings import BaseSettings



class Settings(BaseSettings):
    redis_url: str = os.getenv("REDIS_URL", "redis://redis:6379/0")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # TMDB catalog
    tmdb_api_key: str = os.getenv("TMDB_API_KEY", "")
    tmdb_api_base: str = os.getenv("TMDB_API_BASE", "https://api.themoviedb.org/3")
    tmdb_language: str = os.getenv("TMDB_LANGUAGE", "en-US")
    # Netflix network id on TMDB
    tmdb_network_id: int = int(os.getenv("TMDB_NETWORK_ID", "213"))
    tmdb_cache_ttl: int = int(os.getenv("TMDB_CACHE_TTL", "3600"))  # 1h
    tmdb_timeout_seconds: float = float(os.getenv("TMDB_TIMEOUT_SECONDS", "10"))
    tmdb_max_retries: int = int(os.getenv("TMDB_MAX_RETRIES", "3"))
    catalog_cache_enabled: bool = os.getenv("CATALOG_CACHE_ENABLED", "true").lower() == "true"

    # Candidate gathering
    strategy_timeout_seconds: float = float(os.getenv("STRATEGY_TIMEOUT_SECONDS", "12"))
    quiz_top_n: int = int(os.getenv("QUIZ_TOP_N", "15"))
    prompt_max_candidates: int = int(os.getenv("PROMPT_MAX_CANDIDATES", "50"))

    # LLM (intent expansion + re-rank)
    # Provider options: "openai_compatible" (Groq by default), "ollama"
    ai_llm_provider: str = os.getenv("AI_LLM_PROVIDER", "openai_compatible")
    ai_llm_api_base: str = os.getenv("AI_LLM_API_BASE", "https://api.groq.com/openai/v1")
    ai_llm_api_key: str = os.getenv("AI_LLM_API_KEY", os.getenv("GROQ_API_KEY", ""))
    ai_llm_model: str = os.getenv("AI_LLM_MODEL", "llama-3.3-70b-versatile")
    ai_llm_timeout_seconds: float = float(os.getenv("AI_LLM_TIMEOUT_SECONDS", "30"))
    ai_rerank_enabled: bool = os.getenv("AI_RERANK_ENABLED", "true").lower() == "true"

settings = Settings()
