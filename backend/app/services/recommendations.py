"""
recommendations.py

Request-level pipeline:

  quiz:   plan -> gather -> merge -> heuristic rank (top N) -> best-effort AI re-rank
  prompt: intent expansion -> plan -> gather -> merge -> relevance filter -> cap
          -> heuristic scores -> best-effort AI re-rank

Every request builds its own candidate list; nothing is shared between requests
except the catalog response cache.
"""
import logging
from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.services.ai_engine.intent_extractor import Intent, IntentExtractor
from app.services.ai_engine.reranker import FALLBACK_REASON, RerankContext, try_rerank
from app.services.candidate_provider import (
    CatalogUnavailableError,
    GatherOutcome,
    Strategy,
    gather_candidates,
    genre_ids_from_names,
    plan_prompt_strategies,
    plan_quiz_strategies,
)
from app.services.candidates import Candidate, filter_relevant, merge_candidates, normalize_title_fields, resolve_media_type
from app.services.fit_scoring import apply_heuristic_scores, rank_candidates
from app.services.llm_client import LLMClient, get_llm_client
from app.services.tmdb_client import TMDBClient, get_tmdb_client

logger = logging.getLogger(__name__)


def fill_fallback_reasons(candidates: List[Candidate]) -> List[Candidate]:
    """Heuristic results keep their scores and order; only a missing reason is filled."""
    for c in candidates:
        if not c.match_reason:
            c.match_reason = FALLBACK_REASON
    return candidates


class RecommendationService:
    def __init__(
        self,
        catalog: TMDBClient,
        llm: LLMClient,
        quiz_top_n: Optional[int] = None,
        prompt_max_candidates: Optional[int] = None,
        strategy_timeout: Optional[float] = None,
        rerank_enabled: Optional[bool] = None,
    ):
        self.catalog = catalog
        self.llm = llm
        self.quiz_top_n = quiz_top_n or settings.quiz_top_n
        self.prompt_max_candidates = prompt_max_candidates or settings.prompt_max_candidates
        self.strategy_timeout = strategy_timeout
        self.rerank_enabled = settings.ai_rerank_enabled if rerank_enabled is None else rerank_enabled
        self.intents = IntentExtractor(llm)

    async def _rerank_or_fallback(self, candidates: List[Candidate], context: RerankContext) -> List[Candidate]:
        if not candidates:
            return candidates
        if self.rerank_enabled and self.llm.is_configured:
            result = await try_rerank(candidates, context, self.llm)
            if result.ok:
                return result.candidates
        else:
            logger.info("AI re-rank unavailable, returning heuristic order")
        return fill_fallback_reasons(candidates)

    async def _gather(self, strategies: List[Strategy]) -> GatherOutcome:
        outcome = await gather_candidates(self.catalog, strategies, timeout=self.strategy_timeout)
        if outcome.all_failed:
            raise CatalogUnavailableError(outcome.failed)
        return outcome

    async def recommend_from_quiz(self, answers: Any) -> List[Candidate]:
        """Ranked candidates for quiz answers. Never fails because of the LLM.

        Raises:
            CatalogUnavailableError: every catalog strategy failed.
        """
        strategies = plan_quiz_strategies(answers)
        outcome = await self._gather(strategies)
        merged = merge_candidates(outcome.items)
        genres = list(answers.genres or [])
        ranked = rank_candidates(merged, genres, limit=self.quiz_top_n)
        logger.info(f"Quiz request: {len(outcome.items)} raw -> {len(merged)} unique -> top {len(ranked)}")

        # Runtime is forwarded to the model as context only; it never filters or scores.
        context = RerankContext(
            genres=genres,
            era=answers.era,
            mood=answers.mood,
            runtime=answers.runtime,
        )
        return await self._rerank_or_fallback(ranked, context)

    async def gather_for_intent(self, intent: Intent) -> List[Candidate]:
        """Catalog candidates for an expanded intent, filtered and capped, in merge order."""
        strategies = plan_prompt_strategies(intent)
        outcome = await self._gather(strategies)
        merged = merge_candidates(outcome.items, require_title=True)
        relevant = filter_relevant(merged, intent.keywords)
        capped = relevant[:self.prompt_max_candidates]
        logger.info(f"Prompt request: {len(outcome.items)} raw -> {len(merged)} unique -> {len(relevant)} relevant -> {len(capped)} kept")
        return capped

    async def recommend_from_prompt(self, prompt: str) -> List[Candidate]:
        """Ranked candidates for a free-text prompt.

        Raises:
            IntentParseError, LLMError: intent expansion failed; there is no fallback.
            CatalogUnavailableError: every catalog strategy failed.
        """
        intent = await self.intents.expand(prompt)
        candidates = await self.gather_for_intent(intent)
        # Merge order already encodes confidence (title searches first), so the
        # heuristic scores are attached for display without re-sorting.
        apply_heuristic_scores(candidates, genre_ids_from_names(intent.genre_names))
        context = RerankContext(prompt=prompt, genres=genre_ids_from_names(intent.genre_names), era=intent.era)
        return await self._rerank_or_fallback(candidates, context)

    async def search_titles(self, query: str) -> List[Dict[str, Any]]:
        """Raw multi-search entries restricted to movies and series, with a normalized title."""
        data = await self.catalog.search_multi(query, include_adult=False)
        results = []
        for item in data.get("results") or []:
            if not isinstance(item, dict) or item.get("media_type") not in ("movie", "tv"):
                continue
            normalized = normalize_title_fields(item)
            normalized["media_type"] = resolve_media_type(item)
            results.append(normalized)
        return results

    async def get_title_details(self, tmdb_id: int, media_type: str = "movie") -> Dict[str, Any]:
        # Cached by the catalog client under (endpoint, params), i.e. per (id, media type)
        return await self.catalog.details(tmdb_id, media_type)

    async def list_genres(self) -> List[Dict[str, Any]]:
        return await self.catalog.genres("movie")


_service: Optional[RecommendationService] = None


def get_recommendation_service() -> RecommendationService:
    """Get or create the process-wide service (FastAPI dependency)."""
    global _service
    if _service is None:
        _service = RecommendationService(catalog=get_tmdb_client(), llm=get_llm_client())
    return _service
