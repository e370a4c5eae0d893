"""
LLM re-ranking of heuristically scored candidates.

The model sees the candidates (id, title, overview) plus the request context and
returns `{id, matchScore, vibeScore, matchReason}` entries best-to-worst. Results are
merged back by id onto copies of the candidates; the inputs are never mutated, so
the caller can always fall back to them.

`try_rerank` is the entry point for the pipeline: it never raises.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from app.services.candidates import Candidate
from app.services.llm_client import LLMClient, LLMError, validate_json_response

logger = logging.getLogger(__name__)

# Wrapper keys the model has been seen nesting its array under, probed in order
WRAPPER_KEYS = ("movies", "results", "ranking", "rankings", "items", "recommendations")

DEFAULT_MATCH_SCORE = 50.0
DEFAULT_VIBE_SCORE = 50
FALLBACK_REASON = "A solid choice based on your interests."
OVERVIEW_CHARS = 300


class RerankError(Exception):
    """Any failure while re-ranking; always handled by the caller."""
    pass


@dataclass
class RerankContext:
    prompt: Optional[str] = None
    genres: List[int] = field(default_factory=list)
    era: Optional[str] = None
    mood: Optional[str] = None
    runtime: Optional[str] = None


@dataclass
class RerankResult:
    ok: bool
    candidates: List[Candidate]
    reason: Optional[str] = None


def describe_context(context: RerankContext) -> str:
    if context.prompt:
        return f'User Prompt: "{context.prompt}"'
    genres = ",".join(str(g) for g in context.genres)
    return (
        f"Genres: {genres}\n"
        f"Era: {context.era or 'Any'}\n"
        f"Mood: {context.mood or 'Any'}\n"
        f"Runtime: {context.runtime or 'Any'}"
    )


def build_prompt(candidates: List[Candidate], context: RerankContext) -> str:
    listing = "\n".join(
        f"{i + 1}. {c.title} (ID: {c.id}, Overview: {c.overview[:OVERVIEW_CHARS]})"
        for i, c in enumerate(candidates)
    )
    return f"""You are a movie expert and cinephile. Re-rank these movies for a user based on this context:
{describe_context(context)}

CRITICAL: If a "User Prompt" is provided, prioritize movies that directly fulfill the goal of that prompt (e.g. teaching a specific skill, matching a very specific theme).

Movies:
{listing}

Return a JSON object {{"movies": [...]}} whose array holds objects with these fields exactly:
- id: (the original movie id)
- matchScore: (0-100 based on preference match)
- vibeScore: (0-100, specific to the mood/vibe)
- matchReason: (A punchy, witty, 1-sentence reason why this movie fits their specific request. Be creative and personal!)

Order the array from best match to worst. Return ONLY the JSON."""


def extract_ranking(payload: Any) -> List[Dict[str, Any]]:
    """Pull the ranking entries out of the model's JSON, whatever it wrapped them in.

    Returns an empty list when no known shape matches.
    """
    ranked: Any = None
    if isinstance(payload, list):
        ranked = payload
    elif isinstance(payload, dict):
        for key in WRAPPER_KEYS:
            if key in payload and payload[key]:
                ranked = payload[key]
                break
    if isinstance(ranked, dict):
        ranked = list(ranked.values())
    if not isinstance(ranked, list):
        return []
    return [entry for entry in ranked if isinstance(entry, dict) and entry.get("id") is not None]


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number


def ranking_key(value: Any) -> str:
    """Comparable id key: 27205, "27205" and 27205.0 all map to "27205"."""
    number = _number(value.strip() if isinstance(value, str) else value)
    if number is not None and number.is_integer():
        return str(int(number))
    return str(value).strip()


def merge_ranking(candidates: List[Candidate], ranking: List[Dict[str, Any]]) -> List[Candidate]:
    """Apply AI scores by id (see ranking_key) and re-sort; absent candidates get defaults."""
    by_id: Dict[str, Dict[str, Any]] = {}
    for entry in ranking:
        by_id.setdefault(ranking_key(entry["id"]), entry)

    merged: List[Candidate] = []
    for c in candidates:
        entry = by_id.get(str(c.id)) or {}
        # Zero or missing scores fall back like absent entries
        match_score = _number(entry.get("matchScore")) or DEFAULT_MATCH_SCORE
        vibe_score = _number(entry.get("vibeScore")) or DEFAULT_VIBE_SCORE
        reason = entry.get("matchReason")
        reason = reason.strip() if isinstance(reason, str) and reason.strip() else FALLBACK_REASON
        merged.append(replace(
            c,
            genre_ids=list(c.genre_ids),
            match_score=match_score,
            vibe_score=int(round(vibe_score)),
            match_reason=reason,
        ))
    return sorted(merged, key=lambda c: c.match_score, reverse=True)


async def rerank(candidates: List[Candidate], context: RerankContext, llm: LLMClient) -> List[Candidate]:
    """Re-rank with the LLM. Raises RerankError on any failure."""
    if not candidates:
        return []
    messages = [{"role": "user", "content": build_prompt(candidates, context)}]
    try:
        output = await llm.chat_json(messages, temperature=0.7)
    except LLMError as e:
        raise RerankError(f"LLM call failed: {e}") from e

    payload = validate_json_response(output, expected_structure="object")
    if payload is None:
        raise RerankError("LLM returned malformed JSON")
    ranking = extract_ranking(payload)
    if not ranking:
        raise RerankError("LLM response carried no ranking data")

    known = {str(c.id) for c in candidates}
    if not any(ranking_key(entry["id"]) in known for entry in ranking):
        raise RerankError("LLM ranking matched none of the candidates")
    return merge_ranking(candidates, ranking)


async def try_rerank(candidates: List[Candidate], context: RerankContext, llm: LLMClient) -> RerankResult:
    """Best-effort re-rank. On failure the original list comes back untouched with ok=False."""
    try:
        ranked = await rerank(candidates, context, llm)
        logger.info(f"[Reranker] Re-ranked {len(ranked)} candidates")
        return RerankResult(ok=True, candidates=ranked)
    except RerankError as e:
        logger.warning(f"[Reranker] Falling back to heuristic order: {e}")
        return RerankResult(ok=False, candidates=candidates, reason=str(e))
    except Exception as e:
        logger.warning(f"[Reranker] Unexpected failure, falling back to heuristic order: {e}")
        return RerankResult(ok=False, candidates=candidates, reason=str(e))
