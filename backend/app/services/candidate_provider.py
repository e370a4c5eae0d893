"""
candidate_provider.py

Turns quiz answers or an expanded prompt intent into catalog "strategies" and
runs them concurrently against TMDB.

Each strategy is isolated: a CatalogError, a timeout or any other failure in one
branch is logged and contributes zero candidates, without cancelling siblings.
When every strategy fails the outcome says so (`all_failed`) and the service
raises CatalogUnavailableError instead of returning an empty list.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from app.core.config import settings
from app.services.tmdb_client import CatalogError

logger = logging.getLogger(__name__)

ERA_RANGES: Dict[str, Tuple[Optional[str], Optional[str]]] = {
    "classic": (None, "1989-12-31"),
    "90s": ("1990-01-01", "1999-12-31"),
    "2000s": ("2000-01-01", "2009-12-31"),
    "modern": ("2010-01-01", None),
}

# TMDB keyword ids used as a discover filter per quiz mood
MOOD_KEYWORDS: Dict[str, str] = {
    "light": "6078,9717,35,10224,155030,10714,10183",
    "intense": "9748,3007,9663,10349,15060,186253,10158",
    "relaxed": "156470,9663,10183,10714,155030",
    "emotional": "10683,180547,10534,10714,15060,10158",
}

GENRE_NAME_TO_ID: Dict[str, int] = {
    "action": 28,
    "adventure": 12,
    "animation": 16,
    "comedy": 35,
    "crime": 80,
    "documentary": 99,
    "drama": 18,
    "family": 10751,
    "fantasy": 14,
    "history": 36,
    "horror": 27,
    "music": 10402,
    "mystery": 9648,
    "romance": 10749,
    "science_fiction": 878,
    "sci-fi": 878,
    "thriller": 53,
    "war": 10752,
    "western": 37,
}

TITLE_SEARCH_LIMIT = 3
QUERY_SEARCH_LIMIT = 5


class CatalogUnavailableError(Exception):
    """Every strategy of a request failed, so an empty list would not mean "no matches"."""

    def __init__(self, failed: List[str]):
        super().__init__(f"All {len(failed)} catalog strategies failed")
        self.failed = failed


@dataclass
class Strategy:
    """One catalog call plus the provenance tag stamped on its results."""
    name: str
    endpoint: str
    params: Dict[str, Any] = field(default_factory=dict)
    limit: Optional[int] = None

    @property
    def label(self) -> str:
        query = self.params.get("query")
        return f"{self.name}:{query}" if query else f"{self.name}:{self.endpoint}"


@dataclass
class GatherOutcome:
    items: List[Dict[str, Any]] = field(default_factory=list)
    succeeded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def all_failed(self) -> bool:
        return bool(self.failed) and not self.succeeded


def era_bounds(era: Optional[str]) -> Dict[str, str]:
    """Inclusive release-date bounds for an era; unknown or missing eras are unbounded."""
    start, end = ERA_RANGES.get(era or "", (None, None))
    bounds: Dict[str, str] = {}
    if start:
        bounds["release_date.gte"] = start
    if end:
        bounds["release_date.lte"] = end
    return bounds


def parse_seed_id(seed_id: Optional[str]) -> Optional[Tuple[str, int]]:
    """Split a `movie-<id>` / `tv-<id>` key; anything that is not `tv` is treated as a movie."""
    if not seed_id or "-" not in seed_id:
        return None
    kind, _, raw_id = seed_id.partition("-")
    try:
        tmdb_id = int(raw_id)
    except ValueError:
        logger.warning(f"[Gatherer] Ignoring malformed seed id: {seed_id}")
        return None
    return ("tv" if kind == "tv" else "movie", tmdb_id)


def genre_ids_from_names(names: Iterable[str]) -> List[int]:
    ids: List[int] = []
    for name in names or []:
        gid = GENRE_NAME_TO_ID.get(str(name).lower().replace(" ", "_"))
        if gid and gid not in ids:
            ids.append(gid)
    return ids


def plan_quiz_strategies(answers: Any, network_id: Optional[int] = None) -> List[Strategy]:
    """Seed (optional), discover, underrated and trending, in priority order."""
    strategies: List[Strategy] = []

    seed = parse_seed_id(getattr(answers, "seed_movie_id", None))
    if seed:
        media_type, tmdb_id = seed
        strategies.append(Strategy("seed", f"/{media_type}/{tmdb_id}/recommendations"))

    discover_params: Dict[str, Any] = {
        "with_networks": network_id if network_id is not None else settings.tmdb_network_id,
        "sort_by": "popularity.desc",
        "vote_count.gte": 100,
    }
    genres = list(getattr(answers, "genres", None) or [])
    if genres:
        discover_params["with_genres"] = "|".join(str(g) for g in genres)
    discover_params.update(era_bounds(getattr(answers, "era", None)))
    mood = getattr(answers, "mood", None)
    if mood in MOOD_KEYWORDS:
        discover_params["with_keywords"] = MOOD_KEYWORDS[mood]
    strategies.append(Strategy("discover", "/discover/movie", discover_params))

    underrated_params = dict(discover_params)
    underrated_params.update({
        "vote_average.gte": 7.5,
        "vote_count.lte": 1000,
        "vote_count.gte": 50,
        "sort_by": "vote_average.desc",
    })
    strategies.append(Strategy("underrated", "/discover/movie", underrated_params))

    strategies.append(Strategy("trending", "/trending/movie/week"))
    return strategies


def plan_prompt_strategies(intent: Any) -> List[Strategy]:
    """Title searches first (highest confidence), then query searches, then discover."""
    strategies: List[Strategy] = []
    for title in intent.representative_titles:
        strategies.append(Strategy("search", "/search/multi", {"query": title, "include_adult": False}, TITLE_SEARCH_LIMIT))
    for query in intent.search_queries:
        strategies.append(Strategy("search", "/search/multi", {"query": query, "include_adult": False}, QUERY_SEARCH_LIMIT))

    # Lower vote floor than the quiz path so niche documentaries survive
    discover_params: Dict[str, Any] = {
        "sort_by": "popularity.desc",
        "vote_count.gte": 20,
    }
    genre_ids = genre_ids_from_names(intent.genre_names)
    if genre_ids:
        discover_params["with_genres"] = "|".join(str(g) for g in genre_ids)
    discover_params.update(era_bounds(intent.era))
    strategies.append(Strategy("discover", "/discover/movie", discover_params))
    if intent.include_tv:
        strategies.append(Strategy("discover", "/discover/tv", dict(discover_params)))
    return strategies


async def run_strategy(client: Any, strategy: Strategy) -> List[Dict[str, Any]]:
    data = await client.query(strategy.endpoint, strategy.params)
    results = (data or {}).get("results") or []
    if strategy.limit is not None:
        results = results[:strategy.limit]
    return [{**item, "strategy": strategy.name} for item in results if isinstance(item, dict)]


async def gather_candidates(client: Any, strategies: List[Strategy], timeout: Optional[float] = None) -> GatherOutcome:
    """Run all strategies concurrently and flatten their results in strategy order."""
    timeout = timeout if timeout is not None else settings.strategy_timeout_seconds

    async def guarded(strategy: Strategy) -> Optional[List[Dict[str, Any]]]:
        try:
            return await asyncio.wait_for(run_strategy(client, strategy), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[Gatherer] Strategy {strategy.label} timed out after {timeout}s")
        except CatalogError as e:
            logger.warning(f"[Gatherer] Strategy {strategy.label} failed: {e}")
        except Exception as e:
            logger.warning(f"[Gatherer] Strategy {strategy.label} raised unexpectedly: {e}")
        return None

    results = await asyncio.gather(*(guarded(s) for s in strategies))

    outcome = GatherOutcome()
    for strategy, result in zip(strategies, results):
        if result is None:
            outcome.failed.append(strategy.label)
            continue
        outcome.succeeded.append(strategy.label)
        outcome.items.extend(result)

    if outcome.all_failed:
        logger.warning(f"[Gatherer] All {len(strategies)} strategies failed; returning no candidates")
    else:
        logger.info(f"[Gatherer] {len(outcome.succeeded)}/{len(strategies)} strategies returned {len(outcome.items)} items")
    return outcome
