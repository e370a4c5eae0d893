"""
fit_scoring.py

Deterministic pre-AI ranking. Pure functions, no I/O.

match_score = genre overlap (up to 30) + provenance bonus (seed 40, underrated 20)
              + quality (vote_average * 1.5 + popularity / 1000, capped at 20)

Runtime preference is intentionally not a term here: discover/trending list
entries carry no runtime, so there is nothing reliable to score against.
"""
import math
from typing import Iterable, List, Optional

from app.services.candidates import Candidate

GENRE_WEIGHT = 30.0
STRATEGY_BONUS = {
    "seed": 40.0,
    "underrated": 20.0,
}
QUALITY_CAP = 20.0
VIBE_OFFSET = 40
VIBE_CAP = 98


def genre_overlap(candidate: Candidate, genres: Iterable[int]) -> float:
    requested = list(genres or [])
    if not requested:
        return 0.0
    item_genres = set(candidate.genre_ids)
    matched = sum(1 for g in requested if g in item_genres)
    return (matched / len(requested)) * GENRE_WEIGHT


def quality(candidate: Candidate) -> float:
    return min(candidate.vote_average * 1.5 + candidate.popularity / 1000, QUALITY_CAP)


def score_candidate(candidate: Candidate, genres: Iterable[int]) -> float:
    return genre_overlap(candidate, genres) + STRATEGY_BONUS.get(candidate.strategy or "", 0.0) + quality(candidate)


def initial_vibe(match_score: float) -> int:
    # Half-up rounding; Python's round() would send 72.5 to 72
    return int(math.floor(min(match_score + VIBE_OFFSET, VIBE_CAP) + 0.5))


def apply_heuristic_scores(candidates: List[Candidate], genres: Iterable[int]) -> List[Candidate]:
    """Score candidates in place and return them in their original order."""
    genres = list(genres or [])
    for candidate in candidates:
        candidate.match_score = score_candidate(candidate, genres)
        candidate.vibe_score = initial_vibe(candidate.match_score)
    return candidates


def rank_candidates(candidates: List[Candidate], genres: Iterable[int], limit: Optional[int] = None) -> List[Candidate]:
    """Score, sort descending by match_score (stable) and optionally truncate."""
    scored = apply_heuristic_scores(candidates, genres)
    ranked = sorted(scored, key=lambda c: c.match_score, reverse=True)
    return ranked[:limit] if limit is not None else ranked
