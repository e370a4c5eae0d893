"""
candidates.py

Canonical candidate record plus the merge boundary of the pipeline.

TMDB returns two shapes for list entries: movies carry `title`/`release_date`,
series carry `name`/`first_air_date`. `normalize_item` maps both onto one
`Candidate`; nothing downstream looks at the raw shape again.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

MEDIA_TYPES = ("movie", "tv")

# Candidates with more votes than this survive the thematic keyword filter
RELEVANCE_MIN_VOTES = 200


@dataclass
class Candidate:
    id: int
    title: str = ""
    overview: str = ""
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    release_date: Optional[str] = None
    vote_average: float = 0.0
    vote_count: int = 0
    popularity: float = 0.0
    genre_ids: List[int] = field(default_factory=list)
    media_type: str = "movie"
    strategy: Optional[str] = None
    match_score: float = 0.0
    vibe_score: int = 0
    match_reason: Optional[str] = None


def resolve_media_type(raw: Dict[str, Any]) -> Optional[str]:
    """Explicit `media_type` wins; otherwise a `first_air_date` field marks a series.

    Returns None for explicit non-title types such as `person`.
    """
    explicit = raw.get("media_type")
    if explicit:
        return explicit if explicit in MEDIA_TYPES else None
    return "tv" if "first_air_date" in raw else "movie"


def normalize_title_fields(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of a raw TMDB entry with `title` and `release_date` filled from series fields."""
    item = dict(raw)
    item["title"] = raw.get("title") or raw.get("name")
    item["release_date"] = raw.get("release_date") or raw.get("first_air_date")
    return item


def normalize_item(raw: Dict[str, Any], strategy: Optional[str] = None) -> Optional[Candidate]:
    if not isinstance(raw, dict) or raw.get("id") is None:
        return None
    media_type = resolve_media_type(raw)
    if media_type is None:
        return None
    try:
        tmdb_id = int(raw["id"])
    except (TypeError, ValueError):
        logger.debug(f"Skipping TMDB entry with non-numeric id: {raw.get('id')!r}")
        return None

    fields = normalize_title_fields(raw)
    return Candidate(
        id=tmdb_id,
        title=fields["title"] or "",
        overview=raw.get("overview") or "",
        poster_path=raw.get("poster_path"),
        backdrop_path=raw.get("backdrop_path"),
        release_date=fields["release_date"],
        vote_average=float(raw.get("vote_average") or 0.0),
        vote_count=int(raw.get("vote_count") or 0),
        popularity=float(raw.get("popularity") or 0.0),
        genre_ids=[int(g) for g in raw.get("genre_ids") or []],
        media_type=media_type,
        strategy=strategy or raw.get("strategy"),
    )


def merge_candidates(raw_items: Iterable[Dict[str, Any]], require_title: bool = False) -> List[Candidate]:
    """Normalize and deduplicate by id; the first occurrence wins.

    Strategy priority therefore comes from the order of `raw_items`.
    """
    seen: Dict[int, bool] = {}
    merged: List[Candidate] = []
    dropped = 0
    for raw in raw_items:
        candidate = normalize_item(raw)
        if candidate is None or (require_title and not candidate.title):
            dropped += 1
            continue
        if seen.get(candidate.id):
            continue
        seen[candidate.id] = True
        merged.append(candidate)
    if dropped:
        logger.debug(f"Dropped {dropped} unusable catalog entries during merge")
    return merged


def filter_relevant(candidates: List[Candidate], keywords: Iterable[str], min_votes: int = RELEVANCE_MIN_VOTES) -> List[Candidate]:
    """Keep candidates mentioning a thematic keyword, or popular enough to stay regardless."""
    terms = [k.lower() for k in keywords if k and k.strip()]
    if not terms:
        return list(candidates)

    def relevant(c: Candidate) -> bool:
        text = f"{c.title} {c.overview}".lower()
        return any(term in text for term in terms) or c.vote_count > min_votes

    return [c for c in candidates if relevant(c)]
