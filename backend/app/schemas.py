"""
schemas.py

Pydantic request/response payloads for the recommendation API.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Optional


class QuizAnswers(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    genres: List[int] = Field(default_factory=list)
    era: Optional[str] = None
    mood: Optional[str] = None
    pacing: Optional[str] = None
    runtime: Optional[Literal["short", "standard", "long"]] = None
    seed_movie_id: Optional[str] = Field(None, alias="seedMovieId", pattern=r"^(movie|tv)-\d+$")


class PromptRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=2000)


class CandidateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    overview: str = ""
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    release_date: Optional[str] = None
    vote_average: float = 0.0
    vote_count: int = 0
    popularity: float = 0.0
    genre_ids: List[int] = Field(default_factory=list)
    media_type: Literal["movie", "tv"] = "movie"
    strategy: Optional[str] = None
    match_score: float = Field(0.0, serialization_alias="matchScore")
    vibe_score: int = Field(0, serialization_alias="vibeScore")
    match_reason: Optional[str] = Field(None, serialization_alias="matchReason")
