import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.services.llm_client import LLMClient, validate_json_response

logger = logging.getLogger(__name__)

ERAS = ("classic", "90s", "2000s", "modern")
INTENT_FIELDS = ("representative_titles", "search_queries", "genre_names", "era", "include_tv", "keywords")

SYSTEM_PROMPT = (
    "You are a master cinephile and industry expert. Your goal is to find movies and TV shows "
    "that specifically answer the user's question, even if the user doesn't know the titles. "
    "Return ONLY JSON."
)


class IntentParseError(Exception):
    """Raised when the LLM answer for intent expansion is not a usable JSON object."""

    def __init__(self, message: str, raw_output: str = ""):
        super().__init__(message)
        self.raw_output = raw_output


@dataclass
class Intent:
    representative_titles: List[str] = field(default_factory=list)
    search_queries: List[str] = field(default_factory=list)
    genre_names: List[str] = field(default_factory=list)
    era: Optional[str] = None
    include_tv: bool = False
    keywords: List[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, data: Any) -> "Intent":
        if not isinstance(data, dict):
            raise IntentParseError(f"Intent payload must be a JSON object, got {type(data).__name__}")
        if not any(k in data for k in INTENT_FIELDS):
            raise IntentParseError(f"Intent payload has none of the expected fields: {sorted(data)[:10]}")

        era = data.get("era")
        era = era.strip().lower() if isinstance(era, str) else None
        include_tv = data.get("include_tv")
        if isinstance(include_tv, str):
            include_tv = include_tv.strip().lower() == "true"
        return cls(
            representative_titles=_string_list(data.get("representative_titles")),
            search_queries=_string_list(data.get("search_queries")),
            genre_names=_string_list(data.get("genre_names")),
            era=era if era in ERAS else None,
            include_tv=bool(include_tv),
            keywords=_string_list(data.get("keywords")),
        )


def _string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


def build_messages(prompt: str) -> List[Dict[str, str]]:
    user = f"""Prompt: "{prompt}"

Return JSON with:
- representative_titles: string[] (5 specific movies/shows that BEST answer this exact prompt, e.g. ["The Social Network", "Silicon Valley", "Steve Jobs"])
- search_queries: string[] (3 general search terms, e.g. ["startup marketing", "user growth movie"])
- genre_names: string[]
- era: "classic" | "90s" | "2000s" | "modern" | null
- include_tv: boolean (true if series fit the prompt better)
- keywords: string[] (thematic tags for scoring, e.g. ["entrepreneur", "growth", "marketing"])"""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user},
    ]


class IntentExtractor:
    """
    Expands a free-text request into structured catalog queries.
    One LLM call, no retry and no fallback: a bad answer fails the prompt flow.
    """

    def __init__(self, llm: LLMClient):
        self.llm = llm

    async def expand(self, prompt: str) -> Intent:
        prompt_safe = prompt.strip()[:2000]
        logger.info(f"[IntentExtractor] Expanding prompt (len={len(prompt_safe)})")
        output = await self.llm.chat_json(build_messages(prompt_safe), temperature=0.2)

        data = validate_json_response(output, expected_structure="object")
        if data is None:
            raise IntentParseError("LLM returned invalid JSON for intent expansion", raw_output=output[:500])
        intent = Intent.from_payload(data)
        logger.info(
            f"[IntentExtractor] titles={len(intent.representative_titles)} queries={len(intent.search_queries)} "
            f"genres={intent.genre_names} era={intent.era} include_tv={intent.include_tv}"
        )
        return intent
