from fastapi import APIRouter, Depends, HTTPException
from typing import List
import logging

from app.schemas import CandidateResponse, PromptRequest, QuizAnswers
from app.services.ai_engine.intent_extractor import IntentParseError
from app.services.candidate_provider import CatalogUnavailableError
from app.services.llm_client import LLMError, LLMNotConfiguredError
from app.services.recommendations import RecommendationService, get_recommendation_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/quiz", response_model=List[CandidateResponse])
async def quiz_recommendations(
    answers: QuizAnswers,
    service: RecommendationService = Depends(get_recommendation_service),
):
    """
    Ranked titles for quiz answers.

    Strategy failures and AI re-rank failures degrade the result instead of
    failing the request; an empty list means "no matches". Only when every
    catalog strategy fails is the request answered with 502.
    """
    try:
        return await service.recommend_from_quiz(answers)
    except CatalogUnavailableError as e:
        logger.error(f"Quiz recommendations: {e} ({', '.join(e.failed)})")
        raise HTTPException(status_code=502, detail="Movie catalog is unavailable, please retry")
    except Exception as e:
        logger.error(f"Quiz recommendations failed: {e}")
        raise HTTPException(status_code=500, detail=f"Recommendations failed: {str(e)}")


@router.post("/prompt", response_model=List[CandidateResponse])
async def prompt_recommendations(
    body: PromptRequest,
    service: RecommendationService = Depends(get_recommendation_service),
):
    """Ranked titles for a free-text prompt, expanded into catalog queries by the LLM."""
    try:
        return await service.recommend_from_prompt(body.prompt)
    except CatalogUnavailableError as e:
        logger.error(f"Prompt recommendations: {e} ({', '.join(e.failed)})")
        raise HTTPException(status_code=502, detail="Movie catalog is unavailable, please retry")
    except LLMNotConfiguredError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except IntentParseError as e:
        logger.error(f"Intent expansion returned unusable output: {e}")
        raise HTTPException(status_code=502, detail=f"Could not understand the AI response: {str(e)}")
    except LLMError as e:
        raise HTTPException(status_code=502, detail=f"AI service error: {str(e)}")
    except Exception as e:
        logger.error(f"Prompt recommendations failed: {e}")
        raise HTTPException(status_code=500, detail=f"Recommendations failed: {str(e)}")
