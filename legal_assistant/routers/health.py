"""
Health check endpoint.
"""
from fastapi import APIRouter, Depends
import logging

from legal_assistant.config import settings
from legal_assistant.dependencies.services import get_completion_service
from legal_assistant.models.schemas import HealthCheckResponse
from legal_assistant.services.completion import CompletionService
from legal_assistant.utils.helpers import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=HealthCheckResponse)
async def health_check(completion: CompletionService = Depends(get_completion_service)):
    """
    Health check endpoint to verify system status.

    The service stays usable without a completion provider (every analysis
    falls back to the rule-based analyzer), so a missing or unreachable
    provider reports ``degraded`` rather than an error.

    Returns:
        HealthCheckResponse with the provider status
    """
    if not completion.configured:
        llm_status = "not_configured"
    elif await completion.check_health():
        llm_status = "ok"
    else:
        logger.warning("Completion provider health check failed")
        llm_status = "error"

    return HealthCheckResponse(
        status="healthy" if llm_status == "ok" else "degraded",
        llm=llm_status,
        model=settings.OLLAMA_LLM_MODEL,
        timestamp=utc_now(),
    )
