"""Public question intake endpoints."""

from datetime import datetime, timezone
from typing import Annotated, Any, Generic, Optional, TypeVar

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, ConfigDict, StringConstraints
from pydantic.alias_generators import to_camel

from intake.app.core.logging import get_log_context, get_logger
from intake.app.middleware.rate_limit import RateLimitGuard, RateLimitPreset
from intake.app.middleware.request_id import get_request_id
from intake.app.services.knowledge_base import KnowledgeBase
from intake.app.services.triage import TriageOrchestrator

QuestionText = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=10, max_length=1000)
]
CategoryText = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=2, max_length=100)
]

T = TypeVar("T")


class ApiModel(BaseModel):
    """Models serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FilterQuestionRequest(BaseModel):
    question: QuestionText


class GenerateResponseRequest(BaseModel):
    question: QuestionText
    category: CategoryText


class MatchQuestionRequest(BaseModel):
    question: QuestionText
    category: Optional[CategoryText] = None


class TriageData(ApiModel):
    question: str
    category: str
    brief_answer: str
    source: str
    matched_entry_id: Optional[str] = None
    needs_professional_consultation: bool
    reasoning: str
    confidence: float
    complexity: str


class DetailedResponseData(ApiModel):
    question: str
    category: str
    response: str


class MatchData(ApiModel):
    question: str
    category: Optional[str] = None
    matched: bool
    entry_id: Optional[str] = None
    answer: Optional[str] = None


class SuccessResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T


router = APIRouter(prefix="/api", tags=["questions"])
logger = get_logger(__name__)

standard_rate_limit = RateLimitGuard(RateLimitPreset.STANDARD)
strict_rate_limit = RateLimitGuard(RateLimitPreset.STRICT)


def get_triage_orchestrator(request: Request) -> TriageOrchestrator:
    """Get the application's triage orchestrator as a FastAPI dependency."""
    return request.app.state.orchestrator


def get_knowledge_base_dependency(request: Request) -> KnowledgeBase:
    return request.app.state.knowledge_base


@router.post("/filter-question", response_model=SuccessResponse[TriageData])
async def filter_question(
    payload: FilterQuestionRequest,
    request: Request,
    response: Response,
    orchestrator: TriageOrchestrator = Depends(get_triage_orchestrator),
) -> SuccessResponse[TriageData]:
    """Classify a legal question and return a curated or generated answer."""
    standard_rate_limit(request, response)

    result = await orchestrator.triage(payload.question)

    return SuccessResponse[TriageData](
        data=TriageData(
            question=payload.question,
            category=result.category,
            brief_answer=result.answer_text,
            source=result.source.value,
            matched_entry_id=result.matched_entry_id,
            needs_professional_consultation=result.needs_escalation,
            reasoning=result.reasoning,
            confidence=result.confidence,
            complexity=result.complexity,
        )
    )


@router.post("/generate-response", response_model=SuccessResponse[DetailedResponseData])
async def generate_response(
    payload: GenerateResponseRequest,
    request: Request,
    response: Response,
    orchestrator: TriageOrchestrator = Depends(get_triage_orchestrator),
) -> SuccessResponse[DetailedResponseData]:
    """Generate a detailed answer for a question in a given category."""
    strict_rate_limit(request, response)

    answer = await orchestrator.detailed_answer(payload.question, payload.category)

    return SuccessResponse[DetailedResponseData](
        data=DetailedResponseData(
            question=payload.question,
            category=payload.category,
            response=answer,
        )
    )


@router.post("/match-question", response_model=SuccessResponse[MatchData])
async def match_question(
    payload: MatchQuestionRequest,
    request: Request,
    response: Response,
    orchestrator: TriageOrchestrator = Depends(get_triage_orchestrator),
) -> SuccessResponse[MatchData]:
    """Look a question up in the knowledge base only, without calling the AI."""
    standard_rate_limit(request, response)

    match = orchestrator.lookup(payload.question, payload.category)
    entry = match.entry

    logger.debug(
        "Local lookup",
        extra=get_log_context(
            request_id=get_request_id(request),
            category=match.category.value if match.category else None,
            matched_entry_id=entry.id if entry else None,
        ),
    )

    return SuccessResponse[MatchData](
        data=MatchData(
            question=payload.question,
            category=match.category.value if match.category else None,
            matched=entry is not None,
            entry_id=entry.id if entry else None,
            answer=entry.answer if entry else None,
        )
    )


@router.get("/health")
async def health(
    knowledge_base: KnowledgeBase = Depends(get_knowledge_base_dependency),
) -> dict[str, Any]:
    """Liveness check with knowledge base metadata."""
    return {
        "success": True,
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "knowledge_base": {
            "version": knowledge_base.version,
            "entries": len(knowledge_base),
        },
    }
