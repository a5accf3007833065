"""Question triage: classify, match against the knowledge base, compose.

Each call is an independent pipeline with a single suspension point, the AI
classifier call. A curated knowledge base answer always wins over the
classifier's generated answer.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from intake.app.core.logging import get_log_context, get_logger
from intake.app.exceptions import ClassificationError
from intake.app.services.category_detector import detect_category
from intake.app.services.classifier import LegalClassifier
from intake.app.services.knowledge_base import (
    DEFAULT_CATEGORY,
    KnowledgeBase,
    KnowledgeEntry,
    LegalCategory,
)
from intake.app.services.matcher import find_best_match

logger = get_logger(__name__)

FALLBACK_ANSWER = (
    "Para evaluar correctamente su situación, necesitamos analizar los detalles "
    "específicos de su caso en una consulta personalizada."
)
NO_DETAILED_ANSWER = "No se ha podido generar una respuesta."


class AnswerSource(str, Enum):
    CURATED = "curated"
    GENERATED = "generated"


class Classification(BaseModel):
    """Validated classifier payload.

    Types are checked strictly: a reply that does not have this shape is a
    classification failure, not something to guess around. The one exception
    is a null brief answer, which counts as blank.
    """
    model_config = ConfigDict(strict=True, populate_by_name=True, extra="ignore")

    category: str
    brief_answer: str = Field(default="", alias="briefAnswer")
    needs_professional_consultation: bool = Field(alias="needsProfessionalConsultation")
    reasoning: str
    confidence: float = Field(ge=0.0, le=1.0)
    complexity: Literal["simple", "medium", "complex"]

    @field_validator("brief_answer", mode="before")
    @classmethod
    def null_answer_is_blank(cls, v: Optional[str]) -> Any:
        return "" if v is None else v


@dataclass(frozen=True)
class TriageResult:
    """Outcome of triaging one question."""
    category: str
    answer_text: str
    source: AnswerSource
    needs_escalation: bool
    confidence: float
    complexity: str
    reasoning: str
    matched_entry_id: Optional[str] = None


@dataclass(frozen=True)
class LocalMatch:
    """Outcome of a knowledge-base-only lookup."""
    category: Optional[LegalCategory]
    entry: Optional[KnowledgeEntry]


def parse_classification(payload: Dict[str, Any]) -> Classification:
    """Validate an untyped classifier payload.

    An unknown category is replaced by the default category; the classifier's
    category is advisory only.

    Raises:
        ClassificationError: If the payload does not have the expected shape
    """
    try:
        classification = Classification.model_validate(payload)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ClassificationError(
            f"Classifier response has an unexpected shape ({fields})"
        ) from e

    if LegalCategory.parse(classification.category) is None:
        logger.warning(
            f"Classifier returned unknown category {classification.category!r}, "
            f"using {DEFAULT_CATEGORY.value}"
        )
        classification = classification.model_copy(
            update={"category": DEFAULT_CATEGORY.value}
        )
    return classification


class TriageOrchestrator:
    """Compose the AI classifier, category detector and matcher.

    Holds no per-request state; one instance serves all requests.
    """

    def __init__(self, classifier: LegalClassifier, knowledge_base: KnowledgeBase):
        self.classifier = classifier
        self.knowledge_base = knowledge_base

    async def triage(self, question_text: str) -> TriageResult:
        """Classify a question and pick the answer to return.

        Raises:
            ClassificationError: If the classifier fails; the knowledge base
                is not consulted in that case
        """
        payload = await self.classifier.classify(question_text)
        classification = parse_classification(payload)

        entry = find_best_match(question_text, classification.category, self.knowledge_base)
        needs_escalation = classification.needs_professional_consultation

        if entry is not None:
            answer_text = entry.answer
            source = AnswerSource.CURATED
        else:
            answer_text = classification.brief_answer
            source = AnswerSource.GENERATED
            if not answer_text.strip():
                answer_text = FALLBACK_ANSWER
                needs_escalation = True

        logger.info(
            "Question triaged",
            extra=get_log_context(
                category=classification.category,
                source=source.value,
                matched_entry_id=entry.id if entry else None,
                needs_escalation=needs_escalation,
            ),
        )

        return TriageResult(
            category=classification.category,
            answer_text=answer_text,
            source=source,
            needs_escalation=needs_escalation,
            confidence=classification.confidence,
            complexity=classification.complexity,
            reasoning=classification.reasoning,
            matched_entry_id=entry.id if entry else None,
        )

    def lookup(
        self,
        question_text: str,
        category: Union[LegalCategory, str, None] = None,
    ) -> LocalMatch:
        """Match a question against the knowledge base without calling the AI.

        A missing or unknown category is guessed by the keyword detector.
        """
        resolved = LegalCategory.parse(category) or detect_category(question_text)
        if resolved is None:
            return LocalMatch(category=None, entry=None)
        return LocalMatch(
            category=resolved,
            entry=find_best_match(question_text, resolved, self.knowledge_base),
        )

    async def detailed_answer(self, question_text: str, category: str) -> str:
        """Generate a longer answer for a question in a caller-chosen category.

        Raises:
            ClassificationError: If the classifier call fails
        """
        answer = await self.classifier.generate_detailed_answer(question_text, category)
        return answer if answer.strip() else NO_DETAILED_ANSWER
