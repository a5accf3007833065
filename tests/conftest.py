"""Shared fixtures for the intake test suite."""

from typing import Any, Dict
from unittest.mock import AsyncMock, Mock

import pytest

from intake.app.services.classifier import LegalClassifier
from intake.app.services.knowledge_base import (
    KnowledgeBase,
    KnowledgeEntry,
    LegalCategory,
    load_knowledge_base,
)
from intake.app.services.triage import TriageOrchestrator


@pytest.fixture(scope="session")
def knowledge_base() -> KnowledgeBase:
    """The packaged knowledge base dataset."""
    return load_knowledge_base()


@pytest.fixture
def classification_payload() -> Dict[str, Any]:
    """A well-formed classifier reply."""
    return {
        "category": "Laboral",
        "briefAnswer": "Respuesta generada por la IA.",
        "needsProfessionalConsultation": True,
        "reasoning": "Hay plazos legales en juego.",
        "confidence": 0.82,
        "complexity": "medium",
    }


@pytest.fixture
def stub_classifier(classification_payload) -> Mock:
    """Classifier double whose classify() returns ``classification_payload``."""
    classifier = Mock(spec=LegalClassifier)
    classifier.classify = AsyncMock(return_value=classification_payload)
    classifier.generate_detailed_answer = AsyncMock(return_value="Respuesta detallada.")
    return classifier


@pytest.fixture
def orchestrator(stub_classifier, knowledge_base) -> TriageOrchestrator:
    return TriageOrchestrator(stub_classifier, knowledge_base)


@pytest.fixture
def make_entry():
    """Factory for knowledge base entries."""
    def _make(
        entry_id: str,
        category: LegalCategory,
        question: str,
        keywords: list[str],
        answer: str = "Respuesta.",
    ) -> KnowledgeEntry:
        return KnowledgeEntry(
            id=entry_id,
            category=category,
            question=question,
            answer=answer,
            keywords=tuple(keywords),
        )
    return _make
