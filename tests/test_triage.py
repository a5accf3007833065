"""Tests for the triage orchestrator."""

from unittest.mock import patch

import pytest

from intake.app.exceptions import ClassificationError
from intake.app.services.knowledge_base import LegalCategory
from intake.app.services.triage import (
    FALLBACK_ANSWER,
    NO_DETAILED_ANSWER,
    AnswerSource,
    parse_classification,
)

LABOR_QUESTION = "¿Puede mi empleador despedirme sin justa causa?"


class TestParseClassification:
    """Test classifier payload validation."""

    def test_valid_payload(self, classification_payload):
        classification = parse_classification(classification_payload)

        assert classification.category == "Laboral"
        assert classification.brief_answer == "Respuesta generada por la IA."
        assert classification.needs_professional_consultation is True
        assert classification.confidence == 0.82
        assert classification.complexity == "medium"

    def test_unknown_category_defaults_to_civil(self, classification_payload):
        classification_payload["category"] = "Tributario"
        assert parse_classification(classification_payload).category == "Civil"

    def test_missing_brief_answer_is_empty(self, classification_payload):
        del classification_payload["briefAnswer"]
        assert parse_classification(classification_payload).brief_answer == ""

    def test_null_brief_answer_is_empty(self, classification_payload):
        classification_payload["briefAnswer"] = None
        assert parse_classification(classification_payload).brief_answer == ""

    def test_extra_fields_ignored(self, classification_payload):
        classification_payload["notes"] = "ignored"
        assert parse_classification(classification_payload).category == "Laboral"

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("confidence", "high"),
            ("confidence", 1.5),
            ("confidence", -0.1),
            ("complexity", "hard"),
            ("needsProfessionalConsultation", "yes"),
            ("category", 3),
            ("briefAnswer", 5),
        ],
    )
    def test_wrong_shape_raises(self, classification_payload, field, value):
        classification_payload[field] = value
        with pytest.raises(ClassificationError):
            parse_classification(classification_payload)

    @pytest.mark.parametrize("field", ["category", "reasoning", "confidence", "complexity"])
    def test_missing_required_field_raises(self, classification_payload, field):
        del classification_payload[field]
        with pytest.raises(ClassificationError):
            parse_classification(classification_payload)


class TestTriage:
    """Test TriageOrchestrator.triage."""

    @pytest.mark.asyncio
    async def test_curated_answer_wins(self, orchestrator, knowledge_base):
        result = await orchestrator.triage(LABOR_QUESTION)

        expected = knowledge_base.entries_for("Laboral")[0]
        assert result.category == "Laboral"
        assert result.source is AnswerSource.CURATED
        assert result.matched_entry_id == expected.id == "laboral-1"
        assert result.answer_text == expected.answer
        assert result.needs_escalation is True

    @pytest.mark.asyncio
    async def test_curated_answer_keeps_escalation_flag(
        self, orchestrator, classification_payload
    ):
        classification_payload["needsProfessionalConsultation"] = False

        result = await orchestrator.triage(LABOR_QUESTION)

        assert result.source is AnswerSource.CURATED
        assert result.needs_escalation is False

    @pytest.mark.asyncio
    async def test_generated_answer_without_match(self, orchestrator, classification_payload):
        classification_payload["needsProfessionalConsultation"] = False

        result = await orchestrator.triage("Tengo una duda muy concreta sobre mi jefe")

        assert result.source is AnswerSource.GENERATED
        assert result.answer_text == "Respuesta generada por la IA."
        assert result.matched_entry_id is None
        assert result.needs_escalation is False
        assert result.confidence == 0.82
        assert result.complexity == "medium"
        assert result.reasoning == "Hay plazos legales en juego."

    @pytest.mark.asyncio
    @pytest.mark.parametrize("brief_answer", ["", "   ", None, "missing"])
    async def test_blank_answer_falls_back_and_escalates(
        self, orchestrator, classification_payload, brief_answer
    ):
        classification_payload["needsProfessionalConsultation"] = False
        if brief_answer == "missing":
            del classification_payload["briefAnswer"]
        else:
            classification_payload["briefAnswer"] = brief_answer

        result = await orchestrator.triage("Tengo una duda muy concreta sobre mi jefe")

        assert result.answer_text == FALLBACK_ANSWER
        assert result.source is AnswerSource.GENERATED
        assert result.needs_escalation is True

    @pytest.mark.asyncio
    async def test_unknown_category_matches_against_civil(
        self, orchestrator, classification_payload
    ):
        classification_payload["category"] = "Tributario"

        result = await orchestrator.triage("daños y perjuicios")

        assert result.category == "Civil"
        assert result.matched_entry_id == "civil-1"

    @pytest.mark.asyncio
    async def test_classifier_failure_skips_matching(self, orchestrator, stub_classifier):
        stub_classifier.classify.side_effect = ClassificationError("timeout")

        with patch("intake.app.services.triage.find_best_match") as matcher:
            with pytest.raises(ClassificationError):
                await orchestrator.triage(LABOR_QUESTION)

        matcher.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_payload_raises(self, orchestrator, classification_payload):
        classification_payload["confidence"] = "high"

        with pytest.raises(ClassificationError):
            await orchestrator.triage(LABOR_QUESTION)

    @pytest.mark.asyncio
    async def test_question_forwarded_to_classifier(self, orchestrator, stub_classifier):
        await orchestrator.triage(LABOR_QUESTION)
        stub_classifier.classify.assert_awaited_once_with(LABOR_QUESTION)


class TestLookup:
    """Test TriageOrchestrator.lookup."""

    def test_with_category(self, orchestrator, stub_classifier):
        match = orchestrator.lookup(LABOR_QUESTION, "Laboral")

        assert match.category is LegalCategory.LABOR
        assert match.entry.id == "laboral-1"
        stub_classifier.classify.assert_not_called()

    def test_detects_category(self, orchestrator):
        match = orchestrator.lookup("daños y perjuicios")

        assert match.category is LegalCategory.CIVIL
        assert match.entry.id == "civil-1"

    def test_unknown_category_is_detected(self, orchestrator):
        match = orchestrator.lookup("daños y perjuicios", "Tributario")
        assert match.category is LegalCategory.CIVIL

    def test_undetectable_category(self, orchestrator):
        match = orchestrator.lookup("Hola, ¿qué tal?")
        assert match.category is None
        assert match.entry is None

    def test_category_without_match(self, orchestrator):
        match = orchestrator.lookup("daños y perjuicios", LegalCategory.PENAL)
        assert match.category is LegalCategory.PENAL
        assert match.entry is None


class TestDetailedAnswer:
    """Test TriageOrchestrator.detailed_answer."""

    @pytest.mark.asyncio
    async def test_returns_answer(self, orchestrator, stub_classifier):
        answer = await orchestrator.detailed_answer("¿Puedo recurrir?", "Administrativo")

        assert answer == "Respuesta detallada."
        stub_classifier.generate_detailed_answer.assert_awaited_once_with(
            "¿Puedo recurrir?", "Administrativo"
        )

    @pytest.mark.asyncio
    async def test_blank_answer(self, orchestrator, stub_classifier):
        stub_classifier.generate_detailed_answer.return_value = "  "
        assert await orchestrator.detailed_answer("¿Puedo recurrir?", "Penal") == NO_DETAILED_ANSWER
