"""AI classifier client.

Sends a question to the configured chat completion provider and returns the
raw JSON object found in the reply. Validation of that payload belongs to the
triage orchestrator. Every failure surfaces as ClassificationError; calls are
never retried.
"""

import asyncio
import json
import re
from typing import Any, Dict, Optional

import httpx

from intake.app.core.config import settings
from intake.app.core.logging import get_logger
from intake.app.exceptions import ClassificationError
from intake.app.providers.base import BaseProvider
from intake.app.services.knowledge_base import LegalCategory

logger = get_logger(__name__)

_CATEGORY_NAMES = ", ".join(c.value for c in LegalCategory)

CLASSIFIER_SYSTEM_PROMPT = f"""Eres el asistente legal virtual de un bufete especializado en derecho español.

TU MISIÓN:
- Proporcionar una orientación legal básica inicial
- Identificar correctamente la categoría legal
- Evaluar si el caso necesita consulta profesional personalizada

CATEGORÍAS DISPONIBLES: {_CATEGORY_NAMES}

CRITERIOS PARA RECOMENDAR CONSULTA PROFESIONAL:
- Casos que involucren cantidades de dinero
- Situaciones con plazos legales (prescripción, recursos, etc.)
- Conflictos interpersonales (divorcios, herencias, despidos)
- Trámites que requieran documentación legal
- Cualquier caso donde haya riesgo legal o económico
- Solo responder gratis: preguntas teóricas generales muy simples

FORMATO DE RESPUESTA JSON (OBLIGATORIO):
{{
  "category": "{'|'.join(c.value for c in LegalCategory)}",
  "briefAnswer": "Respuesta orientativa breve (máx 150 palabras). Menciona que para su caso específico necesita consulta personalizada.",
  "needsProfessionalConsultation": true,
  "reasoning": "Por qué este caso requiere un abogado profesional",
  "confidence": 0.0,
  "complexity": "simple|medium|complex"
}}

IMPORTANTE:
- Sé CONSERVADOR: la mayoría de casos deben ir a consulta profesional
- La respuesta breve es solo una orientación, NO asesoramiento legal completo
- Menciona siempre la importancia de consultar con un abogado
"""

DETAILED_ANSWER_PROMPT = """Eres un abogado experto en derecho {category}.
Proporciona una respuesta clara, concisa y útil (máximo 300 palabras) a la siguiente pregunta legal.
Sé profesional pero accesible para el público general."""

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def extract_json_object(content: str) -> Dict[str, Any]:
    """Parse the outermost JSON object embedded in a model reply.

    Raises:
        ClassificationError: If no object is present or it is not valid JSON
    """
    match = _JSON_OBJECT.search(content)
    if not match:
        raise ClassificationError("No JSON found in classifier response")
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ClassificationError("Classifier response is not valid JSON") from e
    if not isinstance(parsed, dict):
        raise ClassificationError("Classifier response is not a JSON object")
    return parsed


def _message_content(response: Dict[str, Any]) -> str:
    try:
        content = response["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise ClassificationError("Malformed chat completion response") from e
    if not isinstance(content, str):
        raise ClassificationError("Malformed chat completion response")
    return content


class LegalClassifier:
    """Client for the external AI classifier.

    Attributes:
        provider: Chat completion provider
        timeout: Upper bound in seconds for one call, including connection time
    """

    def __init__(
        self,
        provider: BaseProvider,
        timeout: Optional[float] = None,
        temperature: Optional[float] = None,
    ):
        self.provider = provider
        self.timeout = timeout if timeout is not None else settings.classifier_timeout
        self.temperature = temperature if temperature is not None else settings.llm_temperature

    async def _complete(self, payload: Dict[str, Any]) -> str:
        if not self.provider.is_configured:
            raise ClassificationError(
                "AI classifier is not configured. Please set LLM_API_KEY."
            )

        try:
            response = await asyncio.wait_for(
                self.provider.chat_completion(payload), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Classifier call timed out after {self.timeout}s")
            raise ClassificationError("AI classifier timed out") from e
        except httpx.HTTPStatusError as e:
            logger.error(f"Classifier returned HTTP {e.response.status_code}")
            raise ClassificationError("AI classifier request failed") from e
        except httpx.HTTPError as e:
            logger.error(f"Classifier transport error: {e}")
            raise ClassificationError("AI classifier request failed") from e
        except ValueError as e:
            # resp.json() on a non-JSON body
            logger.error(f"Classifier returned an unreadable body: {e}")
            raise ClassificationError("AI classifier returned an unreadable response") from e
        except Exception as e:
            logger.exception(f"Unexpected classifier error: {e}")
            raise ClassificationError() from e

        return _message_content(response)

    async def classify(self, question: str) -> Dict[str, Any]:
        """Ask the model to classify a question.

        Returns:
            The untyped JSON object from the model reply

        Raises:
            ClassificationError: On any failure, including an empty question
        """
        if not question or not question.strip():
            raise ClassificationError("Question cannot be empty")

        content = await self._complete({
            "messages": [
                {"role": "system", "content": CLASSIFIER_SYSTEM_PROMPT},
                {"role": "user", "content": f'Pregunta del cliente: "{question}"'},
            ],
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
        })
        if not content.strip():
            raise ClassificationError("Empty response from AI classifier")

        return extract_json_object(content)

    async def generate_detailed_answer(self, question: str, category: str) -> str:
        """Ask the model for a longer answer to a question in ``category``.

        Returns:
            The model's reply, possibly empty

        Raises:
            ClassificationError: If the call cannot complete
        """
        return await self._complete({
            "messages": [
                {"role": "system", "content": DETAILED_ANSWER_PROMPT.format(category=category)},
                {"role": "user", "content": f"Pregunta: {question}"},
            ],
            "temperature": self.temperature,
        })
