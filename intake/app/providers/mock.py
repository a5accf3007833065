"""Mock provider for development and testing.

Simulates classifier replies without making external API calls, so the
service can run without credentials.

Enable by setting environment variable:
    INTAKE_MOCK_PROVIDER=true
"""

import asyncio
import json
import random
import re
import time
import uuid
from typing import Any, Dict, Optional

from intake.app.providers.base import BaseProvider
from intake.app.services.category_detector import detect_category
from intake.app.services.knowledge_base import DEFAULT_CATEGORY

# The classifier quotes the question inside its user message
_QUOTED = re.compile(r'"([\s\S]*)"')


class MockProvider(BaseProvider):
    """Mock AI provider that returns simulated chat completions.

    Requests asking for a JSON object get a classification built from the
    keyword category detector; other requests get a short plain-text answer.

    Features:
    - Configurable response delay
    - Configurable failure rate for exercising error handling
    """

    name = "mock"

    def __init__(
        self,
        base_url: str = "http://mock.provider",
        api_key: str = "mock-key",
        model: str = "mock-model",
        http_client: Optional[Any] = None,
        timeout: float = 60.0,
        min_delay: float = 0.0,
        max_delay: float = 0.0,
        failure_rate: float = 0.0,
    ):
        """Initialize the mock provider.

        Args:
            min_delay: Minimum response delay in seconds
            max_delay: Maximum response delay in seconds
            failure_rate: Probability of raising an error (0-1)
        """
        super().__init__(base_url, api_key, model, http_client, timeout)
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.failure_rate = failure_rate

    @staticmethod
    def _last_user_message(payload: Dict[str, Any]) -> str:
        for msg in reversed(payload.get("messages", [])):
            if msg.get("role") == "user":
                return msg.get("content", "")
        return ""

    def _generate_classification(self, message: str) -> str:
        quoted = _QUOTED.search(message)
        question = quoted.group(1) if quoted else message
        category = detect_category(question) or DEFAULT_CATEGORY
        return json.dumps({
            "category": category.value,
            "briefAnswer": (
                f"Su consulta parece de derecho {category.value}. "
                "Para su caso concreto le recomendamos una consulta personalizada."
            ),
            "needsProfessionalConsultation": True,
            "reasoning": "Respuesta simulada por el proveedor de pruebas.",
            "confidence": 0.5,
            "complexity": "medium",
        }, ensure_ascii=False)

    def _generate_content(self, payload: Dict[str, Any]) -> str:
        question = self._last_user_message(payload)
        response_format = payload.get("response_format") or {}
        if response_format.get("type") == "json_object":
            return self._generate_classification(question)
        return (
            "Esta es una respuesta simulada. Un abogado revisará los detalles "
            "de su consulta para ofrecerle orientación específica."
        )

    async def chat_completion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Return a mock chat completion response."""
        if self.max_delay > 0:
            await asyncio.sleep(random.uniform(self.min_delay, self.max_delay))

        if self.failure_rate and random.random() < self.failure_rate:
            raise RuntimeError("Simulated provider failure")

        return {
            "id": f"chatcmpl-{uuid.uuid4().hex[:24]}",
            "object": "chat.completion",
            "created": int(time.time()),
            "model": payload.get("model", self.model),
            "choices": [{
                "index": 0,
                "message": {
                    "role": "assistant",
                    "content": self._generate_content(payload),
                },
                "finish_reason": "stop",
            }],
        }
