from typing import Any, Dict, Optional

import httpx

from intake.app.providers.base import BaseProvider


class OpenAICompatibleProvider(BaseProvider):
    """Provider for any OpenAI-compatible ``/chat/completions`` API.

    Works with OpenAI, DeepSeek and Gemini's OpenAI-compatible endpoint.
    If http_client is provided, it will be used for all requests (connection reuse).
    """

    name = "openai_compatible"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0
    ):
        super().__init__(base_url, api_key, model, http_client, timeout)

    async def chat_completion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send a non-streaming chat completion request.

        The configured model is used unless the payload names one.

        Raises:
            httpx.HTTPStatusError: If the API returns an error status
            httpx.HTTPError: On transport failures
        """
        url = self._get_endpoint_url("/chat/completions")
        body = {"model": self.model, **payload}

        async with self._client_context() as client:
            resp = await client.post(url, headers=self.headers, json=body)
            resp.raise_for_status()
            return resp.json()
