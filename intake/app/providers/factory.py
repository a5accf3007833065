"""Provider selection from settings."""

from typing import Optional

import httpx

from intake.app.core.config import Settings, settings
from intake.app.core.logging import get_logger
from intake.app.providers.base import BaseProvider
from intake.app.providers.mock import MockProvider
from intake.app.providers.openai_compatible import OpenAICompatibleProvider

logger = get_logger(__name__)


def create_provider(
    http_client: Optional[httpx.AsyncClient] = None,
    config: Settings = settings,
) -> BaseProvider:
    """Create the classifier's AI provider.

    Returns the mock provider when INTAKE_MOCK_PROVIDER is set. A real
    provider without an API key is still returned; the classifier reports
    it as unconfigured on every call.
    """
    if config.mock_provider:
        logger.info("Using mock AI provider")
        return MockProvider(http_client=http_client)

    if not config.llm_api_key:
        logger.warning("LLM_API_KEY not configured. AI classification will be unavailable.")

    return OpenAICompatibleProvider(
        base_url=config.llm_base_url,
        api_key=config.llm_api_key,
        model=config.llm_model,
        http_client=http_client,
        timeout=config.classifier_timeout,
    )
