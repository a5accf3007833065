"""AI provider abstraction for the intake service."""

from intake.app.providers.base import BaseProvider
from intake.app.providers.factory import create_provider
from intake.app.providers.mock import MockProvider
from intake.app.providers.openai_compatible import OpenAICompatibleProvider

__all__ = [
    "BaseProvider",
    "MockProvider",
    "OpenAICompatibleProvider",
    "create_provider",
]
