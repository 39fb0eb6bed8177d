"""Language model gateway factory."""

from dostify.core.config import Settings
from dostify.services.llm.base import BaseLLMProvider


def get_llm_provider(settings: Settings) -> BaseLLMProvider:
    """Factory function that returns the gateway for the configured model endpoint."""
    from dostify.services.llm.pollinations import PollinationsGateway
    return PollinationsGateway(settings)
