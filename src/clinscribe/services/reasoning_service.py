import logging
from typing import Dict, Type
from ..providers.base import ReasoningProvider
from ..providers.reasoning.gemini_rest import GeminiRESTProvider
from ..providers.reasoning.gemini_sdk import GeminiSDKProvider
from ..providers.reasoning.mock_reasoning import MockReasoningProvider
from ..models.reasoning import ReasoningRequest, ReasoningResult
from ..config.settings import Settings

logger = logging.getLogger(__name__)


class ReasoningService(ReasoningProvider):
    """Reasoning service with provider abstraction.

    One instance is constructed per application and injected into every
    stage; there is no process-wide client.
    """

    PROVIDERS: Dict[str, Type[ReasoningProvider]] = {
        "gemini": GeminiRESTProvider,
        "gemini_sdk": GeminiSDKProvider,
        "mock": MockReasoningProvider,
    }

    def __init__(self, settings: Settings):
        self.settings = settings
        self.provider = self._create_provider()

    def _create_provider(self) -> ReasoningProvider:
        """Factory method to create reasoning provider from config."""
        provider_name = self.settings.reasoning.provider

        if provider_name not in self.PROVIDERS:
            raise ValueError(f"Unknown reasoning provider: {provider_name}")

        provider_class = self.PROVIDERS[provider_name]

        if provider_name == "gemini":
            if not self.settings.gemini_api_key:
                raise ValueError("Gemini configuration not found (set GEMINI_API_KEY)")
            return provider_class(
                api_key=self.settings.gemini_api_key,
                timeout=self.settings.reasoning.timeout_seconds,
                max_output_tokens=self.settings.reasoning.max_output_tokens
            )

        elif provider_name == "gemini_sdk":
            if not self.settings.gemini_api_key:
                raise ValueError("Gemini configuration not found (set GEMINI_API_KEY)")
            return provider_class(api_key=self.settings.gemini_api_key)

        elif provider_name == "mock":
            return provider_class()

        raise ValueError(f"Provider initialization not implemented: {provider_name}")

    async def generate(self, request: ReasoningRequest) -> ReasoningResult:
        """Run one reasoning request through the configured provider."""
        return await self.provider.generate(request)

    async def aclose(self) -> None:
        await self.provider.aclose()
