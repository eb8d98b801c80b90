"""
Gemini REST provider - reasoning requests over the generateContent endpoint.

Sends system instructions, text and inline binary parts (audio segments) in a
single request. Schema-constrained calls use responseMimeType/responseSchema.
No additional SDK required - uses httpx directly.
"""

import base64
import logging
from typing import Any, Dict, List
import httpx
from ..base import ContractViolation, ReasoningProvider, ServiceError
from ...models.reasoning import (
    BlobPart,
    OutputContract,
    ReasoningRequest,
    ReasoningResult,
    StructuredResult,
    TextResult,
)
from .response_parser import parse_json_response

logger = logging.getLogger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class GeminiRESTProvider(ReasoningProvider):
    """Reasoning provider using the Google Gemini REST API."""

    def __init__(
        self,
        api_key: str,
        timeout: float = 60.0,
        max_output_tokens: int = 8192,
        client: httpx.AsyncClient = None
    ):
        self.api_key = api_key
        self.max_output_tokens = max_output_tokens
        self.client = client or httpx.AsyncClient(timeout=timeout)
        logger.info(f"Initialized Gemini REST provider (timeout={timeout}s)")

    async def generate(self, request: ReasoningRequest) -> ReasoningResult:
        url = f"{GEMINI_API_URL}/{request.model}:generateContent"

        try:
            response = await self.client.post(
                url,
                params={"key": self.api_key},
                json=self._build_payload(request)
            )
        except httpx.HTTPError as e:
            logger.error(f"Gemini request failed: {e}")
            raise ServiceError(f"Gemini request failed: {e}")

        if response.status_code != 200:
            error_text = response.text[:500]
            logger.error(f"Gemini API error {response.status_code}: {error_text}")
            raise ServiceError(f"Gemini API error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise ServiceError(f"Gemini returned a non-JSON body: {e}")

        content = self._extract_text(data)
        logger.debug(f"Gemini returned {len(content)} characters for {request.model}")

        if request.output is OutputContract.JSON_SCHEMA:
            return StructuredResult(data=parse_json_response(content), raw_text=content)
        return TextResult(text=content)

    def _build_payload(self, request: ReasoningRequest) -> Dict[str, Any]:
        parts: List[Dict[str, Any]] = []
        for part in request.parts:
            if isinstance(part, BlobPart):
                parts.append({
                    "inline_data": {
                        "mime_type": part.mime_type,
                        "data": base64.b64encode(part.data).decode("utf-8")
                    }
                })
            else:
                parts.append({"text": part.text})

        generation_config: Dict[str, Any] = {
            "temperature": request.temperature,
            "maxOutputTokens": self.max_output_tokens
        }
        if request.output is OutputContract.JSON_SCHEMA:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = request.response_schema

        return {
            "systemInstruction": {"parts": [{"text": request.system_instruction}]},
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": generation_config
        }

    @staticmethod
    def _extract_text(data: Dict[str, Any]) -> str:
        try:
            candidates = data.get("candidates", [])
            if not candidates:
                logger.warning("Gemini returned no candidates")
                return ""

            parts = candidates[0].get("content", {}).get("parts", [])
            if not parts:
                logger.warning("Gemini returned no parts")
                return ""

            return "".join(part.get("text", "") for part in parts).strip()
        except (AttributeError, KeyError, TypeError, IndexError) as e:
            raise ContractViolation(f"Unexpected Gemini response shape: {e}")

    async def aclose(self) -> None:
        await self.client.aclose()
