import logging
from typing import Any, Dict, List
import google.generativeai as genai
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


class GeminiSDKProvider(ReasoningProvider):
    """Google Gemini reasoning provider built on the google-generativeai SDK."""

    def __init__(self, api_key: str):
        genai.configure(api_key=api_key)
        logger.info("Initialized Gemini SDK provider")

    async def generate(self, request: ReasoningRequest) -> ReasoningResult:
        generation_config: Dict[str, Any] = {"temperature": request.temperature}
        if request.output is OutputContract.JSON_SCHEMA:
            generation_config["response_mime_type"] = "application/json"
            generation_config["response_schema"] = request.response_schema

        model = genai.GenerativeModel(
            model_name=request.model,
            system_instruction=request.system_instruction,
            generation_config=generation_config
        )

        contents: List[Any] = []
        for part in request.parts:
            if isinstance(part, BlobPart):
                contents.append({"mime_type": part.mime_type, "data": part.data})
            else:
                contents.append(part.text)

        try:
            response = await model.generate_content_async(contents)
            content = response.text or ""
        except Exception as e:
            logger.error(f"Gemini SDK request failed: {str(e)}")
            raise ServiceError(f"Gemini SDK request failed: {str(e)}")

        if request.output is OutputContract.JSON_SCHEMA:
            try:
                return StructuredResult(data=parse_json_response(content), raw_text=content)
            except ContractViolation:
                logger.error(f"Gemini SDK returned unparsable JSON: {content[:200]}")
                raise
        return TextResult(text=content.strip())
