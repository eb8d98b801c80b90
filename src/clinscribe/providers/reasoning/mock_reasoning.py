import asyncio
import json
import logging
from typing import Any, List, Optional
from ..base import ReasoningProvider
from ...models.reasoning import (
    OutputContract,
    ReasoningRequest,
    ReasoningResult,
    StructuredResult,
    TextResult,
)
from .response_parser import parse_json_response

logger = logging.getLogger(__name__)


class MockReasoningProvider(ReasoningProvider):
    """Mock reasoning provider for testing without the Gemini API.

    Scripted replies are consumed in order. A reply may be a string (raw model
    output), a list/dict (already-structured output) or an exception instance
    to raise. Once the script is exhausted the provider simulates plausible
    responses.
    """

    _DIALOGUE = [
        {"speaker": "Doctor", "text": "Hello, how can I help you today?"},
        {"speaker": "Patient", "text": "I have had fever and a headache for three days."},
        {"speaker": "Doctor", "text": "Take paracetamol 500mg twice daily orally and drink plenty of fluids."},
    ]

    def __init__(self, replies: Optional[List[Any]] = None, delay: float = 0.0, **kwargs):
        self.replies = list(replies or [])
        self.delay = delay
        self.requests: List[ReasoningRequest] = []
        if not self.replies:
            logger.info("⚠️  Using MOCK reasoning (simulated Gemini)")

    @property
    def call_count(self) -> int:
        return len(self.requests)

    async def generate(self, request: ReasoningRequest) -> ReasoningResult:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.requests.append(request)

        if self.replies:
            reply = self.replies.pop(0)
        else:
            reply = self._simulate(request)

        if isinstance(reply, BaseException):
            raise reply

        if request.output is OutputContract.JSON_SCHEMA:
            if isinstance(reply, str):
                return StructuredResult(data=parse_json_response(reply), raw_text=reply)
            return StructuredResult(data=reply, raw_text=json.dumps(reply))

        if not isinstance(reply, str):
            reply = json.dumps(reply)
        return TextResult(text=reply)

    def _simulate(self, request: ReasoningRequest) -> Any:
        if request.output is OutputContract.JSON_SCHEMA:
            if request.response_schema.get("type") == "ARRAY":
                return list(self._DIALOGUE)
            medications = []
            if "paracetamol" in request.text.lower():
                medications.append({
                    "name": "Paracetamol",
                    "dosage": "500mg",
                    "frequency": "Twice daily",
                    "route": "Oral"
                })
            return {"medications": medications, "advice": ["Drink plenty of fluids"]}

        if "## Subjective" in request.system_instruction:
            return (
                "## Subjective\n- Fever and headache for three days\n"
                "## Objective\n"
                "## Assessment\n- Suspected viral fever"
            )

        # Cleanup and summaries: echo the transcript body back unchanged
        body = request.text
        return body.split(":\n", 1)[1] if ":\n" in body else body
