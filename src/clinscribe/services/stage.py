"""
Common plumbing for pipeline stages backed by the reasoning service.

Each stage declares how it degrades when the service fails or its output
breaks the stage contract:

- DROP_SEGMENT: the stage result is ``None`` and the caller discards it.
- FAIL_OPEN: the stage passes its input through unmodified.
- FAIL_VISIBLE: the stage returns its fixed sentinel text.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional
from ..models.reasoning import (
    ContentPart,
    OutputContract,
    ReasoningRequest,
    ReasoningResult,
    StructuredResult,
    TextResult,
)
from ..providers.base import ContractViolation, ReasoningProvider
from ..security.audit_logger import AuditLogger

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"


class FailurePolicy(str, Enum):
    DROP_SEGMENT = "drop_segment"
    FAIL_OPEN = "fail_open"
    FAIL_VISIBLE = "fail_visible"


class PipelineStage:
    """Base class for a single reasoning-service stage."""

    name: str = "stage"
    failure_policy: FailurePolicy = FailurePolicy.FAIL_VISIBLE
    sentinel: Optional[str] = None

    def __init__(
        self,
        provider: ReasoningProvider,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.0,
        audit: Optional[AuditLogger] = None
    ):
        self.provider = provider
        self.model = model
        self.temperature = temperature
        self.audit = audit or AuditLogger()

    async def _request_text(self, system_instruction: str, parts: List[ContentPart]) -> str:
        result = await self._request(system_instruction, parts, OutputContract.FREE_TEXT)
        if not isinstance(result, TextResult):
            raise ContractViolation(f"{self.name}: expected free text, got {result.kind}")
        return result.text

    async def _request_structured(
        self,
        system_instruction: str,
        parts: List[ContentPart],
        schema: Dict[str, Any]
    ) -> Any:
        result = await self._request(system_instruction, parts, OutputContract.JSON_SCHEMA, schema)
        if not isinstance(result, StructuredResult):
            raise ContractViolation(f"{self.name}: expected structured output, got {result.kind}")
        return result.data

    async def _request(
        self,
        system_instruction: str,
        parts: List[ContentPart],
        output: OutputContract,
        schema: Optional[Dict[str, Any]] = None
    ) -> ReasoningResult:
        request = ReasoningRequest(
            model=self.model,
            system_instruction=system_instruction,
            parts=parts,
            output=output,
            response_schema=schema,
            temperature=self.temperature,
        )
        logger.debug(f"{self.name}: sending {output.value} request to {self.model}")
        return await self.provider.generate(request)

    def _degrade(self, error: Exception, passthrough: Any = None) -> Any:
        """Apply this stage's failure policy."""
        logger.error(f"{self.name} failed ({self.failure_policy.value}): {error}")
        self.audit.log_stage_degraded(self.name, self.failure_policy.value, str(error))

        if self.failure_policy is FailurePolicy.FAIL_OPEN:
            return passthrough
        if self.failure_policy is FailurePolicy.FAIL_VISIBLE:
            return self.sentinel
        return None
