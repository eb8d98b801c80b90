import logging
from typing import Optional
from .stage import FailurePolicy, PipelineStage
from ..models.clinical import DoctorProfile, LanguageTag
from ..models.reasoning import TextPart
from ..models.transcript import RunningTranscript
from ..providers.base import ContractViolation, ServiceError
from ..providers.reasoning.prompts import CASE_SUMMARY_SYSTEM_PROMPT, clinician_line, language_rule

logger = logging.getLogger(__name__)

SUMMARY_ERROR = "Error generating summary."


class CaseSummaryService(PipelineStage):
    """Concise case summary of a doctor-patient dialogue."""

    name = "case_summary"
    failure_policy = FailurePolicy.FAIL_VISIBLE
    sentinel = SUMMARY_ERROR

    async def summarize(
        self,
        transcript: RunningTranscript,
        language: LanguageTag,
        profile: Optional[DoctorProfile] = None
    ) -> str:
        if transcript.is_empty():
            return "Summary not available."

        system_instruction = CASE_SUMMARY_SYSTEM_PROMPT.format(
            clinician=clinician_line(profile or DoctorProfile()),
            language_rule=language_rule(language),
        )
        try:
            summary = await self._request_text(system_instruction, [TextPart(text=transcript.render())])
            if not summary.strip():
                raise ContractViolation("Empty case summary")
        except ServiceError as e:
            return self._degrade(e)

        return summary.strip()
