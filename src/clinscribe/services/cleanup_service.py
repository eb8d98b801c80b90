import logging
import re
from typing import Optional
from .stage import FailurePolicy, PipelineStage
from ..medical.dictionary import MedicalDictionary
from ..models.clinical import DoctorProfile, LanguageTag
from ..models.reasoning import TextPart
from ..providers.base import ContractViolation, ServiceError
from ..providers.reasoning.prompts import CLEANUP_SYSTEM_PROMPT, clinician_line, language_rule
from ..utils.script import conforms_to_script

logger = logging.getLogger(__name__)

FILLER_PATTERN = re.compile(r"(?<!\w)(?:u+m+|u+h+|a+h+|erm|h+m+)(?!\w)[,.]?[ \t]*", re.IGNORECASE)
SPACES_PATTERN = re.compile(r"[ \t]{2,}")
SPEAKER_LABEL = re.compile(r"^\s*(?:Doctor|Patient)\s*:\s*", re.MULTILINE)


def normalize_transcript(text: str, dictionary: MedicalDictionary) -> str:
    """
    Deterministic normalization: filler removal and dictionary spelling.

    Applying it to its own output changes nothing.
    """
    lines = []
    for line in text.splitlines():
        line = FILLER_PATTERN.sub("", line)
        line = SPACES_PATTERN.sub(" ", line).strip()
        if line:
            lines.append(line)
    return dictionary.correct_spelling("\n".join(lines))


def _spoken(text: str) -> str:
    return SPEAKER_LABEL.sub("", text)


class CleanupService(PipelineStage):
    """Normalizes the accumulated transcript without adding facts.

    On any failure the raw transcript is returned unchanged: later stages
    can still work from it.
    """

    name = "cleanup"
    failure_policy = FailurePolicy.FAIL_OPEN

    async def clean(
        self,
        transcript: str,
        language: LanguageTag,
        dictionary: MedicalDictionary,
        profile: Optional[DoctorProfile] = None
    ) -> str:
        """
        Clean up a raw transcript.

        Args:
            transcript: Rendered running transcript
            language: Output language
            dictionary: Sole authority for spelling corrections
            profile: Clinician profile

        Returns:
            Cleaned transcript, or the unmodified input on failure
        """
        if not transcript.strip():
            return transcript

        system_instruction = CLEANUP_SYSTEM_PROMPT.format(
            clinician=clinician_line(profile or DoctorProfile()),
            language_rule=language_rule(language),
            dictionary=dictionary.to_context(),
        )

        try:
            text = await self._request_text(system_instruction, [TextPart(text=f"Raw Transcript:\n{transcript}")])
            if not text.strip():
                raise ContractViolation("Cleanup returned an empty transcript")

            cleaned = normalize_transcript(text, dictionary)
            added = dictionary.mentions(cleaned) - dictionary.mentions(transcript)
            if added:
                raise ContractViolation(f"Cleanup introduced terms absent from the transcript: {sorted(added)}")
            if conforms_to_script(_spoken(transcript), language) and not conforms_to_script(_spoken(cleaned), language):
                raise ContractViolation(f"Cleanup left the {language.value} script")
        except ServiceError as e:
            return self._degrade(e, passthrough=transcript)

        logger.info(f"Transcript cleaned: {len(transcript)} -> {len(cleaned)} chars")
        return cleaned
