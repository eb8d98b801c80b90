import logging
import re
from typing import List, Optional
from .stage import FailurePolicy, PipelineStage
from ..models.clinical import DoctorProfile, LanguageTag
from ..models.reasoning import TextPart
from ..providers.base import ContractViolation, ServiceError
from ..providers.reasoning.prompts import CLINICAL_NOTE_SYSTEM_PROMPT, clinician_line, language_rule

logger = logging.getLogger(__name__)

SOAP_NOTE_ERROR = "Error generating SOAP note."
SECTION_NAMES = ("Subjective", "Objective", "Assessment")
SECTION_HEADERS = tuple(f"## {name}" for name in SECTION_NAMES)

_HEADER_LINE = re.compile(r"^\s*(?:#{1,6}\s*)?\**\s*([^*#:]+?)\s*\**\s*:?\s*\**\s*$")
_PLAN_NAMES = ("plan", "prescription", "medications", "treatment plan")
_MEDICATION_LINE = re.compile(r"^[^|\n]*\|[^|\n]*\|[^|\n]*\|[^|\n]*$")
_BOLD = re.compile(r"(\*\*|__)(.+?)\1")
_ITALIC = re.compile(r"(?<![\w*])\*(?!\s)([^*\n]+?)(?<!\s)\*(?![\w*])")


def _header_name(line: str) -> Optional[str]:
    match = _HEADER_LINE.match(line)
    if not match or len(line.strip()) > 40:
        return None
    return match.group(1).strip().casefold()


def _strip_emphasis(line: str) -> str:
    if line.lstrip().startswith("* "):
        line = line.replace("* ", "- ", 1)
    line = _BOLD.sub(r"\2", line)
    return _ITALIC.sub(r"\1", line)


def sanitize_clinical_note(text: str) -> str:
    """
    Bring model output into the three-section note format.

    Section headers are normalized to ``## Subjective`` / ``## Objective`` /
    ``## Assessment``; any Plan/Prescription section, pipe-delimited
    medication lines, other headers, text before the first section and
    inline emphasis are removed.

    Raises:
        ContractViolation: If the three sections are not present in order
    """
    canonical = {name.casefold(): header for name, header in zip(SECTION_NAMES, SECTION_HEADERS)}
    lines: List[str] = []
    in_note = False
    skipping = False

    for raw_line in text.splitlines():
        name = _header_name(raw_line) if raw_line.strip() else None
        if name in canonical:
            lines.append(canonical[name])
            in_note, skipping = True, False
            continue
        if name in _PLAN_NAMES:
            skipping = True
            continue
        if not in_note or skipping:
            continue
        if _MEDICATION_LINE.match(raw_line.strip()):
            continue

        line = _strip_emphasis(raw_line).rstrip()
        if line.lstrip().startswith("#"):
            line = line.lstrip("# ").strip()
        if line.strip():
            lines.append(line)

    headers = [line for line in lines if line in SECTION_HEADERS]
    if headers != list(SECTION_HEADERS):
        raise ContractViolation(f"Clinical note sections missing or out of order: {headers}")

    return "\n".join(lines)


class ClinicalNoteService(PipelineStage):
    """Derives the Subjective / Objective / Assessment note."""

    name = "clinical_note"
    failure_policy = FailurePolicy.FAIL_VISIBLE
    sentinel = SOAP_NOTE_ERROR

    async def summarize_clinical(
        self,
        cleaned: str,
        language: LanguageTag,
        profile: Optional[DoctorProfile] = None
    ) -> str:
        """
        Generate the clinical note from a cleaned transcript.

        Returns:
            Note text with exactly three section headers, or the sentinel on failure
        """
        system_instruction = CLINICAL_NOTE_SYSTEM_PROMPT.format(
            clinician=clinician_line(profile or DoctorProfile()),
            language_rule=language_rule(language),
        )

        try:
            text = await self._request_text(system_instruction, [TextPart(text=f"Cleaned Transcript:\n{cleaned}")])
            note = sanitize_clinical_note(text)
        except ServiceError as e:
            return self._degrade(e)

        logger.info(f"Clinical note generated: {len(note)} chars")
        return note
