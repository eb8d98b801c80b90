import logging
import re
from typing import List, Optional, Sequence
from pydantic import ValidationError
from .stage import FailurePolicy, PipelineStage
from ..medical.dictionary import ClinicalProtocol, MedicalDictionary, protocols_context, same_script
from ..models.clinical import NOT_SPECIFIED, DoctorProfile, LanguageTag, MedicationLine, PrescriptionPlan
from ..models.reasoning import TextPart
from ..providers.base import ContractViolation, ServiceError
from ..providers.reasoning.prompts import PRESCRIPTION_SYSTEM_PROMPT, clinician_line, language_rule


logger = logging.getLogger(__name__)

PRESCRIPTION_ERROR = "Error generating prescription."
PLAN_HEADER = "## Plan"
ADVICE_LABEL = "Advice:"
NO_MEDICATIONS = "No medications prescribed."

_STRING = {"type": "STRING"}
PRESCRIPTION_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "medications": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {"name": _STRING, "dosage": _STRING, "frequency": _STRING, "route": _STRING},
                "required": ["name", "dosage", "frequency", "route"],
            },
        },
        "advice": {"type": "ARRAY", "items": _STRING},
    },
    "required": ["medications", "advice"],
}

_MEDICATION_LINE = re.compile(r"^-\s*([^|]+?)\s*\|\s*([^|]*?)\s*\|\s*([^|]*?)\s*\|\s*([^|]*?)\s*$")


def _capitalize(value: str) -> str:
    if value == NOT_SPECIFIED:
        return value
    return value[:1].upper() + value[1:]


def render_plan(plan: PrescriptionPlan) -> str:
    """Fixed text rendering: pipe-delimited medication lines, then advice bullets."""
    lines = [PLAN_HEADER]
    if plan.medications:
        lines.extend(line.render() for line in plan.medications)
    else:
        lines.append(NO_MEDICATIONS)

    if plan.advice:
        lines.append(ADVICE_LABEL)
        lines.extend(f"- {item}" for item in plan.advice)
    return "\n".join(lines)


def parse_plan(text: str) -> PrescriptionPlan:
    """Inverse of ``render_plan`` for reading a rendered plan back."""
    medications: List[MedicationLine] = []
    advice: List[str] = []
    in_advice = False

    for line in text.splitlines():
        line = line.strip()
        if line == ADVICE_LABEL:
            in_advice = True
            continue
        match = _MEDICATION_LINE.match(line)
        if match and not in_advice:
            name, dosage, frequency, route = match.groups()
            medications.append(MedicationLine(name=name, dosage=dosage, frequency=frequency, route=route))
        elif in_advice and line.startswith("- "):
            advice.append(line[2:])

    return PrescriptionPlan(medications=medications, advice=advice)


class PrescriptionService(PipelineStage):
    """Derives the medication plan, never listing a drug the transcript does not name."""

    name = "prescription"
    failure_policy = FailurePolicy.FAIL_VISIBLE
    sentinel = PRESCRIPTION_ERROR

    async def extract_plan(
        self,
        cleaned: str,
        language: LanguageTag,
        dictionary: MedicalDictionary,
        protocols: Sequence[ClinicalProtocol] = (),
        profile: Optional[DoctorProfile] = None
    ) -> str:
        """
        Extract and render the medication plan.

        Returns:
            Rendered plan, or the sentinel on failure
        """
        try:
            plan = await self._extract(cleaned, language, dictionary, protocols, profile)
        except ServiceError as e:
            return self._degrade(e)

        return render_plan(plan)

    async def extract_plan_structured(
        self,
        cleaned: str,
        language: LanguageTag,
        dictionary: MedicalDictionary,
        protocols: Sequence[ClinicalProtocol] = (),
        profile: Optional[DoctorProfile] = None
    ) -> PrescriptionPlan:
        """Validated plan as data. Raises ServiceError on failure."""
        return await self._extract(cleaned, language, dictionary, protocols, profile)

    async def _extract(
        self,
        cleaned: str,
        language: LanguageTag,
        dictionary: MedicalDictionary,
        protocols: Sequence[ClinicalProtocol],
        profile: Optional[DoctorProfile]
    ) -> PrescriptionPlan:
        system_instruction = PRESCRIPTION_SYSTEM_PROMPT.format(
            clinician=clinician_line(profile or DoctorProfile()),
            dictionary=dictionary.to_context(),
            protocols=protocols_context(list(protocols)),
            language_rule=language_rule(language),
        )
        data = await self._request_structured(
            system_instruction,
            [TextPart(text=f"Cleaned Transcript:\n{cleaned}")],
            PRESCRIPTION_SCHEMA
        )

        if not isinstance(data, dict):
            raise ContractViolation(f"Expected a JSON object, got {type(data).__name__}")
        try:
            plan = PrescriptionPlan(**data)
        except ValidationError as e:
            raise ContractViolation(f"Malformed prescription: {e}")

        validated = self.validate_against_transcript(plan, cleaned, dictionary)
        logger.info(
            f"Prescription extracted: {len(validated.medications)} medication(s), "
            f"{len(validated.advice)} advice item(s)"
        )
        return validated

    def validate_against_transcript(
        self,
        plan: PrescriptionPlan,
        cleaned: str,
        dictionary: MedicalDictionary
    ) -> PrescriptionPlan:
        """
        Keep only medication lines whose name is explicitly present in ``cleaned``.

        Names are matched through the dictionary, so a canonical name matches
        any of its known spellings in the transcript. Surviving names take the
        spelling the transcript uses, so they stay in the transcript's script,
        respelled to the canonical form only where that shares the script.
        """
        medications: List[MedicationLine] = []
        for line in plan.medications:
            mention = dictionary.find_mention(line.name, cleaned)
            if mention is None:
                logger.warning(f"⚠️ Blocked medication without transcript support: {line.name}")
                self.audit.log_medication_blocked(line.name)
                continue

            name = line.name if same_script(line.name, mention) else mention
            medications.append(line.model_copy(update={
                "name": dictionary.respell(name),
                "frequency": _capitalize(line.frequency),
                "route": _capitalize(line.route),
            }))

        return PrescriptionPlan(medications=medications, advice=plan.advice)
