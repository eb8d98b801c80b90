"""
Clinical note pipeline: Cleanup -> {Clinical Note, Prescription} -> Compose.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .cleanup_service import CleanupService
from .clinical_note_service import SOAP_NOTE_ERROR, ClinicalNoteService
from .note_composer import compose, degraded_sections
from .prescription_service import PRESCRIPTION_ERROR, PrescriptionService
from ..config.settings import Settings
from ..medical.dictionary import ClinicalProtocol, MedicalDictionary, load_protocols
from ..models.clinical import ClinicalRecord, DoctorProfile, LanguageTag
from ..models.transcript import RunningTranscript
from ..providers.base import ReasoningProvider
from ..security.audit_logger import AuditLogger
from .stage import DEFAULT_MODEL

logger = logging.getLogger(__name__)

CLINICAL_NOTE_ERROR = "Error generating clinical note."


class ClinicalNotePipeline:
    """Turns an encounter transcript into the composed clinical record."""

    def __init__(
        self,
        provider: ReasoningProvider,
        dictionary: Optional[MedicalDictionary] = None,
        protocols: Sequence[ClinicalProtocol] = (),
        model: str = DEFAULT_MODEL,
        temperature: float = 0.0,
        audit: Optional[AuditLogger] = None
    ):
        self.dictionary = dictionary or MedicalDictionary()
        self.protocols: List[ClinicalProtocol] = list(protocols)
        self.audit = audit or AuditLogger()

        stage_args = dict(model=model, temperature=temperature, audit=self.audit)
        self.cleanup = CleanupService(provider, **stage_args)
        self.clinical_note = ClinicalNoteService(provider, **stage_args)
        self.prescription = PrescriptionService(provider, **stage_args)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        provider: ReasoningProvider,
        audit: Optional[AuditLogger] = None
    ) -> "ClinicalNotePipeline":
        """Build the pipeline, loading reference data from the configured paths if present."""
        dictionary = MedicalDictionary()
        if Path(settings.pipeline.dictionary_path).is_file():
            dictionary = MedicalDictionary.from_file(settings.pipeline.dictionary_path)
        else:
            logger.warning(f"Medical dictionary not found at {settings.pipeline.dictionary_path}")

        protocols: List[ClinicalProtocol] = []
        if Path(settings.pipeline.protocols_path).is_file():
            protocols = load_protocols(settings.pipeline.protocols_path)

        return cls(
            provider,
            dictionary=dictionary,
            protocols=protocols,
            model=settings.reasoning.model,
            temperature=settings.reasoning.temperature,
            audit=audit or AuditLogger(settings.security),
        )

    async def generate_record(
        self,
        transcript: Union[str, RunningTranscript],
        profile: DoctorProfile,
        language: LanguageTag
    ) -> ClinicalRecord:
        """
        Run Cleanup, then the note and prescription stages concurrently, then compose.

        Never raises: every failure degrades to the failing stage's sentinel.
        """
        if isinstance(transcript, RunningTranscript):
            transcript = transcript.render()

        try:
            cleaned = await self.cleanup.clean(transcript, language, self.dictionary, profile)
        except Exception as e:
            logger.error(f"Cleanup crashed, continuing with raw transcript: {e}", exc_info=True)
            cleaned = transcript

        note, plan = await asyncio.gather(
            self.clinical_note.summarize_clinical(cleaned, language, profile),
            self.prescription.extract_plan(cleaned, language, self.dictionary, self.protocols, profile),
            return_exceptions=True,
        )
        if isinstance(note, BaseException):
            logger.error(f"Clinical note stage crashed: {note}", exc_info=note)
            note = SOAP_NOTE_ERROR
        if isinstance(plan, BaseException):
            logger.error(f"Prescription stage crashed: {plan}", exc_info=plan)
            plan = PRESCRIPTION_ERROR

        record = ClinicalRecord(
            cleaned_transcript=cleaned,
            note=note,
            plan=plan,
            text=compose(note, plan),
            degraded_stages=degraded_sections(note, plan),
        )
        if record.is_degraded:
            logger.warning(f"Clinical record degraded: {', '.join(record.degraded_stages)}")
        else:
            logger.info("✅ Clinical record generated")
        return record

    async def generate_clinical_note(
        self,
        transcript: Union[str, RunningTranscript],
        profile: DoctorProfile,
        language: LanguageTag
    ) -> str:
        """Composed record text. Never raises."""
        try:
            record = await self.generate_record(transcript, profile, language)
        except Exception as e:
            logger.error(f"Clinical note orchestration error: {e}", exc_info=True)
            return CLINICAL_NOTE_ERROR
        return record.text
