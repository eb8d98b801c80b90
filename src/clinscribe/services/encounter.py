"""
One clinical encounter: capture -> transcription -> accumulation -> record.
"""

import asyncio
import logging
import uuid
from typing import Optional
from pydantic import BaseModel, ConfigDict

from .case_summary import CaseSummaryService
from .pipeline import ClinicalNotePipeline
from .segment_capture import CaptureOptions, SegmentCapture
from .transcript_accumulator import SegmentPolicy, TranscriptAccumulator
from .transcription_service import TranscriptionService
from ..models.audio import AudioSegment
from ..models.clinical import ClinicalRecord, DoctorProfile, LanguageTag
from ..models.transcript import RunningTranscript
from ..security.audit_logger import AuditLogger

logger = logging.getLogger(__name__)


class EncounterResult(BaseModel):
    """Everything produced by a finished encounter."""

    model_config = ConfigDict(frozen=True)

    encounter_id: str
    transcript: RunningTranscript
    audio: Optional[AudioSegment] = None
    record: Optional[ClinicalRecord] = None
    summary: Optional[str] = None
    segments: int = 0
    dropped_segments: int = 0


class EncounterSession:
    """Drives one encounter from first segment to composed record.

    Segments are transcribed one at a time, in order; each transcription
    sees the context of everything accumulated before it.
    """

    def __init__(
        self,
        transcription: TranscriptionService,
        pipeline: ClinicalNotePipeline,
        profile: DoctorProfile,
        language: LanguageTag,
        capture: Optional[SegmentCapture] = None,
        policy: SegmentPolicy = SegmentPolicy.DELTA,
        segment_interval_ms: int = 20000,
        max_context_utterances: int = 6,
        max_context_chars: int = 1200,
        encounter_id: Optional[str] = None,
        audit: Optional[AuditLogger] = None,
        case_summary: Optional[CaseSummaryService] = None
    ):
        self.transcription = transcription
        self.pipeline = pipeline
        self.profile = profile
        self.language = language
        self.capture = capture
        self.policy = policy
        self.segment_interval_ms = segment_interval_ms
        self.encounter_id = encounter_id or str(uuid.uuid4())
        self.audit = audit or pipeline.audit
        self.case_summary = case_summary
        self.accumulator = TranscriptAccumulator(policy, max_context_utterances, max_context_chars)
        self.segments_seen = 0

    @property
    def transcript(self) -> RunningTranscript:
        return self.accumulator.transcript

    async def start(self) -> None:
        """Start capturing. Raises DeviceError if the device is unavailable."""
        if self.capture is None:
            raise RuntimeError("Encounter has no capture attached")

        self.audit.log_encounter_start(self.encounter_id, self.profile.qualification, self.language.value)
        await self.capture.start(CaptureOptions(
            segment_interval_ms=self.segment_interval_ms,
            on_segment=self.feed,
            policy=self.policy,
        ))
        logger.info(f"Encounter {self.encounter_id} started ({self.language.value})")

    def pause(self) -> None:
        if self.capture is not None:
            self.capture.pause()

    def resume(self) -> None:
        if self.capture is not None:
            self.capture.resume()

    async def feed(self, segment: AudioSegment) -> RunningTranscript:
        """Transcribe one segment and merge it into the running transcript."""
        self.segments_seen += 1
        utterances = await self.transcription.transcribe(
            segment,
            self.language,
            prior_context=self.accumulator.context(),
            profile=self.profile,
        )
        if utterances is None:
            self.audit.log_segment_dropped(self.encounter_id, segment.sequence)
        return self.accumulator.accept(utterances)

    async def finish(self, generate_record: bool = True) -> EncounterResult:
        """
        Stop capturing and build the clinical record.

        The record is skipped when nothing was transcribed. With a case summary
        service attached, the summary is generated alongside the record.
        """
        audio = await self.capture.stop() if self.capture is not None else None

        record = None
        summary = None
        if self.transcript.is_empty():
            if generate_record:
                logger.warning(f"Encounter {self.encounter_id} produced no transcript; no record generated")
        elif generate_record and self.case_summary is not None:
            record, summary = await asyncio.gather(
                self.pipeline.generate_record(self.transcript, self.profile, self.language),
                self.case_summary.summarize(self.transcript, self.language, self.profile),
            )
        elif generate_record:
            record = await self.pipeline.generate_record(self.transcript, self.profile, self.language)
        elif self.case_summary is not None:
            summary = await self.case_summary.summarize(self.transcript, self.language, self.profile)

        result = EncounterResult(
            encounter_id=self.encounter_id,
            transcript=self.transcript,
            audio=audio,
            record=record,
            summary=summary,
            segments=self.segments_seen,
            dropped_segments=self.accumulator.dropped_segments,
        )
        self.audit.log_encounter_complete(
            self.encounter_id,
            result.segments,
            result.dropped_segments,
            record.degraded_stages if record else [],
        )
        return result

    async def abort(self) -> None:
        """Tear the encounter down without building a record."""
        if self.capture is not None:
            await self.capture.close()
        logger.info(f"Encounter {self.encounter_id} aborted")
