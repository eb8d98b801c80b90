"""
Pipeline stages and the services that wire them together.
"""

from .case_summary import CaseSummaryService
from .cleanup_service import CleanupService
from .clinical_note_service import ClinicalNoteService
from .encounter import EncounterResult, EncounterSession
from .note_composer import compose
from .pipeline import ClinicalNotePipeline
from .prescription_service import PrescriptionService
from .segment_capture import CaptureOptions, CaptureState, SegmentCapture
from .transcript_accumulator import SegmentPolicy, TranscriptAccumulator
from .transcription_service import TranscriptionService

__all__ = [
    "CaseSummaryService",
    "CleanupService",
    "ClinicalNoteService",
    "EncounterResult",
    "EncounterSession",
    "compose",
    "ClinicalNotePipeline",
    "PrescriptionService",
    "CaptureOptions",
    "CaptureState",
    "SegmentCapture",
    "SegmentPolicy",
    "TranscriptAccumulator",
    "TranscriptionService",
]
