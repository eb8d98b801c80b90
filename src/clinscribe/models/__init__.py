"""
Data model shared by every stage of the clinical-note pipeline.
"""

from .audio import AudioSegment, CaptureConstraints
from .clinical import (
    NOT_SPECIFIED,
    ClinicalRecord,
    DoctorProfile,
    LanguageTag,
    MedicationLine,
    PrescriptionPlan,
)
from .reasoning import (
    BlobPart,
    OutputContract,
    ReasoningRequest,
    ReasoningResult,
    StructuredResult,
    TextPart,
    TextResult,
)
from .transcript import RunningTranscript, Speaker, Utterance

__all__ = [
    "AudioSegment",
    "CaptureConstraints",
    "NOT_SPECIFIED",
    "ClinicalRecord",
    "DoctorProfile",
    "LanguageTag",
    "MedicationLine",
    "PrescriptionPlan",
    "BlobPart",
    "OutputContract",
    "ReasoningRequest",
    "ReasoningResult",
    "StructuredResult",
    "TextPart",
    "TextResult",
    "RunningTranscript",
    "Speaker",
    "Utterance",
]
