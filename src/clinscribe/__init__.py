"""
clinscribe - clinical encounter scribe

Captures doctor-patient dialogue in segments, transcribes it with speaker
attribution and turns the transcript into a clinical note and medication plan.
"""

__version__ = "1.0.0"

from .config.settings import Settings
from .services.pipeline import ClinicalNotePipeline

__all__ = ["ClinicalNotePipeline", "Settings"]
