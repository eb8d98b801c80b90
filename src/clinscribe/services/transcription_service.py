import logging
from typing import List, Optional
from pydantic import ValidationError
from .stage import FailurePolicy, PipelineStage
from ..models.audio import AudioSegment
from ..models.clinical import DoctorProfile, LanguageTag
from ..models.reasoning import BlobPart, TextPart
from ..models.transcript import Speaker, Utterance
from ..providers.base import ContractViolation, ServiceError
from ..providers.reasoning.prompts import TRANSCRIPTION_SYSTEM_PROMPT, clinician_line, language_rule
from ..utils.script import conforms_to_script
from ..utils.wav_utils import is_silent_wav

logger = logging.getLogger(__name__)

UTTERANCE_LIST_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "speaker": {"type": "STRING", "enum": [s.value for s in Speaker]},
            "text": {"type": "STRING"},
        },
        "required": ["speaker", "text"],
    },
}


class TranscriptionService(PipelineStage):
    """Turns one audio segment into diarized utterances.

    A failed segment yields ``None`` so it can never leak a partial or
    corrupt transcript into the running transcript.
    """

    name = "transcription"
    failure_policy = FailurePolicy.DROP_SEGMENT

    def __init__(self, *args, max_latin_ratio: float = 0.25, silence_rms_threshold: float = 200.0, **kwargs):
        super().__init__(*args, **kwargs)
        self.max_latin_ratio = max_latin_ratio
        self.silence_rms_threshold = silence_rms_threshold

    async def transcribe(
        self,
        segment: AudioSegment,
        language: LanguageTag,
        prior_context: str = "",
        profile: Optional[DoctorProfile] = None
    ) -> Optional[List[Utterance]]:
        """
        Transcribe one segment verbatim with speaker attribution.

        Args:
            segment: Encoded audio segment
            language: Target language; output must use its native script
            prior_context: Tail of the running transcript, for consistent speaker roles
            profile: Clinician profile

        Returns:
            Utterances in spoken order, ``[]`` for silence, or ``None`` if the segment failed
        """
        if segment.mime_type == "audio/wav" and is_silent_wav(segment.data, self.silence_rms_threshold):
            logger.debug(f"Segment {segment.sequence} is silent, skipping transcription")
            return []

        system_instruction = TRANSCRIPTION_SYSTEM_PROMPT.format(
            context=prior_context.replace('"', "'"),
            clinician=clinician_line(profile or DoctorProfile()),
            language_rule=language_rule(language),
        )
        parts = [
            BlobPart(mime_type=segment.mime_type, data=segment.data),
            TextPart(text=f"Transcribe strictly in the native script of {language.value}."),
        ]

        try:
            data = await self._request_structured(system_instruction, parts, UTTERANCE_LIST_SCHEMA)
            utterances = self._parse_utterances(data, language)
        except ServiceError as e:
            return self._degrade(e)

        logger.info(f"Segment {segment.sequence} transcribed: {len(utterances)} utterance(s)")
        return utterances

    def _parse_utterances(self, data, language: LanguageTag) -> List[Utterance]:
        if not isinstance(data, list):
            raise ContractViolation(f"Expected a JSON array of utterances, got {type(data).__name__}")

        try:
            utterances = [Utterance(**item) for item in data]
        except (TypeError, ValidationError) as e:
            raise ContractViolation(f"Malformed utterance: {e}")

        utterances = [u for u in utterances if u.text]
        for utterance in utterances:
            if not conforms_to_script(utterance.text, language, self.max_latin_ratio):
                raise ContractViolation(
                    f"Utterance is not in the native script of {language.value}: {utterance.text[:60]}"
                )
        return utterances
