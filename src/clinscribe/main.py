"""
Main application entry point for clinscribe.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config.settings import Settings, configure_logging
from .models.audio import AudioSegment
from .models.clinical import DoctorProfile, LanguageTag
from .security.audit_logger import AuditLogger
from .services.case_summary import CaseSummaryService
from .services.capture_service import create_segment_capture
from .services.encounter import EncounterResult, EncounterSession
from .services.pipeline import ClinicalNotePipeline
from .services.reasoning_service import ReasoningService
from .services.segment_capture import SegmentCapture
from .services.transcript_accumulator import SegmentPolicy
from .services.transcription_service import TranscriptionService
from .utils.wav_utils import split_wav

logger = logging.getLogger(__name__)


class ClinscribeApp:
    """Application wiring: one reasoning service shared by every stage."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.reasoning = ReasoningService(settings)
        self.audit = AuditLogger(settings.security)
        self.pipeline = ClinicalNotePipeline.from_settings(settings, self.reasoning, self.audit)
        self.transcription = TranscriptionService(
            self.reasoning,
            model=settings.reasoning.model,
            temperature=settings.reasoning.temperature,
            audit=self.audit,
            max_latin_ratio=settings.pipeline.max_latin_ratio,
            silence_rms_threshold=settings.pipeline.silence_rms_threshold,
        )
        self.case_summary = CaseSummaryService(
            self.reasoning,
            model=settings.reasoning.model,
            temperature=settings.reasoning.temperature,
            audit=self.audit,
        )

    def new_encounter(
        self,
        profile: DoctorProfile,
        language: LanguageTag,
        capture: Optional[SegmentCapture] = None,
        policy: Optional[SegmentPolicy] = None,
        summarize: bool = False
    ) -> EncounterSession:
        return EncounterSession(
            self.transcription,
            self.pipeline,
            profile,
            language,
            capture=capture,
            policy=policy or SegmentPolicy(self.settings.capture.policy),
            segment_interval_ms=self.settings.capture.segment_interval_ms,
            max_context_utterances=self.settings.pipeline.context_max_utterances,
            max_context_chars=self.settings.pipeline.context_max_chars,
            audit=self.audit,
            case_summary=self.case_summary if summarize else None,
        )

    async def process_audio_file(
        self,
        audio_file: Path,
        profile: DoctorProfile,
        language: LanguageTag,
        summarize: bool = False
    ) -> EncounterResult:
        """Transcribe a WAV recording in consecutive segments and build the record.

        The file is split into disjoint chunks, so segments are always deltas
        whatever the configured capture policy.
        """
        encounter = self.new_encounter(profile, language, policy=SegmentPolicy.DELTA, summarize=summarize)
        segment_seconds = self.settings.capture.segment_interval_ms / 1000

        chunks = split_wav(audio_file.read_bytes(), segment_seconds)
        for sequence, chunk in enumerate(chunks):
            await encounter.feed(AudioSegment(data=chunk, mime_type="audio/wav", sequence=sequence))

        return await encounter.finish()

    async def record(
        self,
        seconds: float,
        profile: DoctorProfile,
        language: LanguageTag,
        summarize: bool = False
    ) -> EncounterResult:
        """Record from the configured capture device for ``seconds`` and build the record."""
        async with create_segment_capture(self.settings) as capture:
            encounter = self.new_encounter(profile, language, capture=capture, summarize=summarize)
            await encounter.start()
            print(f"Recording for {seconds:.0f}s...")
            await asyncio.sleep(seconds)
            return await encounter.finish()

    async def aclose(self) -> None:
        await self.reasoning.aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='clinscribe - clinical encounter scribe')
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--audio', type=str, help='Path to a WAV recording of the encounter')
    source.add_argument('--record-seconds', type=float, help='Record from the microphone for N seconds')
    parser.add_argument('--language', type=str, default=None,
                        help=f"Output language: {', '.join(t.value for t in LanguageTag)}")
    parser.add_argument('--qualification', type=str, default='MBBS', help='Clinician qualification')
    parser.add_argument('--no-allopathic', action='store_true',
                        help='Clinician does not prescribe allopathic medicines')
    parser.add_argument('--summary', action='store_true', help='Also print a short case summary')
    parser.add_argument('--config', type=str, help='Path to config file')
    parser.add_argument('--provider', type=str, help='Reasoning provider override (gemini, gemini_sdk, mock)')
    return parser


async def run(args: argparse.Namespace) -> int:
    settings = Settings(args.config)
    if args.provider:
        settings.reasoning.provider = args.provider
    configure_logging(settings)

    errors = settings.validate()
    if errors:
        for error in errors:
            print(f"  - {error}", file=sys.stderr)
        return 2

    language = LanguageTag.parse(args.language or settings.pipeline.default_language)
    profile = DoctorProfile(qualification=args.qualification, can_prescribe_allopathic=not args.no_allopathic)

    app = ClinscribeApp(settings)
    try:
        if args.audio:
            result = await app.process_audio_file(Path(args.audio), profile, language, summarize=args.summary)
        else:
            result = await app.record(args.record_seconds, profile, language, summarize=args.summary)
    finally:
        await app.aclose()

    print(result.transcript.render())
    print()
    print(result.record.text if result.record else "No speech was transcribed.")
    if result.summary:
        print()
        print(f"Case summary: {result.summary}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI usage."""
    load_dotenv()
    args = build_parser().parse_args(argv)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
