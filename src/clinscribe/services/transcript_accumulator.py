"""
Running transcript accumulation across audio segments.

The segmentation policy decides how a segment's utterances merge:

- DELTA segments carry only new audio, so their utterances are appended once.
- CUMULATIVE segments re-transcribe the whole encounter, so the latest
  segment's utterances replace the transcript wholesale.

Capture and accumulator must share one policy; appending cumulative output
would duplicate speech that was already transcribed.
"""

import logging
from enum import Enum
from typing import Optional, Sequence
from ..models.transcript import RunningTranscript, Utterance

logger = logging.getLogger(__name__)


class SegmentPolicy(str, Enum):
    DELTA = "delta"
    CUMULATIVE = "cumulative"


def append(running: RunningTranscript, new_utterances: Sequence[Utterance]) -> RunningTranscript:
    """New transcript with ``new_utterances`` after every existing utterance."""
    if not new_utterances:
        return running
    return RunningTranscript(utterances=running.utterances + tuple(new_utterances))


def replace(running: RunningTranscript, latest: Sequence[Utterance]) -> RunningTranscript:
    """New transcript consisting of the latest cumulative segment's utterances."""
    return RunningTranscript(utterances=tuple(latest))


def context_window(running: RunningTranscript, max_utterances: int = 6, max_chars: int = 1200) -> str:
    """
    Bounded rendering of the transcript tail, used as prior context.

    Keeps at most ``max_utterances`` of the latest utterances and drops the
    oldest of those until the rendering fits in ``max_chars``. A single
    over-long utterance is truncated from the left so the most recent words
    survive.
    """
    lines = [u.render() for u in running.utterances[-max_utterances:]] if max_utterances > 0 else []
    while len(lines) > 1 and len("\n".join(lines)) > max_chars:
        lines.pop(0)

    rendered = "\n".join(lines)
    if len(rendered) > max_chars:
        rendered = rendered[-max_chars:]
    return rendered


def render(running: RunningTranscript) -> str:
    return running.render()


class TranscriptAccumulator:
    """Sole owner and writer of the running transcript of one encounter."""

    def __init__(
        self,
        policy: SegmentPolicy = SegmentPolicy.DELTA,
        max_context_utterances: int = 6,
        max_context_chars: int = 1200
    ):
        self.policy = policy
        self.max_context_utterances = max_context_utterances
        self.max_context_chars = max_context_chars
        self._transcript = RunningTranscript()
        self.accepted_segments = 0
        self.dropped_segments = 0

    @property
    def transcript(self) -> RunningTranscript:
        return self._transcript

    def accept(self, utterances: Optional[Sequence[Utterance]]) -> RunningTranscript:
        """Merge one segment's transcription result; ``None`` means the segment failed."""
        if utterances is None:
            self.dropped_segments += 1
            logger.warning(f"Segment dropped; transcript unchanged at {len(self._transcript)} utterance(s)")
            return self._transcript

        if self.policy is SegmentPolicy.CUMULATIVE:
            if utterances:
                self._transcript = replace(self._transcript, utterances)
        else:
            self._transcript = append(self._transcript, utterances)

        self.accepted_segments += 1
        logger.debug(f"Transcript now has {len(self._transcript)} utterance(s)")
        return self._transcript

    def context(self) -> str:
        return context_window(self._transcript, self.max_context_utterances, self.max_context_chars)

    def render(self) -> str:
        return render(self._transcript)
