from enum import Enum
from typing import Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator


class Speaker(str, Enum):
    """The two diarization roles of a clinical encounter."""

    DOCTOR = "Doctor"
    PATIENT = "Patient"


class Utterance(BaseModel):
    """A single diarized utterance."""

    model_config = ConfigDict(frozen=True)

    speaker: Speaker
    text: str

    @field_validator('text')
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    def render(self) -> str:
        return f"{self.speaker.value}: {self.text}"


class RunningTranscript(BaseModel):
    """Ordered, append-only sequence of utterances for one encounter.

    Instances are immutable; the accumulator produces a new transcript for
    every change instead of mutating the existing one.
    """

    model_config = ConfigDict(frozen=True)

    utterances: Tuple[Utterance, ...] = Field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.utterances)

    def is_empty(self) -> bool:
        return not self.utterances

    def render(self) -> str:
        """Full transcript with one ``Speaker: text`` line per utterance."""
        return "\n".join(u.render() for u in self.utterances)
