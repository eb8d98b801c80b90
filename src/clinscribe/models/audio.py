from pydantic import BaseModel, ConfigDict, Field


class AudioSegment(BaseModel):
    """One bounded unit of captured audio handed to the transcription stage."""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(..., min_length=1, description="Encoded audio bytes")
    mime_type: str = Field(default="audio/wav", description="MIME/codec tag of the encoded audio")
    sequence: int = Field(..., ge=0, description="Monotonically increasing segment index")

    @property
    def size(self) -> int:
        return len(self.data)


class CaptureConstraints(BaseModel):
    """Constraints requested from the capture device."""

    model_config = ConfigDict(frozen=True)

    sample_rate: int = Field(default=16000, gt=0)
    channels: int = Field(default=1, ge=1, le=2)
    echo_cancellation: bool = True
    noise_suppression: bool = True
    sample_width: int = Field(default=2, description="Bytes per sample (16-bit PCM)")
