"""WAV encoding utilities for captured PCM audio."""
import struct
from typing import List, NamedTuple
import logging

logger = logging.getLogger(__name__)

WAV_HEADER_SIZE = 44


class PCMAudio(NamedTuple):
    pcm: bytes
    sample_rate: int
    channels: int
    sample_width: int


def encode_wav(pcm: bytes, sample_rate: int = 16000, channels: int = 1, sample_width: int = 2) -> bytes:
    """
    Wrap raw PCM in a canonical 44-byte WAV header.

    Every segment is encoded as a complete, self-contained file so that the
    transcription service never receives a headerless fragment.

    Args:
        pcm: Interleaved little-endian PCM samples
        sample_rate: Samples per second
        channels: Channel count
        sample_width: Bytes per sample

    Returns:
        bytes: Complete WAV file data
    """
    byte_rate = sample_rate * channels * sample_width
    block_align = channels * sample_width
    data_size = len(pcm)

    header = bytearray()
    header.extend(b'RIFF')
    header.extend(struct.pack('<I', data_size + 36))  # Total size minus 8 bytes
    header.extend(b'WAVE')
    header.extend(b'fmt ')
    header.extend(struct.pack('<I', 16))  # fmt chunk size
    header.extend(struct.pack('<H', 1))  # PCM
    header.extend(struct.pack('<H', channels))
    header.extend(struct.pack('<I', sample_rate))
    header.extend(struct.pack('<I', byte_rate))
    header.extend(struct.pack('<H', block_align))
    header.extend(struct.pack('<H', sample_width * 8))
    header.extend(b'data')
    header.extend(struct.pack('<I', data_size))

    return bytes(header) + pcm


def validate_wav_header(data: bytes) -> bool:
    """Validate WAV file header."""
    if len(data) < WAV_HEADER_SIZE:
        return False

    # Check RIFF header
    if data[0:4] != b'RIFF':
        return False

    # Check WAVE format
    if data[8:12] != b'WAVE':
        return False

    return True


def decode_wav(data: bytes) -> PCMAudio:
    """
    Extract PCM samples and format from a WAV file.

    Walks the RIFF chunk list, so files with extra chunks (LIST, fact) are
    accepted as long as they carry PCM in a ``data`` chunk.
    """
    if not validate_wav_header(data):
        raise ValueError("Invalid WAV header")

    fmt = None
    offset = 12
    while offset + 8 <= len(data):
        chunk_id = data[offset:offset + 4]
        chunk_size = struct.unpack('<I', data[offset + 4:offset + 8])[0]
        body = data[offset + 8:offset + 8 + chunk_size]

        if chunk_id == b'fmt ':
            audio_format, channels, sample_rate = struct.unpack('<HHI', body[:8])
            bits_per_sample = struct.unpack('<H', body[14:16])[0]
            if audio_format != 1:
                raise ValueError(f"Unsupported WAV encoding: {audio_format} (PCM required)")
            fmt = (sample_rate, channels, bits_per_sample // 8)
        elif chunk_id == b'data':
            if fmt is None:
                raise ValueError("WAV data chunk precedes fmt chunk")
            return PCMAudio(body, *fmt)

        # Chunks are word aligned
        offset += 8 + chunk_size + (chunk_size % 2)

    raise ValueError("WAV file has no data chunk")


def split_wav(data: bytes, segment_seconds: float) -> List[bytes]:
    """Split a WAV file into consecutive self-contained WAV files."""
    audio = decode_wav(data)
    frame_size = audio.channels * audio.sample_width
    step = max(frame_size, int(audio.sample_rate * segment_seconds) * frame_size)

    segments = []
    for start in range(0, len(audio.pcm), step):
        chunk = audio.pcm[start:start + step]
        if chunk:
            segments.append(encode_wav(chunk, audio.sample_rate, audio.channels, audio.sample_width))

    logger.info(f"Split {len(audio.pcm)} PCM bytes into {len(segments)} segment(s)")
    return segments


def is_silent_wav(audio_bytes: bytes, rms_threshold: float = 200.0) -> bool:
    """
    Check if a 16-bit WAV audio chunk is effectively silent.

    Silent or near-silent audio causes Gemini to hallucinate entire
    conversations, so these chunks must not reach the transcription service.

    Args:
        audio_bytes: Raw WAV file bytes (Int16 PCM)
        rms_threshold: RMS energy below this = silence (scale: 0-32768)

    Returns:
        True if audio is silent/near-silent
    """
    try:
        audio = decode_wav(audio_bytes)
    except (ValueError, struct.error) as e:
        logger.warning(f"Silence detection failed, processing anyway: {e}")
        return False

    if audio.sample_width != 2:
        return False

    num_samples = len(audio.pcm) // 2
    if num_samples == 0:
        return True

    samples = struct.unpack(f'<{num_samples}h', audio.pcm[:num_samples * 2])
    sum_sq = sum(s * s for s in samples)
    rms = (sum_sq / num_samples) ** 0.5

    logger.debug(f"Audio RMS energy: {rms:.1f} (threshold: {rms_threshold})")
    return rms < rms_threshold
