"""
Microphone capture through PortAudio (sounddevice).

PortAudio runs the input callback on its own thread; captured 16-bit PCM is
pushed straight into the sink supplied by SegmentCapture.
"""

import logging
from typing import Any, Optional, Union
import sounddevice as sd
from ..base import AudioSink, CaptureDevice, DeviceError
from ...models.audio import CaptureConstraints

logger = logging.getLogger(__name__)


class SoundDeviceMicrophone(CaptureDevice):
    """Capture device backed by a PortAudio input stream."""

    def __init__(self, device: Optional[Union[int, str]] = None, blocksize: int = 1024):
        self.device = device
        self.blocksize = blocksize

    def acquire(self, constraints: CaptureConstraints, sink: AudioSink) -> Any:
        if constraints.echo_cancellation or constraints.noise_suppression:
            # PortAudio exposes raw input only; these flags are honoured by the OS audio stack, if at all
            logger.debug("Echo cancellation / noise suppression requested; relying on OS audio processing")

        def audio_callback(indata, frames, time_info, status):
            if status:
                logger.warning(f"Audio status: {status}")
            sink(bytes(indata))

        try:
            stream = sd.RawInputStream(
                samplerate=constraints.sample_rate,
                channels=constraints.channels,
                dtype="int16",
                blocksize=self.blocksize,
                device=self.device,
                callback=audio_callback,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            logger.error(f"Microphone access error: {e}")
            raise DeviceError(f"Microphone unavailable: {e}")

        logger.info(
            f"🎤 Microphone acquired: {constraints.sample_rate}Hz, "
            f"{constraints.channels} channel(s), device={self.device or 'default'}"
        )
        return stream

    def release(self, stream: Any) -> None:
        if stream is None or stream.closed:
            return
        try:
            stream.stop()
        finally:
            stream.close()
        logger.info("🛑 Microphone released")
