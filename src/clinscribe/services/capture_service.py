import logging
from ..config.settings import Settings
from ..models.audio import CaptureConstraints
from ..providers.base import CaptureDevice
from ..providers.capture.mock_device import MockCaptureDevice
from .segment_capture import SegmentCapture

logger = logging.getLogger(__name__)

BACKENDS = ("sounddevice", "mock")


def create_capture_device(settings: Settings) -> CaptureDevice:
    """Factory method to create the capture device from config."""
    backend = settings.capture.backend

    if backend == "sounddevice":
        # PortAudio is loaded on import, so only pull it in when a microphone is wanted
        from ..providers.capture.sounddevice_mic import SoundDeviceMicrophone

        device = settings.capture.device
        if isinstance(device, str) and device.isdigit():
            device = int(device)
        return SoundDeviceMicrophone(device=device)

    elif backend == "mock":
        return MockCaptureDevice()

    raise ValueError(f"Unknown capture backend: {backend}")


def create_segment_capture(settings: Settings) -> SegmentCapture:
    constraints = CaptureConstraints(
        sample_rate=settings.capture.sample_rate,
        channels=settings.capture.channels,
        echo_cancellation=settings.capture.echo_cancellation,
        noise_suppression=settings.capture.noise_suppression,
    )
    logger.info(f"Capture backend: {settings.capture.backend}")
    return SegmentCapture(create_capture_device(settings), constraints)
