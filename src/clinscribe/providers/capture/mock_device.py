import logging
from typing import Any, List, Optional
from ..base import AudioSink, CaptureDevice, DeviceError
from ...models.audio import CaptureConstraints

logger = logging.getLogger(__name__)


class MockStream:
    """Stream handle returned by MockCaptureDevice."""

    def __init__(self, constraints: CaptureConstraints, sink: AudioSink):
        self.constraints = constraints
        self.sink = sink
        self.closed = False


class MockCaptureDevice(CaptureDevice):
    """Mock capture device for testing without audio hardware.

    Audio is pushed manually with ``feed``, standing in for the device thread.
    ``preroll`` is delivered from inside ``acquire``, the way a real stream may
    start calling back before ``acquire`` returns.
    """

    def __init__(self, deny: bool = False, preroll: bytes = b"", **kwargs):
        self.deny = deny
        self.preroll = preroll
        self.stream: Optional[MockStream] = None
        self.acquire_count = 0
        self.release_count = 0
        self.requested: List[CaptureConstraints] = []

    @property
    def is_held(self) -> bool:
        return self.stream is not None and not self.stream.closed

    def acquire(self, constraints: CaptureConstraints, sink: AudioSink) -> Any:
        self.requested.append(constraints)
        if self.deny:
            logger.warning("Mock device denying microphone access")
            raise DeviceError("Microphone access denied.")
        if self.is_held:
            raise DeviceError("Device is already in use")

        self.acquire_count += 1
        self.stream = MockStream(constraints, sink)
        if self.preroll:
            sink(self.preroll)
        return self.stream

    def release(self, stream: Any) -> None:
        if stream is None or stream.closed:
            return
        stream.closed = True
        self.release_count += 1

    def feed(self, pcm: bytes) -> None:
        """Push PCM as if the device thread had captured it."""
        if self.is_held:
            self.stream.sink(pcm)
