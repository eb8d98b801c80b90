"""
Segmented audio capture.

The capture device pushes PCM from its own thread into a lock-protected
buffer. An asyncio timer task turns the buffer into WAV segments at a fixed
cadence and awaits the segment callback before sleeping again, so segments
are handed over strictly one at a time.
"""

import asyncio
import inspect
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Optional, Union

from .transcript_accumulator import SegmentPolicy
from ..models.audio import AudioSegment, CaptureConstraints
from ..providers.base import CaptureDevice, DeviceError
from ..utils.wav_utils import encode_wav

logger = logging.getLogger(__name__)

SegmentCallback = Callable[[AudioSegment], Union[None, Awaitable[None]]]


class CaptureState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"
    STOPPED = "stopped"


_TRANSITIONS: Dict[CaptureState, FrozenSet[CaptureState]] = {
    CaptureState.IDLE: frozenset({CaptureState.RECORDING}),
    CaptureState.RECORDING: frozenset({CaptureState.PAUSED, CaptureState.STOPPED}),
    CaptureState.PAUSED: frozenset({CaptureState.RECORDING, CaptureState.STOPPED}),
    CaptureState.STOPPED: frozenset({CaptureState.RECORDING}),
}


def can_transition(current: CaptureState, target: CaptureState) -> bool:
    return target in _TRANSITIONS[current]


class IllegalTransition(RuntimeError):
    """Raised when the capture state machine is driven along an undefined edge."""
    pass


@dataclass
class CaptureOptions:
    """Per-encounter capture options."""
    segment_interval_ms: int = 20000
    on_segment: Optional[SegmentCallback] = None
    policy: SegmentPolicy = SegmentPolicy.DELTA


class SegmentCapture:
    """Captures one encounter's audio and emits it as segments."""

    def __init__(self, device: CaptureDevice, constraints: Optional[CaptureConstraints] = None):
        self.device = device
        self.constraints = constraints or CaptureConstraints()
        self.state = CaptureState.IDLE
        self.error: Optional[str] = None
        self.options = CaptureOptions()
        self.segments_emitted = 0

        self._stream: Any = None
        self._timer: Optional[asyncio.Task] = None
        self._emit_lock: Optional[asyncio.Lock] = None
        self._buffer = bytearray()
        self._buffer_lock = threading.Lock()
        self._emitted_upto = 0
        self._sequence = 0
        self._starting = False

    @property
    def is_recording(self) -> bool:
        return self.state in (CaptureState.RECORDING, CaptureState.PAUSED)

    @property
    def is_paused(self) -> bool:
        return self.state is CaptureState.PAUSED

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def captured_bytes(self) -> int:
        with self._buffer_lock:
            return len(self._buffer)

    def _transition(self, target: CaptureState) -> None:
        if not can_transition(self.state, target):
            raise IllegalTransition(f"Cannot go from {self.state.value} to {target.value}")
        logger.debug(f"Capture state: {self.state.value} -> {target.value}")
        self.state = target

    def _sink(self, pcm: bytes) -> None:
        # Runs on the device thread; audio delivered while acquire() is still
        # returning belongs to the encounter too
        if pcm and (self._starting or self.state is CaptureState.RECORDING):
            with self._buffer_lock:
                self._buffer.extend(pcm)

    def _start_failed(self, error: Exception) -> None:
        self._starting = False
        self.error = str(error)
        with self._buffer_lock:
            self._buffer = bytearray()

    async def start(self, options: Optional[CaptureOptions] = None) -> Any:
        """
        Acquire the device and begin capturing.

        Args:
            options: Segment interval, segment callback and segmentation policy

        Returns:
            The device stream handle

        Raises:
            DeviceError: If the device cannot be acquired; no timer is armed
        """
        if self.is_recording:
            logger.debug("Capture already running, start() ignored")
            return self._stream

        options = options or CaptureOptions()
        if options.segment_interval_ms <= 0:
            raise ValueError("segment_interval_ms must be positive")

        self.error = None
        with self._buffer_lock:
            self._buffer = bytearray()
        self._emitted_upto = 0
        self._sequence = 0
        self.segments_emitted = 0

        self._starting = True
        try:
            stream = await asyncio.to_thread(self.device.acquire, self.constraints, self._sink)
        except DeviceError as e:
            self._start_failed(e)
            logger.error(f"Capture device unavailable: {e}")
            raise
        except Exception as e:
            self._start_failed(e)
            logger.error(f"Capture device failed: {e}", exc_info=True)
            raise DeviceError(f"Capture device failed: {e}") from e

        self._stream = stream
        self.options = options
        try:
            self._transition(CaptureState.RECORDING)
            if options.on_segment is not None:
                self._emit_lock = asyncio.Lock()
                self._timer = asyncio.create_task(self._run_timer())
        except BaseException:
            self._release()
            raise
        finally:
            self._starting = False

        logger.info(
            f"Capture started: {options.policy.value} segments every {options.segment_interval_ms}ms"
        )
        return stream

    def pause(self) -> None:
        """Suspend data collection, keeping the device. No-op unless recording."""
        if self.state is not CaptureState.RECORDING:
            logger.debug(f"pause() ignored in state {self.state.value}")
            return
        self._transition(CaptureState.PAUSED)

    def resume(self) -> None:
        """Resume data collection. No-op unless paused."""
        if self.state is not CaptureState.PAUSED:
            logger.debug(f"resume() ignored in state {self.state.value}")
            return
        self._transition(CaptureState.RECORDING)

    async def stop(self) -> Optional[AudioSegment]:
        """
        Finish the encounter's capture.

        Waits for an in-flight segment to be handed over, cancels the timer,
        releases the device and flushes the trailing segment to the callback.

        Returns:
            The full-encounter audio, or None if nothing was captured
        """
        if not self.is_recording:
            return None

        await self._cancel_timer(wait_for_emission=True)
        self._transition(CaptureState.STOPPED)
        self._release()

        if self.options.on_segment is not None:
            await self._emit()

        with self._buffer_lock:
            pcm = bytes(self._buffer)
            self._buffer = bytearray()

        if not pcm:
            logger.info("Capture stopped with no audio")
            return None

        logger.info(f"Capture stopped: {len(pcm)} PCM bytes, {self.segments_emitted} segment(s) emitted")
        return AudioSegment(data=self._encode(pcm), mime_type="audio/wav", sequence=self._sequence)

    async def close(self) -> None:
        """Forced teardown: cancel the timer and release the device without flushing."""
        await self._cancel_timer(wait_for_emission=False)
        if self.is_recording:
            self._transition(CaptureState.STOPPED)
        self._release()
        with self._buffer_lock:
            self._buffer = bytearray()

    async def __aenter__(self) -> "SegmentCapture":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _run_timer(self) -> None:
        interval = self.options.segment_interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            if self.state is not CaptureState.RECORDING:
                continue
            async with self._emit_lock:
                await self._emit()

    async def _cancel_timer(self, wait_for_emission: bool) -> None:
        timer, self._timer = self._timer, None
        if timer is None:
            return

        if wait_for_emission and self._emit_lock is not None:
            async with self._emit_lock:
                timer.cancel()
        else:
            timer.cancel()

        try:
            await timer
        except asyncio.CancelledError:
            pass

    async def _emit(self) -> None:
        segment = self._next_segment()
        if segment is None:
            return

        self.segments_emitted += 1
        logger.debug(f"Emitting segment {segment.sequence} ({segment.size} bytes)")
        try:
            result = self.options.on_segment(segment)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Segment callback failed for segment {segment.sequence}: {e}", exc_info=True)

    def _next_segment(self) -> Optional[AudioSegment]:
        with self._buffer_lock:
            if len(self._buffer) <= self._emitted_upto:
                return None
            if self.options.policy is SegmentPolicy.CUMULATIVE:
                pcm = bytes(self._buffer)
            else:
                pcm = bytes(self._buffer[self._emitted_upto:])
            self._emitted_upto = len(self._buffer)

        segment = AudioSegment(data=self._encode(pcm), mime_type="audio/wav", sequence=self._sequence)
        self._sequence += 1
        return segment

    def _encode(self, pcm: bytes) -> bytes:
        return encode_wav(
            pcm,
            sample_rate=self.constraints.sample_rate,
            channels=self.constraints.channels,
            sample_width=self.constraints.sample_width,
        )

    def _release(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            self.device.release(stream)
        except Exception as e:
            logger.error(f"Failed to release capture device: {e}", exc_info=True)
