from abc import ABC, abstractmethod
from typing import Any, Callable
from ..models.audio import CaptureConstraints
from ..models.reasoning import ReasoningRequest, ReasoningResult

# Receives raw interleaved 16-bit PCM from the device's own thread.
AudioSink = Callable[[bytes], None]


class CaptureDevice(ABC):
    """Abstract base class for microphone-like capture devices."""

    @abstractmethod
    def acquire(self, constraints: CaptureConstraints, sink: AudioSink) -> Any:
        """
        Acquire the device exclusively and start pushing PCM into ``sink``.

        Args:
            constraints: Requested sample rate, channels and processing flags
            sink: Callback receiving raw PCM bytes

        Returns:
            Opaque stream handle, passed back to ``release``

        Raises:
            DeviceError: If the device is unavailable or access is denied
        """
        pass

    @abstractmethod
    def release(self, stream: Any) -> None:
        """Stop the stream and release the device. Must be safe to call twice."""
        pass


class ReasoningProvider(ABC):
    """Abstract base class for external reasoning (LLM inference) providers."""

    @abstractmethod
    async def generate(self, request: ReasoningRequest) -> ReasoningResult:
        """
        Run one inference request.

        Args:
            request: Model, instructions, content parts and output contract

        Returns:
            TextResult for FREE_TEXT requests, StructuredResult for JSON_SCHEMA

        Raises:
            ServiceError: On transport failure
            ContractViolation: If the response does not match the requested contract
        """
        pass

    async def aclose(self) -> None:
        """Release network resources held by the provider."""
        return None


class DeviceError(Exception):
    """Exception raised when the capture device is unavailable or denied."""
    pass


class ServiceError(Exception):
    """Exception raised when the reasoning service call fails."""
    pass


class ContractViolation(ServiceError):
    """Exception raised when a stage's output fails its schema or invariant."""
    pass
