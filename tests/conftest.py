import asyncio
import struct
from typing import Any, Callable, Dict, List

import pytest

from clinscribe.medical.dictionary import ClinicalProtocol, MedicalDictionary
from clinscribe.models.clinical import DoctorProfile
from clinscribe.models.reasoning import (
    OutputContract,
    ReasoningRequest,
    ReasoningResult,
    StructuredResult,
    TextResult,
)
from clinscribe.providers.base import ReasoningProvider
from clinscribe.security.audit_logger import AuditLogger


def tone_pcm(samples: int = 1600, amplitude: int = 8000) -> bytes:
    """Loud square wave, well above the silence threshold."""
    values = [amplitude if (i // 8) % 2 == 0 else -amplitude for i in range(samples)]
    return struct.pack(f'<{samples}h', *values)


def silent_pcm(samples: int = 1600) -> bytes:
    return b'\x00\x00' * samples


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until ``predicate`` holds or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(0.005)


class RoutingProvider(ReasoningProvider):
    """Answers each stage from its own handler, chosen by the system instruction."""

    ROUTES = {
        "Medical Scribe": "transcription",
        "Medical Editor": "cleanup",
        "clinical note": "clinical_note",
        "pharmacologist": "prescription",
        "case summary": "case_summary",
    }

    def __init__(self, delay: float = 0.0, **handlers: Any):
        self.handlers: Dict[str, Any] = handlers
        self.delay = delay
        self.requests: List[ReasoningRequest] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def route(self, request: ReasoningRequest) -> str:
        for marker, stage in self.ROUTES.items():
            if marker in request.system_instruction:
                return stage
        raise AssertionError(f"Unroutable request: {request.system_instruction[:80]}")

    async def generate(self, request: ReasoningRequest) -> ReasoningResult:
        self.requests.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            handler = self.handlers[self.route(request)]
            reply = handler(request) if callable(handler) else handler
            if isinstance(reply, BaseException):
                raise reply
        finally:
            self.in_flight -= 1

        if request.output is OutputContract.JSON_SCHEMA:
            return StructuredResult(data=reply)
        return TextResult(text=reply)

    def requests_for(self, stage: str) -> List[ReasoningRequest]:
        return [r for r in self.requests if self.route(r) == stage]


@pytest.fixture
def dictionary() -> MedicalDictionary:
    return MedicalDictionary({
        "paracetemol": "Paracetamol",
        "paracitamol": "Paracetamol",
        "पैरासिटामोल": "Paracetamol",
        "amoxycillin": "Amoxicillin",
        "ibuprophen": "Ibuprofen",
        "Cetirizine": "Cetirizine",
    })


@pytest.fixture
def protocols() -> List[ClinicalProtocol]:
    return [
        ClinicalProtocol(condition="Viral fever", medications=["Paracetamol"], notes="Hydration"),
        ClinicalProtocol(condition="Bacterial pharyngitis", medications=["Amoxicillin"]),
    ]


@pytest.fixture
def profile() -> DoctorProfile:
    return DoctorProfile(qualification="MBBS", can_prescribe_allopathic=True)


@pytest.fixture
def audit() -> AuditLogger:
    return AuditLogger()
