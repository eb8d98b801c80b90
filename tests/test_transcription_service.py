import pytest

from clinscribe.models.audio import AudioSegment
from clinscribe.models.clinical import DoctorProfile, LanguageTag
from clinscribe.models.reasoning import BlobPart, OutputContract
from clinscribe.models.transcript import Speaker
from clinscribe.providers.base import ServiceError
from clinscribe.providers.reasoning.mock_reasoning import MockReasoningProvider
from clinscribe.services.transcription_service import UTTERANCE_LIST_SCHEMA, TranscriptionService
from clinscribe.utils.script import conforms_to_script
from clinscribe.utils.wav_utils import encode_wav

from conftest import silent_pcm, tone_pcm

HINDI_DIALOGUE = [
    {"speaker": "Doctor", "text": "नमस्ते, आपको क्या तकलीफ है?"},
    {"speaker": "Patient", "text": "मुझे तीन दिन से बुखार है।"},
]


@pytest.fixture
def segment():
    return AudioSegment(data=encode_wav(tone_pcm()), mime_type="audio/wav", sequence=0)


@pytest.mark.asyncio
async def test_hindi_segment_is_diarized_in_devanagari(segment):
    provider = MockReasoningProvider(replies=[HINDI_DIALOGUE])
    service = TranscriptionService(provider)

    utterances = await service.transcribe(segment, LanguageTag.HINDI)

    assert [u.speaker for u in utterances] == [Speaker.DOCTOR, Speaker.PATIENT]
    assert utterances[1].text == "मुझे तीन दिन से बुखार है।"
    assert all(conforms_to_script(u.text, LanguageTag.HINDI) for u in utterances)

    request = provider.requests[0]
    assert request.output is OutputContract.JSON_SCHEMA
    assert request.response_schema == UTTERANCE_LIST_SCHEMA
    blobs = [p for p in request.parts if isinstance(p, BlobPart)]
    assert blobs[0].mime_type == "audio/wav"
    assert blobs[0].data == segment.data
    assert "Devanagari" in request.system_instruction


@pytest.mark.asyncio
async def test_prior_context_and_profile_reach_the_service(segment):
    provider = MockReasoningProvider(replies=[[{"speaker": "Doctor", "text": "Any cough?"}]])
    service = TranscriptionService(provider)
    profile = DoctorProfile(qualification="BAMS", can_prescribe_allopathic=False)

    await service.transcribe(segment, LanguageTag.ENGLISH, prior_context="Patient: I have fever.", profile=profile)

    instruction = provider.requests[0].system_instruction
    assert "Patient: I have fever." in instruction
    assert "BAMS" in instruction
    assert "does not prescribe allopathic" in instruction


@pytest.mark.asyncio
async def test_romanized_output_for_hindi_drops_segment(segment):
    provider = MockReasoningProvider(replies=[[
        {"speaker": "Doctor", "text": "Namaste, aapko kya takleef hai?"},
    ]])
    service = TranscriptionService(provider)

    assert await service.transcribe(segment, LanguageTag.HINDI) is None


@pytest.mark.asyncio
async def test_units_inside_native_text_are_tolerated(segment):
    provider = MockReasoningProvider(replies=[[
        {"speaker": "Doctor", "text": "पैरासिटामोल 500mg दिन में दो बार लीजिए।"},
    ]])
    service = TranscriptionService(provider)

    utterances = await service.transcribe(segment, LanguageTag.HINDI)

    assert len(utterances) == 1


@pytest.mark.parametrize("reply", [
    "this is not json",
    '{"speaker": "Doctor", "text": "not a list"}',
    [{"speaker": "Nurse", "text": "Hello"}],
    [{"speaker": "Doctor"}],
    ["Doctor: hello"],
    ServiceError("upstream 503"),
])
@pytest.mark.asyncio
async def test_failures_drop_the_segment(segment, reply):
    provider = MockReasoningProvider(replies=[reply])
    service = TranscriptionService(provider)

    assert await service.transcribe(segment, LanguageTag.ENGLISH) is None


@pytest.mark.asyncio
async def test_fenced_json_is_accepted(segment):
    reply = '```json\n[{"speaker": "Patient", "text": "My throat hurts."}]\n```'
    provider = MockReasoningProvider(replies=[reply])
    service = TranscriptionService(provider)

    utterances = await service.transcribe(segment, LanguageTag.ENGLISH)

    assert [u.render() for u in utterances] == ["Patient: My throat hurts."]


@pytest.mark.asyncio
async def test_empty_utterances_are_discarded(segment):
    provider = MockReasoningProvider(replies=[[
        {"speaker": "Doctor", "text": "   "},
        {"speaker": "Patient", "text": "Yes."},
    ]])
    service = TranscriptionService(provider)

    utterances = await service.transcribe(segment, LanguageTag.ENGLISH)

    assert [u.text for u in utterances] == ["Yes."]


@pytest.mark.asyncio
async def test_silent_segment_skips_the_service():
    provider = MockReasoningProvider(replies=[HINDI_DIALOGUE])
    service = TranscriptionService(provider)
    silent = AudioSegment(data=encode_wav(silent_pcm()), sequence=3)

    assert await service.transcribe(silent, LanguageTag.HINDI) == []
    assert provider.call_count == 0


@pytest.mark.asyncio
async def test_failed_segment_is_audited(segment, audit):
    provider = MockReasoningProvider(replies=["garbage"])
    service = TranscriptionService(provider, audit=audit)
    events = []
    audit.log_stage_degraded = lambda *args: events.append(args)

    await service.transcribe(segment, LanguageTag.ENGLISH)

    assert events and events[0][:2] == ("transcription", "drop_segment")
