import pytest

from agribot.clients import ConversationClient, RecommendationClient
from agribot.errors import SpeechCaptureError, SpeechSynthesisError
from agribot.models import SensorReading
from agribot.preferences import PreferenceStore
from agribot.session import ConversationSession
from agribot.voice import VoiceIOController

SCENARIO_A_WIRE = {"N": 80, "P": 70, "K": 40, "temperature": 27, "humidity": 75, "ph": 6.2, "rainfall": 180}


class FakeTransport:
    """Answers by function name; a value that is an exception instance is raised."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    def send(self, function, payload, timeout):
        self.calls.append((function, payload, timeout))
        response = self.responses.get(function, {"error": "no fake response"})
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(payload)
        return response

    def requests_for(self, function):
        return [payload for name, payload, _ in self.calls if name == function]


class FixedSensorSource:
    def __init__(self, reading):
        self.reading = reading
        self.calls = 0

    def generate(self):
        self.calls += 1
        return self.reading


class FakeRecognizer:
    def __init__(self, text="What crop should I plant?", error=None):
        self.text = text
        self.error = error
        self.calls = []

    def transcribe(self, wav_bytes, locale):
        self.calls.append((wav_bytes, locale))
        if self.error:
            raise SpeechCaptureError(self.error)
        return self.text


class FakeSynthesizer:
    def __init__(self, supported=("en", "hi"), fail=False):
        self.supported = set(supported)
        self.fail = fail
        self.calls = []

    def supports(self, locale):
        return locale.split("-")[0] in self.supported

    def synthesize(self, text, locale):
        self.calls.append((text, locale))
        if self.fail:
            raise SpeechSynthesisError("service down")
        return f"mp3:{locale}:{text}".encode("utf-8")


@pytest.fixture
def scenario_reading():
    return SensorReading.from_wire(SCENARIO_A_WIRE)


@pytest.fixture
def transport():
    return FakeTransport({
        "crop-prediction": {"crop": "Rice", "confidence": 85, "reasoning": "Warm, humid and wet."},
        "ai-chat": {"response": "Rice suits your field."},
    })


@pytest.fixture
def preference_store(tmp_path):
    return PreferenceStore(str(tmp_path / "preferences.csv"))


@pytest.fixture
def make_session(transport, scenario_reading, preference_store):
    def _make(voice=None, **kwargs):
        kwargs.setdefault("sensor_source", FixedSensorSource(scenario_reading))
        kwargs.setdefault("recommendation_client", RecommendationClient(transport, timeout=5))
        kwargs.setdefault("conversation_client", ConversationClient(transport, timeout=5))
        kwargs.setdefault("preferences", preference_store)
        return ConversationSession(voice=voice, **kwargs)
    return _make


@pytest.fixture
def voice():
    return VoiceIOController(recognizer=FakeRecognizer(), synthesizer=FakeSynthesizer())
