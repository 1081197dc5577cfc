from agribot.result import ErrorKind
from agribot.voice import (CaptureFailed, Supported, TranscriptReady, Unsupported, VoiceIOController,
                           VoiceState, detect_capabilities)

from conftest import FakeRecognizer, FakeSynthesizer


def test_capabilities_probed_once_at_construction():
    assert detect_capabilities(None, None) == Unsupported("no speech recognition or synthesis on this platform")
    assert detect_capabilities(object(), None) == Supported(recognition=True, synthesis=False)


def test_start_listening_is_idempotent(voice):
    assert voice.start_listening("hi-IN").ok
    assert voice.state == VoiceState.LISTENING
    again = voice.start_listening("en-IN")
    assert again.ok
    assert voice.state == VoiceState.LISTENING
    assert voice.locale == "hi-IN"


def test_transcript_returns_to_idle_with_event(voice):
    voice.start_listening("hi-IN")
    event = voice.transcript_received("  कौन सी फसल?  ")
    assert event == TranscriptReady(text="कौन सी फसल?", locale="hi-IN")
    assert voice.state == VoiceState.IDLE


def test_capture_error_is_recoverable(voice):
    voice.start_listening("en-IN")
    event = voice.capture_error("microphone busy")
    assert isinstance(event, CaptureFailed)
    assert event.recoverable
    assert voice.state == VoiceState.IDLE
    assert voice.start_listening("en-IN").ok


def test_blank_transcript_is_a_capture_error(voice):
    voice.start_listening("en-IN")
    assert isinstance(voice.transcript_received("   "), CaptureFailed)
    assert voice.state == VoiceState.IDLE


def test_events_outside_listening_are_ignored(voice):
    assert voice.transcript_received("stray") is None
    assert voice.capture_error("stray") is None
    assert voice.state == VoiceState.IDLE


def test_capture_runs_recognizer_with_locale():
    recognizer = FakeRecognizer(text="When to irrigate?")
    voice = VoiceIOController(recognizer=recognizer, synthesizer=None)
    event = voice.capture(b"RIFF....", "ta-IN")
    assert event == TranscriptReady(text="When to irrigate?", locale="ta-IN")
    assert recognizer.calls == [(b"RIFF....", "ta-IN")]


def test_capture_failure_surfaces_notice_event():
    voice = VoiceIOController(recognizer=FakeRecognizer(error="Speech was not understood"))
    event = voice.capture(b"noise", "en-IN")
    assert event == CaptureFailed(message="Speech was not understood")
    assert voice.state == VoiceState.IDLE


def test_speak_then_playback_complete(voice):
    result = voice.speak("Plant rice.", "en-IN")
    assert result.ok
    assert voice.state == VoiceState.SPEAKING
    assert result.value.audio == b"mp3:en-IN:Plant rice."
    voice.playback_complete()
    assert voice.state == VoiceState.IDLE
    assert voice.current_utterance is None


def test_new_speak_cancels_current_utterance(voice):
    voice.speak("first", "en-IN")
    voice.speak("second", "en-IN")
    assert voice.state == VoiceState.SPEAKING
    assert voice.current_utterance.text == "second"
    assert voice.cancelled_utterances == 1


def test_speak_in_unsupported_locale_is_capability_error(voice):
    result = voice.speak("ପାଣି", "or-IN")
    assert not result.ok
    assert result.kind == ErrorKind.CAPABILITY
    assert voice.state == VoiceState.IDLE


def test_synthesis_failure_leaves_controller_idle():
    voice = VoiceIOController(synthesizer=FakeSynthesizer(fail=True))
    result = voice.speak("hello", "en-IN")
    assert not result.ok
    assert result.kind == ErrorKind.TRANSPORT
    assert voice.state == VoiceState.IDLE


def test_unsupported_platform_rejects_every_action():
    voice = VoiceIOController()
    assert voice.state == VoiceState.UNSUPPORTED
    for result in (voice.start_listening("en-IN"), voice.speak("hi", "en-IN"), voice.capture(b"x", "en-IN")):
        assert not result.ok
        assert result.kind == ErrorKind.CAPABILITY
    assert voice.state == VoiceState.UNSUPPORTED


def test_missing_single_capability_rejects_that_action_only():
    voice = VoiceIOController(synthesizer=FakeSynthesizer())
    assert voice.state == VoiceState.IDLE
    assert voice.start_listening("en-IN").kind == ErrorKind.CAPABILITY
    assert voice.speak("hello", "en-IN").ok


def test_stop_halts_capture_and_playback(voice):
    voice.start_listening("en-IN")
    voice.stop()
    assert voice.state == VoiceState.IDLE
    voice.speak("hello", "en-IN")
    voice.stop()
    assert voice.state == VoiceState.IDLE
    assert voice.current_utterance is None


def test_listening_cancels_playback(voice):
    voice.speak("hello", "en-IN")
    voice.start_listening("en-IN")
    assert voice.state == VoiceState.LISTENING
    assert voice.current_utterance is None
