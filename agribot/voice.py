"""Speech capture/playback state machine.

Platform capability is probed once, at construction. Every transition is an
explicit method call made from the session's turn loop; completions come back
as return values (``Ok``/``Err`` or a voice event) rather than callbacks.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .errors import SpeechCaptureError, SpeechSynthesisError
from .result import Err, ErrorKind, Ok

logger = logging.getLogger(__name__)


class VoiceState(Enum):
    IDLE = "idle"
    LISTENING = "listening"
    TRANSCRIPT_READY = "transcript_ready"
    SPEAKING = "speaking"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class Supported:
    recognition: bool
    synthesis: bool


@dataclass(frozen=True)
class Unsupported:
    reason: str


Capability = Union[Supported, Unsupported]


@dataclass(frozen=True)
class TranscriptReady:
    text: str
    locale: str


@dataclass(frozen=True)
class CaptureFailed:
    message: str
    recoverable: bool = True


@dataclass(frozen=True)
class Utterance:
    text: str
    locale: str
    audio: bytes


def detect_capabilities(recognizer, synthesizer):
    recognition = recognizer is not None
    synthesis = synthesizer is not None
    if not recognition and not synthesis:
        return Unsupported("no speech recognition or synthesis on this platform")
    return Supported(recognition=recognition, synthesis=synthesis)


class VoiceIOController:
    def __init__(self, recognizer=None, synthesizer=None):
        self._recognizer = recognizer
        self._synthesizer = synthesizer
        self.capability = detect_capabilities(recognizer, synthesizer)
        self.locale: Optional[str] = None
        self.current_utterance: Optional[Utterance] = None
        self.cancelled_utterances = 0
        if isinstance(self.capability, Unsupported):
            self.state = VoiceState.UNSUPPORTED
            logger.info(f"Voice I/O unsupported: {self.capability.reason}")
        else:
            self.state = VoiceState.IDLE
            logger.info(f"Voice I/O ready (recognition={self.capability.recognition}, synthesis={self.capability.synthesis}).")

    @property
    def can_listen(self):
        return isinstance(self.capability, Supported) and self.capability.recognition

    @property
    def can_speak(self):
        return isinstance(self.capability, Supported) and self.capability.synthesis

    def _unavailable(self, what):
        return Err(ErrorKind.CAPABILITY, f"{what} not available")

    # capture

    def start_listening(self, locale):
        if not self.can_listen:
            return self._unavailable("speech recognition")
        if self.state == VoiceState.LISTENING:
            logger.debug("start_listening ignored: capture already active.")
            return Ok(self.state)
        if self.state == VoiceState.SPEAKING:
            self._cancel_playback()
        self.locale = locale
        self.state = VoiceState.LISTENING
        logger.debug(f"Listening ({locale}).")
        return Ok(self.state)

    def transcript_received(self, text):
        if self.state != VoiceState.LISTENING:
            logger.debug(f"Transcript ignored in state {self.state.value}.")
            return None
        text = (text or "").strip()
        if not text:
            return self.capture_error("Speech was not understood")
        self.state = VoiceState.TRANSCRIPT_READY
        event = TranscriptReady(text=text, locale=self.locale)
        self.state = VoiceState.IDLE
        return event

    def capture_error(self, message):
        if self.state != VoiceState.LISTENING:
            logger.debug(f"Capture error ignored in state {self.state.value}: {message}")
            return None
        logger.warning(f"Voice capture failed: {message}")
        self.state = VoiceState.IDLE
        return CaptureFailed(message=message)

    def capture(self, wav_bytes, locale):
        """Run one capture session over recorded audio and return the resulting voice event."""
        started = self.start_listening(locale)
        if not started.ok:
            return started
        try:
            text = self._recognizer.transcribe(wav_bytes, self.locale)
        except SpeechCaptureError as e:
            return self.capture_error(str(e))
        return self.transcript_received(text)

    # playback

    def _cancel_playback(self):
        if self.current_utterance is not None:
            self.cancelled_utterances += 1
            logger.debug("Cancelled current playback.")
        self.current_utterance = None
        self.state = VoiceState.IDLE

    def speak(self, text, locale):
        if not self.can_speak:
            return self._unavailable("speech synthesis")
        if self.state == VoiceState.SPEAKING:
            self._cancel_playback()
        elif self.state == VoiceState.LISTENING:
            logger.debug("speak requested while listening; capture stopped.")
            self.state = VoiceState.IDLE

        if hasattr(self._synthesizer, "supports") and not self._synthesizer.supports(locale):
            return Err(ErrorKind.CAPABILITY, f"speech synthesis not available for {locale}")
        try:
            audio = self._synthesizer.synthesize(text, locale)
        except SpeechSynthesisError as e:
            logger.warning(f"Speech synthesis failed ({locale}): {e}")
            return Err(ErrorKind.TRANSPORT, str(e))

        self.current_utterance = Utterance(text=text, locale=locale, audio=audio)
        self.state = VoiceState.SPEAKING
        return Ok(self.current_utterance)

    def playback_complete(self):
        if self.state != VoiceState.SPEAKING:
            return
        self.current_utterance = None
        self.state = VoiceState.IDLE

    def stop(self):
        if self.state == VoiceState.SPEAKING:
            self._cancel_playback()
        elif self.state in (VoiceState.LISTENING, VoiceState.TRANSCRIPT_READY):
            self.state = VoiceState.IDLE
        logger.debug(f"Voice I/O stopped; state {self.state.value}.")
