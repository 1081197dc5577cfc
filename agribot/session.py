import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Optional

from .context import ContextAssembler
from .i18n import LanguageCatalog, TranslationTable
from .models import ROLE_ASSISTANT, ROLE_USER, ContextPayload, ConversationHistory, ConversationTurn
from .result import ErrorKind
from .voice import CaptureFailed, TranscriptReady, Utterance

logger = logging.getLogger(__name__)

APOLOGY_KEY = "chat_apology"


@dataclass(frozen=True)
class TurnOutcome:
    user_turn: ConversationTurn
    assistant_turn: ConversationTurn
    context: ContextPayload
    answered: bool
    utterance: Optional[Utterance] = None


@dataclass
class _Grounding:
    reading: object
    recommendation: object
    language: str
    created_at: float


class ConversationSession:
    """Owns one user's conversation: language, history, grounding and voice.

    Turns are processed one at a time. Input that arrives while a turn is
    running (a transcript, a second submit from another thread) is queued and
    handled as the next turn.
    """

    def __init__(self, sensor_source, recommendation_client, conversation_client,
                 assembler=None, catalog=None, translator=None, voice=None,
                 preferences=None, grounding_ttl=None, clock=time.monotonic,
                 on_grounding=None):
        self.sensor_source = sensor_source
        self.recommendation_client = recommendation_client
        self.conversation_client = conversation_client
        self.assembler = assembler or ContextAssembler()
        self.catalog = catalog or LanguageCatalog()
        self.translator = translator or TranslationTable()
        self.voice = voice
        self.preferences = preferences
        self.grounding_ttl = grounding_ttl
        self._clock = clock
        self._on_grounding = on_grounding

        self.history = ConversationHistory()
        self.notices = []
        self.voice_output = False
        self.microphone_enabled = voice is not None and voice.can_listen
        self.speaker_enabled = voice is not None and voice.can_speak
        self.last_context = None

        self._pending = deque()
        self._queue_lock = threading.Lock()
        self._busy = False
        self._generation = 0
        self._grounding = None
        self._posted_capability_notices = set()

        self.profile = self.catalog.profile(self.catalog.default_language)
        stored = preferences.preferred_language() if preferences is not None else None
        if stored and self.catalog.is_supported(stored):
            self.profile = self.catalog.profile(stored)
            logger.info(f"Restored preferred language '{stored}'.")
        elif stored:
            logger.warning(f"Stored preferred language '{stored}' is not supported. Using '{self.profile.code}'.")

    # language

    @property
    def language(self):
        return self.profile.code

    def t(self, key, **kwargs):
        return self.translator.resolve(key, self.profile.code, **kwargs)

    def set_language(self, code):
        if not self.catalog.is_supported(code):
            raise ValueError(f"Unsupported language '{code}'")
        if code != self.profile.code:
            self.profile = self.catalog.profile(code)
            logger.info(f"Session language changed to '{code}'.")
        if self.preferences is not None:
            self.preferences.set_preferred_language(code)
        return self.profile

    # notices

    def _notify(self, message):
        self.notices.append(message)

    def drain_notices(self):
        notices, self.notices = self.notices, []
        return notices

    # turn loop

    @property
    def busy(self):
        return self._busy

    def submit(self, text):
        """Queue ``text`` as a turn and process the queue unless a turn is already running."""
        text = (text or "").strip()
        if not text:
            logger.debug("Ignoring empty input.")
            return []
        with self._queue_lock:
            self._pending.append(text)
            if self._busy:
                logger.info("Turn in progress; input queued as next turn.")
                return []
            self._busy = True

        outcomes = []
        try:
            while True:
                with self._queue_lock:
                    if not self._pending:
                        self._busy = False
                        break
                    next_text = self._pending.popleft()
                outcome = self._run_turn(next_text)
                if outcome is not None:
                    outcomes.append(outcome)
        except BaseException:
            with self._queue_lock:
                self._busy = False
            raise
        return outcomes

    def _refresh_grounding(self, language):
        cached = self._grounding
        if (cached is not None and self.grounding_ttl
                and cached.language == language
                and self._clock() - cached.created_at < self.grounding_ttl):
            logger.debug("Reusing recent grounding for this turn.")
            return cached.reading, cached.recommendation

        reading = self.sensor_source.generate()
        result = self.recommendation_client.recommend(reading)
        recommendation = result.value if result.ok else None
        if not result.ok:
            logger.info(f"Continuing without crop recommendation ({result.kind.value}).")
        self._grounding = _Grounding(reading, recommendation, language, self._clock())
        if self._on_grounding is not None:
            self._on_grounding(reading, recommendation)
        return reading, recommendation

    def _run_turn(self, text):
        generation = self._generation
        profile = self.profile
        logger.info(f"Processing turn in '{profile.code}': '{text}'")

        reading, recommendation = self._refresh_grounding(profile.code)
        context = self.assembler.assemble(reading, recommendation, profile.code)
        result = self.conversation_client.ask(text, context)

        if generation != self._generation:
            logger.info("Chat view was left during the turn; discarding its result.")
            return None

        if result.ok:
            reply = result.value
        else:
            logger.warning(f"Assistant failed ({result}); replying with apology.")
            reply = self.translator.resolve(APOLOGY_KEY, profile.code)

        user_turn = self.history.append(ConversationTurn(role=ROLE_USER, content=text))
        assistant_turn = self.history.append(ConversationTurn(role=ROLE_ASSISTANT, content=reply))
        self.last_context = context

        utterance = None
        if self.voice_output and self.speaker_enabled:
            utterance = self._speak(reply, profile)
        return TurnOutcome(user_turn, assistant_turn, context, result.ok, utterance)

    # voice

    def _notify_once(self, key, **kwargs):
        marker = (key, tuple(sorted(kwargs.items())))
        if marker in self._posted_capability_notices:
            return
        self._posted_capability_notices.add(marker)
        self._notify(self.t(key, **kwargs))

    def _speak(self, text, profile):
        spoken = self.voice.speak(text, profile.synthesis_locale)
        if spoken.ok:
            return spoken.value
        if spoken.kind == ErrorKind.CAPABILITY:
            self._notify_once("speaker_language_unsupported", lang=profile.display_name)
        else:
            logger.warning(f"Could not speak reply: {spoken}")
        return None

    def set_voice_output(self, enabled):
        if enabled and not self.speaker_enabled:
            self._notify_once("speaker_unavailable")
            self.voice_output = False
            return False
        self.voice_output = bool(enabled)
        if not self.voice_output and self.voice is not None:
            self.voice.stop()
        return self.voice_output

    def playback_finished(self):
        """The host has handed the last utterance to the player; speaking is over."""
        if self.voice is not None:
            self.voice.playback_complete()

    def submit_audio(self, wav_bytes):
        """Transcribe recorded audio in the current language and run it as a turn."""
        if not self.microphone_enabled:
            self._notify_once("mic_unavailable")
            return []
        event = self.voice.capture(wav_bytes, self.profile.recognition_locale)
        return self.handle_voice_event(event)

    def handle_voice_event(self, event):
        if isinstance(event, TranscriptReady):
            return self.submit(event.text)
        if isinstance(event, CaptureFailed):
            self._notify(self.t("voice_capture_error", error=event.message))
            return []
        if event is not None and not event.ok and event.kind == ErrorKind.CAPABILITY:
            self.microphone_enabled = False
            self._notify_once("mic_unavailable")
        return []

    def leave_chat(self):
        """Stop capture/playback and mark any running turn stale."""
        self._generation += 1
        with self._queue_lock:
            self._pending.clear()
        if self.voice is not None:
            self.voice.stop()
        logger.debug("Left chat view.")
