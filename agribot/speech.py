import io
import logging

from .errors import SpeechCaptureError, SpeechSynthesisError

logger = logging.getLogger(__name__)

try:
    import speech_recognition as sr
    SPEECH_RECOGNITION_AVAILABLE = True
except ImportError:
    logger.warning("Library `SpeechRecognition` not found; voice input disabled. Install: `pip install SpeechRecognition`")
    SPEECH_RECOGNITION_AVAILABLE = False

try:
    from gtts import gTTS
    from gtts.lang import tts_langs
    GTTS_AVAILABLE = True
except ImportError:
    logger.warning("Library `gTTS` not found; voice replies disabled. Install: `pip install gTTS`")
    GTTS_AVAILABLE = False

GTTS_TLD = "co.in"


class GoogleSpeechRecognizer:
    """Transcribes recorded WAV audio with the Google Web Speech API."""

    def __init__(self):
        if not SPEECH_RECOGNITION_AVAILABLE:
            raise RuntimeError("SpeechRecognition is not installed")
        self._recognizer = sr.Recognizer()

    def transcribe(self, wav_bytes, locale):
        if not wav_bytes:
            raise SpeechCaptureError("No audio recorded")
        try:
            with sr.AudioFile(io.BytesIO(wav_bytes)) as source:
                audio = self._recognizer.record(source)
            text = self._recognizer.recognize_google(audio, language=locale)
        except sr.UnknownValueError as e:
            raise SpeechCaptureError("Speech was not understood") from e
        except sr.RequestError as e:
            logger.error(f"Speech recognition service error ({locale}): {e}")
            raise SpeechCaptureError(f"Recognition service unavailable: {e}") from e
        except (ValueError, EOFError) as e:
            raise SpeechCaptureError(f"Unreadable audio: {e}") from e
        logger.info(f"Transcribed {len(wav_bytes)} bytes of audio in '{locale}'.")
        return text


def gtts_language(locale):
    return locale.split("-")[0].lower()


class GTTSSynthesizer:
    def __init__(self, tld=GTTS_TLD):
        if not GTTS_AVAILABLE:
            raise RuntimeError("gTTS is not installed")
        self.tld = tld
        self._languages = None

    def supports(self, locale):
        if self._languages is None:
            self._languages = set(tts_langs())
        return gtts_language(locale) in self._languages

    def synthesize(self, text, locale):
        if not text:
            raise SpeechSynthesisError("Nothing to speak")
        lang_code = gtts_language(locale)
        if not self.supports(locale):
            raise SpeechSynthesisError(f"Language '{lang_code}' not supported for speech")
        try:
            tts = gTTS(text=text, lang=lang_code, tld=self.tld, slow=False)
            audio_fp = io.BytesIO()
            tts.write_to_fp(audio_fp)
        except Exception as e:
            logger.error(f"Error generating TTS audio ({lang_code}): {e}", exc_info=True)
            raise SpeechSynthesisError(f"Could not generate audio: {e}") from e
        logger.info(f"Successfully generated audio bytes in '{lang_code}'.")
        return audio_fp.getvalue()


def default_recognizer(platform_has_microphone=True):
    if not platform_has_microphone or not SPEECH_RECOGNITION_AVAILABLE:
        return None
    return GoogleSpeechRecognizer()


def default_synthesizer():
    if not GTTS_AVAILABLE:
        return None
    return GTTSSynthesizer()
