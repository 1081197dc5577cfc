import os
import logging
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'

DEFAULT_CHAT_MODEL = "gemini-2.5-flash"
DEFAULT_PREDICTION_MODEL = "gemini-2.5-flash"
DEFAULT_VISION_MODEL = "gemini-2.5-flash"
DEFAULT_REQUEST_TIMEOUT = 20.0
DEFAULT_SENSOR_REFRESH = 30
DEFAULT_PREFERENCES_PATH = "preferences.csv"


def configure_logging(level=None):
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=log_level, format=LOG_FORMAT)
    return log_level


@dataclass(frozen=True)
class Settings:
    gemini_api_key: Optional[str] = None
    gemini_secondary_api_key: Optional[str] = None
    chat_model: str = DEFAULT_CHAT_MODEL
    prediction_model: str = DEFAULT_PREDICTION_MODEL
    vision_model: str = DEFAULT_VISION_MODEL
    chat_temperature: float = 0.7
    prediction_temperature: float = 0.3
    functions_url: Optional[str] = None
    functions_key: Optional[str] = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    sensor_refresh_seconds: int = DEFAULT_SENSOR_REFRESH
    preferences_path: str = DEFAULT_PREFERENCES_PATH
    log_level: str = "INFO"

    @property
    def chat_api_key(self):
        return self.gemini_secondary_api_key or self.gemini_api_key

    @property
    def prediction_api_key(self):
        return self.gemini_api_key

    @property
    def advisory_api_key(self):
        # insurance and disease detection run on the second key when it is set
        return self.gemini_secondary_api_key or self.gemini_api_key

    def require(self, name):
        value = getattr(self, name, None)
        if not value:
            raise ConfigurationError(f"{name} is not configured")
        return value


def _env_str(environ, key):
    value = environ.get(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _env_number(environ, key, default, cast):
    raw = environ.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        value = cast(raw)
    except (TypeError, ValueError):
        logger.warning(f"Invalid value '{raw}' for {key}. Using default {default}.")
        return default
    if value <= 0:
        logger.warning(f"Non-positive value '{raw}' for {key}. Using default {default}.")
        return default
    return value


def load_settings(environ=None, dotenv=True):
    if dotenv:
        load_dotenv()
    env = os.environ if environ is None else environ

    settings = Settings(
        gemini_api_key=_env_str(env, "GEMINI_API_KEY"),
        gemini_secondary_api_key=_env_str(env, "GEMINI_API_KEY_NEW"),
        chat_model=_env_str(env, "GEMINI_CHAT_MODEL") or DEFAULT_CHAT_MODEL,
        prediction_model=_env_str(env, "GEMINI_PREDICTION_MODEL") or DEFAULT_PREDICTION_MODEL,
        vision_model=_env_str(env, "GEMINI_VISION_MODEL") or DEFAULT_VISION_MODEL,
        functions_url=(_env_str(env, "AGRIBOT_FUNCTIONS_URL") or "").rstrip("/") or None,
        functions_key=_env_str(env, "AGRIBOT_FUNCTIONS_KEY"),
        request_timeout=_env_number(env, "AGRIBOT_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT, float),
        sensor_refresh_seconds=_env_number(env, "AGRIBOT_SENSOR_REFRESH", DEFAULT_SENSOR_REFRESH, int),
        preferences_path=_env_str(env, "AGRIBOT_PREFERENCES_PATH") or DEFAULT_PREFERENCES_PATH,
        log_level=(_env_str(env, "LOG_LEVEL") or "INFO").upper(),
    )

    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY not set. Crop prediction will be unavailable.")
    if not settings.chat_api_key:
        logger.warning("No Gemini key set for ai-chat. Chat replies will fall back to the apology message.")
    logger.debug(f"Settings loaded. Remote functions: {settings.functions_url or 'in-process'}; timeout {settings.request_timeout}s.")
    return settings
