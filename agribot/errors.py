class AgriBotError(Exception):
    pass


class TransportError(AgriBotError):
    """Oracle unreachable, or no reply inside the request timeout."""


class ProtocolError(AgriBotError):
    """Oracle replied, but not in the expected shape."""


class ConfigurationError(AgriBotError):
    """A required secret is missing for a backend function."""


class SpeechCaptureError(AgriBotError):
    pass


class SpeechSynthesisError(AgriBotError):
    pass
