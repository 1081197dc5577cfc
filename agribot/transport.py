import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError

import requests

from .errors import ProtocolError, TransportError
from .oracles import GeminiBackend

logger = logging.getLogger(__name__)


class HttpTransport:
    """POSTs one JSON request to ``<base_url>/<function>`` and returns the JSON object reply."""

    def __init__(self, base_url, api_key=None, session=None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._session = session or requests.Session()

    def send(self, function, payload, timeout):
        url = f"{self.base_url}/{function}"
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
            headers["apikey"] = self.api_key

        try:
            response = self._session.post(url, json=payload, headers=headers, timeout=timeout)
        except requests.exceptions.Timeout as e:
            logger.warning(f"Timeout after {timeout}s calling {function}: {e}")
            raise TransportError(f"{function} timed out") from e
        except requests.exceptions.RequestException as e:
            logger.warning(f"Network error calling {function}: {e}")
            raise TransportError(f"{function} unreachable") from e

        try:
            body = response.json()
        except ValueError as e:
            logger.warning(f"{function} returned non-JSON body (HTTP {response.status_code}).")
            raise ProtocolError(f"{function} returned non-JSON body") from e
        if not isinstance(body, dict):
            raise ProtocolError(f"{function} returned {type(body).__name__}, expected an object")

        if not response.ok and "error" not in body:
            return {"error": f"HTTP {response.status_code}"}
        return body

    def close(self):
        self._session.close()


class LocalTransport:
    """Runs backend functions in-process, bounded by the same timeout as a remote call."""

    def __init__(self, backend, max_workers=4):
        self.backend = backend
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="agribot-oracle")

    def send(self, function, payload, timeout):
        try:
            handler = self.backend.handler(function)
        except KeyError as e:
            raise TransportError(f"Unknown backend function '{function}'") from e

        future = self._executor.submit(handler, payload)
        try:
            body = future.result(timeout=timeout)
        except FuturesTimeoutError as e:
            logger.warning(f"{function} did not answer within {timeout}s. Result will be discarded.")
            raise TransportError(f"{function} timed out") from e
        except Exception as e:
            logger.error(f"Backend function {function} crashed: {e}", exc_info=True)
            raise TransportError(f"{function} failed") from e

        if not isinstance(body, dict):
            raise ProtocolError(f"{function} returned {type(body).__name__}, expected an object")
        return body

    def close(self):
        self._executor.shutdown(wait=False)


def build_transport(settings, backend_factory=None):
    if settings.functions_url:
        logger.info(f"Using remote backend functions at {settings.functions_url}")
        return HttpTransport(settings.functions_url, api_key=settings.functions_key)
    if backend_factory is None:
        backend_factory = GeminiBackend
    logger.info("Using in-process backend functions.")
    return LocalTransport(backend_factory(settings))
