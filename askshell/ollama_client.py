# --- API DOCUMENTATION for askshell/ollama_client.py ---
#
# **Purpose:** The single gateway to the Ollama server. Makes exactly one
# request per call (no retry loop) and translates every transport or backend
# failure into the ModelClientError taxonomy below.
#
# **Public Classes:**
#
# class OllamaClient:
#     async generate(prompt, model=None, timeout=None) -> str
#     async list_models() -> Set[str]
#     async is_reachable() -> bool          # short ping, never raises
#     async has_model(model=None) -> bool   # 'name' also matches 'name:latest'
#     async pull(model) -> str
#
# **Errors:**
# - ModelClientError(kind, message): base class.
# - ModelTransportError: kind 'timeout' or 'connection_failed'.
# - ModelBackendError: kind 'backend_error', message verbatim from the server.
# - ModelEmptyResponseError: kind 'empty_response'.
#
# --- END API DOCUMENTATION ---

# askshell/ollama_client.py

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set

import httpx
import ollama

from askshell.config_handler import AppSettings

logger = logging.getLogger(__name__)

KIND_TIMEOUT = "timeout"
KIND_CONNECTION_FAILED = "connection_failed"
KIND_BACKEND_ERROR = "backend_error"
KIND_EMPTY_RESPONSE = "empty_response"

LATEST_TAG = ":latest"


class ModelClientError(Exception):
    """Base class for every failure reported by OllamaClient."""

    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class ModelTransportError(ModelClientError):
    """Timeout or refused/broken connection. Retryable by re-invocation only."""


class ModelBackendError(ModelClientError):
    def __init__(self, message: str):
        super().__init__(KIND_BACKEND_ERROR, message)


class ModelEmptyResponseError(ModelClientError):
    def __init__(self, message: str = "The model returned an empty response."):
        super().__init__(KIND_EMPTY_RESPONSE, message)


@dataclass(frozen=True)
class ModelRequest:
    prompt: str
    model: str
    temperature: float
    max_tokens: int
    top_k: int
    top_p: float
    stream: bool = False

    def options(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "num_predict": self.max_tokens,
            "top_k": self.top_k,
            "top_p": self.top_p,
        }


def translate_error(error: Exception, host: str, timeout: Optional[float] = None) -> Optional[ModelClientError]:
    """Maps ollama/httpx/builtin exceptions onto the ModelClientError taxonomy, or None if unrelated."""
    if isinstance(error, ModelClientError):
        return error
    if isinstance(error, httpx.TimeoutException):
        return ModelTransportError(KIND_TIMEOUT, f"Request to {host} timed out after {timeout}s.")
    if isinstance(error, ollama.ResponseError):
        return ModelBackendError(error.error)
    if isinstance(error, ollama.RequestError):
        return ModelBackendError(error.error)
    if isinstance(error, (ConnectionError, httpx.TransportError)):
        return ModelTransportError(
            KIND_CONNECTION_FAILED,
            f"Could not connect to Ollama at {host}. Is it running? Start it with 'ollama serve'.",
        )
    return None


def _model_names(list_response: Any) -> Set[str]:
    models = list_response.get("models") if list_response is not None else None
    names = set()
    for model in models or []:
        name = model.get("model") or model.get("name")
        if name:
            names.add(name)
    return names


def model_matches(wanted: str, available: Set[str]) -> bool:
    if wanted in available:
        return True
    if wanted.endswith(LATEST_TAG):
        return wanted[: -len(LATEST_TAG)] in available
    return f"{wanted}{LATEST_TAG}" in available


class OllamaClient:
    def __init__(self, settings: AppSettings):
        self.settings = settings
        self.host = settings.host

    def _client(self, timeout: Optional[float]) -> ollama.Client:
        return ollama.Client(host=self.host, timeout=timeout)

    def build_request(self, prompt: str, model: Optional[str] = None) -> ModelRequest:
        return ModelRequest(
            prompt=prompt,
            model=model or self.settings.model,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
            top_k=self.settings.top_k,
            top_p=self.settings.top_p,
        )

    async def generate(self, prompt: str, model: Optional[str] = None, timeout: Optional[float] = None) -> str:
        """
        Sends one non-streaming generate request and returns the response text.

        Raises:
            ModelTransportError: timeout or connection failure.
            ModelBackendError: non-2xx status, or an 'error' field in the body.
            ModelEmptyResponseError: 2xx with no usable text.
        """
        request = self.build_request(prompt, model)
        timeout = timeout if timeout is not None else self.settings.request_timeout
        logger.info(f"Sending generate request to {self.host} (model={request.model}, timeout={timeout}s)")

        try:
            response = await asyncio.to_thread(
                self._client(timeout).generate,
                model=request.model,
                prompt=request.prompt,
                options=request.options(),
                stream=request.stream,
            )
        except Exception as e:
            translated = translate_error(e, self.host, timeout)
            if translated is None:
                raise
            logger.error(f"Generate request failed ({translated.kind}): {translated.message}")
            raise translated from e

        backend_error = response.get("error") if response is not None else None
        if backend_error:
            logger.error(f"Ollama reported an error: {backend_error}")
            raise ModelBackendError(str(backend_error))

        text = (response.get("response") if response is not None else None) or ""
        if not text.strip():
            logger.warning("Ollama returned an empty response.")
            raise ModelEmptyResponseError()
        logger.debug(f"Raw model response: {text!r}")
        return text

    async def list_models(self) -> Set[str]:
        try:
            response = await asyncio.to_thread(self._client(self.settings.ping_timeout).list)
        except Exception as e:
            translated = translate_error(e, self.host, self.settings.ping_timeout)
            if translated is None:
                raise
            logger.error(f"Listing models failed ({translated.kind}): {translated.message}")
            raise translated from e
        names = _model_names(response)
        logger.debug(f"Models available on {self.host}: {sorted(names)}")
        return names

    async def is_reachable(self) -> bool:
        """Liveness ping against the model listing endpoint with the short ping timeout."""
        try:
            await asyncio.to_thread(self._client(self.settings.ping_timeout).list)
            logger.info(f"Ollama server at {self.host} is running and responsive.")
            return True
        except (ollama.ResponseError, ollama.RequestError, ConnectionError, httpx.HTTPError) as e:
            logger.warning(f"Ollama server at {self.host} is not reachable: {e}")
            return False

    async def has_model(self, model: Optional[str] = None) -> bool:
        model = model or self.settings.model
        return model_matches(model, await self.list_models())

    async def pull(self, model: str) -> str:
        """Pulls a model (blocking until the download completes) and returns the final status."""
        logger.info(f"Pulling model '{model}' from {self.host}")
        try:
            response = await asyncio.to_thread(self._client(None).pull, model, stream=False)
        except Exception as e:
            translated = translate_error(e, self.host)
            if translated is None:
                raise
            logger.error(f"Pull of '{model}' failed ({translated.kind}): {translated.message}")
            raise translated from e
        status = (response.get("status") if response is not None else None) or "success"
        logger.info(f"Pull of '{model}' finished with status: {status}")
        return status


async def ensure_model_ready(client: OllamaClient, model: Optional[str] = None) -> None:
    """
    Preflight shared by every model-backed command: liveness ping first,
    then model availability.

    Raises:
        ModelTransportError: the server did not answer the ping.
        ModelBackendError: the server is up but the model is not installed.
    """
    model = model or client.settings.model
    if not await client.is_reachable():
        raise ModelTransportError(
            KIND_CONNECTION_FAILED,
            f"Ollama is not running at {client.host}. Please start it with 'ollama serve'.",
        )
    if not await client.has_model(model):
        raise ModelBackendError(
            f"Model '{model}' is not available. Install it with 'ollama pull {model}' "
            f"or choose another with 'askshell config set DEFAULT_MODEL <model>'."
        )
