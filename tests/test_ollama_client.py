# tests/test_ollama_client.py

import httpx
import ollama
import pytest

from askshell.ollama_client import (
    KIND_BACKEND_ERROR,
    KIND_CONNECTION_FAILED,
    KIND_EMPTY_RESPONSE,
    KIND_TIMEOUT,
    ModelBackendError,
    ModelClientError,
    ModelEmptyResponseError,
    ModelTransportError,
    OllamaClient,
    ensure_model_ready,
    model_matches,
)


@pytest.fixture
def mock_ollama_client_cls(mocker):
    """Patches ollama.Client as seen by askshell.ollama_client."""
    return mocker.patch("askshell.ollama_client.ollama.Client")


@pytest.fixture
def client(make_settings):
    return OllamaClient(make_settings(host="http://ollama.test:11434", request_timeout=12.0, ping_timeout=2.0))


# --- generate ---

@pytest.mark.asyncio
async def test_generate_success(client, mock_ollama_client_cls):
    api = mock_ollama_client_cls.return_value
    api.generate.return_value = {"model": "llama3.2", "response": "ls -laSh", "done": True}

    assert await client.generate("PROMPT") == "ls -laSh"

    mock_ollama_client_cls.assert_called_once_with(host="http://ollama.test:11434", timeout=12.0)
    api.generate.assert_called_once_with(
        model="llama3.2",
        prompt="PROMPT",
        options={"temperature": 0.7, "num_predict": 256, "top_k": 40, "top_p": 0.9},
        stream=False,
    )

@pytest.mark.asyncio
async def test_generate_overrides_model_and_timeout(client, mock_ollama_client_cls):
    api = mock_ollama_client_cls.return_value
    api.generate.return_value = {"response": "df -h"}

    await client.generate("P", model="mistral", timeout=3)

    mock_ollama_client_cls.assert_called_once_with(host="http://ollama.test:11434", timeout=3)
    assert api.generate.call_args.kwargs["model"] == "mistral"

@pytest.mark.asyncio
async def test_generate_makes_exactly_one_request_on_failure(client, mock_ollama_client_cls):
    api = mock_ollama_client_cls.return_value
    api.generate.side_effect = httpx.ConnectError("refused")
    with pytest.raises(ModelTransportError):
        await client.generate("P")
    assert api.generate.call_count == 1

@pytest.mark.asyncio
@pytest.mark.parametrize("raised, error_cls, kind", [
    (httpx.ReadTimeout("timed out"), ModelTransportError, KIND_TIMEOUT),
    (httpx.ConnectTimeout("timed out"), ModelTransportError, KIND_TIMEOUT),
    (ConnectionError("Failed to connect to Ollama"), ModelTransportError, KIND_CONNECTION_FAILED),
    (httpx.ConnectError("refused"), ModelTransportError, KIND_CONNECTION_FAILED),
    (httpx.RemoteProtocolError("server hung up"), ModelTransportError, KIND_CONNECTION_FAILED),
    (ollama.ResponseError("model 'nope' not found", 404), ModelBackendError, KIND_BACKEND_ERROR),
    (ollama.ResponseError("internal error", 500), ModelBackendError, KIND_BACKEND_ERROR),
    (ollama.RequestError("must provide a model"), ModelBackendError, KIND_BACKEND_ERROR),
])
async def test_generate_error_translation(client, mock_ollama_client_cls, raised, error_cls, kind):
    mock_ollama_client_cls.return_value.generate.side_effect = raised
    with pytest.raises(error_cls) as exc_info:
        await client.generate("P")
    assert exc_info.value.kind == kind
    assert isinstance(exc_info.value, ModelClientError)

@pytest.mark.asyncio
async def test_backend_message_is_verbatim(client, mock_ollama_client_cls):
    mock_ollama_client_cls.return_value.generate.side_effect = ollama.ResponseError("model 'nope' not found", 404)
    with pytest.raises(ModelBackendError) as exc_info:
        await client.generate("P")
    assert exc_info.value.message == "model 'nope' not found"

@pytest.mark.asyncio
async def test_error_field_in_success_body_is_backend_error(client, mock_ollama_client_cls):
    mock_ollama_client_cls.return_value.generate.return_value = {"error": "out of memory"}
    with pytest.raises(ModelBackendError) as exc_info:
        await client.generate("P")
    assert exc_info.value.message == "out of memory"

@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{"response": ""}, {"response": "   \n"}, {"done": True}, {}])
async def test_empty_response(client, mock_ollama_client_cls, body):
    mock_ollama_client_cls.return_value.generate.return_value = body
    with pytest.raises(ModelEmptyResponseError) as exc_info:
        await client.generate("P")
    assert exc_info.value.kind == KIND_EMPTY_RESPONSE

@pytest.mark.asyncio
async def test_unrelated_errors_propagate(client, mock_ollama_client_cls):
    mock_ollama_client_cls.return_value.generate.side_effect = ValueError("bug")
    with pytest.raises(ValueError):
        await client.generate("P")

# --- list / ping / has_model / pull ---

@pytest.mark.asyncio
async def test_list_models_accepts_model_and_name_keys(client, mock_ollama_client_cls):
    mock_ollama_client_cls.return_value.list.return_value = {
        "models": [{"model": "llama3.2:latest"}, {"name": "mistral:7b"}, {"size": 1}]
    }
    assert await client.list_models() == {"llama3.2:latest", "mistral:7b"}
    mock_ollama_client_cls.assert_called_once_with(host="http://ollama.test:11434", timeout=2.0)

@pytest.mark.asyncio
async def test_list_models_connection_error(client, mock_ollama_client_cls):
    mock_ollama_client_cls.return_value.list.side_effect = ConnectionError("down")
    with pytest.raises(ModelTransportError):
        await client.list_models()

@pytest.mark.asyncio
async def test_is_reachable_true(client, mock_ollama_client_cls):
    mock_ollama_client_cls.return_value.list.return_value = {"models": []}
    assert await client.is_reachable() is True
    mock_ollama_client_cls.assert_called_once_with(host="http://ollama.test:11434", timeout=2.0)

@pytest.mark.asyncio
@pytest.mark.parametrize("raised", [
    ConnectionError("down"),
    httpx.ConnectTimeout("slow"),
    ollama.ResponseError("bad gateway", 502),
])
async def test_is_reachable_false_never_raises(client, mock_ollama_client_cls, raised):
    mock_ollama_client_cls.return_value.list.side_effect = raised
    assert await client.is_reachable() is False

@pytest.mark.parametrize("wanted, available, expected", [
    ("llama3.2", {"llama3.2:latest"}, True),
    ("llama3.2:latest", {"llama3.2"}, True),
    ("llama3.2", {"llama3.2"}, True),
    ("mistral:7b", {"mistral:latest"}, False),
    ("llama3.2", set(), False),
])
def test_model_matches(wanted, available, expected):
    assert model_matches(wanted, available) is expected

@pytest.mark.asyncio
async def test_has_model_defaults_to_configured_model(client, mock_ollama_client_cls):
    mock_ollama_client_cls.return_value.list.return_value = {"models": [{"model": "llama3.2:latest"}]}
    assert await client.has_model() is True
    assert await client.has_model("codellama") is False

@pytest.mark.asyncio
async def test_pull(client, mock_ollama_client_cls):
    api = mock_ollama_client_cls.return_value
    api.pull.return_value = {"status": "success"}
    assert await client.pull("mistral") == "success"
    api.pull.assert_called_once_with("mistral", stream=False)

@pytest.mark.asyncio
async def test_pull_unknown_model(client, mock_ollama_client_cls):
    mock_ollama_client_cls.return_value.pull.side_effect = ollama.ResponseError("pull model manifest: file does not exist", 500)
    with pytest.raises(ModelBackendError):
        await client.pull("nope")

# --- preflight ---

@pytest.mark.asyncio
async def test_ensure_model_ready_backend_down(client, mocker):
    mocker.patch.object(client, "is_reachable", return_value=False)
    has_model = mocker.patch.object(client, "has_model")
    with pytest.raises(ModelTransportError) as exc_info:
        await ensure_model_ready(client)
    assert exc_info.value.kind == KIND_CONNECTION_FAILED
    assert "ollama serve" in exc_info.value.message
    has_model.assert_not_called()

@pytest.mark.asyncio
async def test_ensure_model_ready_missing_model(client, mocker):
    mocker.patch.object(client, "is_reachable", return_value=True)
    mocker.patch.object(client, "has_model", return_value=False)
    with pytest.raises(ModelBackendError) as exc_info:
        await ensure_model_ready(client, "codellama")
    assert "ollama pull codellama" in exc_info.value.message

@pytest.mark.asyncio
async def test_ensure_model_ready_ok(client, mocker):
    mocker.patch.object(client, "is_reachable", return_value=True)
    mocker.patch.object(client, "has_model", return_value=True)
    await ensure_model_ready(client)
