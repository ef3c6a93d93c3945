import pytest
import requests

from exchange_module import llm_client, transport as transport_module
from exchange_module.config import CompletionConfig, TransportConfig
from exchange_module.llm_client import CompletionClient, format_entry
from exchange_module.transport import DiscordTransport
from vector_memory import ModelProvider, ProviderCredentials
from vector_memory.errors import GenerationError, TransportError


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} Error")


class RecordingPost:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


@pytest.fixture
def client(credentials):
    return CompletionClient(CompletionConfig(model_kwargs={"temperature": 0.2}), credentials)


def patch_post(monkeypatch, module, response):
    post = RecordingPost(response)
    monkeypatch.setattr(module.requests, "post", post)
    return post


def test_history_completion_returns_message_content(monkeypatch, client):
    post = patch_post(monkeypatch, llm_client, FakeResponse(200, {"choices": [{"message": {"content": "Tom"}}]}))
    entries = [{"timestamp": "t0", "role": "user", "content": "my cat is Tom"}]

    assert client.history_completion("cat name?", entries) == "Tom"

    url, kwargs = post.calls[0]
    assert url == "https://api.mistral.ai/v1/chat/completions"
    assert kwargs["headers"] == {"Authorization": "Bearer test-key"}
    body = kwargs["json"]
    assert body["model"] == "mistral-small-latest"
    assert body["temperature"] == 0.2
    assert "[t0] user: my cat is Tom" in body["messages"][0]["content"]
    assert body["messages"][1] == {"role": "user", "content": "cat name?"}


def test_empty_context_still_calls_completion(monkeypatch, client):
    post = patch_post(monkeypatch, llm_client, FakeResponse(200, {"choices": [{"message": {"content": "hi"}}]}))

    assert client.history_completion("hello", []) == "hi"
    assert "No earlier messages matched." in post.calls[0][1]["json"]["messages"][0]["content"]


def test_openai_provider_uses_openai_endpoint(monkeypatch):
    post = patch_post(monkeypatch, llm_client, FakeResponse(200, {"choices": [{"message": {"content": "ok"}}]}))
    client = CompletionClient(CompletionConfig(), ProviderCredentials(ModelProvider.OPENAI, "sk"))

    client.history_completion("q", [])

    assert post.calls[0][0] == "https://api.openai.com/v1/chat/completions"


def test_failure_detail_becomes_error_text(monkeypatch, client):
    detail = [{"loc": ["body", "model"], "msg": "field required", "type": "missing"}]
    patch_post(monkeypatch, llm_client, FakeResponse(422, {"detail": detail}))

    with pytest.raises(GenerationError) as excinfo:
        client.history_completion("q", [])
    assert "field required" in str(excinfo.value)
    assert "'loc': ['body', 'model']" in str(excinfo.value)


def test_failure_without_detail_reports_status(monkeypatch, client):
    patch_post(monkeypatch, llm_client, FakeResponse(401, {"message": "Unauthorized"}))

    with pytest.raises(GenerationError, match="HTTP 401"):
        client.history_completion("q", [])


def test_network_error_is_wrapped(monkeypatch, client):
    patch_post(monkeypatch, llm_client, requests.ConnectionError("reset by peer"))

    with pytest.raises(GenerationError) as excinfo:
        client.history_completion("q", [])
    assert str(excinfo.value) == "An error occurred while generating response: reset by peer"


def test_empty_choices_is_a_generation_error(monkeypatch, client):
    patch_post(monkeypatch, llm_client, FakeResponse(200, {"choices": []}))

    with pytest.raises(GenerationError, match="no content"):
        client.history_completion("q", [])


def test_transport_completion_uses_grounding_prompt(monkeypatch, client):
    post = patch_post(monkeypatch, llm_client, FakeResponse(200, {"choices": [{"message": {"content": "yo"}}]}))
    payload = {"content": "sup", "author": {"username": "ann", "global_name": "Ann"}}

    assert client.transport_completion("sup", [], "Be a pirate", payload) == "yo"

    messages = post.calls[0][1]["json"]["messages"]
    assert messages[0]["content"].startswith("Be a pirate")
    assert messages[1]["content"] == "Ann: sup"


def test_format_entry_prefers_author_name():
    assert format_entry({"role": "user", "content": "hi", "author": {"username": "ann"}}) == "ann: hi"
    assert format_entry({"role": "assistant", "content": "hey", "timestamp": "t1"}) == "[t1] assistant: hey"


def test_discord_send_message_returns_created_message(monkeypatch):
    post = patch_post(monkeypatch, transport_module, FakeResponse(200, {"id": "5", "content": "hello"}))
    discord = DiscordTransport(TransportConfig())

    assert discord.send_message("c1", {"content": "hello"}, "tok") == {"id": "5", "content": "hello"}
    url, kwargs = post.calls[0]
    assert url == "https://discord.com/api/v10/channels/c1/messages"
    assert kwargs["headers"] == {"Authorization": "Bot tok"}


def test_discord_typing_indicator_posts_to_typing_route(monkeypatch):
    post = patch_post(monkeypatch, transport_module, FakeResponse(204, None))

    DiscordTransport(TransportConfig()).send_typing_indicator("c1", "tok")

    assert post.calls[0][0] == "https://discord.com/api/v10/channels/c1/typing"


def test_discord_http_error_raises_transport_error(monkeypatch):
    patch_post(monkeypatch, transport_module, FakeResponse(403, {"message": "Missing Access"}))

    with pytest.raises(TransportError):
        DiscordTransport(TransportConfig()).send_message("c1", {"content": "x"}, "tok")
