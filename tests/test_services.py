import io

import pytest

import services
from errors import NarrativeGenerationError


class FakeResponse:
    def __init__(self, status_code=200, text="", payload=None) -> None:
        self.status_code = status_code
        self.text = text
        self._payload = payload or {"ok": True}

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise services.requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


class RecordingPost:
    def __init__(self, responses) -> None:
        self.responses = list(responses)
        self.calls = []

    def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        return self.responses.pop(0)


def test_send_message_retries_without_markdown(monkeypatch) -> None:
    post = RecordingPost([
        FakeResponse(400, "Bad Request: can't parse entities"),
        FakeResponse(200),
    ])
    monkeypatch.setattr(services.requests, "post", post)

    assert services.send_message("-100123", "*Saved:* 3_") == {"ok": True}

    assert post.calls[0][1]["json"]["parse_mode"] == "Markdown"
    assert "parse_mode" not in post.calls[1][1]["json"]
    assert post.calls[1][1]["json"]["text"] == "Saved: 3"
    assert post.calls[0][0].endswith("/sendMessage")


def test_send_document_posts_pdf(monkeypatch) -> None:
    post = RecordingPost([FakeResponse(200)])
    monkeypatch.setattr(services.requests, "post", post)

    services.send_document("-100123", io.BytesIO(b"%PDF-1.4"), "report.pdf", caption="February")

    url, kwargs = post.calls[0]
    assert url.endswith("/sendDocument")
    assert kwargs["files"]["document"][0] == "report.pdf"
    assert kwargs["data"] == {"chat_id": "-100123", "caption": "February"}


def test_parse_generated_json_accepts_fenced_output() -> None:
    content = '```json\n{"narrative": "We went out.", "themes": ["Grace"], "conclusion": "Amen"}\n```'

    assert services.parse_generated_json(content)["themes"] == ["Grace"]


@pytest.mark.parametrize("content", [None, "", "not json", "[1, 2]"])
def test_parse_generated_json_rejects_bad_output(content) -> None:
    with pytest.raises(NarrativeGenerationError):
        services.parse_generated_json(content)


def test_generator_is_disabled_without_api_key(monkeypatch) -> None:
    monkeypatch.setitem(services.CONFIG, "OPENAI_API_KEY", "")
    assert services.get_narrative_generator() is None

    monkeypatch.setitem(services.CONFIG, "OPENAI_API_KEY", "sk-test")
    monkeypatch.setitem(services.CONFIG, "ENABLE_AI_NARRATIVE", True)
    assert services.get_narrative_generator() is services.generate_narrative_with_openai

    monkeypatch.setitem(services.CONFIG, "ENABLE_AI_NARRATIVE", False)
    assert services.get_narrative_generator() is None


def test_openai_generator_wraps_failures(monkeypatch) -> None:
    def failing_complete(prompt, system_prompt):
        raise RuntimeError("quota exceeded")

    monkeypatch.setattr(services, "_complete", failing_complete)

    with pytest.raises(NarrativeGenerationError):
        services.generate_narrative_with_openai("prompt", "system")


def test_openai_generator_parses_content(monkeypatch) -> None:
    monkeypatch.setattr(services, "_complete", lambda prompt, system_prompt: '{"narrative": "Praise God"}')

    assert services.generate_narrative_with_openai("prompt", "system") == {"narrative": "Praise God"}
