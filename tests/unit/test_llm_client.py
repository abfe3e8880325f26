import httpx
import pytest

from fitnessapp.services import llm
from fitnessapp.services.llm import LLMRequestError


def _respond_with(monkeypatch, **response_kwargs) -> None:
    def _post(url, **kwargs):
        return httpx.Response(200, request=httpx.Request("POST", url), **response_kwargs)

    monkeypatch.setattr(llm.httpx, "post", _post)


def test_openai_non_json_body_raises_request_error(monkeypatch) -> None:
    _respond_with(monkeypatch, content=b"<html>gateway</html>")
    with pytest.raises(LLMRequestError):
        llm._openai_request("gpt-4.1-mini", "sk-test", "hi", (), 100, False)


def test_openai_missing_choices_raises_request_error(monkeypatch) -> None:
    _respond_with(monkeypatch, json={"choices": [], "usage": {}})
    with pytest.raises(LLMRequestError):
        llm._openai_request("gpt-4.1-mini", "sk-test", "hi", (), 100, False)


def test_gemini_list_body_raises_request_error(monkeypatch) -> None:
    _respond_with(monkeypatch, json=[])
    with pytest.raises(LLMRequestError):
        llm._gemini_request("gemini-2.0-flash", "key", "hi", (), 100, False)


def test_gemini_without_candidates_returns_empty_text(monkeypatch) -> None:
    _respond_with(monkeypatch, json={"usageMetadata": {"promptTokenCount": 3}})
    text, usage = llm._gemini_request("gemini-2.0-flash", "key", "hi", (), 100, False)
    assert text == ""
    assert usage["prompt_tokens"] == 3
