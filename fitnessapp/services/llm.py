import json
import os
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Protocol, Sequence, Tuple

import httpx
from sqlalchemy.orm import Session

from fitnessapp.db.models import ModelUsageStat

LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))
LLM_CONNECT_TIMEOUT_SECONDS = float(os.getenv("LLM_CONNECT_TIMEOUT_SECONDS", "10"))
LLM_WRITE_TIMEOUT_SECONDS = float(os.getenv("LLM_WRITE_TIMEOUT_SECONDS", "30"))
LLM_POOL_TIMEOUT_SECONDS = float(os.getenv("LLM_POOL_TIMEOUT_SECONDS", "60"))
LLM_RETRY_COUNT = int(os.getenv("LLM_RETRY_COUNT", "1"))
LLM_RETRY_BACKOFF_SECONDS = float(os.getenv("LLM_RETRY_BACKOFF_SECONDS", "0.75"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))

TASK_MAX_TOKENS: dict[str, int] = {
    "plan": int(os.getenv("LLM_MAX_TOKENS_PLAN", "4096")),
    "plan_chat": int(os.getenv("LLM_MAX_TOKENS_PLAN_CHAT", "4000")),
    "vision": int(os.getenv("LLM_MAX_TOKENS_VISION", "4000")),
    "analysis": int(os.getenv("LLM_MAX_TOKENS_ANALYSIS", "2000")),
    "chat": int(os.getenv("LLM_MAX_TOKENS_CHAT", "1000")),
}
DEFAULT_MAX_TOKENS = 2000

SUPPORTED_PROVIDERS = {"gemini", "openai"}

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_CHAT_RESPONSE = re.compile(r"RESPONSE:\s*(.+?)(?=PLAN:|$)", re.DOTALL)
_CHAT_PLAN = re.compile(r"PLAN:\s*(\{[\s\S]*\})")


def _http_timeout() -> httpx.Timeout:
    return httpx.Timeout(
        connect=LLM_CONNECT_TIMEOUT_SECONDS,
        read=LLM_TIMEOUT_SECONDS,
        write=LLM_WRITE_TIMEOUT_SECONDS,
        pool=LLM_POOL_TIMEOUT_SECONDS,
    )


def _max_output_tokens(task_type: str) -> int:
    return TASK_MAX_TOKENS.get((task_type or "").strip().lower(), DEFAULT_MAX_TOKENS)


class LLMRequestError(RuntimeError):
    def __init__(self, provider: str, model: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.status_code = status_code


@dataclass
class ImagePart:
    data_b64: str
    mime_type: str = "image/jpeg"


def _response_payload(response: httpx.Response, provider: str, model: str) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError as exc:
        raise LLMRequestError(provider=provider, model=model, message="Provider returned a non-JSON body") from exc
    if not isinstance(data, dict):
        raise LLMRequestError(provider=provider, model=model, message="Provider returned an unexpected body")
    return data


def _loads_object(candidate: str) -> Optional[dict[str, Any]]:
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def parse_llm_json(raw_text: str) -> dict[str, Any]:
    text = (raw_text or "").strip()
    parsed = _loads_object(text)
    if parsed is not None:
        return parsed

    fenced = _FENCED_BLOCK.search(text)
    if fenced:
        parsed = _loads_object(fenced.group(1).strip())
        if parsed is not None:
            return parsed

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        parsed = _loads_object(text[start : end + 1])
        if parsed is not None:
            return parsed
    raise ValueError("Invalid JSON response from LLM")


def extract_chat_reply(raw_text: str) -> Tuple[Optional[str], Optional[dict[str, Any]]]:
    """Split a ``RESPONSE: ... PLAN: {...}`` reply into its message and plan parts.

    Either part is ``None`` when it is missing or, for the plan, not a JSON object.
    """
    text = raw_text or ""
    message: Optional[str] = None
    plan: Optional[dict[str, Any]] = None

    response_match = _CHAT_RESPONSE.search(text)
    if response_match:
        message = response_match.group(1).strip() or None

    plan_match = _CHAT_PLAN.search(text)
    if plan_match:
        cleaned = plan_match.group(1).strip().replace("```json", "").replace("```", "")
        plan = _loads_object(cleaned)
    return message, plan


def _resolve_model_config(task_type: str) -> Tuple[str, str, str]:
    provider = os.getenv("DEFAULT_AI_PROVIDER", "gemini").strip().lower()
    if provider not in SUPPORTED_PROVIDERS:
        raise ValueError("Unsupported AI provider")
    default_model = "gemini-2.0-flash" if provider == "gemini" else "gpt-4.1-mini"
    model = os.getenv("DEFAULT_AI_MODEL", "").strip() or default_model
    if task_type == "vision":
        model = os.getenv("DEFAULT_VISION_MODEL", "").strip() or model

    if provider == "gemini":
        key = os.getenv("GEMINI_API_KEY", "")
    else:
        key = os.getenv("OPENAI_API_KEY", "")
    if not key:
        raise ValueError("AI config missing")
    return provider, model, key


def _gemini_request(
    model: str,
    api_key: str,
    prompt: str,
    images: Sequence[ImagePart],
    max_output_tokens: int,
    json_mode: bool,
) -> Tuple[str, dict[str, int]]:
    url = f"https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent?key={api_key}"
    parts: list[dict[str, Any]] = [{"text": prompt}]
    for image in images:
        parts.append({"inline_data": {"mime_type": image.mime_type, "data": image.data_b64}})
    generation_config: dict[str, Any] = {"temperature": LLM_TEMPERATURE, "maxOutputTokens": max_output_tokens}
    if json_mode:
        generation_config["responseMimeType"] = "application/json"

    response = httpx.post(
        url,
        headers={"Content-Type": "application/json"},
        json={"generationConfig": generation_config, "contents": [{"role": "user", "parts": parts}]},
        timeout=_http_timeout(),
    )
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code if exc.response is not None else None
        detail = ""
        if exc.response is not None:
            detail = (exc.response.text or "").strip()[:220]
        raise LLMRequestError(
            provider="gemini",
            model=model,
            status_code=status,
            message=f"Gemini request failed (status={status}): {detail or 'no response body'}",
        ) from exc
    data = _response_payload(response, "gemini", model)
    usage = data.get("usageMetadata") or {}
    prompt_tokens = int(usage.get("promptTokenCount", 0) or 0)
    completion_tokens = int(usage.get("candidatesTokenCount", 0) or 0)
    total_tokens = int(usage.get("totalTokenCount", prompt_tokens + completion_tokens) or 0)
    usage_tokens = {
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": total_tokens,
    }
    try:
        text = str(data["candidates"][0]["content"]["parts"][0].get("text", ""))
    except (KeyError, IndexError, TypeError):
        text = ""
    return text.strip(), usage_tokens


def _openai_request(
    model: str,
    api_key: str,
    prompt: str,
    images: Sequence[ImagePart],
    max_output_tokens: int,
    json_mode: bool,
) -> Tuple[str, dict[str, int]]:
    content: Any = prompt
    if images:
        content = [{"type": "text", "text": prompt}]
        for image in images:
            content.append(
                {"type": "image_url", "image_url": {"url": f"data:{image.mime_type};base64,{image.data_b64}"}}
            )
    payload: dict[str, Any] = {
        "model": model,
        "messages": [{"role": "user", "content": content}],
        "max_completion_tokens": max_output_tokens,
        "temperature": LLM_TEMPERATURE,
    }
    if json_mode:
        payload["response_format"] = {"type": "json_object"}

    response = httpx.post(
        "https://api.openai.com/v1/chat/completions",
        headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
        json=payload,
        timeout=_http_timeout(),
    )
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code if exc.response is not None else None
        detail = ""
        if exc.response is not None:
            detail = (exc.response.text or "").strip()[:220]
        raise LLMRequestError(
            provider="openai",
            model=model,
            status_code=status,
            message=f"OpenAI request failed (status={status}): {detail or 'no response body'}",
        ) from exc
    data = _response_payload(response, "openai", model)
    usage = data.get("usage") or {}
    usage_tokens = {
        "prompt_tokens": int(usage.get("prompt_tokens", 0) or 0),
        "completion_tokens": int(usage.get("completion_tokens", 0) or 0),
        "total_tokens": int(usage.get("total_tokens", 0) or 0),
    }
    try:
        text = str(data["choices"][0]["message"].get("content", "") or "").strip()
    except (KeyError, IndexError, TypeError, AttributeError) as exc:
        raise LLMRequestError(
            provider="openai", model=model, message="OpenAI response contained no choices"
        ) from exc
    return text, usage_tokens


def _request_with_retry(
    provider: str,
    model: str,
    api_key: str,
    prompt: str,
    images: Sequence[ImagePart],
    max_output_tokens: int,
    json_mode: bool,
) -> Tuple[str, dict[str, int]]:
    request = _gemini_request if provider == "gemini" else _openai_request
    label = "Gemini" if provider == "gemini" else "OpenAI"
    attempts = max(1, LLM_RETRY_COUNT + 1)
    last_error = "unknown error"
    for idx in range(attempts):
        try:
            return request(model, api_key, prompt, images, max_output_tokens, json_mode)
        except LLMRequestError as exc:
            # Client errors will not improve on retry.
            if exc.status_code is not None and exc.status_code < 500 and exc.status_code != 429:
                raise
            last_error = str(exc)[:220]
            if idx < attempts - 1:
                time.sleep(LLM_RETRY_BACKOFF_SECONDS * (idx + 1))
                continue
            raise
        except httpx.TimeoutException as exc:
            last_error = "timeout"
            if idx < attempts - 1:
                time.sleep(LLM_RETRY_BACKOFF_SECONDS * (idx + 1))
                continue
            raise LLMRequestError(
                provider=provider,
                model=model,
                message=f"{label} request timed out while waiting for response.",
            ) from exc
        except httpx.HTTPError as exc:
            last_error = str(exc)[:220]
            if idx < attempts - 1:
                time.sleep(LLM_RETRY_BACKOFF_SECONDS * (idx + 1))
                continue
            raise LLMRequestError(
                provider=provider,
                model=model,
                message=f"{label} request failed: {last_error}",
            ) from exc
    raise LLMRequestError(provider=provider, model=model, message=f"{label} request failed: {last_error}")


def _record_usage(
    db: Session, user_id: int, provider: str, model: str, usage_tokens: dict[str, int]
) -> None:
    prompt_tokens = max(0, int(usage_tokens.get("prompt_tokens", 0) or 0))
    completion_tokens = max(0, int(usage_tokens.get("completion_tokens", 0) or 0))
    total_tokens = max(0, int(usage_tokens.get("total_tokens", prompt_tokens + completion_tokens) or 0))
    row = (
        db.query(ModelUsageStat)
        .filter(
            ModelUsageStat.user_id == user_id,
            ModelUsageStat.provider == provider,
            ModelUsageStat.model == model,
        )
        .first()
    )
    now = datetime.now(timezone.utc)
    if not row:
        row = ModelUsageStat(
            user_id=user_id,
            provider=provider,
            model=model,
            request_count=0,
            prompt_tokens=0,
            completion_tokens=0,
            total_tokens=0,
            last_used_at=now,
        )
        db.add(row)
    row.request_count += 1
    row.prompt_tokens += prompt_tokens
    row.completion_tokens += completion_tokens
    row.total_tokens += total_tokens
    row.last_used_at = now


class LLMClient(Protocol):
    def generate_text(
        self,
        db: Session,
        user_id: int,
        prompt: str,
        task_type: str = "chat",
        images: Sequence[ImagePart] = (),
        json_mode: bool = False,
    ) -> str:
        ...


class RealLLMClient:
    def generate_text(
        self,
        db: Session,
        user_id: int,
        prompt: str,
        task_type: str = "chat",
        images: Sequence[ImagePart] = (),
        json_mode: bool = False,
    ) -> str:
        try:
            provider, model, api_key = _resolve_model_config(task_type)
        except ValueError as exc:
            raise LLMRequestError(provider="none", model="none", message=str(exc)) from exc
        raw, usage_tokens = _request_with_retry(
            provider, model, api_key, prompt, images, _max_output_tokens(task_type), json_mode
        )
        _record_usage(db, user_id, provider, model, usage_tokens)
        db.commit()
        return raw


def get_llm_client() -> LLMClient:
    return RealLLMClient()
