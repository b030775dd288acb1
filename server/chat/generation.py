from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any

import httpx

from server.chat.provider_router import ProviderKind, ProviderRoute
from server.models.ragweld_config_model import ChatConfig, ProviderHealth


@dataclass(frozen=True, slots=True)
class GenerationResult:
    text: str
    tokens_used: int
    provider_response_id: str | None


def _headers_for(route: ProviderRoute, chat_config: ChatConfig) -> dict[str, str]:
    headers: dict[str, str] = {"Content-Type": "application/json"}
    if route.api_key:
        headers["Authorization"] = f"Bearer {route.api_key}"
    if route.kind is ProviderKind.OPENROUTER:
        # OpenRouter recommends providing app identity headers.
        site_name = (chat_config.openrouter.site_name or "").strip()
        if site_name:
            headers["X-Title"] = site_name
    return headers


def _summarize_provider_error(resp: httpx.Response) -> str:
    """Best-effort extraction of provider error details (safe for UI/debug logs)."""
    raw = resp.text or ""
    if not raw:
        return ""

    try:
        data: Any = resp.json()
    except ValueError:
        return raw.strip()[:400]

    # OpenAI-style: {"error": {"message": "...", ...}}
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict):
            msg = err.get("message")
            if isinstance(msg, str) and msg.strip():
                return msg.strip()
            return json.dumps(err, ensure_ascii=False)[:400]
        msg = data.get("message") or data.get("error")
        if isinstance(msg, str) and msg.strip():
            return msg.strip()
    return raw.strip()[:400]


def _extract_text_from_chat_completions_response(data: Any) -> str:
    """Extract assistant text from an OpenAI-compatible chat completions response."""
    if not isinstance(data, dict):
        raise RuntimeError("Provider returned non-JSON object response")

    err = data.get("error")
    if err:
        # Some gateways return HTTP 200 with an error payload.
        if isinstance(err, dict):
            msg = err.get("message")
            if isinstance(msg, str) and msg.strip():
                raise RuntimeError(msg.strip())
            raise RuntimeError(json.dumps(err, ensure_ascii=False)[:400])
        raise RuntimeError(str(err).strip())

    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        raise RuntimeError("Provider response missing choices[]")

    msg = choices[0].get("message")
    if isinstance(msg, dict):
        content = msg.get("content")
        if isinstance(content, str):
            return content
        # Some providers use a list of parts: [{"type":"text","text":"..."}]
        if isinstance(content, list):
            parts = [p.get("text") for p in content if isinstance(p, dict) and isinstance(p.get("text"), str)]
            if parts:
                return "\n".join(parts)

    raise RuntimeError("Provider response missing assistant content")


def _tokens_used(data: dict[str, Any]) -> int:
    usage = data.get("usage")
    if isinstance(usage, dict):
        total = usage.get("total_tokens")
        if isinstance(total, int) and total >= 0:
            return total
    return 0


async def generate_chat_text(
    *,
    route: ProviderRoute,
    chat_config: ChatConfig,
    system_prompt: str,
    user_prompt: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> GenerationResult:
    """Generate a single non-streaming chat response (OpenAI-compatible)."""
    url = f"{route.base_url}/chat/completions"
    payload: dict[str, Any] = {
        "model": route.model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "temperature": float(chat_config.temperature),
        "max_tokens": int(chat_config.max_tokens),
        "stream": False,
    }

    async with httpx.AsyncClient(timeout=chat_config.timeout_s, transport=transport) as client:
        try:
            resp = await client.post(url, headers=_headers_for(route, chat_config), json=payload)
            resp.raise_for_status()
            data: Any = resp.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            msg = _summarize_provider_error(e.response)
            detail = f": {msg}" if msg else ""
            if status == 401:
                raise RuntimeError(f"{route.kind.value} unauthorized (check the API key){detail}") from e
            raise RuntimeError(f"LLM request failed (HTTP {status}){detail}") from e
        except httpx.RequestError as e:
            raise RuntimeError(
                f"Provider request failed ({route.kind.value} @ {route.base_url}): {type(e).__name__}: {e}"
            ) from e
        except ValueError as e:
            raise RuntimeError(f"LLM response parse failed: {e}") from e

    try:
        text = _extract_text_from_chat_completions_response(data)
    except RuntimeError as e:
        raise RuntimeError(f"LLM response parse failed: {e}") from e

    rid = data.get("id")
    return GenerationResult(
        text=text,
        tokens_used=_tokens_used(data),
        provider_response_id=rid.strip() if isinstance(rid, str) and rid.strip() else None,
    )


async def probe_provider(
    *,
    kind: ProviderKind,
    base_url: str,
    api_key: str | None,
    timeout_s: float,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ProviderHealth:
    """GET `{base_url}/models` with a short timeout and report reachability."""
    headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
    t0 = time.perf_counter()
    async with httpx.AsyncClient(timeout=timeout_s, transport=transport) as client:
        try:
            resp = await client.get(f"{base_url.rstrip('/')}/models", headers=headers)
        except httpx.RequestError as e:
            return ProviderHealth(
                provider=kind.value,
                base_url=base_url,
                status="down",
                error=f"{type(e).__name__}: {e}",
            )
    latency_ms = (time.perf_counter() - t0) * 1000.0
    if resp.status_code >= 400:
        return ProviderHealth(
            provider=kind.value,
            base_url=base_url,
            status="down",
            latency_ms=latency_ms,
            error=f"HTTP {resp.status_code}: {_summarize_provider_error(resp)}".rstrip(": "),
        )
    return ProviderHealth(provider=kind.value, base_url=base_url, status="up", latency_ms=latency_ms)
