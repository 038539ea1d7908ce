"""Planning chat — the proxy forwarder and the client that consumes it.

The forwarder is a stateless request/response relay to an OpenAI-compatible
chat-completions API (OpenRouter by default). It validates the request body
before making any upstream call and passes upstream failures back with their
status code. The client only ever reads ``choices[0].message.content``.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional, Sequence

import httpx

from triplab.config.settings import Settings
from triplab.errors import UpstreamProxyError
from triplab.sync.overlap import format_date

logger = logging.getLogger(__name__)

AVAILABLE_MODELS = {
    "anthropic/claude-3.5-sonnet": "Claude 3.5 Sonnet",
    "openai/gpt-4-turbo": "GPT-4 Turbo",
    "meta-llama/llama-3-70b-instruct": "Llama 3 70B",
    "mistralai/mistral-large": "Mistral Large",
    "google/gemini-pro": "Gemini Pro",
}


def describe_dates(dates: Sequence[date]) -> str:
    ordered = sorted(dates)
    if not ordered:
        return "dates not set"
    return f"{format_date(ordered[0], with_year=False)} - {format_date(ordered[-1])}"


def build_planning_prompt(destination: str, dates: Sequence[date]) -> str:
    """System prompt giving the assistant the trip's destination and agreed dates."""
    date_range = describe_dates(dates)
    return (
        f"You are a helpful travel planning assistant. The user is planning a trip to "
        f"{destination} from {date_range} ({len(dates)} days).\n\n"
        "Your role is to:\n"
        "- Suggest activities, restaurants, and attractions\n"
        "- Help create day-by-day itineraries\n"
        "- Provide local tips and recommendations\n"
        "- Answer questions about the destination\n"
        "- Be concise but informative\n\n"
        "Format your responses with:\n"
        "- Clear sections using **bold** for headers\n"
        "- Bullet points for lists\n"
        "- Keep responses focused and actionable\n\n"
        "Current context:\n"
        f"- Destination: {destination}\n"
        f"- Trip dates: {date_range}\n"
        f"- Number of days: {len(dates)}"
    )


# ─── Proxy side ─────────────────────────────────────


async def forward_chat(
    body: Any,
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
) -> tuple[int, dict]:
    """Relay a ``{model?, messages}`` body upstream. Returns ``(status, payload)``."""
    messages = body.get("messages") if isinstance(body, dict) else None
    if not isinstance(messages, list):
        return 400, {"error": "Messages array is required"}

    if not settings.OPENROUTER_API_KEY:
        logger.error("OPENROUTER_API_KEY is not set")
        return 500, {"error": "API key not configured"}

    payload = {
        "model": body.get("model") or settings.CHAT_DEFAULT_MODEL,
        "messages": messages,
        "max_tokens": settings.CHAT_MAX_TOKENS,
        "temperature": settings.CHAT_TEMPERATURE,
    }
    headers = {
        "Authorization": f"Bearer {settings.OPENROUTER_API_KEY}",
        "HTTP-Referer": settings.SITE_URL,
        "X-Title": "TripLab - Collaborative Trip Planner",
    }

    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=settings.CHAT_TIMEOUT)
    try:
        resp = await client.post(settings.CHAT_UPSTREAM_URL, json=payload, headers=headers)
        if resp.is_error:
            try:
                detail = resp.json()
            except ValueError:
                detail = {}
            logger.error("Chat upstream error %s: %s", resp.status_code, detail)
            error = detail.get("error") if isinstance(detail, dict) else None
            message = error.get("message") if isinstance(error, dict) else None
            return resp.status_code, {"error": message or "Failed to get response from AI"}
        return 200, resp.json()
    except (httpx.HTTPError, ValueError):
        logger.exception("Chat proxy failure")
        return 500, {"error": "Internal server error"}
    finally:
        if owns_client:
            await client.aclose()


# ─── Client side ────────────────────────────────────


class ChatClient:
    """Talks to the chat proxy endpoint."""

    def __init__(self, proxy_url: str, *, timeout: float = 60.0, client: Optional[httpx.AsyncClient] = None) -> None:
        self.proxy_url = proxy_url
        self._client = client
        self._timeout = timeout

    async def ask(self, messages: list[dict], model: Optional[str] = None) -> str:
        body: dict[str, Any] = {"messages": messages}
        if model:
            body["model"] = model
        client = self._client or httpx.AsyncClient(timeout=self._timeout)
        try:
            resp = await client.post(self.proxy_url, json=body)
        except httpx.HTTPError as exc:
            raise UpstreamProxyError("Could not reach the planning assistant") from exc
        finally:
            if self._client is None:
                await client.aclose()

        if resp.is_error:
            try:
                error = resp.json().get("error")
            except (ValueError, AttributeError):
                error = None
            raise UpstreamProxyError(error or "Failed to get response", status_code=resp.status_code)
        try:
            return resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise UpstreamProxyError("Malformed response from the planning assistant", resp.status_code) from exc

    async def plan(self, destination: str, dates: Sequence[date], history: list[dict], question: str,
                   model: Optional[str] = None) -> str:
        """Ask with the planning system prompt prepended to the conversation."""
        messages = [
            {"role": "system", "content": build_planning_prompt(destination, dates)},
            *({"role": m["role"], "content": m["content"]} for m in history),
            {"role": "user", "content": question.strip()},
        ]
        return await self.ask(messages, model)
