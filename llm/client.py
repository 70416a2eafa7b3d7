"""
Async client for an OpenAI-compatible chat completions endpoint.

Transport failures, error statuses and unreadable bodies all surface as
``LLMError``, so callers catch one exception type.
"""
import asyncio
import json
import logging
from typing import Any, Dict, Iterator, List, Optional

import httpx

from config.settings import LLMSettings
from logic.errors import LLMError


logger = logging.getLogger(__name__)

Message = Dict[str, str]


def _stream_deltas(body: str) -> Iterator[str]:
    """Yield the content deltas of a text/event-stream body in order."""
    for line in body.splitlines():
        field, _, value = line.strip().partition(":")
        value = value.strip()
        if field != "data" or value in ("", "[DONE]"):
            continue
        try:
            event = json.loads(value)
        except json.JSONDecodeError:
            logger.debug("Skipping undecodable stream event: %.80s", value)
            continue
        choices = event.get("choices") if isinstance(event, dict) else None
        if choices:
            text = (choices[0].get("delta") or {}).get("content")
            if text:
                yield text


def _reply_text(response: httpx.Response) -> str:
    content_type = response.headers.get("content-type", "").lower()
    # Some providers stream even when not asked to.
    if "text/event-stream" in content_type or response.text.lstrip().startswith("data:"):
        return "".join(_stream_deltas(response.text))
    try:
        return response.json()["choices"][0]["message"]["content"] or ""
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise LLMError(f"LLM reply had no message content: {exc!r}") from exc


def _decode_json_reply(text: str) -> Any:
    text = text.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text[:4].lower() == "json":
            text = text[4:]
    if not text.strip():
        raise LLMError("LLM returned an empty JSON reply")
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise LLMError(f"LLM returned invalid JSON: {exc}") from exc


class LLMClient:
    """
    Shared by the drop analysis, script generator and optimization advisor.

    ``complete`` returns plain text and ``chat_json`` a decoded JSON object;
    both go through ``chat``. Without an API key nothing is sent and the
    reply is empty.
    """

    def __init__(
        self,
        settings: LLMSettings,
        timeout: float = 30.0,
        max_connections: int = 20,
        semaphore: Optional[asyncio.Semaphore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model = settings.model
        self.enabled = bool(settings.api_key)
        self.client = httpx.AsyncClient(
            base_url=settings.base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {settings.api_key}"} if self.enabled else None,
            timeout=timeout,
            limits=httpx.Limits(max_connections=max_connections, max_keepalive_connections=max_connections),
            transport=transport,
        )
        self.semaphore = semaphore or asyncio.Semaphore(4)

    async def close(self) -> None:
        await self.client.aclose()

    async def chat(
        self,
        messages: List[Message],
        model: Optional[str] = None,
        temperature: float = 0.2,
        json_mode: bool = False,
    ) -> str:
        if not self.enabled:
            logger.warning("LLM API key not configured; skipping request")
            return ""

        payload: Dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        try:
            async with self.semaphore:
                response = await self.client.post("/chat/completions", json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise LLMError(f"LLM provider returned HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise LLMError(f"LLM request failed: {exc}") from exc
        return _reply_text(response)

    async def complete(self, prompt: str, model: Optional[str] = None, temperature: float = 0.2) -> str:
        return await self.chat([{"role": "user", "content": prompt}], model=model, temperature=temperature)

    async def chat_json(self, prompt: str, model: Optional[str] = None, temperature: float = 0.2) -> Any:
        text = await self.chat(
            [{"role": "user", "content": prompt}],
            model=model,
            temperature=temperature,
            json_mode=True,
        )
        return _decode_json_reply(text)
