"""
Producers: the generative-model side of the pipeline.

- Producer: interface, one async ``call(request) -> response``
- FakeProducer: scripted replies for tests and local runs
- OpenAIChatProducer: OpenAI-compatible chat completions over httpx,
  transport retries via tenacity
- ProducerRegistry: named producers plus a default
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, Iterable, List, Literal, Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_fixed

from .config import get_settings
from .errors import ProducerNotFoundError
from .registry import Registry

logger = logging.getLogger(__name__)

Format = Literal["json", "text", "markdown"]


def _is_retryable(exc: BaseException) -> bool:
    """Transport faults, rate limits and server errors; other 4xx will not improve on retry."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


class LLMRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt: str
    system_prompt: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    format: Format = "json"


class TokenUsage(BaseModel):
    input: int = 0
    output: int = 0
    total: int = 0


class ResponseMetadata(BaseModel):
    token_usage: TokenUsage = Field(default_factory=TokenUsage)
    model_id: str = ""
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))


class LLMResponse(BaseModel):
    content: str
    format: Format = "text"
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)


class Producer:
    id: str = "producer"

    async def call(self, request: LLMRequest) -> LLMResponse:
        raise NotImplementedError


class FakeProducer(Producer):
    """Replays ``responses`` in order; the last one repeats once the script runs out.

    Entries may be strings, LLMResponse objects or exceptions (raised).
    Every request received is kept in ``requests``.
    """

    def __init__(self, responses: Optional[Iterable[Union[str, LLMResponse, Exception]]] = None, producer_id: str = "fake"):
        self.id = producer_id
        self._script: List[Union[str, LLMResponse, Exception]] = list(responses or ["{}"])
        self.requests: List[LLMRequest] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def call(self, request: LLMRequest) -> LLMResponse:
        idx = min(len(self.requests), len(self._script) - 1)
        self.requests.append(request)
        item = self._script[idx]
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, LLMResponse):
            return item
        return LLMResponse(
            content=item,
            format=request.format,
            metadata=ResponseMetadata(model_id=f"{self.id}-model"),
        )


class OpenAIChatProducer(Producer):
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        producer_id: str = "openai",
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_wait_seconds: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        cfg = get_settings()
        self.id = producer_id
        self.api_key = api_key if api_key is not None else cfg.OPENAI_API_KEY
        self.base_url = base_url or cfg.OPENAI_BASE_URL
        self.model = model or cfg.OPENAI_MODEL
        self.timeout = timeout if timeout is not None else cfg.PRODUCER_TIMEOUT_SECONDS
        self.max_retries = max_retries if max_retries is not None else cfg.PRODUCER_MAX_RETRIES
        self.max_tokens = cfg.PRODUCER_MAX_TOKENS
        self.retry_wait_seconds = retry_wait_seconds
        self._transport = transport

    def _payload(self, request: LLMRequest) -> Dict[str, Any]:
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": request.max_tokens or self.max_tokens,
        }
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.format == "json":
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def call(self, request: LLMRequest) -> LLMResponse:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = self._payload(request)
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_fixed(self.retry_wait_seconds),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        ):
            with attempt:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    resp = await client.post(self.base_url, headers=headers, json=payload)
                    if resp.status_code >= 400:
                        logger.error("producer %s error: %s %s", self.id, resp.status_code, resp.text[:500])
                    resp.raise_for_status()
                    data = resp.json()
        usage = data.get("usage") or {}
        return LLMResponse(
            content=data["choices"][0]["message"]["content"] or "",
            format=request.format,
            metadata=ResponseMetadata(
                token_usage=TokenUsage(
                    input=int(usage.get("prompt_tokens", 0) or 0),
                    output=int(usage.get("completion_tokens", 0) or 0),
                    total=int(usage.get("total_tokens", 0) or 0),
                ),
                model_id=str(data.get("model") or self.model),
            ),
        )


class ProducerRegistry(Registry[Producer]):
    """The first registered producer becomes the default until another is chosen."""

    kind = "producer"

    def __init__(self):
        super().__init__()
        self._default_lock = threading.Lock()
        self._default_id: Optional[str] = None

    @property
    def default_id(self) -> Optional[str]:
        return self._default_id

    def register(self, producer: Producer, producer_id: Optional[str] = None) -> Optional[Producer]:
        pid = producer_id or producer.id
        with self._default_lock:
            previous = self._put(pid, producer)
            if self._default_id is None:
                self._default_id = pid
        return previous

    def unregister(self, producer_id: str) -> bool:
        with self._default_lock:
            removed = self._remove(producer_id)
            if removed and self._default_id == producer_id:
                remaining = self.ids()
                self._default_id = remaining[0] if remaining else None
        return removed

    def set_default(self, producer_id: str) -> None:
        with self._default_lock:
            if producer_id not in self:
                raise ProducerNotFoundError(producer_id)
            self._default_id = producer_id

    def get(self, producer_id: Optional[str] = None) -> Producer:
        pid = producer_id or self._default_id
        if not pid:
            raise ProducerNotFoundError(None)
        producer = self.lookup(pid)
        if producer is None:
            raise ProducerNotFoundError(pid)
        return producer
