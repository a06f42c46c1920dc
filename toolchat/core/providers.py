"""Adapters turning a provider-neutral history into backend requests.

Two wire formats are supported:

* **OpenAI-style** (OpenAI, Sambanova): a flat ``messages`` list posted with a
  bearer token through the official :mod:`openai` SDK.
* **Gemini-style**: ``contents`` with strict user/model alternation posted
  with :mod:`httpx`, the API key travelling as a ``key`` query parameter.

Both share :meth:`ProviderAdapter.complete`, which builds the request body,
sends it, decodes the raw response body and extracts the reply text.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import httpx
import openai
from openai import OpenAI

from .config import GEMINI_STYLE, OPENAI_STYLE, ProviderConfig
from .messages import ASSISTANT_ROLE, SYSTEM_ROLE, Message

logger = logging.getLogger(__name__)

NO_RESPONSE = "[No response]"
MODEL_TIMEOUT = 90.0

# Low randomness keeps tool directives well formed.
TEMPERATURE = 0.1
TOP_P = 0.1

GEMINI_ACKNOWLEDGEMENT = "Understood."


class ProviderError(Exception):
    """A model call failed at the transport or protocol level."""

    def __init__(
        self, message: str, status_code: Optional[int] = None, body: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def _decode_body(response: httpx.Response) -> Dict[str, Any]:
    """Return the JSON body of *response*, or an empty dict if unparseable."""
    try:
        data = response.json()
    except ValueError:
        logger.warning("Reply body is not valid JSON; treating it as empty")
        return {}
    return data if isinstance(data, dict) else {}


def _dig(data: Any, *path: Any) -> Any:
    """Follow *path* through nested dicts/lists, returning None on any miss."""
    for key in path:
        try:
            data = data[key]
        except (KeyError, IndexError, TypeError):
            return None
    return data


class ProviderAdapter(ABC):
    """Capability interface every backend adapter implements."""

    def __init__(self, config: ProviderConfig):
        self.config = config

    @abstractmethod
    def build_request(self, history: Sequence[Message]) -> Dict[str, Any]:
        """Return the JSON request body for *history*."""

    @abstractmethod
    def parse_reply(self, response: Dict[str, Any]) -> str:
        """Extract the reply text from a decoded response body.

        Never raises: a missing field yields :data:`NO_RESPONSE`.
        """

    @abstractmethod
    def send(self, request: Dict[str, Any]) -> httpx.Response:
        """POST *request* to the backend, raising :class:`ProviderError` on failure."""

    def complete(self, history: Sequence[Message]) -> str:
        request = self.build_request(history)
        logger.debug(
            "Calling %s (%s) with %d messages",
            self.config.provider.value,
            self.config.model_name,
            len(history),
        )
        response = self.send(request)
        return self.parse_reply(_decode_body(response))


class OpenAIStyleAdapter(ProviderAdapter):
    """Adapter for OpenAI-compatible chat completion endpoints."""

    def __init__(self, config: ProviderConfig, client: Optional[OpenAI] = None):
        super().__init__(config)
        self.client = client or OpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=MODEL_TIMEOUT,
            max_retries=0,
        )

    def build_request(self, history: Sequence[Message]) -> Dict[str, Any]:
        return {
            "model": self.config.model_name,
            "messages": [message.to_dict() for message in history],
            "temperature": TEMPERATURE,
            "top_p": TOP_P,
        }

    def parse_reply(self, response: Dict[str, Any]) -> str:
        content = _dig(response, "choices", 0, "message", "content")
        return content if isinstance(content, str) else NO_RESPONSE

    def send(self, request: Dict[str, Any]) -> httpx.Response:
        # The raw response leaves body decoding to parse_reply, so a garbled
        # body degrades to NO_RESPONSE instead of an SDK validation error.
        try:
            raw = self.client.chat.completions.with_raw_response.create(**request)
        except openai.APIStatusError as exc:
            body = exc.response.text
            raise ProviderError(
                f"API Error: {body} ({exc.status_code})",
                status_code=exc.status_code,
                body=body,
            ) from exc
        except openai.APIConnectionError as exc:
            raise ProviderError(f"Request to {self.config.provider.value} failed: {exc}") from exc
        return raw.http_response


class GeminiStyleAdapter(ProviderAdapter):
    """Adapter for Google's ``generateContent`` endpoint."""

    def __init__(self, config: ProviderConfig, http_client: Optional[httpx.Client] = None):
        super().__init__(config)
        self.http_client = http_client or httpx.Client(timeout=MODEL_TIMEOUT)

    @staticmethod
    def _content(role: str, text: str) -> Dict[str, Any]:
        return {"role": role, "parts": [{"text": text}]}

    def build_request(self, history: Sequence[Message]) -> Dict[str, Any]:
        contents: List[Dict[str, Any]] = []
        # Gemini has no system role: the instruction becomes a user turn
        # answered by a canned model acknowledgement.
        if history and history[0].role == SYSTEM_ROLE:
            contents.append(self._content("user", history[0].content))
            contents.append(self._content("model", GEMINI_ACKNOWLEDGEMENT))

        for message in history[1:]:
            role = "model" if message.role == ASSISTANT_ROLE else "user"
            contents.append(self._content(role, message.content))

        return {"contents": contents}

    def parse_reply(self, response: Dict[str, Any]) -> str:
        text = _dig(response, "candidates", 0, "content", "parts", 0, "text")
        return text if isinstance(text, str) else NO_RESPONSE

    def send(self, request: Dict[str, Any]) -> httpx.Response:
        try:
            response = self.http_client.post(
                self.config.base_url,
                params={"key": self.config.api_key},
                json=request,
            )
        except httpx.HTTPError as exc:
            raise ProviderError(f"Request to {self.config.provider.value} failed: {exc}") from exc

        if not response.is_success:
            body = response.text
            raise ProviderError(
                f"API Error: {body} ({response.status_code})",
                status_code=response.status_code,
                body=body,
            )
        return response


def create_adapter(config: ProviderConfig) -> ProviderAdapter:
    """Return the adapter matching the wire format of *config*'s provider."""
    if config.style == OPENAI_STYLE:
        return OpenAIStyleAdapter(config)
    if config.style == GEMINI_STYLE:
        return GeminiStyleAdapter(config)
    raise ValueError(f"Unsupported provider style: {config.style}")
