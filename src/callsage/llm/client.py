# -----------------------------------------------------------------------------
# Synchronous LLM client used by the review generator and the review chat.
#
#   - reads provider API keys / base URLs from environment variables
#   - resolves logical aliases ("reviewer", "chat") through the model registry
#   - exposes a single `generate()` method returning a `ModelReply`: the text of
#     the first candidate plus any structured tool calls it made
#
# The implementation uses only the standard library (`urllib.request`). Unit
# tests mock the internal `_post()` method so no real HTTP calls are made.
#
# Provider support
# ----------------
# 1. Google Gemini "generateContent" (provider="google"): system instruction,
#    inline audio parts, JSON `responseSchema`, function declarations.
# 2. OpenAI-compatible Chat Completions (provider="openai"): `response_format`
#    json_schema and function tools. Inline audio is not supported there.
#
# Every transport failure raises `ModelServiceError`. Its message carries the
# HTTP status and the provider body, so callers can classify overload errors
# ("503", "overloaded") for retry.
# -----------------------------------------------------------------------------
from __future__ import annotations

import http.client
import json
import os
import urllib.error
import urllib.request
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from callsage.core.settings import load_settings

from .models import DEFAULT_ALIAS, ModelConfig, get_model
from .schema import gemini_schema, strict_object_schema


class ModelServiceError(RuntimeError):
    """The model endpoint failed or returned an unusable payload."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


@dataclass(frozen=True, slots=True)
class MediaPart:
    """Inline binary attachment (base64) sent alongside the last user turn."""

    mime_type: str
    data: str


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Function the model may call instead of answering in text.

    ``parameters`` is a JSON Schema object describing the call arguments.
    """

    name: str
    description: str
    parameters: Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A function call emitted by the model.

    ``arguments`` is the decoded JSON object when the provider sent valid JSON,
    otherwise the raw argument string (callers decide how to degrade).
    """

    name: str
    arguments: Mapping[str, Any] | str


@dataclass(frozen=True, slots=True)
class ModelReply:
    """Text and tool calls from the first candidate of a model response."""

    text: str = ""
    tool_calls: tuple[ToolCall, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        """True when the model produced neither text nor tool calls."""
        return not self.text.strip() and not self.tool_calls


_ROLE_MAP_GEMINI = {"user": "user", "model": "model", "assistant": "model"}
_ROLE_MAP_OPENAI = {"user": "user", "model": "assistant", "assistant": "assistant"}


@dataclass(slots=True)
class LLMClient:
    """Two-provider LLM client with a single `generate()` API.

    Parameters
    ----------
    google_api_key:
        Key for Gemini (``x-goog-api-key`` header).
    openai_api_key:
        Key for OpenAI-compatible endpoints (Bearer token).
    default_model_alias:
        Registry alias used when callers do not specify a model.
    timeout_seconds:
        Network timeout per HTTP request. Audio reviews can take a minute.
    """

    google_api_key: str = ""
    openai_api_key: str = ""
    default_model_alias: str = DEFAULT_ALIAS
    timeout_seconds: float = 120.0

    # --------------------------------------------------------------------- #
    # Constructors
    # --------------------------------------------------------------------- #
    @classmethod
    def from_env(cls, default_model_alias: str = DEFAULT_ALIAS) -> LLMClient:
        """Construct a client from ``GOOGLE_API_KEY`` / ``OPENAI_API_KEY``.

        Settings (and therefore ``.env`` files) are consulted first; plain
        environment variables fill any gap.
        """
        cfg = load_settings()
        return cls(
            google_api_key=cfg.google_api_key or os.getenv("GOOGLE_API_KEY", ""),
            openai_api_key=cfg.openai_api_key or os.getenv("OPENAI_API_KEY", ""),
            default_model_alias=default_model_alias,
            timeout_seconds=cfg.request_timeout_seconds,
        )

    # --------------------------------------------------------------------- #
    # Public API
    # --------------------------------------------------------------------- #
    def generate(
        self,
        messages: Sequence[Mapping[str, str]],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        response_schema: Mapping[str, Any] | None = None,
        tools: Sequence[ToolSpec] | None = None,
        media: Sequence[MediaPart] = (),
    ) -> ModelReply:
        """Send chat-style messages to a model and return its reply.

        Parameters
        ----------
        messages:
            ``{"role": ..., "content": ...}`` mappings. Roles are ``"system"``,
            ``"user"`` and ``"model"`` (``"assistant"`` is accepted as an alias).
        model:
            Registry alias or concrete model ID; defaults to
            :attr:`default_model_alias`.
        temperature, max_tokens:
            Per-call overrides of the registry defaults.
        response_schema:
            Pydantic JSON Schema the reply text must conform to (JSON mode).
        tools:
            Functions the model may call.
        media:
            Inline attachments (audio) added to the last user message.

        Raises
        ------
        ModelServiceError
            On missing credentials, HTTP/network failures or an unparsable
            response envelope.
        """
        config: ModelConfig = get_model(model or self.default_model_alias)

        effective_temperature = float(
            temperature if temperature is not None else config.temperature
        )
        effective_max_tokens = int(max_tokens if max_tokens is not None else config.max_tokens)

        if media and not config.supports_audio:
            raise ModelServiceError(f"Model {config.name!r} does not accept inline audio.")

        if config.provider.lower().strip() == "google":
            response = self._generate_gemini(
                config=config,
                messages=messages,
                temperature=effective_temperature,
                max_tokens=effective_max_tokens,
                response_schema=response_schema,
                tools=tools or (),
                media=media,
            )
            return self._extract_reply_gemini(response)

        response = self._generate_openai_compatible(
            config=config,
            messages=messages,
            temperature=effective_temperature,
            max_tokens=effective_max_tokens,
            response_schema=response_schema,
            tools=tools or (),
        )
        return self._extract_reply_openai(response)

    # --------------------------------------------------------------------- #
    # Provider-specific helpers
    # --------------------------------------------------------------------- #
    def _generate_gemini(
        self,
        *,
        config: ModelConfig,
        messages: Sequence[Mapping[str, str]],
        temperature: float,
        max_tokens: int,
        response_schema: Mapping[str, Any] | None,
        tools: Sequence[ToolSpec],
        media: Sequence[MediaPart],
    ) -> dict[str, Any]:
        """Call ``POST {base_url}/models/{model}:generateContent``.

        System messages are folded into ``systemInstruction``; media parts are
        appended to the last user turn as ``inline_data``.
        """
        api_key = self.google_api_key or os.getenv("GOOGLE_API_KEY", "")
        if not api_key:
            raise ModelServiceError("Missing GOOGLE_API_KEY; cannot call Google Gemini models.")

        base_url = (os.getenv("GOOGLE_API_BASE_URL") or config.base_url).rstrip("/")
        url = f"{base_url}/models/{config.name}:generateContent"

        system_texts: list[str] = []
        contents: list[dict[str, Any]] = []
        for m in messages:
            role = m["role"]
            if role == "system":
                system_texts.append(m["content"])
                continue
            contents.append(
                {"role": _ROLE_MAP_GEMINI.get(role, "user"), "parts": [{"text": m["content"]}]}
            )

        if media:
            last_user = next((c for c in reversed(contents) if c["role"] == "user"), None)
            if last_user is None:
                last_user = {"role": "user", "parts": []}
                contents.append(last_user)
            for part in media:
                last_user["parts"].append(
                    {"inline_data": {"mime_type": part.mime_type, "data": part.data}}
                )

        generation_config: MutableMapping[str, Any] = {
            "temperature": temperature,
            "maxOutputTokens": max_tokens,
        }
        if response_schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = gemini_schema(dict(response_schema))

        payload: MutableMapping[str, Any] = {
            "contents": contents,
            "generationConfig": generation_config,
        }
        if system_texts:
            payload["systemInstruction"] = {"parts": [{"text": "\n\n".join(system_texts)}]}
        if tools:
            payload["tools"] = [
                {
                    "functionDeclarations": [
                        {
                            "name": t.name,
                            "description": t.description,
                            "parameters": gemini_schema(dict(t.parameters)),
                        }
                        for t in tools
                    ]
                }
            ]

        headers: dict[str, str] = {
            "Content-Type": "application/json",
            "x-goog-api-key": api_key,
        }
        return self._post(url=url, headers=headers, payload=payload)

    def _generate_openai_compatible(
        self,
        *,
        config: ModelConfig,
        messages: Sequence[Mapping[str, str]],
        temperature: float,
        max_tokens: int,
        response_schema: Mapping[str, Any] | None,
        tools: Sequence[ToolSpec],
    ) -> dict[str, Any]:
        """Call an OpenAI-compatible ``/chat/completions`` endpoint."""
        api_key = self.openai_api_key or os.getenv("OPENAI_API_KEY", "")
        if not api_key:
            raise ModelServiceError(
                "Missing OPENAI_API_KEY; cannot call OpenAI-compatible models."
            )

        base_url = (os.getenv("OPENAI_BASE_URL") or config.base_url).rstrip("/")
        url = base_url + "/chat/completions"

        payload: MutableMapping[str, Any] = {
            "model": config.name,
            "messages": [
                {
                    "role": m["role"] if m["role"] == "system" else _ROLE_MAP_OPENAI.get(m["role"], "user"),
                    "content": m["content"],
                }
                for m in messages
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_schema is not None:
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": "response",
                    "schema": strict_object_schema(dict(response_schema)),
                },
            }
        if tools:
            payload["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t.name,
                        "description": t.description,
                        "parameters": dict(t.parameters),
                    },
                }
                for t in tools
            ]

        headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }
        return self._post(url=url, headers=headers, payload=payload)

    # --------------------------------------------------------------------- #
    # Internal helpers (test seams)
    # --------------------------------------------------------------------- #
    def _post(
        self,
        *,
        url: str,
        headers: Mapping[str, str],
        payload: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Perform an HTTP POST request and decode the JSON response.

        This is the seam unit tests patch to return stubbed responses.

        Raises
        ------
        ModelServiceError
            If the request fails or the body is not JSON. HTTP errors keep the
            status code in both the message and :attr:`ModelServiceError.status`.
        """
        body = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(
            url=url,
            data=body,
            headers=dict(headers),
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=self.timeout_seconds) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="ignore")
            raise ModelServiceError(
                f"LLM HTTP error {exc.code}: {exc.reason}; body={detail!r}",
                status=exc.code,
            ) from exc
        except urllib.error.URLError as exc:
            raise ModelServiceError(f"LLM network error: {exc}") from exc
        except TimeoutError as exc:
            raise ModelServiceError(f"LLM request timed out after {self.timeout_seconds}s") from exc
        except (OSError, http.client.HTTPException) as exc:
            # Dropped keep-alive sockets, resets and truncated bodies.
            raise ModelServiceError(f"LLM connection error: {type(exc).__name__}: {exc}") from exc

        try:
            decoded: dict[str, Any] = json.loads(raw.decode("utf-8"))
        except json.JSONDecodeError as exc:
            raise ModelServiceError("Failed to decode LLM response as JSON") from exc

        return decoded

    # --------------------------------------------------------------------- #
    # Response extraction helpers
    # --------------------------------------------------------------------- #
    @staticmethod
    def _decode_arguments(raw: Any) -> Mapping[str, Any] | str:
        if isinstance(raw, Mapping):
            return dict(raw)
        if isinstance(raw, str):
            try:
                decoded = json.loads(raw)
            except json.JSONDecodeError:
                return raw
            return decoded if isinstance(decoded, dict) else raw
        return json.dumps(raw)

    @staticmethod
    def _extract_reply_gemini(response: Mapping[str, Any]) -> ModelReply:
        """Collect text and ``functionCall`` parts of the first candidate.

        A response without candidates, or whose first candidate has no
        content parts, yields an empty :class:`ModelReply`; callers treat that
        as "no usable content".
        """
        candidates = response.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return ModelReply()

        content = candidates[0].get("content") if isinstance(candidates[0], Mapping) else None
        if not isinstance(content, Mapping):
            return ModelReply()

        parts = content.get("parts")
        if not isinstance(parts, list):
            return ModelReply()

        texts: list[str] = []
        calls: list[ToolCall] = []
        for part in parts:
            if not isinstance(part, Mapping):
                continue
            if isinstance(part.get("text"), str):
                texts.append(part["text"])
            call = part.get("functionCall")
            if isinstance(call, Mapping) and isinstance(call.get("name"), str):
                calls.append(
                    ToolCall(
                        name=call["name"],
                        arguments=LLMClient._decode_arguments(call.get("args", {})),
                    )
                )

        return ModelReply(text="".join(texts), tool_calls=tuple(calls))

    @staticmethod
    def _extract_reply_openai(response: Mapping[str, Any]) -> ModelReply:
        """Collect ``message.content`` and ``message.tool_calls`` of choice 0."""
        choices = response.get("choices")
        if not isinstance(choices, list) or not choices:
            return ModelReply()

        message = choices[0].get("message") if isinstance(choices[0], Mapping) else None
        if not isinstance(message, Mapping):
            return ModelReply()

        text = message.get("content") if isinstance(message.get("content"), str) else ""
        calls: list[ToolCall] = []
        for call in message.get("tool_calls") or []:
            fn = call.get("function") if isinstance(call, Mapping) else None
            if isinstance(fn, Mapping) and isinstance(fn.get("name"), str):
                calls.append(
                    ToolCall(
                        name=fn["name"],
                        arguments=LLMClient._decode_arguments(fn.get("arguments", "")),
                    )
                )
        return ModelReply(text=text or "", tool_calls=tuple(calls))


@lru_cache(maxsize=1)
def get_default_client() -> LLMClient:
    """Return the process-wide client, building it on first use.

    Components accept an injected client; this guarded factory is what they
    fall back to, so repeated calls reuse one instance. Tests reset it with
    ``get_default_client.cache_clear()``.
    """
    return LLMClient.from_env()


__all__ = [
    "LLMClient",
    "MediaPart",
    "ModelReply",
    "ModelServiceError",
    "ToolCall",
    "ToolSpec",
    "get_default_client",
]
