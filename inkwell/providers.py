"""LLM provider adapters used by the generation pipeline.

The model identifier picks the backend once, before dispatch:

- ``gemini*`` models → Google Gemini (``google-genai``)
- ``vendor/model`` identifiers → OpenRouter (OpenAI-compatible endpoint)
- anything else → OpenAI Chat Completions

Every adapter exposes the same ``generate(system_prompt, user_prompt, params)``
call and returns plain text. Credentials come from the user's record, stored
encrypted by :mod:`inkwell.crypto`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from flask import current_app, has_app_context
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from openai import OpenAI, OpenAIError

from .crypto import MissingEncryptionKeyError, SecretCodecError, decrypt
from .models import User

LOGGER = logging.getLogger(__name__)

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
GEMINI_MODEL_PREFIXES = ("gemini",)


class ProviderConfigurationError(RuntimeError):
    """Raised when the user has not configured the credential a model needs."""


class ProviderRequestError(RuntimeError):
    """Raised when a provider call fails or returns an unusable response."""


class ProviderKind(str, Enum):
    GEMINI = "gemini"
    OPENROUTER = "openrouter"
    OPENAI = "openai"


@dataclass
class GenerationParameters:
    model: str
    max_tokens: int
    temperature: float
    json_mode: bool = False


def resolve_provider(model: str) -> ProviderKind:
    name = (model or "").strip()
    if name.startswith(GEMINI_MODEL_PREFIXES):
        return ProviderKind.GEMINI
    if "/" in name:
        return ProviderKind.OPENROUTER
    return ProviderKind.OPENAI


class ChatCompletionProvider:
    """OpenAI Chat Completions adapter (system + user messages)."""

    kind = ProviderKind.OPENAI
    config_base_url_key = "OPENAI_BASE_URL"
    default_base_url = DEFAULT_OPENAI_BASE_URL

    def __init__(self, api_key: str, *, base_url: Optional[str] = None) -> None:
        self.base_url = base_url or self._configured_base_url()
        self._client = OpenAI(api_key=api_key, base_url=self.base_url)

    def _configured_base_url(self) -> str:
        if has_app_context():
            return current_app.config.get(self.config_base_url_key) or self.default_base_url
        return self.default_base_url

    def generate(self, system_prompt: str, user_prompt: str, params: GenerationParameters) -> str:
        kwargs: Dict[str, Any] = {
            "model": params.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
        }
        if params.json_mode:
            # Best effort only; the structured-output loop still validates the text.
            kwargs["response_format"] = {"type": "json_object"}

        try:
            resp = self._client.chat.completions.create(**kwargs)
        except OpenAIError as exc:
            raise ProviderRequestError(f"{self.kind.value} request failed: {exc}") from exc
        return self._extract_text_from_chat(resp)

    def _extract_text_from_chat(self, resp: Any) -> str:
        choices = getattr(resp, "choices", []) or []
        if not choices:
            return ""
        first = choices[0]
        msg = getattr(first, "message", None)
        if isinstance(msg, dict):
            content = msg.get("content")
        else:
            content = getattr(msg, "content", None)
        if isinstance(content, list):
            parts: List[str] = []
            for p in content:
                if isinstance(p, dict) and p.get("type") == "text":
                    parts.append(str(p.get("text") or ""))
            return "\n".join([p for p in parts if p])
        return str(content or "")


class OpenAIProvider(ChatCompletionProvider):
    kind = ProviderKind.OPENAI


class OpenRouterProvider(ChatCompletionProvider):
    kind = ProviderKind.OPENROUTER
    config_base_url_key = "OPENROUTER_BASE_URL"
    default_base_url = DEFAULT_OPENROUTER_BASE_URL


class GeminiProvider:
    """Gemini ``generate_content`` adapter.

    This integration has no separate system role: the system and user prompts
    travel together in a single user content blob.
    """

    kind = ProviderKind.GEMINI

    def __init__(self, api_key: str) -> None:
        self._client = genai.Client(api_key=api_key)

    def generate(self, system_prompt: str, user_prompt: str, params: GenerationParameters) -> str:
        contents = [
            genai_types.Content(
                role="user",
                parts=[genai_types.Part(text=f"{system_prompt}\n\n{user_prompt}")],
            )
        ]
        config = genai_types.GenerateContentConfig(
            max_output_tokens=params.max_tokens,
            temperature=params.temperature,
        )
        try:
            response = self._client.models.generate_content(
                model=params.model,
                contents=contents,
                config=config,
            )
        except genai_errors.APIError as exc:
            raise ProviderRequestError(f"gemini request failed: {exc}") from exc
        return getattr(response, "text", None) or ""


PROVIDER_CLASSES: Dict[ProviderKind, Type[Any]] = {
    ProviderKind.GEMINI: GeminiProvider,
    ProviderKind.OPENROUTER: OpenRouterProvider,
    ProviderKind.OPENAI: OpenAIProvider,
}

CREDENTIAL_ATTRIBUTES: Dict[ProviderKind, str] = {
    ProviderKind.GEMINI: "gemini_key",
    ProviderKind.OPENROUTER: "openrouter_key",
    ProviderKind.OPENAI: "openai_key",
}

MISSING_KEY_MESSAGES: Dict[ProviderKind, str] = {
    ProviderKind.GEMINI: "Gemini API key is not configured. Add it in your profile settings.",
    ProviderKind.OPENROUTER: "OpenRouter API key is not configured. Add it in your profile settings.",
    ProviderKind.OPENAI: "OpenAI API key is not configured. Please add your key in the settings.",
}


def user_api_key(user: User, kind: ProviderKind) -> Optional[str]:
    """Return the decrypted credential for ``kind`` or ``None`` when unusable."""

    stored = getattr(user, CREDENTIAL_ATTRIBUTES[kind], None)
    if not stored:
        return None
    try:
        return decrypt(stored) or None
    except MissingEncryptionKeyError as exc:
        raise ProviderConfigurationError(str(exc)) from exc
    except SecretCodecError as exc:
        LOGGER.warning("Stored %s key for user %s could not be decrypted: %s", kind.value, user.id, exc)
        return None


def build_provider(model: str, user: User):
    kind = resolve_provider(model)
    api_key = user_api_key(user, kind)
    if not api_key:
        raise ProviderConfigurationError(MISSING_KEY_MESSAGES[kind])
    return PROVIDER_CLASSES[kind](api_key)
