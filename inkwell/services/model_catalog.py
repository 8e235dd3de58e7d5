"""Model listings for the profile editor's model picker."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests
from flask import current_app
from google import genai
from google.genai import errors as genai_errors
from openai import OpenAI, OpenAIError

from ..models import User
from ..providers import (
    DEFAULT_OPENAI_BASE_URL,
    DEFAULT_OPENROUTER_BASE_URL,
    MISSING_KEY_MESSAGES,
    ProviderConfigurationError,
    ProviderKind,
    user_api_key,
)
from .billing import get_gemini_pricing

OPENAI_PRICING: Dict[str, str] = {
    "gpt-4o": "$15.00/M",
    "gpt-4o-mini": "$0.60/M",
    "o1-preview": "$60.00/M",
    "o1-mini": "$12.00/M",
    "gpt-4-turbo": "$30.00/M",
    "gpt-3.5-turbo": "$1.50/M",
}
OPENAI_PRICE_UNKNOWN = "Price on request"
GEMINI_DEFAULT_PRICING = " (Free/Tiered)"
GEMINI_FALLBACK_MODELS = (
    "gemini-3.1-pro-preview",
    "gemini-3-pro-preview",
    "gemini-3-flash-preview",
    "gemini-3-pro-image-preview",
    "gemini-flash-latest",
    "gemini-flash-lite-latest",
    "imagen-4.0-generate-001",
    "imagen-4.0-ultra-generate-001",
    "gemini-2.0-flash",
    "gemini-2.0-flash-lite",
    "gemini-1.5-flash",
    "gemini-1.5-pro",
    "gemini-pro",
)


class ModelCatalogError(RuntimeError):
    """Raised when a provider's model listing cannot be fetched."""


def list_models(provider: str, user: User) -> List[Dict[str, str]]:
    try:
        kind = ProviderKind(provider)
    except ValueError as exc:
        raise ProviderConfigurationError(f"Unknown provider '{provider}'.") from exc

    if kind is ProviderKind.OPENAI:
        return _list_openai_models(user)
    if kind is ProviderKind.GEMINI:
        return _list_gemini_models(user)
    return _list_openrouter_models()


def _list_openai_models(user: User) -> List[Dict[str, str]]:
    api_key = user_api_key(user, ProviderKind.OPENAI)
    if not api_key:
        raise ProviderConfigurationError(MISSING_KEY_MESSAGES[ProviderKind.OPENAI])

    base_url = current_app.config.get("OPENAI_BASE_URL") or DEFAULT_OPENAI_BASE_URL
    client = OpenAI(api_key=api_key, base_url=base_url)
    try:
        listing = list(client.models.list())
    except OpenAIError as exc:
        raise ModelCatalogError(f"Failed to fetch OpenAI models: {exc}") from exc

    models = []
    for model in listing:
        model_id = model.id
        if model_id.startswith("gpt-") or model_id.startswith("o") or "chatgpt" in model_id:
            price = OPENAI_PRICING.get(model_id, OPENAI_PRICE_UNKNOWN)
            models.append({"id": model_id, "name": f"{model_id} ({price})"})
    models.sort(key=lambda entry: entry["name"])
    return models


def _list_gemini_models(user: User) -> List[Dict[str, str]]:
    api_key = user_api_key(user, ProviderKind.GEMINI)
    pricing = get_gemini_pricing(api_key)

    if not api_key:
        return [
            {"id": model_id, "name": _display_name(model_id) + pricing.get(model_id, GEMINI_DEFAULT_PRICING)}
            for model_id in GEMINI_FALLBACK_MODELS
        ]

    client = genai.Client(api_key=api_key)
    try:
        listing = list(client.models.list())
    except genai_errors.APIError as exc:
        raise ModelCatalogError(f"Failed to fetch Gemini models: {exc}") from exc

    models = []
    for model in listing:
        actions = getattr(model, "supported_actions", None) or []
        if "generateContent" not in actions:
            continue
        model_id = (model.name or "").replace("models/", "")
        display = getattr(model, "display_name", None) or model_id
        models.append({"id": model_id, "name": display + pricing.get(model_id, GEMINI_DEFAULT_PRICING)})
    return models


def _list_openrouter_models() -> List[Dict[str, str]]:
    base_url = current_app.config.get("OPENROUTER_BASE_URL") or DEFAULT_OPENROUTER_BASE_URL
    try:
        response = requests.get(f"{base_url.rstrip('/')}/models", timeout=30)
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as exc:
        raise ModelCatalogError(f"Failed to fetch OpenRouter models: {exc}") from exc

    models = []
    for entry in payload.get("data") or []:
        model_id = entry.get("id")
        if not model_id:
            continue
        completion_price = _per_million(entry.get("pricing"))
        models.append({"id": model_id, "name": f"{entry.get('name') or model_id} (${completion_price:.2f}/M)"})
    models.sort(key=lambda item: item["name"])
    return models


def _per_million(pricing: Optional[Dict[str, Any]]) -> float:
    if not isinstance(pricing, dict):
        return 0.0
    try:
        return float(pricing.get("completion") or 0) * 1_000_000
    except (TypeError, ValueError):
        return 0.0


def _display_name(model_id: str) -> str:
    return " ".join(part[:1].upper() + part[1:] for part in model_id.split("-"))
