"""Extraction and schema validation for JSON-producing generation types."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ValidationError

from ..system_prompts import CHARACTER_GENERATION, WIZARD_SCRIPT

_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)


class StructuredOutputError(RuntimeError):
    """Raised when a model response does not contain the expected JSON object."""


class CharacterPayload(BaseModel):
    name: str
    description: Optional[str] = None
    personality: Optional[str] = None
    background: Optional[str] = None
    notes: Optional[str] = None


class ScriptPayload(BaseModel):
    title: str
    content: str
    analysis: Optional[str] = None


STRUCTURED_SCHEMAS: Dict[str, Type[BaseModel]] = {
    CHARACTER_GENERATION: CharacterPayload,
    WIZARD_SCRIPT: ScriptPayload,
}


def extract_json_candidate(raw_text: str) -> str:
    """Strip code fences and keep the span between the first ``{`` and last ``}``."""

    text = _FENCE_PATTERN.sub("", raw_text or "").strip()
    first_brace = text.find("{")
    last_brace = text.rfind("}")
    if first_brace != -1 and last_brace > first_brace:
        text = text[first_brace : last_brace + 1]
    return text


def parse_structured_output(generation_type: str, raw_text: str) -> Dict[str, Any]:
    """Parse ``raw_text`` and validate it against the schema for ``generation_type``."""

    schema = STRUCTURED_SCHEMAS.get(generation_type)
    if schema is None:
        raise StructuredOutputError(f"No schema is registered for type '{generation_type}'.")

    candidate = extract_json_candidate(raw_text)
    if not candidate:
        raise StructuredOutputError("The response was empty.")
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise StructuredOutputError(f"Invalid JSON: {exc.msg} (line {exc.lineno}, column {exc.colno})") from exc

    if not isinstance(parsed, dict):
        raise StructuredOutputError(f"Expected a JSON object, got {type(parsed).__name__}.")

    try:
        schema.model_validate(parsed)
    except ValidationError as exc:
        raise StructuredOutputError(_format_validation_error(exc)) from exc
    return parsed


def normalize_structured_output(generation_type: str, raw_text: str) -> str:
    """Return the canonical JSON string for a valid response, raising otherwise."""

    parsed = parse_structured_output(generation_type, raw_text)
    return json.dumps(parsed, ensure_ascii=False)


def _format_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "(root)"
        problems.append(f"{location}: {error.get('msg')}")
    return "Schema validation failed: " + "; ".join(problems)
