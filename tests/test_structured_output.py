import json
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from inkwell.services.structured_output import (
    StructuredOutputError,
    extract_json_candidate,
    normalize_structured_output,
    parse_structured_output,
)


def test_extract_json_candidate_strips_fences_and_chatter():
    raw = 'Sure! Here it is:\n```json\n{"name": "Mira"}\n```\nEnjoy.'

    assert extract_json_candidate(raw) == '{"name": "Mira"}'


def test_parse_accepts_character_with_optional_fields_missing():
    parsed = parse_structured_output("character-generation", '{"name": "Mira", "personality": "Wry"}')

    assert parsed == {"name": "Mira", "personality": "Wry"}


def test_parse_reports_invalid_json():
    with pytest.raises(StructuredOutputError) as excinfo:
        parse_structured_output("character-generation", "{name: Mira}")

    assert str(excinfo.value).startswith("Invalid JSON:")


def test_parse_reports_schema_violations():
    with pytest.raises(StructuredOutputError) as excinfo:
        parse_structured_output("wizard-script", '{"title": "Pilot"}')

    message = str(excinfo.value)
    assert message.startswith("Schema validation failed:")
    assert "content" in message


def test_parse_rejects_non_object_payloads():
    with pytest.raises(StructuredOutputError):
        parse_structured_output("character-generation", '["Mira"]')


def test_parse_rejects_empty_response():
    with pytest.raises(StructuredOutputError):
        parse_structured_output("character-generation", "   ")


def test_normalize_returns_canonical_json():
    raw = '```JSON\n{"title": "Pilot", "content": "# Scene 1\\nRain.", "analysis": "Três atos"}\n```'

    normalized = normalize_structured_output("wizard-script", raw)

    assert json.loads(normalized) == {"title": "Pilot", "content": "# Scene 1\nRain.", "analysis": "Três atos"}
    assert "Três" in normalized


def test_unregistered_type_is_rejected():
    with pytest.raises(StructuredOutputError):
        parse_structured_output("default", "{}")
