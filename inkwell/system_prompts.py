"""Central configuration for the system prompts used by the generation pipeline.

Each generation ``type`` maps to a fixed base instruction. Entries flagged as
``structured`` must come back as a single JSON object and go through the
validation/repair loop in :mod:`inkwell.services.generation`.
"""

from __future__ import annotations

from typing import Any, Dict

DEFAULT_TYPE = "default"
WIZARD_IDEA = "wizard-idea"
WIZARD_SCRIPT = "wizard-script"
CHARACTER_GENERATION = "character-generation"
SCRIPT_ADJUSTMENT = "script-adjustment"

SYSTEM_PROMPTS: Dict[str, Dict[str, Any]] = {
    DEFAULT_TYPE: {
        "structured": False,
        "base": "You are a skilled creative writing assistant.",
    },
    WIZARD_IDEA: {
        "structured": False,
        "base": (
            "You are a story structuring specialist (Project Architect). Your task is to expand "
            "embryonic ideas into captivating titles and solid premises while keeping a constructive "
            "dialogue with the author through insightful questions. Always close by asking for "
            "feedback or posing questions."
        ),
    },
    WIZARD_SCRIPT: {
        "structured": True,
        "base": (
            "You are a professional scriptwriter. Your task is to produce complete, detailed scripts "
            "that follow the requested format and style.\n\n"
            "EXPECTED SCHEMA:\n"
            "{\n"
            "  title: string; // Script title\n"
            "  content: string; // Full script formatted in Markdown\n"
            "  analysis?: string; // Optional notes on structure and choices\n"
            "}\n\n"
            "Return ONLY the JSON object. No markdown code fences. No conversation."
        ),
    },
    CHARACTER_GENERATION: {
        "structured": True,
        "base": (
            "ATTENTION: STRUCTURED DATA GENERATION.\n"
            "Your task is to generate a character profile as valid JSON.\n\n"
            "EXPECTED SCHEMA:\n"
            "{\n"
            "  name: string; // Character name\n"
            "  description?: string; // Physical appearance\n"
            "  personality?: string; // Personality traits\n"
            "  background?: string; // Backstory\n"
            "  notes?: string; // Additional notes\n"
            "}\n\n"
            "Return ONLY the JSON object. No markdown code fences. No conversation."
        ),
    },
    SCRIPT_ADJUSTMENT: {
        "structured": False,
        "base": (
            "You are an experienced script editor. Your task is to adjust the script content "
            "following the user's instructions.\n"
            "Return ONLY the adjusted/rewritten script content.\n"
            "Do NOT include introductory text such as 'Here is the script' or 'Sure'.\n"
            "Do NOT wrap the answer in code fences (```) unless they are part of the script."
        ),
    },
}

NARRATIVE_STYLE_TEMPLATE = " Write in this predominant style: {style}."

JSON_ONLY_INSTRUCTION = (
    "\n\nIMPORTANT: Return ONLY a single valid JSON object that strictly follows the requested "
    "schema. Do not use markdown code fences and do not add any conversational text."
)

REPAIR_INSTRUCTION = (
    "\n\nERROR: Your previous answer was not valid JSON or did not follow the schema. "
    "Error: {error}. \nReturn ONLY the corrected JSON."
)


def normalize_type(generation_type: Any) -> str:
    """Return a known generation type, falling back to the free-form default."""

    if isinstance(generation_type, str) and generation_type in SYSTEM_PROMPTS:
        return generation_type
    return DEFAULT_TYPE


def base_prompt_for(generation_type: Any) -> str:
    return SYSTEM_PROMPTS[normalize_type(generation_type)]["base"]


def is_structured(generation_type: Any) -> bool:
    return bool(SYSTEM_PROMPTS[normalize_type(generation_type)].get("structured"))
