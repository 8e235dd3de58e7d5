from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..models import Prompt
from ..system_prompts import (
    JSON_ONLY_INSTRUCTION,
    NARRATIVE_STYLE_TEMPLATE,
    base_prompt_for,
    is_structured,
)
from .context import render_context

PROMPT_SEPARATOR = "\n---\n"
ADDITIONAL_INSTRUCTIONS_HEADER = "\n\nAdditional Instructions:\n"


@dataclass
class ComposedPrompt:
    system_prompt: str
    user_prompt: str


def compose_prompts(
    generation_type: Optional[str],
    request_text: str,
    *,
    context_fragments: Sequence[str] = (),
    narrative_style: Optional[str] = None,
    single_prompt: Optional[Prompt] = None,
    selected_prompts: Sequence[Prompt] = (),
    global_prompts: Sequence[Prompt] = (),
) -> ComposedPrompt:
    """Build the system and user prompts sent to the provider.

    Layers are applied in a fixed order: the type's base instruction, the
    profile's narrative style, the single referenced prompt, the selected
    ``system`` prompts, and finally the GLOBAL prompts, which are prepended so
    they take precedence over everything else. Non-system selected prompts go
    to the user prompt as additional instructions.
    """

    structured = is_structured(generation_type)
    system_prompt = base_prompt_for(generation_type)

    if narrative_style and not structured:
        system_prompt += NARRATIVE_STYLE_TEMPLATE.format(style=narrative_style)

    if single_prompt is not None and single_prompt.content:
        system_prompt = _join_layers([system_prompt, single_prompt.content])

    system_parts = [prompt.content for prompt in selected_prompts if prompt.type == "system"]
    if system_parts:
        system_prompt = _join_layers([system_prompt, *system_parts])

    additional = render_additional_instructions(
        [prompt for prompt in selected_prompts if prompt.type != "system"]
    )

    if global_prompts:
        system_prompt = _join_layers([prompt.content for prompt in global_prompts] + [system_prompt])

    request = request_text
    if structured:
        request += JSON_ONLY_INSTRUCTION

    if context_fragments:
        user_prompt = f"{render_context(list(context_fragments))}\n\nRequest: {request}{additional}"
    else:
        user_prompt = f"{request}{additional}"

    return ComposedPrompt(system_prompt=system_prompt, user_prompt=user_prompt)


def render_additional_instructions(prompts: Sequence[Prompt]) -> str:
    if not prompts:
        return ""
    blocks: List[str] = [f"[Prompt: {prompt.name} ({prompt.type})]:\n{prompt.content}" for prompt in prompts]
    return ADDITIONAL_INSTRUCTIONS_HEADER + "\n\n".join(blocks)


def _join_layers(layers: Sequence[str]) -> str:
    return PROMPT_SEPARATOR.join(layer for layer in layers if layer)
