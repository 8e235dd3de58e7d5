"""AI generation pipeline: context, prompt composition, dispatch, repair, audit."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from flask import current_app

from ..extensions import db
from ..models import AIExecution, CreativeProfile, GLOBAL_PROMPT_CATEGORY, Project, Script, User
from ..providers import GenerationParameters, build_provider
from ..system_prompts import REPAIR_INSTRUCTION, WIZARD_SCRIPT, is_structured, normalize_type
from .. import storage
from .context import assemble_context
from .prompt_composer import compose_prompts
from .recorder import record_execution
from .structured_output import StructuredOutputError, normalize_structured_output

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_MAX_TOKENS = 2048
DEFAULT_TEMPERATURE = 0.8
DEFAULT_STRUCTURED_ATTEMPTS = 3


class GenerationRequestError(ValueError):
    """Raised when the inbound generation request is unusable."""


class GenerationError(RuntimeError):
    """Raised when the model never produced an acceptable response."""


@dataclass
class GenerationRequest:
    generation_type: Optional[str]
    user_prompt: str
    project_id: Optional[int] = None
    character_id: Optional[int] = None
    script_id: Optional[int] = None
    prompt_id: Optional[int] = None
    prompt_ids: List[int] = field(default_factory=list)
    # promptIds exactly as sent, kept for the audit record.
    raw_prompt_ids: Optional[List[Any]] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "GenerationRequest":
        user_prompt = payload.get("userPrompt")
        if not isinstance(user_prompt, str) or not user_prompt.strip():
            raise GenerationRequestError("userPrompt is required.")
        generation_type = payload.get("type")
        raw_prompt_ids = payload.get("promptIds")
        return cls(
            generation_type=generation_type if isinstance(generation_type, str) else None,
            user_prompt=user_prompt,
            project_id=storage.coerce_id(payload.get("projectId")),
            character_id=storage.coerce_id(payload.get("characterId")),
            script_id=storage.coerce_id(payload.get("scriptId")),
            prompt_id=storage.coerce_id(payload.get("promptId")),
            prompt_ids=storage.coerce_id_list(raw_prompt_ids),
            raw_prompt_ids=list(raw_prompt_ids) if isinstance(raw_prompt_ids, list) else None,
        )

    @property
    def audit_prompt_ids(self) -> Optional[List[Any]]:
        if self.raw_prompt_ids is not None:
            return self.raw_prompt_ids
        return list(self.prompt_ids) if self.prompt_ids else None


@dataclass
class ResolvedSettings:
    model: str
    max_tokens: int
    temperature: float
    narrative_style: Optional[str] = None
    profile: Optional[CreativeProfile] = None


@dataclass
class DispatchOutcome:
    result: str
    final_prompt: str
    attempts: int


@dataclass
class GenerationResult:
    execution: AIExecution
    result: str
    attempts: int
    script: Optional[Script] = None


def resolve_settings(profile: Optional[CreativeProfile]) -> ResolvedSettings:
    """Read model parameters from the active profile, falling back to defaults."""

    if profile is None:
        return ResolvedSettings(
            model=DEFAULT_MODEL,
            max_tokens=DEFAULT_MAX_TOKENS,
            temperature=DEFAULT_TEMPERATURE,
        )

    try:
        temperature = float(profile.temperature)
    except (TypeError, ValueError):
        temperature = math.nan
    if math.isnan(temperature):
        temperature = DEFAULT_TEMPERATURE
    temperature = max(0.0, min(2.0, temperature))

    return ResolvedSettings(
        model=(profile.model or "").strip() or DEFAULT_MODEL,
        max_tokens=profile.max_tokens or DEFAULT_MAX_TOKENS,
        temperature=temperature,
        narrative_style=profile.narrative_style,
        profile=profile,
    )


def run_generation(user: User, request: GenerationRequest) -> GenerationResult:
    generation_type = normalize_type(request.generation_type)
    structured = is_structured(generation_type)

    settings = resolve_settings(storage.get_active_profile(user.id))
    current_app.logger.info(
        "[AI Generate] type=%s user=%s profile=%s model=%s",
        generation_type,
        user.id,
        settings.profile.name if settings.profile else "default",
        settings.model,
    )

    bundle = assemble_context(
        user,
        project_id=request.project_id,
        character_id=request.character_id,
        script_id=request.script_id,
    )
    single_prompt = storage.get_owned_prompt(user.id, request.prompt_id)
    selected_prompts = storage.get_prompts_by_ids(user.id, request.prompt_ids)
    global_prompts = storage.get_active_prompts_by_category(user.id, GLOBAL_PROMPT_CATEGORY)

    composed = compose_prompts(
        generation_type,
        request.user_prompt,
        context_fragments=bundle.fragments,
        narrative_style=settings.narrative_style,
        single_prompt=single_prompt,
        selected_prompts=selected_prompts,
        global_prompts=global_prompts,
    )

    params = GenerationParameters(
        model=settings.model,
        max_tokens=settings.max_tokens,
        temperature=settings.temperature,
        json_mode=structured,
    )
    provider = build_provider(settings.model, user)
    outcome = dispatch_with_repair(
        provider,
        generation_type,
        composed.system_prompt,
        composed.user_prompt,
        params,
    )

    new_script = None
    if generation_type == WIZARD_SCRIPT and bundle.project is not None:
        new_script = _persist_generated_script(bundle.project, outcome.result)

    execution = record_execution(
        user=user,
        system_prompt=composed.system_prompt,
        user_prompt=request.user_prompt,
        final_prompt=outcome.final_prompt,
        params=params,
        result=outcome.result,
        prompt=single_prompt,
        prompt_ids=request.audit_prompt_ids,
        project=bundle.project,
        character=bundle.character,
        script=bundle.script or new_script,
    )
    return GenerationResult(
        execution=execution,
        result=outcome.result,
        attempts=outcome.attempts,
        script=new_script,
    )


def dispatch_with_repair(
    provider: Any,
    generation_type: str,
    system_prompt: str,
    user_prompt: str,
    params: GenerationParameters,
) -> DispatchOutcome:
    """Call the provider, re-prompting with the validation error for structured types.

    Free-form types get exactly one call. Structured types get up to
    ``STRUCTURED_OUTPUT_MAX_ATTEMPTS`` calls; each failed attempt appends the
    error to the prompt, so the returned ``final_prompt`` carries the whole
    repair history.
    """

    structured = is_structured(generation_type)
    max_attempts = _structured_attempts() if structured else 1
    current_prompt = user_prompt
    attempt = 0

    while True:
        attempt += 1
        current_app.logger.info(
            "[AI LLM Call] model=%s temperature=%s attempt=%d/%d",
            params.model,
            params.temperature,
            attempt,
            max_attempts,
        )
        current_app.logger.debug("[System Prompt]\n%s", system_prompt)
        current_app.logger.debug("[User Prompt]\n%s", current_prompt)

        raw_result = provider.generate(system_prompt, current_prompt, params)
        current_app.logger.debug("[AI LLM Response]\n%s", raw_result)

        if not structured:
            return DispatchOutcome(result=raw_result, final_prompt=current_prompt, attempts=attempt)

        try:
            normalized = normalize_structured_output(generation_type, raw_result)
        except StructuredOutputError as exc:
            current_app.logger.warning(
                "JSON validation failed for type %s (attempt %d/%d): %s",
                generation_type,
                attempt,
                max_attempts,
                exc,
            )
            if attempt >= max_attempts:
                raise GenerationError(
                    f"Failed to generate valid JSON after {max_attempts} attempts: {exc}"
                ) from exc
            current_prompt += REPAIR_INSTRUCTION.format(error=exc)
            continue

        return DispatchOutcome(result=normalized, final_prompt=current_prompt, attempts=attempt)


def _structured_attempts() -> int:
    configured = current_app.config.get("STRUCTURED_OUTPUT_MAX_ATTEMPTS", DEFAULT_STRUCTURED_ATTEMPTS)
    try:
        return max(1, int(configured))
    except (TypeError, ValueError):
        return DEFAULT_STRUCTURED_ATTEMPTS


def _persist_generated_script(project: Project, result: str) -> Script:
    payload = json.loads(result)
    title = (payload.get("title") or "").strip() or f"Final Script - {project.title}"
    script = Script(
        project_id=project.id,
        title=title,
        type="detailed",
        content=payload.get("content"),
        origin="ai",
    )
    db.session.add(script)
    db.session.flush()
    current_app.logger.info("Saved generated script %s for project %s", script.id, project.id)
    return script
