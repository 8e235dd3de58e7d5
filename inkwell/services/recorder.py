from __future__ import annotations

from typing import Any, List, Optional

from ..extensions import db
from ..models import AIExecution, Character, Project, Prompt, Script, User
from ..providers import GenerationParameters


def record_execution(
    *,
    user: User,
    system_prompt: str,
    user_prompt: str,
    final_prompt: str,
    params: GenerationParameters,
    result: str,
    prompt: Optional[Prompt] = None,
    prompt_ids: Optional[List[Any]] = None,
    project: Optional[Project] = None,
    character: Optional[Character] = None,
    script: Optional[Script] = None,
) -> AIExecution:
    """Persist the audit record for one finished generation call."""

    execution = AIExecution(
        user_id=user.id,
        prompt_id=prompt.id if prompt is not None else None,
        prompt_ids=prompt_ids,
        project_id=project.id if project is not None else None,
        character_id=character.id if character is not None else None,
        script_id=script.id if script is not None else None,
        system_prompt_snapshot=system_prompt,
        user_prompt=user_prompt,
        final_prompt=final_prompt,
        model=params.model,
        parameters={
            "maxTokens": params.max_tokens,
            "temperature": params.temperature,
            "model": params.model,
        },
        result=result,
    )
    db.session.add(execution)
    db.session.commit()
    return execution


def list_executions(user_id: int) -> List[AIExecution]:
    return (
        AIExecution.query.filter_by(user_id=user_id)
        .order_by(AIExecution.created_at.desc(), AIExecution.id.desc())
        .all()
    )


def get_execution(user_id: int, execution_id: int) -> Optional[AIExecution]:
    return AIExecution.query.filter_by(id=execution_id, user_id=user_id).first()
