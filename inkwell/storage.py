"""Owner-scoped persistence helpers shared by the routes and the generation pipeline."""

from __future__ import annotations

import hashlib
import re
from typing import Any, Dict, Iterable, List, Optional

from .extensions import db
from .models import (
    Character,
    CreativeProfile,
    Project,
    ProjectCharacter,
    Prompt,
    PROMPT_TYPES,
    Script,
    User,
)

_USERNAME_UNSAFE = re.compile(r"[^a-zA-Z0-9_]")

PROFILE_FIELDS = {
    "name": "name",
    "model": "model",
    "temperature": "temperature",
    "maxTokens": "max_tokens",
    "narrativeStyle": "narrative_style",
    "active": "active",
}

PROMPT_FIELDS = {
    "name": "name",
    "category": "category",
    "content": "content",
    "type": "type",
    "active": "active",
}


class StorageValidationError(ValueError):
    """Raised when a payload cannot be applied to a record."""


def coerce_id(value: Any) -> Optional[int]:
    """Parse an id from a JSON payload, returning ``None`` for anything unusable."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdigit():
            parsed = int(stripped)
            return parsed if parsed > 0 else None
    return None


def coerce_id_list(values: Any) -> List[int]:
    if not isinstance(values, (list, tuple)):
        return []
    ids: List[int] = []
    for value in values:
        parsed = coerce_id(value)
        if parsed is not None and parsed not in ids:
            ids.append(parsed)
    return ids


# ---------------------------------------------------------------- users


def get_or_create_user_by_external_auth_id(
    external_auth_id: str,
    provider: str,
    display_name: Optional[str] = None,
) -> User:
    user = User.query.filter_by(external_auth_id=external_auth_id).first()
    if user:
        return user

    username = _unique_username(external_auth_id)
    user = User(
        username=username,
        display_name=display_name or username,
        external_auth_id=external_auth_id,
        auth_provider=provider,
    )
    db.session.add(user)
    db.session.commit()
    return user


def _unique_username(external_auth_id: str) -> str:
    """Derive ``user_<prefix>_<digest>`` from the full id, suffixing a counter if a local account holds it."""

    digest = hashlib.sha1(external_auth_id.encode("utf-8")).hexdigest()[:10]
    base = f"user_{_USERNAME_UNSAFE.sub('_', external_auth_id[:16])}_{digest}"
    candidate = base
    counter = 1
    while User.query.filter_by(username=candidate).first() is not None:
        counter += 1
        candidate = f"{base}_{counter}"
    return candidate


# ---------------------------------------------------------------- context entities


def get_owned_project(user_id: int, project_id: Optional[int]) -> Optional[Project]:
    if project_id is None:
        return None
    return Project.query.filter_by(id=project_id, user_id=user_id).first()


def get_owned_character(user_id: int, character_id: Optional[int]) -> Optional[Character]:
    if character_id is None:
        return None
    return Character.query.filter_by(id=character_id, user_id=user_id).first()


def get_owned_script(user_id: int, script_id: Optional[int]) -> Optional[Script]:
    if script_id is None:
        return None
    return (
        Script.query.join(Project, Script.project_id == Project.id)
        .filter(Script.id == script_id, Project.user_id == user_id)
        .first()
    )


def get_project_characters(project: Project) -> List[Character]:
    links = ProjectCharacter.query.filter_by(project_id=project.id).order_by(ProjectCharacter.id).all()
    return [link.character for link in links if link.character is not None]


# ---------------------------------------------------------------- prompts


def get_owned_prompt(user_id: int, prompt_id: Optional[int]) -> Optional[Prompt]:
    if prompt_id is None:
        return None
    return Prompt.query.filter_by(id=prompt_id, user_id=user_id).first()


def get_prompts_by_ids(user_id: int, prompt_ids: Iterable[int]) -> List[Prompt]:
    """Return the user's prompts for ``prompt_ids`` in the order they were requested."""

    ids = list(prompt_ids)
    if not ids:
        return []
    found = {
        prompt.id: prompt
        for prompt in Prompt.query.filter(Prompt.user_id == user_id, Prompt.id.in_(ids)).all()
    }
    return [found[prompt_id] for prompt_id in ids if prompt_id in found]


def get_active_prompts_by_category(user_id: int, category: str) -> List[Prompt]:
    return (
        Prompt.query.filter_by(user_id=user_id, category=category, active=True)
        .order_by(Prompt.id.asc())
        .all()
    )


def create_prompt(user: User, data: Dict[str, Any]) -> Prompt:
    prompt = Prompt(version=1)
    _apply_prompt_fields(prompt, data, creating=True)
    prompt.user_id = user.id
    db.session.add(prompt)
    db.session.commit()
    return prompt


def update_prompt(prompt: Prompt, data: Dict[str, Any]) -> Prompt:
    """Apply ``data`` to ``prompt``, bumping ``version`` when the content changes."""

    new_content = data.get("content")
    if isinstance(new_content, str) and new_content and new_content != prompt.content:
        prompt.version = (prompt.version or 1) + 1
    _apply_prompt_fields(prompt, data, creating=False)
    db.session.commit()
    return prompt


def _apply_prompt_fields(prompt: Prompt, data: Dict[str, Any], *, creating: bool) -> None:
    for key, attribute in PROMPT_FIELDS.items():
        if key not in data:
            continue
        value = data[key]
        if attribute == "active":
            if not isinstance(value, bool):
                raise StorageValidationError("active must be true or false.")
            prompt.active = value
            continue
        if attribute == "type" and value not in PROMPT_TYPES:
            raise StorageValidationError(f"Prompt type must be one of: {', '.join(PROMPT_TYPES)}.")
        if not isinstance(value, str) or not value.strip():
            raise StorageValidationError(f"Prompt field '{key}' must be a non-empty string.")
        setattr(prompt, attribute, value if attribute == "content" else value.strip())

    if creating:
        for required in ("name", "category", "content"):
            if not getattr(prompt, required, None):
                raise StorageValidationError(f"Prompt field '{required}' is required.")
        if not prompt.type:
            prompt.type = "task"


# ---------------------------------------------------------------- creative profiles


def get_profiles(user_id: int) -> List[CreativeProfile]:
    return (
        CreativeProfile.query.filter_by(user_id=user_id)
        .order_by(CreativeProfile.created_at.desc(), CreativeProfile.id.desc())
        .all()
    )


def get_active_profile(user_id: int) -> Optional[CreativeProfile]:
    return (
        CreativeProfile.query.filter_by(user_id=user_id, active=True)
        .order_by(CreativeProfile.created_at.desc(), CreativeProfile.id.desc())
        .first()
    )


def _deactivate_profiles(user_id: int) -> None:
    CreativeProfile.query.filter_by(user_id=user_id, active=True).update(
        {CreativeProfile.active: False}, synchronize_session="fetch"
    )


def set_active_profile(user_id: int, profile_id: int) -> Optional[CreativeProfile]:
    """Make ``profile_id`` the user's only active profile.

    Both the deactivation of the other profiles and the activation are
    committed together, so readers never observe two active profiles.
    """

    profile = CreativeProfile.query.filter_by(id=profile_id, user_id=user_id).first()
    if profile is None:
        return None
    _deactivate_profiles(user_id)
    profile.active = True
    db.session.commit()
    return profile


def create_profile(user: User, data: Dict[str, Any]) -> CreativeProfile:
    # Built outside the session so the bulk deactivation cannot flush it early.
    profile = CreativeProfile()
    _apply_profile_fields(profile, data)
    if not profile.name:
        raise StorageValidationError("Profile field 'name' is required.")
    if profile.active:
        _deactivate_profiles(user.id)
    profile.user_id = user.id
    db.session.add(profile)
    db.session.commit()
    return profile


def update_profile(profile: CreativeProfile, data: Dict[str, Any]) -> CreativeProfile:
    if data.get("active") is True:
        _deactivate_profiles(profile.user_id)
    _apply_profile_fields(profile, data)
    db.session.commit()
    return profile


def _apply_profile_fields(profile: CreativeProfile, data: Dict[str, Any]) -> None:
    for key, attribute in PROFILE_FIELDS.items():
        if key not in data:
            continue
        value = data[key]
        if attribute == "active":
            if not isinstance(value, bool):
                raise StorageValidationError("active must be true or false.")
            profile.active = value
        elif attribute == "max_tokens":
            if isinstance(value, bool):
                raise StorageValidationError("maxTokens must be a positive integer.")
            try:
                tokens = int(value)
            except (TypeError, ValueError) as exc:
                raise StorageValidationError("maxTokens must be a positive integer.") from exc
            if tokens <= 0:
                raise StorageValidationError("maxTokens must be a positive integer.")
            profile.max_tokens = tokens
        elif attribute == "temperature":
            if isinstance(value, bool):
                raise StorageValidationError("temperature must be a number between 0 and 2.")
            try:
                temperature = float(value)
            except (TypeError, ValueError) as exc:
                raise StorageValidationError("temperature must be a number between 0 and 2.") from exc
            if not 0 <= temperature <= 2:
                raise StorageValidationError("temperature must be a number between 0 and 2.")
            profile.temperature = str(value).strip()
        elif attribute == "narrative_style":
            profile.narrative_style = (value.strip() or None) if isinstance(value, str) else None
        else:
            if not isinstance(value, str) or not value.strip():
                raise StorageValidationError(f"Profile field '{key}' must be a non-empty string.")
            setattr(profile, attribute, value.strip())
