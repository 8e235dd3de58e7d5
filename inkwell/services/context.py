"""Flatten the entities referenced by a generation request into prompt context."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from ..models import Character, Project, Script, User
from .. import storage

CONTEXT_HEADER = "Contexto:"
SCRIPT_CONTENT_LIMIT = 2000


@dataclass
class ContextBundle:
    fragments: List[str] = field(default_factory=list)
    project: Optional[Project] = None
    character: Optional[Character] = None
    script: Optional[Script] = None

    @property
    def is_empty(self) -> bool:
        return not self.fragments


def assemble_context(
    user: User,
    *,
    project_id: Optional[int] = None,
    character_id: Optional[int] = None,
    script_id: Optional[int] = None,
) -> ContextBundle:
    """Resolve the referenced records and build their context fragments.

    Fragments always come out in project, character, script order. A reference
    that does not resolve to one of the user's records contributes nothing.
    """

    bundle = ContextBundle()

    project = storage.get_owned_project(user.id, project_id)
    if project is not None:
        bundle.project = project
        bundle.fragments.extend(project_fragments(project, storage.get_project_characters(project)))

    character = storage.get_owned_character(user.id, character_id)
    if character is not None:
        bundle.character = character
        bundle.fragments.extend(character_fragments(character))

    script = storage.get_owned_script(user.id, script_id)
    if script is not None:
        bundle.script = script
        bundle.fragments.extend(script_fragments(script))

    return bundle


def project_fragments(project: Project, characters: List[Character]) -> List[str]:
    fragments = [f'Project: "{project.title}"']
    if project.premise:
        fragments.append(f"Premise: {project.premise}")
    if project.tone:
        fragments.append(f"Tone/Genre: {project.tone}")
    if characters:
        roster = "; ".join(
            f"{character.name} - {character.personality or character.description or ''}"
            for character in characters
        )
        fragments.append(f"Characters: {roster}")
    return fragments


def character_fragments(character: Character) -> List[str]:
    fragments = [f"Character: {character.name}"]
    if character.description:
        fragments.append(f"Description: {character.description}")
    if character.personality:
        fragments.append(f"Personality: {character.personality}")
    if character.background:
        fragments.append(f"Background: {character.background}")
    return fragments


def script_fragments(script: Script) -> List[str]:
    fragments = [f'Script: "{script.title}" ({script.type})']
    if script.content:
        fragments.append(f"Current content:\n{script.content[:SCRIPT_CONTENT_LIMIT]}")
    return fragments


def render_context(fragments: List[str]) -> str:
    return f"{CONTEXT_HEADER}\n" + "\n".join(fragments)
