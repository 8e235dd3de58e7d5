from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from .extensions import db, login_manager


GLOBAL_PROMPT_CATEGORY = "GLOBAL"
PROMPT_TYPES = ("system", "task", "auxiliary")


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=True)
    display_name = db.Column(db.String(120), nullable=True)
    auth_provider = db.Column(db.String(50), nullable=False, default="legacy")
    external_auth_id = db.Column(db.String(255), unique=True, nullable=True, index=True)
    openai_key = db.Column(db.Text, nullable=True)
    gemini_key = db.Column(db.Text, nullable=True)
    openrouter_key = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    projects = db.relationship("Project", backref="owner", lazy=True, cascade="all, delete-orphan")
    characters = db.relationship("Character", backref="owner", lazy=True, cascade="all, delete-orphan")
    prompts = db.relationship("Prompt", backref="owner", lazy=True, cascade="all, delete-orphan")
    profiles = db.relationship("CreativeProfile", backref="owner", lazy=True, cascade="all, delete-orphan")

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "displayName": self.display_name,
            "authProvider": self.auth_provider,
        }

    def __repr__(self) -> str:  # pragma: no cover - repr for debugging
        return f"<User {self.username}>"


@login_manager.user_loader
def load_user(user_id: str) -> Optional["User"]:
    return db.session.get(User, int(user_id))


class Project(db.Model):
    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    premise = db.Column(db.Text, nullable=True)
    tone = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(50), nullable=False, default="draft")
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    scripts = db.relationship(
        "Script",
        backref="project",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="Script.created_at",
    )
    character_links = db.relationship(
        "ProjectCharacter",
        backref="project",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ProjectCharacter.id",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Project {self.title} ({self.status})>"


class Character(db.Model):
    __tablename__ = "characters"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    personality = db.Column(db.Text, nullable=True)
    background = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Character {self.name}>"


class ProjectCharacter(db.Model):
    __tablename__ = "project_characters"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    character_id = db.Column(
        db.Integer, db.ForeignKey("characters.id", ondelete="CASCADE"), nullable=False, index=True
    )

    character = db.relationship("Character", lazy="joined")

    __table_args__ = (
        db.UniqueConstraint("project_id", "character_id", name="uq_project_character"),
    )


class Script(db.Model):
    __tablename__ = "scripts"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(50), nullable=False, default="synopsis")
    content = db.Column(db.Text, nullable=True)
    origin = db.Column(db.String(20), nullable=False, default="manual")
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "title": self.title,
            "type": self.type,
            "content": self.content,
            "origin": self.origin,
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Script {self.title} ({self.type})>"


class Prompt(db.Model):
    __tablename__ = "prompts"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=False)
    content = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(20), nullable=False, default="task")
    version = db.Column(db.Integer, nullable=False, default=1)
    active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "category": self.category,
            "content": self.content,
            "type": self.type,
            "version": self.version,
            "active": self.active,
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Prompt {self.name} v{self.version}>"


class CreativeProfile(db.Model):
    __tablename__ = "creative_profiles"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    model = db.Column(db.String(255), nullable=False, default="gpt-4o-mini")
    temperature = db.Column(db.String(20), nullable=False, default="0.8")
    max_tokens = db.Column(db.Integer, nullable=False, default=2048)
    narrative_style = db.Column(db.Text, nullable=True)
    active = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "model": self.model,
            "temperature": self.temperature,
            "maxTokens": self.max_tokens,
            "narrativeStyle": self.narrative_style,
            "active": self.active,
            "createdAt": _isoformat(self.created_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<CreativeProfile {self.name} ({self.model})>"


class AIExecution(db.Model):
    """Append-only audit record of one generation call."""

    __tablename__ = "ai_executions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    prompt_id = db.Column(db.Integer, db.ForeignKey("prompts.id", ondelete="SET NULL"), nullable=True)
    prompt_ids = db.Column(db.JSON, nullable=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    script_id = db.Column(db.Integer, db.ForeignKey("scripts.id", ondelete="SET NULL"), nullable=True)
    character_id = db.Column(db.Integer, db.ForeignKey("characters.id", ondelete="SET NULL"), nullable=True)
    system_prompt_snapshot = db.Column(db.Text, nullable=True)
    user_prompt = db.Column(db.Text, nullable=False)
    final_prompt = db.Column(db.Text, nullable=False)
    model = db.Column(db.String(255), nullable=False)
    parameters = db.Column(db.JSON, nullable=True)
    result = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "promptId": self.prompt_id,
            "promptIds": self.prompt_ids,
            "projectId": self.project_id,
            "scriptId": self.script_id,
            "characterId": self.character_id,
            "systemPromptSnapshot": self.system_prompt_snapshot,
            "userPrompt": self.user_prompt,
            "finalPrompt": self.final_prompt,
            "model": self.model,
            "parameters": self.parameters,
            "result": self.result,
            "createdAt": _isoformat(self.created_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<AIExecution {self.id} ({self.model})>"
