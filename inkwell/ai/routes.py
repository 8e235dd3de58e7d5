from __future__ import annotations

from flask import current_app, jsonify, request
from flask_login import current_user, login_required

from ..crypto import MissingEncryptionKeyError, SecretCodecError, encrypt
from ..extensions import db
from ..models import Character, Project, Prompt, Script
from ..providers import ProviderConfigurationError, ProviderRequestError
from ..services.generation import (
    GenerationError,
    GenerationRequest,
    GenerationRequestError,
    run_generation,
)
from ..services.model_catalog import ModelCatalogError, list_models
from ..services.recorder import get_execution, list_executions
from . import bp

KEY_FIELDS = {
    "openaiKey": "openai_key",
    "geminiKey": "gemini_key",
    "openrouterKey": "openrouter_key",
}


@bp.route("/user/keys")
@login_required
def get_keys():
    return jsonify(
        {
            "hasOpenai": bool(current_user.openai_key),
            "hasGemini": bool(current_user.gemini_key),
            "hasOpenrouter": bool(current_user.openrouter_key),
        }
    )


@bp.route("/user/keys", methods=["POST"])
@login_required
def update_keys():
    payload = request.get_json(silent=True) or {}
    updates = {}
    for field_name, attribute in KEY_FIELDS.items():
        if field_name not in payload:
            continue
        value = payload[field_name]
        if value is not None and not isinstance(value, str):
            return jsonify({"error": f"{field_name} must be a string."}), 400
        updates[attribute] = (value or "").strip()

    try:
        for attribute, value in updates.items():
            setattr(current_user, attribute, encrypt(value) if value else None)
    except MissingEncryptionKeyError as exc:
        db.session.rollback()
        current_app.logger.error("Unable to store provider keys: %s", exc)
        return jsonify({"error": str(exc)}), 400
    except SecretCodecError as exc:
        db.session.rollback()
        current_app.logger.error("Unable to store provider keys: %s", exc)
        return jsonify({"error": str(exc)}), 500
    db.session.commit()
    return jsonify({"success": True})


@bp.route("/models/<provider>")
@login_required
def models(provider: str):
    try:
        return jsonify(list_models(provider, current_user))
    except ProviderConfigurationError as exc:
        return jsonify({"error": str(exc)}), 400
    except ModelCatalogError as exc:
        current_app.logger.warning("Model listing failed for %s: %s", provider, exc)
        return jsonify({"error": str(exc)}), 502


@bp.route("/ai/generate", methods=["POST"])
@login_required
def generate():
    payload = request.get_json(silent=True) or {}
    try:
        generation_request = GenerationRequest.from_payload(payload)
        outcome = run_generation(current_user, generation_request)
    except (GenerationRequestError, ProviderConfigurationError) as exc:
        return jsonify({"error": str(exc)}), 400
    except (GenerationError, ProviderRequestError) as exc:
        db.session.rollback()
        current_app.logger.warning("AI generation failed: %s", exc)
        return jsonify({"error": str(exc)}), 502
    except Exception:  # pragma: no cover - defensive logging for unexpected states
        db.session.rollback()
        current_app.logger.exception("Unexpected error during AI generation")
        return jsonify({"error": "We couldn't complete the generation right now. Please try again."}), 500

    response_payload = {
        "execution": outcome.execution.to_dict(),
        "result": outcome.result,
    }
    if outcome.script is not None:
        response_payload["script"] = outcome.script.to_dict()
    return jsonify(response_payload)


@bp.route("/executions")
@login_required
def executions():
    enriched = []
    for execution in list_executions(current_user.id):
        entry = execution.to_dict()
        project = db.session.get(Project, execution.project_id) if execution.project_id else None
        character = db.session.get(Character, execution.character_id) if execution.character_id else None
        script = db.session.get(Script, execution.script_id) if execution.script_id else None
        prompt = db.session.get(Prompt, execution.prompt_id) if execution.prompt_id else None
        entry.update(
            {
                "projectTitle": project.title if project else None,
                "characterName": character.name if character else None,
                "scriptTitle": script.title if script else None,
                "promptName": prompt.name if prompt else None,
            }
        )
        enriched.append(entry)
    return jsonify(enriched)


@bp.route("/executions/<int:execution_id>")
@login_required
def execution_detail(execution_id: int):
    execution = get_execution(current_user.id, execution_id)
    if execution is None:
        return jsonify({"error": "Execution not found"}), 404
    return jsonify(execution.to_dict())
