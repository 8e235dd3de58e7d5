from flask import jsonify, request
from flask_login import current_user, login_required

from ..extensions import db
from ..models import Prompt
from .. import storage
from ..storage import StorageValidationError
from . import bp


@bp.route("", methods=["GET"])
@login_required
def list_prompts():
    prompts = Prompt.query.filter_by(user_id=current_user.id).order_by(Prompt.created_at.desc()).all()
    return jsonify([prompt.to_dict() for prompt in prompts])


@bp.route("/<int:prompt_id>", methods=["GET"])
@login_required
def get_prompt(prompt_id: int):
    prompt = storage.get_owned_prompt(current_user.id, prompt_id)
    if prompt is None:
        return jsonify({"error": "Prompt not found"}), 404
    return jsonify(prompt.to_dict())


@bp.route("", methods=["POST"])
@login_required
def create_prompt():
    try:
        prompt = storage.create_prompt(current_user, request.get_json(silent=True) or {})
    except StorageValidationError as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 400
    return jsonify(prompt.to_dict()), 201


@bp.route("/<int:prompt_id>", methods=["PATCH"])
@login_required
def update_prompt(prompt_id: int):
    prompt = storage.get_owned_prompt(current_user.id, prompt_id)
    if prompt is None:
        return jsonify({"error": "Prompt not found"}), 404
    try:
        storage.update_prompt(prompt, request.get_json(silent=True) or {})
    except StorageValidationError as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 400
    return jsonify(prompt.to_dict())


@bp.route("/<int:prompt_id>", methods=["DELETE"])
@login_required
def delete_prompt(prompt_id: int):
    prompt = storage.get_owned_prompt(current_user.id, prompt_id)
    if prompt is not None:
        db.session.delete(prompt)
        db.session.commit()
    return "", 204
