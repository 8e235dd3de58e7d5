from flask import jsonify, request
from flask_login import current_user, login_required

from ..extensions import db
from ..models import CreativeProfile
from .. import storage
from ..storage import StorageValidationError
from . import bp


def _owned_profile_or_none(profile_id: int):
    return CreativeProfile.query.filter_by(id=profile_id, user_id=current_user.id).first()


@bp.route("", methods=["GET"])
@login_required
def list_profiles():
    return jsonify([profile.to_dict() for profile in storage.get_profiles(current_user.id)])


@bp.route("", methods=["POST"])
@login_required
def create_profile():
    payload = request.get_json(silent=True) or {}
    try:
        profile = storage.create_profile(current_user, payload)
    except StorageValidationError as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 400
    return jsonify(profile.to_dict()), 201


@bp.route("/<int:profile_id>", methods=["PATCH"])
@login_required
def update_profile(profile_id: int):
    profile = _owned_profile_or_none(profile_id)
    if profile is None:
        return jsonify({"error": "Profile not found"}), 404
    try:
        storage.update_profile(profile, request.get_json(silent=True) or {})
    except StorageValidationError as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 400
    return jsonify(profile.to_dict())


@bp.route("/<int:profile_id>", methods=["DELETE"])
@login_required
def delete_profile(profile_id: int):
    profile = _owned_profile_or_none(profile_id)
    if profile is not None:
        db.session.delete(profile)
        db.session.commit()
    return "", 204


@bp.route("/<int:profile_id>/activate", methods=["POST"])
@login_required
def activate_profile(profile_id: int):
    profile = storage.set_active_profile(current_user.id, profile_id)
    if profile is None:
        return jsonify({"error": "Profile not found"}), 404
    return jsonify({"success": True, "profile": profile.to_dict()})
