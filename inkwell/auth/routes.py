from flask import current_app, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from ..extensions import db, login_manager
from ..models import User
from .. import storage
from . import bp


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Unauthorized"}), 401


@login_manager.request_loader
def load_user_from_request(req):
    """Resolve users authenticated by an upstream proxy, creating them on first sight."""

    header = current_app.config.get("TRUSTED_AUTH_HEADER")
    if not header:
        return None
    external_auth_id = (req.headers.get(header) or "").strip()
    if not external_auth_id:
        return None
    display_name = (req.headers.get(f"{header}-Name") or "").strip() or None
    return storage.get_or_create_user_by_external_auth_id(
        external_auth_id,
        current_app.config.get("TRUSTED_AUTH_PROVIDER", "external"),
        display_name,
    )


@bp.route("/register", methods=["POST"])
def register():
    payload = request.get_json(silent=True) or {}
    username = (payload.get("username") or "").strip().lower()
    password = payload.get("password") or ""
    if not username or len(password) < 8:
        return jsonify({"error": "A username and a password of at least 8 characters are required."}), 400
    if User.query.filter_by(username=username).first():
        return jsonify({"error": "That username is already taken."}), 409

    user = User(username=username, display_name=(payload.get("displayName") or "").strip() or username)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return jsonify(user.to_dict()), 201


@bp.route("/login", methods=["POST"])
def login():
    payload = request.get_json(silent=True) or {}
    username = (payload.get("username") or "").strip().lower()
    user = User.query.filter_by(username=username).first()
    if user and user.check_password(payload.get("password") or ""):
        login_user(user)
        return jsonify(user.to_dict())
    return jsonify({"error": "Invalid username or password."}), 401


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"success": True})


@bp.route("/me")
@login_required
def me():
    return jsonify(current_user.to_dict())
