from flask import Blueprint

bp = Blueprint("profiles", __name__, url_prefix="/api/profiles")

from . import routes  # noqa: E402,F401
