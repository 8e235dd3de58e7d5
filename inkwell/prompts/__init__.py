from flask import Blueprint

bp = Blueprint("prompts", __name__, url_prefix="/api/prompts")

from . import routes  # noqa: E402,F401
