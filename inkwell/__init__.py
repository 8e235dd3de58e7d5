from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
from flask import Flask

from .config import Config
from .db_utils import ensure_database_schema
from .extensions import db, login_manager, migrate


BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")


def create_app(config_class: type[Config] = Config) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    register_extensions(app)
    register_blueprints(app)

    with app.app_context():
        ensure_database_schema()

    return app


def register_extensions(app: Flask) -> None:
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)


def register_blueprints(app: Flask) -> None:
    from .ai import bp as ai_bp
    from .auth import bp as auth_bp
    from .profiles import bp as profiles_bp
    from .prompts import bp as prompts_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(ai_bp)
    app.register_blueprint(profiles_bp)
    app.register_blueprint(prompts_bp)
