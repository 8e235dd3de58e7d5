"""Utility script to configure development environment variables and initialize the database."""
from __future__ import annotations

import argparse
import secrets
import shutil
import sys
from pathlib import Path
from typing import Dict, List

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from inkwell import create_app, db
from inkwell.models import User
from inkwell import storage

DEFAULT_ENV_PATH = REPO_ROOT / ".env"
BACKUP_SUFFIX = ".bak"

WIZARD_TEMPLATES: List[Dict[str, str]] = [
    {
        "name": "Script: Comic Book",
        "category": "script-template",
        "content": (
            "Write a script split into PAGES and PANELS. Every panel needs a [VISUAL DESCRIPTION] "
            "and [DIALOGUE]. Focus on visual pacing and sequential storytelling."
        ),
    },
    {
        "name": "Script: Shonen Manga",
        "category": "script-template",
        "content": (
            "Write a SHONEN MANGA script. Use dynamic onomatopoeia, describe high-impact framing "
            "and keep the focus on action and the characters' determination."
        ),
    },
    {
        "name": "Script: Literary Prose",
        "category": "script-template",
        "content": (
            "Write the story as LITERARY PROSE. Focus on sensory description, inner monologue and "
            "rich, engaging paragraphs."
        ),
    },
    {
        "name": "Script: Film / Screenplay",
        "category": "script-template",
        "content": (
            "Write a script in STANDARD SCREENPLAY FORMAT (SCENE HEADING, ACTION, CHARACTER, "
            "DIALOGUE). Keep scene descriptions objective."
        ),
    },
]

WIZARD_STYLES: List[Dict[str, str]] = [
    {
        "name": "Style: Children's Comic",
        "category": "script-style",
        "content": (
            "Use a gentle, friendly tone for young readers. Include playful tropes such as "
            "'foolproof plans' where they fit and keep the humour light."
        ),
    },
    {
        "name": "Style: Cyberpunk / Neon",
        "category": "script-style",
        "content": (
            "Apply a CYBERPUNK aesthetic. Use technological jargon, neon lighting, rain, wet asphalt "
            "and a dystopian underground atmosphere."
        ),
    },
    {
        "name": "Style: Noir / Detective",
        "category": "script-style",
        "content": (
            "Apply a NOIR mood. Prefer first-person narration, deep shadows, moral ambiguity and "
            "cynical, melancholic language."
        ),
    },
]


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Create or update a .env file with the Flask settings required for local development "
            "and initialize the SQLite database."
        )
    )
    parser.add_argument(
        "--flask-app",
        default="inkwell:create_app",
        help="Entry point used by Flask (default: inkwell:create_app)",
    )
    parser.add_argument(
        "--secret-key",
        required=False,
        help=(
            "Secret key for Flask sessions. If omitted, the current value in .env is preserved or "
            "fallback defaults are used."
        ),
    )
    parser.add_argument(
        "--encryption-key",
        help=(
            "Key used to encrypt stored provider API keys (at least 32 characters). "
            "A random key is generated when neither this flag nor .env provides one."
        ),
    )
    parser.add_argument(
        "--database-url",
        help="Override SQLALCHEMY_DATABASE_URI / DATABASE_URL (optional).",
    )
    parser.add_argument(
        "--env-path",
        type=Path,
        default=DEFAULT_ENV_PATH,
        help="Path to the .env file that should be created/updated.",
    )
    parser.add_argument(
        "--skip-db",
        action="store_true",
        help="Only update the .env file without touching the database.",
    )
    parser.add_argument(
        "--seed-wizard-user",
        metavar="USERNAME",
        help="Seed the script wizard templates and styles as prompts owned by USERNAME.",
    )
    return parser.parse_args()


def read_env(path: Path) -> Dict[str, str]:
    if not path.exists():
        return {}
    data: Dict[str, str] = {}
    for line in path.read_text().splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, _, value = stripped.partition("=")
        data[key.strip()] = value.strip()
    return data


def write_env(path: Path, values: Dict[str, str]) -> None:
    if path.exists():
        backup_path = path.with_suffix(path.suffix + BACKUP_SUFFIX)
        shutil.copy(path, backup_path)
        print(f"Existing {path.name} backed up to {backup_path.name}.")
    lines = [f"{key}={value}" for key, value in values.items()]
    path.write_text("\n".join(lines) + "\n")
    print(f"Updated environment variables written to {path}.")


def update_env_file(args: argparse.Namespace) -> Dict[str, str]:
    env_data = read_env(args.env_path)
    env_updates = {"FLASK_APP": args.flask_app}
    if args.secret_key:
        env_updates["SECRET_KEY"] = args.secret_key
    if args.encryption_key:
        if len(args.encryption_key) < 32:
            raise SystemExit("--encryption-key must be at least 32 characters long.")
        env_updates["ENCRYPTION_KEY"] = args.encryption_key
    elif not env_data.get("ENCRYPTION_KEY"):
        env_updates["ENCRYPTION_KEY"] = secrets.token_hex(16)
    if args.database_url:
        env_updates["DATABASE_URL"] = args.database_url

    env_data.update(env_updates)
    write_env(args.env_path, env_data)
    return env_data


def initialize_database() -> None:
    app = create_app()
    with app.app_context():
        db.create_all()
    print("Database initialized (instance/inkwell.db).")


def seed_wizard_prompts(username: str) -> int:
    """Create the wizard template and style prompts for ``username``; returns how many were added."""

    app = create_app()
    created = 0
    with app.app_context():
        user = User.query.filter_by(username=username.strip().lower()).first()
        if user is None:
            raise SystemExit(f"No user named {username!r}; register the account first.")
        existing = {prompt.name for prompt in user.prompts}
        for entry in WIZARD_TEMPLATES + WIZARD_STYLES:
            if entry["name"] in existing:
                continue
            storage.create_prompt(user, {**entry, "type": "task", "active": True})
            created += 1
    print(f"Seeded {created} wizard prompt(s) for {username}.")
    return created


def main() -> None:
    args = parse_args()
    env_values = update_env_file(args)

    if not args.skip_db:
        initialize_database()
    else:
        print("Database initialization skipped.")

    if args.seed_wizard_user:
        seed_wizard_prompts(args.seed_wizard_user)

    print("\nSetup complete! Summary:")
    for key in sorted(env_values):
        print(f"  {key}={env_values[key]}")


if __name__ == "__main__":
    main()
