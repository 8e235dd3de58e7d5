import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from inkwell import create_app
from inkwell.config import TestConfig
from inkwell.extensions import db
from inkwell.models import Prompt, User


@pytest.fixture
def app_instance():
    app = create_app(TestConfig)
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    yield app
    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture
def user(app_instance):
    user = User(username="writer")
    user.set_password("password123")
    db.session.add(user)
    db.session.commit()
    return user


def _login(client):
    client.post("/auth/login", json={"username": "writer", "password": "password123"})


def _create(client, **overrides):
    payload = {"name": "Voice", "category": "style", "content": "Keep it terse.", "type": "system"}
    payload.update(overrides)
    return client.post("/api/prompts", json=payload)


def test_create_prompt_starts_at_version_one(client, user):
    _login(client)

    response = _create(client)

    assert response.status_code == 201
    body = response.get_json()
    assert body["version"] == 1
    assert body["active"] is True
    assert body["userId"] == user.id


def test_content_change_bumps_version(client, user):
    _login(client)
    prompt_id = _create(client).get_json()["id"]

    renamed = client.patch(f"/api/prompts/{prompt_id}", json={"name": "Voice v2"})
    assert renamed.get_json()["version"] == 1

    same_content = client.patch(f"/api/prompts/{prompt_id}", json={"content": "Keep it terse."})
    assert same_content.get_json()["version"] == 1

    rewritten = client.patch(f"/api/prompts/{prompt_id}", json={"content": "Be lyrical."})
    assert rewritten.status_code == 200
    assert rewritten.get_json()["version"] == 2
    assert rewritten.get_json()["content"] == "Be lyrical."


def test_invalid_prompt_type_is_rejected(client, user):
    _login(client)

    response = _create(client, type="banner")

    assert response.status_code == 400
    assert Prompt.query.count() == 0


def test_missing_fields_are_rejected(client, user):
    _login(client)

    response = client.post("/api/prompts", json={"name": "Only a name"})

    assert response.status_code == 400
    assert Prompt.query.count() == 0


def test_prompts_are_scoped_to_owner(client, user):
    stranger = User(username="stranger")
    db.session.add(stranger)
    db.session.commit()
    foreign = Prompt(user_id=stranger.id, name="Secret", category="x", content="hidden")
    db.session.add(foreign)
    db.session.commit()
    _login(client)

    assert client.get(f"/api/prompts/{foreign.id}").status_code == 404
    assert client.patch(f"/api/prompts/{foreign.id}", json={"content": "mine"}).status_code == 404
    assert client.get("/api/prompts").get_json() == []


def test_delete_prompt(client, user):
    _login(client)
    prompt_id = _create(client).get_json()["id"]

    assert client.delete(f"/api/prompts/{prompt_id}").status_code == 204
    assert client.get(f"/api/prompts/{prompt_id}").status_code == 404


def test_active_flag_must_be_boolean(client, user):
    _login(client)

    response = _create(client, active="false")

    assert response.status_code == 400
    assert Prompt.query.count() == 0
