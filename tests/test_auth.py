import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from inkwell import create_app
from inkwell.config import TestConfig
from inkwell.extensions import db
from inkwell.models import User
from inkwell import storage


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


def test_register_login_me_logout(client):
    registered = client.post("/auth/register", json={"username": "Writer", "password": "password123"})
    assert registered.status_code == 201
    assert registered.get_json()["username"] == "writer"

    assert client.post("/auth/login", json={"username": "writer", "password": "password123"}).status_code == 200
    assert client.get("/auth/me").get_json()["username"] == "writer"

    assert client.post("/auth/logout").status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_register_rejects_short_password_and_duplicates(client):
    assert client.post("/auth/register", json={"username": "a", "password": "short"}).status_code == 400

    client.post("/auth/register", json={"username": "writer", "password": "password123"})
    duplicate = client.post("/auth/register", json={"username": "WRITER", "password": "password123"})
    assert duplicate.status_code == 409


def test_login_rejects_bad_password(client):
    client.post("/auth/register", json={"username": "writer", "password": "password123"})

    response = client.post("/auth/login", json={"username": "writer", "password": "wrong-password"})

    assert response.status_code == 401


def test_trusted_header_creates_user_on_first_request(app_instance, client):
    app_instance.config["TRUSTED_AUTH_HEADER"] = "X-Auth-User"

    response = client.get("/auth/me", headers={"X-Auth-User": "abc-123", "X-Auth-User-Name": "Ada"})

    assert response.status_code == 200
    body = response.get_json()
    assert body["displayName"] == "Ada"
    assert body["authProvider"] == "external"
    assert User.query.filter_by(external_auth_id="abc-123").count() == 1

    client.get("/auth/me", headers={"X-Auth-User": "abc-123"})
    assert User.query.filter_by(external_auth_id="abc-123").count() == 1


def test_trusted_header_is_ignored_when_disabled(client):
    response = client.get("/auth/me", headers={"X-Auth-User": "abc-123"})

    assert response.status_code == 401


@pytest.fixture
def isolated_app():
    app = create_app(TestConfig)
    app.config["TRUSTED_AUTH_HEADER"] = "X-Auth-User"
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


def test_trusted_ids_sharing_a_prefix_get_separate_accounts(isolated_app):
    first_id = "google-oauth2|123456789012345678901"
    second_id = "google-oauth2|123999999999999999999"

    first = isolated_app.test_client().get("/auth/me", headers={"X-Auth-User": first_id})
    second = isolated_app.test_client().get("/auth/me", headers={"X-Auth-User": second_id})

    assert first.status_code == 200
    assert second.status_code == 200
    assert first.get_json()["id"] != second.get_json()["id"]
    with isolated_app.app_context():
        assert User.query.count() == 2
        usernames = {user.username for user in User.query.all()}
    assert len(usernames) == 2


def test_trusted_username_skips_names_taken_by_local_accounts(app_instance):
    external_id = "auth0|abcdef"
    derived = storage.get_or_create_user_by_external_auth_id(external_id, "external").username
    db.session.delete(User.query.filter_by(username=derived).one())
    db.session.commit()
    db.session.add(User(username=derived))
    db.session.commit()

    user = storage.get_or_create_user_by_external_auth_id(external_id, "external")

    assert user.username == f"{derived}_2"
    assert user.external_auth_id == external_id
