import json
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from inkwell import create_app
from inkwell.config import TestConfig
from inkwell.extensions import db
from inkwell.models import AIExecution, CreativeProfile, Project, Prompt, Script, User
from inkwell.providers import ProviderConfigurationError
from inkwell.services import generation
from inkwell.services.generation import (
    GenerationError,
    GenerationRequest,
    GenerationRequestError,
    run_generation,
)


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
def user(app_instance):
    user = User(username="writer")
    db.session.add(user)
    db.session.commit()
    return user


class ScriptedProvider:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def generate(self, system_prompt, user_prompt, params):
        self.calls.append({"system": system_prompt, "user": user_prompt, "params": params})
        return self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]


@pytest.fixture
def install_provider(monkeypatch):
    def _install(replies):
        provider = ScriptedProvider(replies)
        monkeypatch.setattr(generation, "build_provider", lambda model, user: provider)
        return provider

    return _install


def test_request_requires_user_prompt():
    with pytest.raises(GenerationRequestError):
        GenerationRequest.from_payload({"type": "default", "userPrompt": "   "})


def test_request_parses_ids_from_strings():
    request = GenerationRequest.from_payload(
        {"userPrompt": "Hi", "projectId": "4", "promptIds": [1, "2", "x", 2], "characterId": None}
    )

    assert request.project_id == 4
    assert request.character_id is None
    assert request.prompt_ids == [1, 2]


def test_free_form_generation_calls_provider_once_and_records(user, install_provider):
    provider = install_provider(["not json at all"])

    outcome = run_generation(user, GenerationRequest(generation_type="default", user_prompt="Write a haiku"))

    assert len(provider.calls) == 1
    assert outcome.result == "not json at all"
    assert outcome.attempts == 1
    execution = AIExecution.query.one()
    assert execution.final_prompt == "Write a haiku"
    assert execution.user_prompt == "Write a haiku"
    assert execution.result == "not json at all"
    assert execution.system_prompt_snapshot == "You are a skilled creative writing assistant."


def test_defaults_apply_without_active_profile(user, install_provider):
    provider = install_provider(["ok"])

    outcome = run_generation(user, GenerationRequest(generation_type=None, user_prompt="Hi"))

    params = provider.calls[0]["params"]
    assert (params.model, params.max_tokens, params.temperature) == ("gpt-4o-mini", 2048, 0.8)
    assert outcome.execution.parameters == {"maxTokens": 2048, "temperature": 0.8, "model": "gpt-4o-mini"}


def test_active_profile_drives_parameters_and_style(user, install_provider):
    db.session.add(
        CreativeProfile(
            user_id=user.id,
            name="Noir",
            model="openai/gpt-4o",
            temperature="5",
            max_tokens=900,
            narrative_style="hardboiled",
            active=True,
        )
    )
    db.session.commit()
    provider = install_provider(["ok"])

    run_generation(user, GenerationRequest(generation_type="default", user_prompt="Hi"))

    call = provider.calls[0]
    assert call["params"].model == "openai/gpt-4o"
    assert call["params"].max_tokens == 900
    assert call["params"].temperature == 2.0
    assert "Write in this predominant style: hardboiled." in call["system"]


def test_structured_output_is_repaired_within_three_attempts(user, install_provider):
    valid = json.dumps({"name": "Mira", "personality": "Wry"})
    provider = install_provider(["oops", '{"personality": "no name"}', valid])

    outcome = run_generation(
        user, GenerationRequest(generation_type="character-generation", user_prompt="A pirate cook")
    )

    assert len(provider.calls) == 3
    assert outcome.attempts == 3
    assert json.loads(outcome.result) == {"name": "Mira", "personality": "Wry"}
    assert outcome.execution.final_prompt.count("ERROR:") == 2
    assert outcome.execution.user_prompt == "A pirate cook"
    assert provider.calls[0]["params"].json_mode is True


def test_structured_output_gives_up_after_three_attempts(user, install_provider):
    provider = install_provider(["still not json"])

    with pytest.raises(GenerationError) as excinfo:
        run_generation(user, GenerationRequest(generation_type="character-generation", user_prompt="A pirate"))

    assert "3 attempts" in str(excinfo.value)
    assert len(provider.calls) == 3
    assert AIExecution.query.count() == 0


def test_attempt_ceiling_comes_from_config(app_instance, user, install_provider):
    app_instance.config["STRUCTURED_OUTPUT_MAX_ATTEMPTS"] = 1
    provider = install_provider(["nope"])

    with pytest.raises(GenerationError):
        run_generation(user, GenerationRequest(generation_type="character-generation", user_prompt="A pirate"))

    assert len(provider.calls) == 1


def test_wizard_script_saves_script_under_project(user, install_provider):
    project = Project(user_id=user.id, title="Neon Rain")
    db.session.add(project)
    db.session.commit()
    payload = {"title": "Pilot", "content": "# Scene 1", "analysis": "Cold open"}
    install_provider([f"```json\n{json.dumps(payload)}\n```"])

    outcome = run_generation(
        user,
        GenerationRequest(generation_type="wizard-script", user_prompt="Write it", project_id=project.id),
    )

    script = Script.query.one()
    assert outcome.script is script
    assert (script.title, script.content, script.type, script.origin) == ("Pilot", "# Scene 1", "detailed", "ai")
    assert script.project_id == project.id
    assert outcome.execution.script_id == script.id
    assert outcome.execution.project_id == project.id


def test_prompts_and_globals_are_loaded_for_the_user(user, install_provider):
    single = Prompt(user_id=user.id, name="Single", category="general", content="SINGLE", type="system")
    extra = Prompt(user_id=user.id, name="Beat", category="general", content="End on a hook.", type="task")
    rule = Prompt(user_id=user.id, name="Rule", category="GLOBAL", content="Never swear.", type="system")
    dormant = Prompt(user_id=user.id, name="Old", category="GLOBAL", content="Dormant", type="system", active=False)
    db.session.add_all([single, extra, rule, dormant])
    db.session.commit()
    provider = install_provider(["ok"])

    outcome = run_generation(
        user,
        GenerationRequest(
            generation_type="default",
            user_prompt="Go",
            prompt_id=single.id,
            prompt_ids=[extra.id, 9999],
        ),
    )

    call = provider.calls[0]
    assert call["system"].startswith("Never swear.\n---\n")
    assert call["system"].endswith("\n---\nSINGLE")
    assert "Dormant" not in call["system"]
    assert "[Prompt: Beat (task)]:\nEnd on a hook." in call["user"]
    assert outcome.execution.prompt_id == single.id
    assert outcome.execution.prompt_ids == [extra.id, 9999]


def test_missing_credentials_surface_before_any_record(user):
    with pytest.raises(ProviderConfigurationError):
        run_generation(user, GenerationRequest(generation_type="default", user_prompt="Hi"))

    assert AIExecution.query.count() == 0


def test_prompt_ids_are_recorded_as_sent(user, install_provider):
    known = Prompt(user_id=user.id, name="Beat", category="general", content="End on a hook.")
    db.session.add(known)
    db.session.commit()
    provider = install_provider(["ok"])
    sent = [known.id, str(known.id), "x", known.id]

    outcome = run_generation(user, GenerationRequest.from_payload({"userPrompt": "Go", "promptIds": sent}))

    assert outcome.execution.prompt_ids == sent
    assert provider.calls[0]["user"].count("[Prompt: Beat (task)]") == 1


def test_empty_prompt_ids_are_recorded_as_empty_list(user, install_provider):
    install_provider(["ok"])

    outcome = run_generation(user, GenerationRequest.from_payload({"userPrompt": "Go", "promptIds": []}))

    assert outcome.execution.prompt_ids == []


def test_absent_prompt_ids_are_recorded_as_null(user, install_provider):
    install_provider(["ok"])

    outcome = run_generation(user, GenerationRequest.from_payload({"userPrompt": "Go"}))

    assert outcome.execution.prompt_ids is None
