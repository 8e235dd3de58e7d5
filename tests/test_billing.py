import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from inkwell import create_app
from inkwell.config import TestConfig
from inkwell.services import billing


@pytest.fixture
def app_ctx():
    app = create_app(TestConfig)
    ctx = app.app_context()
    ctx.push()
    billing.clear_pricing_cache()
    yield app
    billing.clear_pricing_cache()
    ctx.pop()


@pytest.fixture
def fetches(monkeypatch):
    calls = []

    def fake_fetch(user_api_key):
        calls.append(user_api_key)
        return {"gemini-1.5-pro": f" (fetch {len(calls)})"}

    monkeypatch.setattr(billing, "_fetch_gemini_pricing", fake_fetch)
    return calls


def test_pricing_is_cached_until_ttl_expires(app_ctx, fetches):
    ttl = app_ctx.config["GEMINI_PRICING_TTL_SECONDS"]

    first = billing.get_gemini_pricing(None, now=1000.0)
    second = billing.get_gemini_pricing(None, now=1000.0 + ttl - 1)
    third = billing.get_gemini_pricing(None, now=1000.0 + ttl + 1)

    assert first is second
    assert third["gemini-1.5-pro"] == " (fetch 2)"
    assert fetches == [None, None]


def test_cache_is_keyed_by_key_presence(app_ctx, fetches):
    billing.get_gemini_pricing(None, now=0.0)
    billing.get_gemini_pricing("key-a", now=1.0)
    billing.get_gemini_pricing("key-b", now=2.0)

    assert fetches == [None, "key-a"]


def test_default_ttl_is_one_day(app_ctx):
    assert app_ctx.config["GEMINI_PRICING_TTL_SECONDS"] == 24 * 60 * 60


def test_static_pricing_is_returned_by_default(app_ctx):
    pricing = billing.get_gemini_pricing(None, now=0.0)

    assert pricing["gemini-1.5-pro"] == billing.STATIC_GEMINI_PRICING["gemini-1.5-pro"]
