"""
Settings tests.

WHAT: Test defaults, validators and env overrides of Settings
WHY: Wrong listing defaults silently misprice surplus stock
HOW: Construct Settings directly and through monkeypatched env vars
"""

import pytest
from pydantic import ValidationError

from marketplace.core.config import Settings


@pytest.mark.unit
def test_listing_defaults():
    settings = Settings(_env_file=None)

    assert settings.DEFAULT_DISCOUNT_RATE == 0.8
    assert settings.DEFAULT_LIST_LIMIT == 50
    assert settings.MAX_LIST_LIMIT == 200
    assert settings.DEFAULT_UNIT == "kg"
    assert settings.PRICE_AUTO_VERIFY_CONFIDENCE == 0.7
    assert settings.PRICE_TREND_DAYS == 30
    assert settings.DEFAULT_MARKET_NAME == "Local Market"


@pytest.mark.unit
@pytest.mark.parametrize("rate", [0, -0.1, 1.5])
def test_discount_rate_bounds(rate):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, DEFAULT_DISCOUNT_RATE=rate)


@pytest.mark.unit
def test_unknown_backend_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, STORAGE_BACKEND="firestore")


@pytest.mark.unit
@pytest.mark.parametrize("raw,expected", [
    ("http://a.test, http://b.test", ["http://a.test", "http://b.test"]),
    (["http://a.test", "http://b.test"], ["http://a.test", "http://b.test"]),
    ("http://a.test,,", ["http://a.test"]),
])
def test_cors_origins_list(raw, expected):
    assert Settings(_env_file=None, CORS_ORIGINS=raw).get_cors_origins_list() == expected


@pytest.mark.unit
def test_env_overrides(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "sql")
    monkeypatch.setenv("SEED_SAMPLE_DATA", "true")

    settings = Settings(_env_file=None)

    assert settings.STORAGE_BACKEND == "sql"
    assert settings.SEED_SAMPLE_DATA is True


@pytest.mark.unit
@pytest.mark.parametrize("default,maximum", [(0, 200), (300, 200)])
def test_list_limit_consistency(default, maximum):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, DEFAULT_LIST_LIMIT=default, MAX_LIST_LIMIT=maximum)


@pytest.mark.unit
@pytest.mark.parametrize("overrides", [
    {"PRICE_AUTO_VERIFY_CONFIDENCE": -0.1},
    {"PRICE_AUTO_VERIFY_CONFIDENCE": 1.2},
    {"PRICE_TREND_DAYS": 0},
])
def test_price_settings_bounds(overrides):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)
