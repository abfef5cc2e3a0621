from __future__ import annotations

import os

import pytest
from pydantic import ValidationError

from singular_mixpanel_relay import config as config_module
from singular_mixpanel_relay.mapping.tables import DEFAULT_FIELD_MAPPING, build_tables

_KEYS = (
    "MIXPANEL_TOKEN",
    "MIXPANEL_API_HOST",
    "MAX_RETRIES",
    "RETRY_DELAY_MS",
    "EXTRA_FIELD_MAPPINGS",
    "EXTRA_FIELD_PREFIX",
    "ATTRIBUTION_SOURCE",
    "DRY_RUN",
)


def _settings_with_env(monkeypatch, env: dict):
    # Ensure values do not leak between scenarios unless explicitly set
    for k in _KEYS:
        monkeypatch.delenv(k, raising=False)
    for k, v in env.items():
        monkeypatch.setenv(k, v)
    config_module.get_settings.cache_clear()
    try:
        return config_module.Settings(_env_file=None)
    finally:
        config_module.get_settings.cache_clear()


def test_defaults(monkeypatch):
    s = _settings_with_env(monkeypatch, {})
    assert s.MIXPANEL_TOKEN == ""
    assert s.MIXPANEL_API_HOST == "https://api.mixpanel.com"
    assert s.MAX_RETRIES == 3
    assert s.RETRY_DELAY_MS == 1000
    assert s.retry_delay_seconds == 1.0
    assert s.DRY_RUN is False
    assert s.EXTRA_FIELD_MAPPINGS == []


def test_env_values(monkeypatch):
    s = _settings_with_env(
        monkeypatch,
        {
            "MIXPANEL_TOKEN": "abc",
            "MIXPANEL_API_HOST": "https://api-eu.mixpanel.com/",
            "MAX_RETRIES": "5",
            "RETRY_DELAY_MS": "250",
            "DRY_RUN": "true",
        },
    )
    assert s.MIXPANEL_TOKEN == "abc"
    assert s.MIXPANEL_API_HOST == "https://api-eu.mixpanel.com"
    assert s.MAX_RETRIES == 5
    assert s.retry_delay_seconds == 0.25
    assert s.DRY_RUN is True


def test_extra_field_mappings_parsed(monkeypatch):
    s = _settings_with_env(
        monkeypatch, {"EXTRA_FIELD_MAPPINGS": " click_id:mp_click_id , partner:mp_partner ,"}
    )
    assert s.extra_mapping_pairs() == [("click_id", "mp_click_id"), ("partner", "mp_partner")]
    tables = build_tables(s)
    assert tables.fields.pairs[: len(DEFAULT_FIELD_MAPPING)] == DEFAULT_FIELD_MAPPING
    assert tables.fields.pairs[-2:] == (("click_id", "mp_click_id"), ("partner", "mp_partner"))


def test_bad_extra_field_mapping_rejected(monkeypatch):
    with pytest.raises(ValidationError):
        _settings_with_env(monkeypatch, {"EXTRA_FIELD_MAPPINGS": "click_id"})


def test_max_retries_must_be_positive(monkeypatch):
    with pytest.raises(ValidationError):
        _settings_with_env(monkeypatch, {"MAX_RETRIES": "0"})


def test_property_rules_from_settings(monkeypatch):
    s = _settings_with_env(
        monkeypatch, {"EXTRA_FIELD_PREFIX": "$sng_", "ATTRIBUTION_SOURCE": "singular-eu"}
    )
    rules = build_tables(s).properties
    assert rules.extra_prefix == "$sng_"
    assert rules.attribution_source == "singular-eu"


def test_get_settings_is_cached(monkeypatch):
    monkeypatch.setenv("MIXPANEL_TOKEN", "cached")
    config_module.get_settings.cache_clear()
    try:
        first = config_module.get_settings()
        os.environ["MIXPANEL_TOKEN"] = "changed"
        assert config_module.get_settings() is first
        assert first.MIXPANEL_TOKEN == "cached"
    finally:
        config_module.get_settings.cache_clear()
