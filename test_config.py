"""
Configuration: SourceConfig validation (the one fail-fast path), the
example registry, and run-wide settings defaults.
"""

import pytest
from pydantic import ValidationError

from harvester.config import SOURCES, HarvestSettings, get_source_config, list_source_ids
from harvester.errors import ConfigurationError
from harvester.news.pipeline import SourceHarvester
from harvester.schemas import DEFAULT_VARIANTS, SourceConfig

VALID = {
    "id": "wire",
    "base_url": "https://news.example.com/",
    "feed_urls": ["https://news.example.com/feed.xml"],
}


def _with(**overrides):
    data = dict(VALID)
    data.update(overrides)
    return data


def test_valid_config_normalizes_base_url():
    source = SourceConfig.load(VALID)
    assert source.base_url == "https://news.example.com"
    assert source.display_name == "wire"
    assert source.variants() == list(DEFAULT_VARIANTS)


@pytest.mark.parametrize("overrides,fragment", [
    ({"base_url": "news.example.com"}, "base_url"),
    ({"feed_urls": []}, "no discovery tier"),
    ({"min_body_length": 0}, "min_body_length"),
    ({"link_pattern": "(unclosed"}, "invalid regex"),
    ({"boilerplate_patterns": ["[bad"]}, "invalid regex"),
    ({"lightweight_url_template": "https://amp.example.com/"}, "{url}"),
    ({"request_variants": []}, "request_variants"),
])
def test_invalid_configs_raise_configuration_error(overrides, fragment):
    with pytest.raises(ConfigurationError) as excinfo:
        SourceConfig.load(_with(**overrides))
    assert fragment in str(excinfo.value)
    assert excinfo.value.source_id == "wire"


def test_missing_base_url():
    with pytest.raises(ConfigurationError):
        SourceConfig.load({"id": "wire", "feed_urls": ["https://x.com/feed"]})


def test_source_config_is_immutable():
    source = SourceConfig.load(VALID)
    with pytest.raises(ValidationError):
        source.min_body_length = 10


def test_every_registered_source_validates():
    for source_id in list_source_ids():
        source = get_source_config(source_id)
        assert source.id == source_id
    assert set(list_source_ids()) == set(SOURCES)


def test_unknown_source_id():
    with pytest.raises(ConfigurationError) as excinfo:
        get_source_config("nope")
    assert "unknown source id" in str(excinfo.value)


def test_settings_defaults():
    settings = HarvestSettings()
    assert 4 <= settings.concurrency <= 8
    assert settings.fetch_timeout == 45
    assert settings.variant_backoff == 0.8
    assert settings.default_max_age_days == 7
    assert settings.default_max_candidates == 50


def test_provider_and_proxy_switches():
    assert not HarvestSettings(provider_api_key="").provider_enabled
    assert HarvestSettings(provider_api_key="k").provider_enabled
    assert not HarvestSettings(text_proxy_endpoint="").text_proxy_enabled


def test_settings_reject_zero_concurrency():
    with pytest.raises(ValidationError):
        HarvestSettings(concurrency=0)


def test_settings_read_harvest_env_vars(monkeypatch):
    monkeypatch.setenv("HARVEST_CONCURRENCY", "6")
    monkeypatch.setenv("HARVEST_PROVIDER_API_KEY", "from-env")
    settings = HarvestSettings()
    assert settings.concurrency == 6
    assert settings.provider_enabled


def test_run_uses_the_settings_it_is_given(monkeypatch, settings):
    monkeypatch.setenv("HARVEST_CONCURRENCY", "9")
    harvester = SourceHarvester(VALID, settings)
    assert harvester.settings is settings
    assert harvester.settings.concurrency == 2
