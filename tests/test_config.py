import pytest

from clientimport_workers.config import Settings, get_settings, settings
from clientimport_workers.errors import InvalidConfigurationError
from clientimport_workers.mapping.models import ScoringWeights


def test_defaults():
    config = Settings()
    assert config.default_phone_region == "AT"
    assert config.missing_name_policy == "placeholder"
    assert config.scoring_weights == {
        "exact_alias": 1.0,
        "token_overlap": 0.7,
        "fuzzy_match": 0.4,
        "content_hint": 0.6,
        "position_hint": 0.2,
    }
    assert ScoringWeights.from_settings(config) == ScoringWeights()


@pytest.mark.parametrize("kwargs", [
    {"suggest_threshold": 0.8, "auto_accept_threshold": 0.6},
    {"auto_accept_threshold": 1.5},
    {"missing_name_policy": "skip"},
    {"date_format": "dd/mm/yy"},
    {"min_plausible_age": 100, "max_plausible_age": 14},
    {"chunk_size": 0},
])
def test_inconsistent_settings_raise(kwargs):
    with pytest.raises(InvalidConfigurationError):
        Settings(**kwargs)


@pytest.mark.parametrize("interval, expected", [(10, 50), (100, 100), (1000, 200)])
def test_progress_interval_is_clamped(interval, expected):
    assert Settings(progress_interval=interval).effective_progress_interval == expected


def test_environment_variables(monkeypatch):
    monkeypatch.setenv("CLIENTIMPORT_DEFAULT_PHONE_REGION", "DE")
    monkeypatch.setenv("CLIENTIMPORT_FOLLOWUP_STALE_DAYS", "14")
    config = Settings()
    assert config.default_phone_region == "DE"
    assert config.followup_stale_days == 14


def test_get_settings_overrides():
    assert get_settings() is settings
    overridden = get_settings({"sample_size": 5})
    assert overridden.sample_size == 5
    assert settings.sample_size == 20


def test_processing_config():
    config = Settings(progress_interval=10).processing_config
    assert config["progress_interval"] == 50
    assert config["locale"]["timezone"] == "Europe/Vienna"
