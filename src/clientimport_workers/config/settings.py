"""
Configuration settings for the client import workers
"""
from typing import Optional, Dict, Any
from pydantic_settings import BaseSettings

from ..errors import InvalidConfigurationError


class Settings(BaseSettings):
    """Configuration settings for column mapping, transformation and validation"""

    # Column sampling
    sample_size: int = 20

    # Scoring weights (exact alias, token overlap, fuzzy, content, position)
    weight_exact_alias: float = 1.0
    weight_token_overlap: float = 0.7
    weight_fuzzy_match: float = 0.4
    weight_content_hint: float = 0.6
    weight_position_hint: float = 0.2

    # Signal gates
    token_overlap_threshold: float = 0.3
    fuzzy_threshold: float = 0.6
    content_min_confidence: float = 0.3
    content_boost_min_confidence: float = 0.5

    # Assignment thresholds
    auto_accept_threshold: float = 0.6
    suggest_threshold: float = 0.3
    low_confidence_threshold: float = 0.5

    # Value normalization
    default_phone_region: str = "AT"
    timezone: str = "Europe/Vienna"
    date_format: str = "auto"
    two_digit_year_pivot: int = 30
    missing_name_policy: str = "placeholder"
    placeholder_last_name: str = "Unbekannt"

    # Plausibility rules
    followup_stale_days: int = 7
    min_plausible_age: int = 14
    max_plausible_age: int = 100

    # Batch processing
    progress_interval: int = 100
    chunk_size: int = 200
    max_workers: int = 4

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    class Config:
        env_file = ".env"
        env_prefix = "CLIENTIMPORT_"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)

        if not 0.0 <= self.suggest_threshold <= self.auto_accept_threshold <= 1.0:
            raise InvalidConfigurationError(
                "Thresholds must satisfy 0 <= suggest_threshold <= auto_accept_threshold <= 1",
                setting="suggest_threshold",
            )
        if self.missing_name_policy not in ("placeholder", "reject"):
            raise InvalidConfigurationError(
                f"Unknown missing_name_policy: {self.missing_name_policy}",
                setting="missing_name_policy",
            )
        if self.date_format not in ("auto", "dd.mm.yyyy", "yyyy-mm-dd", "mm/dd/yyyy"):
            raise InvalidConfigurationError(
                f"Unknown date_format: {self.date_format}",
                setting="date_format",
            )
        if self.min_plausible_age >= self.max_plausible_age:
            raise InvalidConfigurationError(
                "min_plausible_age must be below max_plausible_age",
                setting="min_plausible_age",
            )
        if self.sample_size < 1 or self.chunk_size < 1:
            raise InvalidConfigurationError("sample_size and chunk_size must be positive")

    @property
    def scoring_weights(self) -> Dict[str, float]:
        """Get scoring weights dictionary"""
        return {
            "exact_alias": self.weight_exact_alias,
            "token_overlap": self.weight_token_overlap,
            "fuzzy_match": self.weight_fuzzy_match,
            "content_hint": self.weight_content_hint,
            "position_hint": self.weight_position_hint,
        }

    @property
    def effective_progress_interval(self) -> int:
        """Progress is reported every 50-200 rows"""
        return max(50, min(200, self.progress_interval))

    @property
    def processing_config(self) -> Dict[str, Any]:
        """Get processing configuration dictionary"""
        return {
            "sample_size": self.sample_size,
            "chunk_size": self.chunk_size,
            "max_workers": self.max_workers,
            "progress_interval": self.effective_progress_interval,
            "thresholds": {
                "auto_accept": self.auto_accept_threshold,
                "suggest": self.suggest_threshold,
                "token_overlap": self.token_overlap_threshold,
                "fuzzy": self.fuzzy_threshold,
                "content": self.content_min_confidence,
            },
            "plausibility": {
                "followup_stale_days": self.followup_stale_days,
                "min_age": self.min_plausible_age,
                "max_age": self.max_plausible_age,
            },
            "locale": {
                "phone_region": self.default_phone_region,
                "timezone": self.timezone,
                "date_format": self.date_format,
            },
        }


# Global settings instance
settings = Settings()


def get_settings(overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """Return the global settings, or a copy with overrides applied"""
    if not overrides:
        return settings
    return Settings(**{**settings.model_dump(), **overrides})
