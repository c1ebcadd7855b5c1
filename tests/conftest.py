"""Pytest configuration and shared fixtures."""

from datetime import date

import pytest

from clientimport_workers.config import Settings
from clientimport_workers.validation.validator import RecordValidator


@pytest.fixture
def test_settings() -> Settings:
    """Settings with small batch sizes so chunking is exercised."""
    return Settings(progress_interval=50, chunk_size=4, max_workers=2)


@pytest.fixture
def fixed_today() -> date:
    return date(2025, 6, 1)


@pytest.fixture
def validator(fixed_today) -> RecordValidator:
    return RecordValidator(today=fixed_today)


@pytest.fixture
def client_headers():
    return ["Vorname", "Nachname", "E-Mail", "Telefon", "PLZ", "Ort", "Geburtsdatum"]


@pytest.fixture
def client_rows():
    return [
        ["Max", "Mustermann", "Max@Example.com", "+43 664 1234567", "1010", "Wien", "15.03.1985"],
        ["Anna", "Müller", "anna@example.at", "01 234 5678", "8010", "Graz", "1990-07-01"],
        ["Peter", "Huber", "peter.huber@example.at", "+43 664 7654321", "4020", "Linz", "02.11.1978"],
    ]
