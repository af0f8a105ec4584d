"""Shared pytest fixtures."""

from datetime import date

import pytest

from notification_engine.config.models import AppConfig
from notification_engine.logging.context import clear_log_context
from notification_engine.persistence import close_database, init_database

RUN_DAY = date(2024, 5, 6)


@pytest.fixture
def db(tmp_path):
    """File-backed SQLite database, so worker threads share one store."""
    init_database(f"sqlite:///{tmp_path / 'notifications.db'}")
    yield
    close_database()


@pytest.fixture(autouse=True)
def clean_log_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def run_day():
    return RUN_DAY


@pytest.fixture
def app_config():
    """Defaults with a small worker pool and a short send timeout."""
    return AppConfig.model_validate({"dispatch": {"max_workers": 4, "send_timeout": "2s"}})
