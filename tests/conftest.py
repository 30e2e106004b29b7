"""Pytest configuration and fixtures."""

import os

import pytest


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
    os.environ["CORRDESK_ENV"] = "test"
    os.environ.pop("OPENAI_API_KEY", None)
    os.environ.pop("EMBEDDING_API_URL", None)
    os.environ.pop("VOCABULARY_PATH", None)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Reset cached settings and vocabulary between tests."""
    from corrdesk.core.config import get_settings
    from corrdesk.core.vocabulary import get_vocabulary

    get_settings.cache_clear()
    get_vocabulary.cache_clear()
    yield
    get_settings.cache_clear()
    get_vocabulary.cache_clear()
