"""Pytest fixtures for stemshop tests."""

import pytest


@pytest.fixture
def db_url(tmp_path):
    """SQLite file in a per-test temporary directory."""
    return f"sqlite+aiosqlite:///{tmp_path / 'shop.db'}"


@pytest.fixture
def shop_config(db_url):
    from stemshop.config import ShopConfig

    return ShopConfig(database_url=db_url, settings_cache_seconds=0, effect_timeout_seconds=1.0)
