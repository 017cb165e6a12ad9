"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

from marksync.config import AppConfig, load_config


def make_config(db_path: str, **sections) -> AppConfig:
    """Build a config pointing at ``db_path``; extra sections override env values."""
    database = {"path": db_path, **sections.pop("database", {})}
    return load_config(database=database, **sections)


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "marksync.db")


@pytest.fixture
def config(db_path) -> AppConfig:
    return make_config(db_path)
