from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from marksync.api.main import create_app
from tests.conftest import make_config


@pytest.fixture
def app_factory(tmp_path):
    """Build an app on a fresh store; keyword sections override config values."""

    def _create(**sections):
        return create_app(make_config(str(tmp_path / "api.db"), **sections))

    return _create


@pytest.fixture
def client(app_factory):
    with TestClient(app_factory()) as test_client:
        yield test_client
