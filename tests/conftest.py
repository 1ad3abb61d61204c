"""
Shared fixtures.

Route tests run the real application against the in-memory storage client,
so every request goes through routing, validation, dependency injection
and the error handlers exactly as in production.
"""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from s3manager.config.settings import CONFIG_FILE_NAME, Settings
from s3manager.main import create_app


@pytest.fixture(autouse=True)
def isolated_settings_sources(tmp_path, monkeypatch):
    """
    Keep the developer's environment out of Settings.

    Runs every test in an empty working directory, drops environment
    variables named like settings fields, and reads YAML only from the
    working directory (never ~/.s3manager).
    """
    monkeypatch.chdir(tmp_path)
    for field_name in Settings.model_fields:
        monkeypatch.delenv(field_name.upper(), raising=False)
        monkeypatch.delenv(field_name, raising=False)
    monkeypatch.setitem(Settings.model_config, "yaml_file", [Path(CONFIG_FILE_NAME)])


def make_settings(**overrides) -> Settings:
    """Settings isolated from the developer's .env, with mock storage."""
    values = {"storage_mock_mode": True}
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def client_factory():
    """Build a started TestClient for the given settings overrides."""
    clients = []

    def _make(**overrides) -> TestClient:
        client = TestClient(create_app(make_settings(**overrides)))
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(client_factory) -> TestClient:
    return client_factory()
