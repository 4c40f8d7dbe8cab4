"""Shared fixtures for the bridge test-suite."""

from __future__ import annotations

import pytest

from fakes import NOW, FakeSession, build_manager, fake_clock_factory


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolated_storage(tmp_path, monkeypatch):
    """Keep every test away from the real ``~/.jira-bridge``."""
    monkeypatch.setenv("BRIDGE_STORAGE_DIR", str(tmp_path / "storage"))
    for name in ("ATLASSIAN_CLOUD_ID", "JIRA_TLDR_FIELD_ID", "BRIDGE_PRINCIPAL_ID", "READ_ONLY_MODE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def clock():
    return fake_clock_factory(NOW)


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def manager(session):
    return build_manager(session)


def pytest_addoption(parser):
    """Add integration option to pytest."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests",
    )
