"""
Shared pytest fixtures and configuration.

Test pyramid structure:
- a_unit/: Unit tests (fast, isolated, no DB)
- b_integration/: Integration tests (with database)
- c_e2e/: End-to-end tests (full workflows)
"""

from __future__ import annotations

from pathlib import Path

import pytest

from linkdoc import Database, Registry


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, no database)")
    config.addinivalue_line("markers", "integration: Integration tests (with database)")
    config.addinivalue_line("markers", "e2e: End-to-end tests (full workflows)")


def pytest_collection_modifyitems(config, items):
    """Auto-mark tests based on directory."""
    for item in items:
        parts = Path(item.fspath).parts

        if "a_unit" in parts:
            item.add_marker(pytest.mark.unit)
        elif "b_integration" in parts:
            item.add_marker(pytest.mark.integration)
        elif "c_e2e" in parts:
            item.add_marker(pytest.mark.e2e)


# Common fixtures


@pytest.fixture
def db_path(tmp_path):
    """Provide temporary database path."""
    return tmp_path / "test.db"


@pytest.fixture
def db(db_path):
    """Provide a Database instance, closed after the test."""
    database = Database(str(db_path))
    yield database
    database.close()


@pytest.fixture
def registry(db):
    """Provide an empty Registry bound to the test database."""
    return Registry(db)


class CallCounter:
    """Wraps a bound method and counts calls to it."""

    def __init__(self, method):
        self.method = method
        self.calls = []

    def __call__(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        return self.method(*args, **kwargs)

    @property
    def count(self):
        return len(self.calls)


@pytest.fixture
def count_finds(monkeypatch):
    """
    Count ``find`` calls on a collection.

    Usage:
        def test_something(count_finds):
            finds = count_finds(users.collection)
            ...
            assert finds.count == 1
    """

    def _install(collection):
        counter = CallCounter(collection.find)
        monkeypatch.setattr(collection, "find", counter)
        return counter

    return _install
