import importlib
import random
from typing import Any

import pytest


def import_required(module_name: str):
    """
    Import a project module with a clearer failure message than ModuleNotFoundError.
    """
    try:
        return importlib.import_module(module_name)
    except ModuleNotFoundError as e:
        pytest.fail(
            f"Required module '{module_name}.py' not found. "
            f"Original error: {e}"
        )


@pytest.fixture
def grid_module():
    return import_required("grid")


@pytest.fixture
def db_module():
    return import_required("db")


@pytest.fixture
def repo(tmp_path, db_module):
    return db_module.JsonScoreRepository(tmp_path / "scores.json")


@pytest.fixture
def repo_path(tmp_path):
    return tmp_path / "scores.json"


@pytest.fixture
def sqlite_repo(tmp_path, db_module):
    repo = db_module.SqliteScoreRepository(tmp_path / "scores.db")
    yield repo
    repo.close()


@pytest.fixture
def rng():
    return random.Random(1234)


class RecordingSink:
    """In-memory score sink that remembers every submission."""

    def __init__(self):
        self.calls: list[dict[str, Any]] = []

    def record_score(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(kwargs)
        return kwargs


class FailingSink:
    """Score sink whose store is unavailable."""

    def __init__(self):
        self.attempts = 0

    def record_score(self, **kwargs: Any) -> dict[str, Any]:
        self.attempts += 1
        raise ConnectionError("score store unavailable")


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def failing_sink():
    return FailingSink()
