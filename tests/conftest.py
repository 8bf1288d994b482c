from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from watchfinder.dependencies import reset_cached_dependencies
from watchfinder.main import create_app


@pytest.fixture(autouse=True)
def _runtime_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:  # pyright: ignore[reportUnusedFunction]
    data_dir = tmp_path / "runtime-data"
    data_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("WATCHFINDER_DATA_DIR", str(data_dir))
    monkeypatch.delenv("WATCHFINDER_TMDB_API_KEY", raising=False)
    monkeypatch.delenv("WATCHFINDER_LOG_DIR", raising=False)
    monkeypatch.setenv("WATCHFINDER_USE_MOCK", "1")


@pytest.fixture
def client() -> Iterator[TestClient]:
    reset_cached_dependencies()

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client

    reset_cached_dependencies()
