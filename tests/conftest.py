from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from retrykit.config import RETRIES_ENV, TIME_TO_SLEEP_ENV
from retrykit.policy import reset_default_policy


@pytest.hookimpl(trylast=True)
def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    del config
    for item in items:
        path = Path(str(getattr(item, "path", item.fspath)))
        if "integration" in path.parts:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def _isolated_policy_state(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.delenv(RETRIES_ENV, raising=False)
    monkeypatch.delenv(TIME_TO_SLEEP_ENV, raising=False)
    reset_default_policy()
    yield
    reset_default_policy()
