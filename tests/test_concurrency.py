"""Tests for time-bounded calls and logging setup."""

from __future__ import annotations

import logging
import threading
import time

import pytest

from content_explorer.concurrency import (
    EMBEDDING_POOL,
    EMBEDDING_WORKERS,
    STORE_POOL,
    bounded_call,
)
from content_explorer.errors import StageTimeout
from content_explorer.log_config import configure_logging


def test_bounded_call_returns_result() -> None:
    assert bounded_call(lambda a, b=0: a + b, 2, b=3, timeout=1.0) == 5
    assert bounded_call(lambda: "inline", timeout=None) == "inline"


def test_bounded_call_times_out() -> None:
    with pytest.raises(StageTimeout):
        bounded_call(time.sleep, 0.5, timeout=0.01)


def test_bounded_call_propagates_errors() -> None:
    def _boom() -> None:
        raise KeyError("missing")

    with pytest.raises(KeyError):
        bounded_call(_boom, timeout=1.0)


def test_bounded_call_runs_timeout_hook() -> None:
    release = threading.Event()

    with pytest.raises(StageTimeout):
        bounded_call(release.wait, 5.0, timeout=0.05, pool=STORE_POOL, on_timeout=release.set)

    assert release.is_set()


def test_busy_embedding_pool_leaves_store_pool_free() -> None:
    release = threading.Event()
    try:
        for _ in range(EMBEDDING_WORKERS):
            with pytest.raises(StageTimeout):
                bounded_call(release.wait, 5.0, timeout=0.01, pool=EMBEDDING_POOL)

        with pytest.raises(StageTimeout):
            bounded_call(lambda: "queued", timeout=0.05, pool=EMBEDDING_POOL)
        assert bounded_call(lambda: "served", timeout=1.0, pool=STORE_POOL) == "served"
    finally:
        release.set()


def test_configure_logging_installs_one_handler(monkeypatch) -> None:
    logger = logging.getLogger("content_explorer")
    monkeypatch.setattr(logger, "handlers", [])
    monkeypatch.setattr(logger, "level", logger.level)
    monkeypatch.setenv("LOG_LEVEL", "debug")

    configure_logging()
    configure_logging("warning")

    assert len(logger.handlers) == 1
    assert logger.level == logging.WARNING
