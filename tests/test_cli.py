"""CLI tests for ingest, search, recommend, reindex, and items commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

import content_explorer.main as main_module
from conftest import fake_loader
from content_explorer.embeddings import EmbedderRegistry, OnDeviceEmbedder
from content_explorer.storage import DuckDBStorage


@pytest.fixture(autouse=True)
def _fake_models(monkeypatch) -> None:
    def registry_factory() -> EmbedderRegistry:
        return EmbedderRegistry(
            on_device=OnDeviceEmbedder(
                model_name="fake-mini", fallback_models=[], loader=fake_loader
            )
        )

    monkeypatch.setattr(main_module, "EmbedderRegistry", registry_factory)
    monkeypatch.setattr(main_module, "configure_logging", lambda level=None: None)


@pytest.fixture()
def items_file(tmp_path: Path) -> Path:
    path = tmp_path / "items.json"
    path.write_text(
        json.dumps(
            [
                {"key": "beach.jpg", "descriptor": {"type": "image", "objects": ["beach"]}},
                {"key": "shore.jpg", "descriptor": {"type": "image", "summary": "beach walk"}},
                {"key": "budget.pdf", "descriptor": {"type": "pdf", "summary": "budget"}},
                {"key": "blank.pdf", "descriptor": {"type": "pdf"}},
                {"descriptor": {"type": "pdf"}},
            ]
        )
    )
    return path


def _ingest(runner: CliRunner, items_file: Path, db_path: str):
    return runner.invoke(
        main_module.app, ["ingest", str(items_file), "--db-path", db_path]
    )


def test_ingest_command_stores_items(items_file: Path, db_path: str) -> None:
    runner = CliRunner()

    result = _ingest(runner, items_file, db_path)

    assert result.exit_code == 0
    assert "Ingested 4 item(s)" in result.output
    assert "no_content" in result.output

    storage = DuckDBStorage(db_path)
    try:
        assert storage.count_items() == 4
        assert storage.count_items(has_embedding=True) == 3
    finally:
        storage.close()


def test_ingest_rejects_invalid_json(tmp_path: Path, db_path: str) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text("{not json")

    result = CliRunner().invoke(main_module.app, ["ingest", str(bad), "--db-path", db_path])

    assert result.exit_code == 1
    assert "Invalid JSON" in result.output


def test_search_command(items_file: Path, db_path: str) -> None:
    runner = CliRunner()
    _ingest(runner, items_file, db_path)

    result = runner.invoke(main_module.app, ["search", "beach", "--db-path", db_path])

    assert result.exit_code == 0
    assert "beach.jpg" in result.output
    assert "shore.jpg" in result.output
    assert "budget.pdf" not in result.output


def test_search_command_without_matches(items_file: Path, db_path: str) -> None:
    runner = CliRunner()
    _ingest(runner, items_file, db_path)

    result = runner.invoke(main_module.app, ["search", "zebra", "--db-path", db_path])

    assert result.exit_code == 0
    assert "No items matched" in result.output


def test_search_command_rejects_blank_query(db_path: str) -> None:
    result = CliRunner().invoke(main_module.app, ["search", "  ", "--db-path", db_path])

    assert result.exit_code == 2


def test_unknown_provider_exits(db_path: str) -> None:
    result = CliRunner().invoke(
        main_module.app, ["search", "beach", "--provider", "psychic", "--db-path", db_path]
    )

    assert result.exit_code == 2
    assert "Unknown embedding provider" in result.output


def test_recommend_command(items_file: Path, db_path: str) -> None:
    runner = CliRunner()
    _ingest(runner, items_file, db_path)

    result = runner.invoke(main_module.app, ["recommend", "beach.jpg", "--db-path", db_path])

    assert result.exit_code == 0
    assert "shore.jpg" in result.output
    assert "vector" in result.output


def test_recommend_command_reports_no_matches(items_file: Path, db_path: str) -> None:
    runner = CliRunner()
    _ingest(runner, items_file, db_path)

    result = runner.invoke(
        main_module.app, ["recommend", "budget.pdf", "--no-vector", "--db-path", db_path]
    )

    assert result.exit_code == 0
    assert "No related items found" in result.output


def test_reindex_command(items_file: Path, db_path: str) -> None:
    runner = CliRunner()
    _ingest(runner, items_file, db_path)

    result = runner.invoke(main_module.app, ["reindex", "--db-path", db_path])

    assert result.exit_code == 0
    assert "Updated: 3" in result.output
    assert "Skipped: 1" in result.output
    assert "blank.pdf" in result.output


def test_items_command(items_file: Path, db_path: str) -> None:
    runner = CliRunner()
    _ingest(runner, items_file, db_path)

    result = runner.invoke(main_module.app, ["items", "--db-path", db_path])

    assert result.exit_code == 0
    assert "4 item(s)" in result.output
    assert "blank.pdf" in result.output
