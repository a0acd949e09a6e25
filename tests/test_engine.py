"""Tests for database URL resolution and schema creation."""

import tempfile
from pathlib import Path

import pytest
from sqlalchemy import inspect

from wine_catalog.db.engine import create_db_engine, get_database_url
from wine_catalog.db.models import Base


class TestDatabaseUrl:
    """Tests for get_database_url."""

    def test_explicit_path(self, tmp_path: Path) -> None:
        url = get_database_url(tmp_path / "nested" / "catalog.db")
        assert url == f"sqlite:///{tmp_path / 'nested' / 'catalog.db'}"
        assert (tmp_path / "nested").is_dir()

    def test_full_url_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DATABASE_URL", "postgresql://user:pw@db/catalog")
        assert get_database_url() == "postgresql://user:pw@db/catalog"

    def test_legacy_postgres_scheme(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DATABASE_URL", "postgres://user:pw@db/catalog")
        assert get_database_url() == "postgresql://user:pw@db/catalog"

    def test_bare_path_from_env(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("DATABASE_URL", str(tmp_path / "env.db"))
        assert get_database_url() == f"sqlite:///{tmp_path / 'env.db'}"


def test_create_all_builds_catalog_tables() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        engine = create_db_engine(Path(tmpdir) / "test.db")
        Base.metadata.create_all(engine)

        tables = set(inspect(engine).get_table_names())
        assert {"wines", "restaurant_wines"} <= tables
        engine.dispose()
