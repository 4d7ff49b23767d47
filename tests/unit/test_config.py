from pathlib import Path

import pytest
from pydantic import ValidationError

from mica import config as config_module


@pytest.fixture(autouse=True)
def restore_settings_cache():
    """
    Ensure settings cache is cleared between tests.
    """
    config_module.reload_settings()
    yield
    config_module.reload_settings()


def test_settings_read_prefixed_environment(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("MICA_DATABASE_PATH", str(tmp_path / "graph.db"))
    monkeypatch.setenv("MICA_VIEW_FLUSH_INTERVAL", "1.5")
    monkeypatch.setenv("MICA_SEARCH_LIMIT", "3")

    cfg = config_module.reload_settings()

    assert cfg.database_path == tmp_path / "graph.db"
    assert cfg.view_flush_interval == 1.5
    assert cfg.search_limit == 3


def test_settings_defaults(monkeypatch) -> None:
    for name in ("MICA_DATABASE_PATH", "MICA_VIEW_FLUSH_INTERVAL", "MICA_SEARCH_LIMIT", "MICA_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    cfg = config_module.Settings(_env_file=None)

    assert cfg.database_path == config_module.DEFAULT_HOME / "mica.db"
    assert cfg.view_flush_interval == 0.4
    assert cfg.search_limit == 8
    assert cfg.snippet_length == 120
    assert cfg.log_level == "WARNING"


def test_get_settings_is_cached(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("MICA_DATABASE_PATH", str(tmp_path / "first.db"))
    first = config_module.reload_settings()
    monkeypatch.setenv("MICA_DATABASE_PATH", str(tmp_path / "second.db"))

    assert config_module.get_settings() is first
    assert config_module.reload_settings().database_path == tmp_path / "second.db"


def test_database_path_expands_home() -> None:
    cfg = config_module.Settings(_env_file=None, database_path="~/graphs/mica.db")

    assert cfg.database_path == Path.home() / "graphs" / "mica.db"


def test_log_level_is_normalized() -> None:
    assert config_module.Settings(_env_file=None, log_level=" debug ").log_level == "DEBUG"


def test_log_level_rejects_unknown_name() -> None:
    with pytest.raises(ValidationError):
        config_module.Settings(_env_file=None, log_level="chatty")


@pytest.mark.parametrize("interval", ["0", "-1"])
def test_flush_interval_must_be_positive(monkeypatch, interval: str) -> None:
    monkeypatch.setenv("MICA_VIEW_FLUSH_INTERVAL", interval)

    with pytest.raises(ValidationError):
        config_module.reload_settings()
