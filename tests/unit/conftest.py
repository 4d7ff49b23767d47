from pathlib import Path
import random

import pytest

from mica.config import Settings
from mica.services.database import DatabaseService
from mica.services.graph_store import GraphStore


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(database_path=tmp_path / "mica.db", view_flush_interval=0.4)


@pytest.fixture()
def db(settings: Settings) -> DatabaseService:
    return DatabaseService(settings.database_path)


@pytest.fixture()
def store(settings: Settings, db: DatabaseService) -> GraphStore:
    graph_store = GraphStore(db=db, settings=settings, rng=random.Random(7))
    graph_store.initialize()
    yield graph_store
    graph_store.close()
