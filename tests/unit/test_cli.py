import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from mica.config import Settings
from mica.main import app
from mica.services.graph_store import GraphStore

runner = CliRunner()


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "cli.db"


def invoke(db_path: Path, *args: str):
    return runner.invoke(app, ["--db", str(db_path), *args])


def open_store(db_path: Path) -> GraphStore:
    store = GraphStore(settings=Settings(database_path=db_path))
    store.initialize()
    return store


def test_init_seeds_builtin_spaces(db_path: Path) -> None:
    result = invoke(db_path, "init")

    assert result.exit_code == 0, result.output
    assert "Research Brain" in result.output
    assert len(open_store(db_path).spaces) == 4


def test_templates_lists_builtin_keys() -> None:
    result = runner.invoke(app, ["templates"])

    assert result.exit_code == 0
    for key in ("blank", "research", "life", "startup"):
        assert key in result.output


def test_space_create_switches_active_space(db_path: Path) -> None:
    result = invoke(db_path, "space", "create", "startup", "--name", "Side Project")

    assert result.exit_code == 0, result.output
    store = open_store(db_path)
    active = store.get_space(store.active_space_id)
    assert active.name == "Side Project"
    assert {node.title for node in store.nodes} >= {"Customers", "Product", "Metrics"}


def test_node_add_links_to_parent(db_path: Path) -> None:
    invoke(db_path, "init")
    parent = next(node for node in open_store(db_path).nodes if node.title == "Ideas")

    result = invoke(db_path, "node", "add", "Reading list", "--parent", parent.id)

    assert result.exit_code == 0, result.output
    store = open_store(db_path)
    child = next(node for node in store.nodes if node.title == "Reading list")
    assert any(edge.from_id == parent.id and edge.to_id == child.id for edge in store.edges)


def test_node_add_into_unknown_space_fails(db_path: Path) -> None:
    result = invoke(db_path, "node", "add", "Lost", "--space", "missing")

    assert result.exit_code == 1
    assert "Space not found" in result.output


def test_node_edit_and_search(db_path: Path) -> None:
    invoke(db_path, "init")
    ideas = next(node for node in open_store(db_path).nodes if node.title == "Ideas")

    edited = invoke(db_path, "node", "edit", "--tag", "inbox", "--text", "Zettelkasten notes", "--", ideas.id)
    found = invoke(db_path, "search", "zettelkasten")

    assert edited.exit_code == 0, edited.output
    assert found.exit_code == 0
    assert "Ideas" in found.output
    node = open_store(db_path).get_node(ideas.id)
    assert node.tags == ["inbox"]
    assert node.blocks[-1].text == "Zettelkasten notes"


def test_search_without_matches(db_path: Path) -> None:
    result = invoke(db_path, "search", "no such words anywhere")

    assert result.exit_code == 0
    assert "No matches" in result.output


def test_space_use_unknown_space_fails(db_path: Path) -> None:
    result = invoke(db_path, "space", "use", "missing")

    assert result.exit_code == 1
    assert "Unknown space" in result.output


def test_space_delete_requires_confirmation(db_path: Path) -> None:
    invoke(db_path, "init")
    space_id = open_store(db_path).spaces[1].id

    aborted = runner.invoke(app, ["--db", str(db_path), "space", "delete", "--", space_id], input="n\n")
    deleted = invoke(db_path, "space", "delete", "--yes", "--", space_id)

    assert aborted.exit_code == 1
    assert deleted.exit_code == 0, deleted.output
    assert len(open_store(db_path).spaces) == 3


def test_view_set_persists(db_path: Path) -> None:
    result = invoke(db_path, "view", "set", "--environment", "white-room", "--mode", "edit")

    assert result.exit_code == 0, result.output
    view = open_store(db_path).view
    assert view.environment.value == "white-room"
    assert view.mode.value == "edit"


def test_export_then_import_file(db_path: Path, tmp_path: Path) -> None:
    export_file = tmp_path / "brain.json"

    exported = invoke(db_path, "export", "-o", str(export_file))
    imported = invoke(db_path, "import", str(export_file))

    assert exported.exit_code == 0, exported.output
    assert json.loads(export_file.read_text(encoding="utf-8"))["schemaVersion"] == 2
    assert imported.exit_code == 0, imported.output
    assert "Imported 4 space(s)" in imported.output
    assert len(open_store(db_path).spaces) == 8


def test_import_of_empty_payload_reports_nothing(db_path: Path, tmp_path: Path) -> None:
    empty = tmp_path / "empty.json"
    empty.write_text(json.dumps({"spaces": []}), encoding="utf-8")

    result = invoke(db_path, "import", str(empty))

    assert result.exit_code == 0
    assert "No data imported" in result.output


def test_import_of_invalid_records_fails(db_path: Path, tmp_path: Path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text(json.dumps({"spaces": [{"name": "no id"}]}), encoding="utf-8")

    result = invoke(db_path, "import", str(broken))

    assert result.exit_code == 1
    assert "invalid records" in result.output
