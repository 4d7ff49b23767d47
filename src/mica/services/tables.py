"""Row mapping for the five store tables.

Every function takes an open connection so callers decide the transaction
boundary. Rows come back in natural table order (insertion order).
"""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Iterable, Optional

from pydantic import TypeAdapter

from ..models.blocks import ContentBlock
from ..models.graph import Edge, Node, Position, Space, ViewState
from ..models.settings import APP_SETTINGS_KEY, AppSettings

_BLOCKS = TypeAdapter(list[ContentBlock])


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


# ========================================
# Spaces
# ========================================


def _row_to_space(row: sqlite3.Row) -> Space:
    return Space(
        id=row["id"],
        name=row["name"],
        icon=row["icon"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        view=ViewState.model_validate_json(row["view"]),
    )


def count_spaces(conn: sqlite3.Connection) -> int:
    return int(conn.execute("SELECT COUNT(*) FROM spaces").fetchone()[0])


def list_spaces(conn: sqlite3.Connection) -> list[Space]:
    cursor = conn.execute(
        "SELECT id, name, icon, created_at, updated_at, view FROM spaces ORDER BY rowid"
    )
    return [_row_to_space(row) for row in cursor.fetchall()]


def get_space(conn: sqlite3.Connection, space_id: str) -> Optional[Space]:
    row = conn.execute(
        "SELECT id, name, icon, created_at, updated_at, view FROM spaces WHERE id = ?",
        (space_id,),
    ).fetchone()
    return _row_to_space(row) if row else None


def insert_space(conn: sqlite3.Connection, space: Space) -> None:
    conn.execute(
        """
        INSERT INTO spaces (id, name, icon, created_at, updated_at, view)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            space.id,
            space.name,
            space.icon,
            space.created_at,
            space.updated_at,
            space.view.model_dump_json(),
        ),
    )


def rename_space(conn: sqlite3.Connection, space_id: str, name: str, updated_at: int) -> bool:
    cursor = conn.execute(
        "UPDATE spaces SET name = ?, updated_at = ? WHERE id = ?",
        (name, updated_at, space_id),
    )
    return cursor.rowcount > 0


def delete_space_cascade(conn: sqlite3.Connection, space_id: str) -> dict[str, int]:
    """Remove a space with every node, edge and view state it owns."""
    return {
        "spaces": conn.execute("DELETE FROM spaces WHERE id = ?", (space_id,)).rowcount,
        "nodes": conn.execute("DELETE FROM nodes WHERE space_id = ?", (space_id,)).rowcount,
        "edges": conn.execute("DELETE FROM edges WHERE space_id = ?", (space_id,)).rowcount,
        "views": conn.execute(
            "DELETE FROM space_view_state WHERE space_id = ?", (space_id,)
        ).rowcount,
    }


# ========================================
# Nodes
# ========================================

_NODE_COLUMNS = "id, space_id, title, tags, importance, created_at, updated_at, position, blocks"


def _row_to_node(row: sqlite3.Row) -> Node:
    return Node(
        id=row["id"],
        space_id=row["space_id"],
        title=row["title"],
        tags=json.loads(row["tags"]),
        importance=row["importance"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        position=Position.model_validate_json(row["position"]),
        blocks=_BLOCKS.validate_json(row["blocks"]),
    )


def _node_params(node: Node) -> tuple:
    return (
        node.id,
        node.space_id,
        node.title,
        _dumps(node.tags),
        node.importance,
        node.created_at,
        node.updated_at,
        node.position.model_dump_json(),
        _BLOCKS.dump_json(node.blocks).decode("utf-8"),
    )


def list_nodes(conn: sqlite3.Connection, space_id: Optional[str] = None) -> list[Node]:
    if space_id is None:
        cursor = conn.execute(f"SELECT {_NODE_COLUMNS} FROM nodes ORDER BY rowid")
    else:
        cursor = conn.execute(
            f"SELECT {_NODE_COLUMNS} FROM nodes WHERE space_id = ? ORDER BY rowid",
            (space_id,),
        )
    return [_row_to_node(row) for row in cursor.fetchall()]


def get_node(conn: sqlite3.Connection, node_id: str) -> Optional[Node]:
    row = conn.execute(f"SELECT {_NODE_COLUMNS} FROM nodes WHERE id = ?", (node_id,)).fetchone()
    return _row_to_node(row) if row else None


def insert_nodes(conn: sqlite3.Connection, nodes: Iterable[Node]) -> None:
    conn.executemany(
        f"INSERT INTO nodes ({_NODE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
        [_node_params(node) for node in nodes],
    )


def update_node(conn: sqlite3.Connection, node: Node) -> bool:
    """Overwrite an existing node row in place (keeps its table position)."""
    params = _node_params(node)
    cursor = conn.execute(
        """
        UPDATE nodes
        SET title = ?, tags = ?, importance = ?, created_at = ?,
            updated_at = ?, position = ?, blocks = ?
        WHERE id = ? AND space_id = ?
        """,
        (*params[2:], node.id, node.space_id),
    )
    return cursor.rowcount > 0


def delete_node_cascade(conn: sqlite3.Connection, node: Node) -> int:
    """Delete a node and every edge of its space touching it; return removed edge count."""
    conn.execute("DELETE FROM nodes WHERE id = ?", (node.id,))
    return conn.execute(
        "DELETE FROM edges WHERE space_id = ? AND (from_id = ? OR to_id = ?)",
        (node.space_id, node.id, node.id),
    ).rowcount


# ========================================
# Edges
# ========================================


def _row_to_edge(row: sqlite3.Row) -> Edge:
    return Edge(
        id=row["id"],
        space_id=row["space_id"],
        from_id=row["from_id"],
        to_id=row["to_id"],
        relation=row["relation"],
    )


def list_edges(conn: sqlite3.Connection, space_id: Optional[str] = None) -> list[Edge]:
    if space_id is None:
        cursor = conn.execute("SELECT id, space_id, from_id, to_id, relation FROM edges ORDER BY rowid")
    else:
        cursor = conn.execute(
            "SELECT id, space_id, from_id, to_id, relation FROM edges WHERE space_id = ? ORDER BY rowid",
            (space_id,),
        )
    return [_row_to_edge(row) for row in cursor.fetchall()]


def edge_exists(
    conn: sqlite3.Connection,
    space_id: str,
    from_id: str,
    to_id: str,
    relation: Optional[str],
) -> bool:
    # Direction matters: (a, b) and (b, a) are different edges.
    row = conn.execute(
        """
        SELECT 1 FROM edges
        WHERE space_id = ? AND from_id = ? AND to_id = ? AND relation IS ?
        LIMIT 1
        """,
        (space_id, from_id, to_id, relation),
    ).fetchone()
    return row is not None


def insert_edges(conn: sqlite3.Connection, edges: Iterable[Edge]) -> None:
    conn.executemany(
        "INSERT INTO edges (id, space_id, from_id, to_id, relation) VALUES (?, ?, ?, ?, ?)",
        [(edge.id, edge.space_id, edge.from_id, edge.to_id, edge.relation) for edge in edges],
    )


# ========================================
# Space view state
# ========================================


def get_view(conn: sqlite3.Connection, space_id: str) -> Optional[ViewState]:
    row = conn.execute(
        "SELECT data FROM space_view_state WHERE space_id = ?", (space_id,)
    ).fetchone()
    return ViewState.model_validate_json(row["data"]) if row else None


def list_views(conn: sqlite3.Connection) -> list[tuple[str, ViewState]]:
    cursor = conn.execute("SELECT space_id, data FROM space_view_state ORDER BY rowid")
    return [(row["space_id"], ViewState.model_validate_json(row["data"])) for row in cursor.fetchall()]


def put_view(conn: sqlite3.Connection, space_id: str, view: ViewState) -> bool:
    """Write the full view for a space; does nothing if the space no longer exists."""
    cursor = conn.execute(
        """
        INSERT INTO space_view_state (space_id, data)
        SELECT ?, ? WHERE EXISTS (SELECT 1 FROM spaces WHERE id = ?)
        ON CONFLICT(space_id) DO UPDATE SET data = excluded.data
        """,
        (space_id, view.model_dump_json(), space_id),
    )
    return cursor.rowcount > 0


# ========================================
# App settings
# ========================================


def get_app_settings(conn: sqlite3.Connection) -> Optional[AppSettings]:
    row = conn.execute(
        "SELECT key, schema_version, last_opened_space_id FROM app_settings WHERE key = ?",
        (APP_SETTINGS_KEY,),
    ).fetchone()
    if not row:
        return None
    return AppSettings(
        schema_version=row["schema_version"],
        last_opened_space_id=row["last_opened_space_id"],
    )


def set_last_opened_space(
    conn: sqlite3.Connection, space_id: Optional[str], schema_version: int
) -> None:
    conn.execute(
        """
        INSERT INTO app_settings (key, schema_version, last_opened_space_id)
        VALUES (?, ?, ?)
        ON CONFLICT(key) DO UPDATE SET last_opened_space_id = excluded.last_opened_space_id
        """,
        (APP_SETTINGS_KEY, schema_version, space_id),
    )
