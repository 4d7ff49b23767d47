"""GraphStore - transactional facade over the local graph tables.

This service handles:
- First-run seeding from the built-in templates
- Space lifecycle (create from template, rename, delete with cascade, switch)
- Node and edge mutation (create, update, delete with cascade, idempotent link)
- Per-space view state (immediate and coalesced camera persistence, reset)
- Search, edge visibility, import and export for the active session

A GraphStore instance is constructed once and passed to its consumers; it
also holds the session read model (active space, its nodes/edges/view and
the selected node). Calls are expected one at a time; every multi-table
write is one SQLite transaction.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import random
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from ..config import Settings, get_settings
from ..identifiers import new_id
from ..models.blocks import ContentBlock, MarkdownBlock
from ..models.graph import (
    Camera,
    Edge,
    Node,
    NodeUpdate,
    Position,
    Space,
    ViewState,
    ViewUpdate,
    default_view_state,
    now_ms,
)
from ..models.search import SearchResult
from ..models.transfer import GraphSnapshot, ImportResult
from . import tables
from .database import DatabaseService
from .migrations import CURRENT_SCHEMA_VERSION, MigrationError, MigrationManager
from .search import search_nodes
from .templates import TemplateBundle, build_all_templates, instantiate_or_fallback
from .transfer import TransferService, envelope_to_json
from .view_writes import ViewWriteCoalescer
from .visibility import visible_edges

logger = logging.getLogger(__name__)

DEFAULT_NODE_TITLE = "New Thought"
PLACEHOLDER_TEXT = "Describe this thought."
CHILD_RELATION = "child"
JITTER_SPREAD = 1.5


class GraphStoreError(Exception):
    """Raised when graph store operations fail."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StoreNotReadyError(GraphStoreError):
    """Raised when an operation runs before initialize() succeeded."""


class NoActiveSpaceError(GraphStoreError):
    """Raised when an operation needs a space and none is given or active."""


class SpaceNotFoundError(GraphStoreError):
    """Raised when an explicitly named space does not exist."""


def _persist_bundle(conn, bundle: TemplateBundle) -> None:
    tables.insert_space(conn, bundle.space)
    tables.insert_nodes(conn, bundle.nodes)
    tables.insert_edges(conn, bundle.edges)
    tables.put_view(conn, bundle.space.id, bundle.view)


class GraphStore:
    """Single-writer facade enforcing the store's referential invariants."""

    def __init__(
        self,
        db: Optional[DatabaseService] = None,
        settings: Optional[Settings] = None,
        migrations: Optional[MigrationManager] = None,
        rng: Optional[random.Random] = None,
        coalescer: Optional[ViewWriteCoalescer] = None,
    ) -> None:
        """Initialize the graph store.

        Args:
            db: Database service. Built from settings.database_path if omitted.
            settings: Settings instance. Uses the cached settings if omitted.
            migrations: Migration manager. Uses the built-in steps if omitted.
            rng: Random source for child-node position jitter.
            coalescer: Camera write coalescer. One is built from settings if omitted.
        """
        self.settings = settings or get_settings()
        self.db = db or DatabaseService(self.settings.database_path)
        self.migrations = migrations or MigrationManager(self.db)
        self.transfer = TransferService(self.db)
        self._rng = rng or random.Random()
        self._views = coalescer or ViewWriteCoalescer(
            self._write_view, interval=self.settings.view_flush_interval
        )

        self.ready = False
        self.spaces: List[Space] = []
        self.active_space_id: Optional[str] = None
        self.nodes: List[Node] = []
        self.edges: List[Edge] = []
        self.view: ViewState = default_view_state()
        self.selected_node_id: Optional[str] = None

    def __enter__(self) -> "GraphStore":
        self.initialize()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Flush any pending camera write."""
        self._views.close()

    # ========================================
    # Startup and session
    # ========================================

    def initialize(self) -> GraphSnapshot:
        """Migrate, seed on first run, and restore the last opened space.

        Raises:
            MigrationError: if the schema could not be upgraded (fatal)
        """
        try:
            version = self.migrations.upgrade()
        except MigrationError:
            self.ready = False
            raise

        with self.db.transaction() as conn:
            if tables.count_spaces(conn) == 0:
                bundles = build_all_templates()
                for bundle in bundles:
                    _persist_bundle(conn, bundle)
                logger.info("Seeded store with %s template spaces", len(bundles))
            self.spaces = tables.list_spaces(conn)
            app_settings = tables.get_app_settings(conn)

        remembered = app_settings.last_opened_space_id if app_settings else None
        known = {space.id for space in self.spaces}
        active = remembered if remembered in known else (self.spaces[0].id if self.spaces else None)

        self.ready = True
        self._load_space(active)
        if active != remembered:
            self._remember(active)
        logger.info("Graph store ready (schema v%s, %s spaces)", version, len(self.spaces))
        return self.snapshot()

    def snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(
            spaces=list(self.spaces),
            active_space_id=self.active_space_id,
            nodes=list(self.nodes),
            edges=list(self.edges),
            view=self.view,
            selected_node_id=self.selected_node_id,
        )

    def set_active_space(self, space_id: str) -> bool:
        """Switch the session to another space; unknown ids are ignored."""
        self._require_ready()
        if not any(space.id == space_id for space in self.spaces):
            logger.debug("Ignoring switch to unknown space %s", space_id)
            return False
        self._views.flush()
        self._load_space(space_id)
        self._remember(space_id)
        return True

    def select_node(self, node_id: Optional[str]) -> None:
        self._require_ready()
        self.selected_node_id = node_id

    def _require_ready(self) -> None:
        if not self.ready:
            raise StoreNotReadyError("Graph store is not initialized")

    def _require_active(self) -> str:
        self._require_ready()
        if self.active_space_id is None:
            raise NoActiveSpaceError("No active space")
        return self.active_space_id

    def _load_space(self, space_id: Optional[str]) -> None:
        self.active_space_id = space_id
        self.selected_node_id = None
        if space_id is None:
            self.nodes, self.edges, self.view = [], [], default_view_state()
            return
        with self.db.reader() as conn:
            self.nodes = tables.list_nodes(conn, space_id)
            self.edges = tables.list_edges(conn, space_id)
            self.view = tables.get_view(conn, space_id) or default_view_state()

    def _refresh_graph(self) -> None:
        if self.active_space_id is None:
            return
        with self.db.reader() as conn:
            self.nodes = tables.list_nodes(conn, self.active_space_id)
            self.edges = tables.list_edges(conn, self.active_space_id)

    def _refresh_spaces(self) -> None:
        with self.db.reader() as conn:
            self.spaces = tables.list_spaces(conn)

    def _remember(self, space_id: Optional[str]) -> None:
        with self.db.transaction() as conn:
            tables.set_last_opened_space(conn, space_id, CURRENT_SCHEMA_VERSION)

    # ========================================
    # Spaces
    # ========================================

    def create_space(
        self,
        template_key: str = "blank",
        name: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> Space:
        """Create a space from a template and make it active.

        Unknown template keys fall back to the blank template.
        """
        self._require_ready()
        bundle = instantiate_or_fallback(template_key)
        overrides: Dict[str, Any] = {}
        if name is not None and name.strip():
            overrides["name"] = name.strip()
        if icon is not None:
            overrides["icon"] = icon
        if overrides:
            bundle.space = bundle.space.model_copy(update=overrides)

        with self.db.transaction() as conn:
            _persist_bundle(conn, bundle)

        logger.info("Created space %s (%s) from template '%s'", bundle.space.id, bundle.space.name, template_key)
        self._refresh_spaces()
        self.set_active_space(bundle.space.id)
        return bundle.space

    def rename_space(self, space_id: str, name: str) -> bool:
        """Rename a space; returns False (no error) if it does not exist."""
        self._require_ready()
        cleaned = (name or "").strip()
        if not cleaned:
            return False
        with self.db.transaction() as conn:
            renamed = tables.rename_space(conn, space_id, cleaned, now_ms())
        if not renamed:
            logger.debug("Ignoring rename of unknown space %s", space_id)
            return False
        self._refresh_spaces()
        return True

    def delete_space(self, space_id: str) -> bool:
        """Delete a space with all of its nodes, edges and view state."""
        self._require_ready()
        self._views.discard(space_id)
        with self.db.transaction() as conn:
            removed = tables.delete_space_cascade(conn, space_id)
        if not removed["spaces"]:
            logger.debug("Ignoring delete of unknown space %s", space_id)
            return False
        logger.info("Deleted space %s: %s", space_id, removed)

        self._refresh_spaces()
        if self.active_space_id == space_id:
            next_active = self.spaces[0].id if self.spaces else None
            self._load_space(next_active)
            self._remember(next_active)
        return True

    def get_space(self, space_id: str) -> Optional[Space]:
        return next((space for space in self.spaces if space.id == space_id), None)

    # ========================================
    # Nodes
    # ========================================

    def _jitter(self) -> float:
        return (self._rng.random() - 0.5) * JITTER_SPREAD

    def create_node(
        self,
        space_id: Optional[str] = None,
        title: str = "",
        parent_id: Optional[str] = None,
    ) -> Node:
        """Create a node near its parent (or the origin) with one markdown block.

        When a parent in the same space is given, a "child" edge from the
        parent is linked afterwards; the node is committed first so a failed
        insert can never leave an orphan edge.

        Raises:
            NoActiveSpaceError: if no space is given and none is active
            SpaceNotFoundError: if the given space does not exist
        """
        self._require_ready()
        space_id = space_id or self.active_space_id
        if space_id is None:
            raise NoActiveSpaceError("Cannot create a node without a space")

        with self.db.transaction() as conn:
            if tables.get_space(conn, space_id) is None:
                raise SpaceNotFoundError(f"Space not found: {space_id}", {"space_id": space_id})
            parent = tables.get_node(conn, parent_id) if parent_id else None
            if parent is not None and parent.space_id != space_id:
                parent = None
            base = parent.position if parent else Position()
            timestamp = now_ms()
            node = Node(
                id=new_id(),
                space_id=space_id,
                title=title.strip() or DEFAULT_NODE_TITLE,
                tags=[],
                importance=3,
                created_at=timestamp,
                updated_at=timestamp,
                position=Position(
                    x=base.x + self._jitter(),
                    y=base.y + self._jitter(),
                    z=base.z + self._jitter(),
                ),
                blocks=[MarkdownBlock(id=new_id(), text=PLACEHOLDER_TEXT)],
            )
            tables.insert_nodes(conn, [node])

        if space_id == self.active_space_id:
            self._refresh_graph()
            self.selected_node_id = node.id
        if parent is not None:
            self.link_nodes(parent.id, node.id, CHILD_RELATION)
        elif parent_id:
            logger.debug("Parent %s not found in space %s; node left unlinked", parent_id, space_id)
        return node

    def get_node(self, node_id: str) -> Optional[Node]:
        self._require_ready()
        with self.db.reader() as conn:
            return tables.get_node(conn, node_id)

    def update_node(
        self,
        node_id: str,
        updates: Union[NodeUpdate, Mapping[str, Any]],
    ) -> Optional[Node]:
        """Merge partial updates onto a node; unknown ids are silently ignored."""
        self._require_ready()
        if not isinstance(updates, NodeUpdate):
            updates = NodeUpdate.model_validate(dict(updates))
        changes = {
            field: getattr(updates, field)
            for field in updates.model_fields_set
            if getattr(updates, field) is not None
        }

        with self.db.transaction() as conn:
            existing = tables.get_node(conn, node_id)
            if existing is None:
                logger.debug("Ignoring update of unknown node %s", node_id)
                return None
            # Nested models are dumped whole so block discriminators survive.
            merged = existing.model_copy(
                update={**changes, "updated_at": max(now_ms(), existing.updated_at)}
            )
            merged = Node.model_validate(merged.model_dump())
            tables.update_node(conn, merged)

        if merged.space_id == self.active_space_id:
            self.nodes = [merged if node.id == node_id else node for node in self.nodes]
        return merged

    def delete_node(self, node_id: str) -> bool:
        """Delete a node and every edge touching it, in one transaction."""
        self._require_ready()
        with self.db.transaction() as conn:
            node = tables.get_node(conn, node_id)
            if node is None:
                logger.debug("Ignoring delete of unknown node %s", node_id)
                return False
            removed_edges = tables.delete_node_cascade(conn, node)
        logger.info("Deleted node %s and %s edge(s)", node_id, removed_edges)

        if node.space_id == self.active_space_id:
            self._refresh_graph()
            if self.selected_node_id == node_id:
                self.selected_node_id = self.nodes[0].id if self.nodes else None
        return True

    # ========================================
    # Content blocks
    # ========================================

    def add_block(self, node_id: str, block: ContentBlock, index: Optional[int] = None) -> Optional[Node]:
        self._require_ready()
        node = self.get_node(node_id)
        if node is None:
            return None
        blocks = list(node.blocks)
        blocks.insert(len(blocks) if index is None else index, block)
        return self.update_node(node_id, NodeUpdate(blocks=blocks))

    def remove_block(self, node_id: str, block_id: str) -> Optional[Node]:
        self._require_ready()
        node = self.get_node(node_id)
        if node is None:
            return None
        blocks = [block for block in node.blocks if block.id != block_id]
        if len(blocks) == len(node.blocks):
            return node
        return self.update_node(node_id, NodeUpdate(blocks=blocks))

    def move_block(self, node_id: str, block_id: str, new_index: int) -> Optional[Node]:
        """Reorder a block within its node; the index is clamped to the block range."""
        self._require_ready()
        node = self.get_node(node_id)
        if node is None:
            return None
        blocks = list(node.blocks)
        current = next((i for i, block in enumerate(blocks) if block.id == block_id), None)
        if current is None:
            return node
        block = blocks.pop(current)
        blocks.insert(max(0, min(new_index, len(blocks))), block)
        return self.update_node(node_id, NodeUpdate(blocks=blocks))

    # ========================================
    # Edges
    # ========================================

    def link_nodes(self, from_id: str, to_id: str, relation: Optional[str] = None) -> Optional[Edge]:
        """Create a directed edge; self-loops, duplicates and cross-space pairs are ignored."""
        self._require_ready()
        if from_id == to_id:
            logger.debug("Ignoring self-loop on %s", from_id)
            return None

        with self.db.transaction() as conn:
            source = tables.get_node(conn, from_id)
            target = tables.get_node(conn, to_id)
            if source is None or target is None or source.space_id != target.space_id:
                logger.debug("Ignoring link %s -> %s: endpoints missing or in different spaces", from_id, to_id)
                return None
            if tables.edge_exists(conn, source.space_id, from_id, to_id, relation):
                logger.debug("Ignoring duplicate edge %s -> %s (%s)", from_id, to_id, relation)
                return None
            edge = Edge(id=new_id(), space_id=source.space_id, from_id=from_id, to_id=to_id, relation=relation)
            tables.insert_edges(conn, [edge])

        if edge.space_id == self.active_space_id:
            self._refresh_graph()
        return edge

    def visible_edges(self) -> List[Edge]:
        """Edges shown for the active view's visibility mode and current focus."""
        focus = self.selected_node_id or self.view.focus_node_id
        return visible_edges(self.nodes, self.edges, self.view.edge_visibility, focus)

    # ========================================
    # View state
    # ========================================

    def _write_view(self, space_id: str, view: ViewState) -> None:
        with self.db.transaction() as conn:
            tables.put_view(conn, space_id, view)

    def update_view(self, partial: Union[ViewUpdate, Mapping[str, Any]]) -> ViewState:
        """Merge view fields onto the active space's view and persist the whole view.

        A provided camera replaces the stored camera wholesale.

        Raises:
            NoActiveSpaceError: if no space is active
        """
        space_id = self._require_active()
        if not isinstance(partial, ViewUpdate):
            partial = ViewUpdate.model_validate(dict(partial))
        changes = {
            field: getattr(partial, field)
            for field in partial.model_fields_set
            if getattr(partial, field) is not None or field == "focus_node_id"
        }
        self.view = ViewState.model_validate(self.view.model_copy(update=changes).model_dump())
        # The full write below supersedes any coalesced camera write.
        self._views.discard(space_id)
        self._write_view(space_id, self.view)
        return self.view

    def update_camera(self, camera: Union[Camera, Mapping[str, Any]]) -> ViewState:
        """Apply a camera change now in memory; persist it at a bounded rate."""
        space_id = self._require_active()
        if not isinstance(camera, Camera):
            camera = Camera.model_validate(dict(camera))
        self.view = self.view.model_copy(update={"camera": camera})
        self._views.submit(space_id, self.view)
        return self.view

    def flush_view(self) -> int:
        return self._views.flush()

    def reset_view(self) -> ViewState:
        """Restore the active space's templated default view."""
        space_id = self._require_active()
        space = self.get_space(space_id)
        self.view = space.view.model_copy(deep=True) if space else default_view_state()
        self._views.discard(space_id)
        self._write_view(space_id, self.view)
        return self.view

    # ========================================
    # Search, import and export
    # ========================================

    def search(self, query: str, space_id: Optional[str] = None) -> List[SearchResult]:
        """Substring search over one space (the active one by default)."""
        self._require_ready()
        space_id = space_id or self.active_space_id
        if space_id is None or not (query or "").strip():
            return []
        if space_id == self.active_space_id:
            nodes = self.nodes
        else:
            with self.db.reader() as conn:
                nodes = tables.list_nodes(conn, space_id)
        return search_nodes(
            nodes,
            query,
            limit=self.settings.search_limit,
            snippet_length=self.settings.snippet_length,
        )

    def export_space(self, space_id: str) -> str:
        self._require_ready()
        self._views.flush()
        return envelope_to_json(self.transfer.export_space(space_id))

    def export_all(self) -> str:
        self._require_ready()
        self._views.flush()
        return envelope_to_json(self.transfer.export_all())

    def import_data(self, payload: Any, restore_session: bool = False) -> Optional[ImportResult]:
        """Merge an export into the store; returns None if it carried no spaces."""
        self._require_ready()
        result = self.transfer.import_data(payload, restore_session=restore_session)
        if result is None:
            return None
        self._refresh_spaces()
        if restore_session:
            with self.db.reader() as conn:
                app_settings = tables.get_app_settings(conn)
            remembered = app_settings.last_opened_space_id if app_settings else None
            if remembered in result.space_ids:
                self._views.flush()
                self._load_space(remembered)
        return result


@contextmanager
def open_store(settings: Optional[Settings] = None) -> Iterator[GraphStore]:
    """Initialize a store for the duration of a block and flush it afterwards."""
    store = GraphStore(settings=settings)
    try:
        store.initialize()
        yield store
    finally:
        store.close()


__all__ = [
    "GraphStore",
    "GraphStoreError",
    "StoreNotReadyError",
    "NoActiveSpaceError",
    "SpaceNotFoundError",
    "open_store",
    "DEFAULT_NODE_TITLE",
    "PLACEHOLDER_TEXT",
    "CHILD_RELATION",
]
