"""Service layer: storage, migrations, templates, search, transfer and the graph store."""

from .database import DatabaseService
from .graph_store import (
    GraphStore,
    GraphStoreError,
    NoActiveSpaceError,
    SpaceNotFoundError,
    StoreNotReadyError,
    open_store,
)
from .migrations import CURRENT_SCHEMA_VERSION, Migration, MigrationError, MigrationManager
from .search import search_nodes
from .templates import (
    TemplateBundle,
    TemplateNotFoundError,
    build_all_templates,
    instantiate_or_fallback,
    instantiate_template,
    list_templates,
)
from .transfer import ImportPayloadError, TransferService
from .view_writes import ViewWriteCoalescer
from .visibility import visible_edges, visible_node_ids

__all__ = [
    "DatabaseService",
    "GraphStore",
    "GraphStoreError",
    "NoActiveSpaceError",
    "SpaceNotFoundError",
    "StoreNotReadyError",
    "open_store",
    "CURRENT_SCHEMA_VERSION",
    "Migration",
    "MigrationError",
    "MigrationManager",
    "search_nodes",
    "TemplateBundle",
    "TemplateNotFoundError",
    "build_all_templates",
    "instantiate_or_fallback",
    "instantiate_template",
    "list_templates",
    "ImportPayloadError",
    "TransferService",
    "ViewWriteCoalescer",
    "visible_edges",
    "visible_node_ids",
]
