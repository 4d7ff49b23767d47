"""JSON export envelope and tolerant, id-remapping import."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import TypeAdapter, ValidationError

from ..identifiers import new_id
from ..models.graph import Edge, Node, Space, SpaceViewState, ViewState, default_view_state, now_ms
from ..models.transfer import ExportEnvelope, ImportResult
from . import tables
from .database import DatabaseService
from .migrations import CURRENT_SCHEMA_VERSION

logger = logging.getLogger(__name__)

IMPORTED_SUFFIX = " (imported)"

_SPACES = TypeAdapter(List[Space])
_NODES = TypeAdapter(List[Node])
_EDGES = TypeAdapter(List[Edge])
_VIEWS = TypeAdapter(List[SpaceViewState])


class ImportPayloadError(Exception):
    """Raised when records inside a non-empty import payload are malformed."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


def envelope_to_json(envelope: ExportEnvelope) -> str:
    data = envelope.model_dump(mode="json", by_alias=True)
    if data.get("appSettings") is None:
        data.pop("appSettings", None)
    return json.dumps(data, indent=2, ensure_ascii=False)


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _coerce_payload(payload: Any) -> Optional[dict]:
    if isinstance(payload, (str, bytes, bytearray)):
        try:
            payload = json.loads(payload)
        except ValueError:
            logger.warning("Import payload is not valid JSON; nothing imported")
            return None
    return payload if isinstance(payload, dict) else None


class TransferService:
    """Serialize the store (or one space) and merge foreign exports into it."""

    def __init__(self, db: DatabaseService) -> None:
        self.db = db

    # ========================================
    # Export
    # ========================================

    def export_space(self, space_id: str) -> ExportEnvelope:
        with self.db.reader() as conn:
            space = tables.get_space(conn, space_id)
            view = tables.get_view(conn, space_id)
            return ExportEnvelope(
                schema_version=CURRENT_SCHEMA_VERSION,
                exported_at=now_ms(),
                spaces=[space] if space else [],
                nodes=tables.list_nodes(conn, space_id),
                edges=tables.list_edges(conn, space_id),
                space_view_state=(
                    [SpaceViewState(space_id=space_id, **view.model_dump())] if view else []
                ),
            )

    def export_all(self) -> ExportEnvelope:
        with self.db.reader() as conn:
            return ExportEnvelope(
                schema_version=CURRENT_SCHEMA_VERSION,
                exported_at=now_ms(),
                spaces=tables.list_spaces(conn),
                nodes=tables.list_nodes(conn),
                edges=tables.list_edges(conn),
                space_view_state=[
                    SpaceViewState(space_id=space_id, **view.model_dump())
                    for space_id, view in tables.list_views(conn)
                ],
                app_settings=tables.get_app_settings(conn),
            )

    # ========================================
    # Import
    # ========================================

    def import_data(self, payload: Any, restore_session: bool = False) -> Optional[ImportResult]:
        """
        Merge an exported payload into the store under fresh identifiers.

        Returns None when the payload has no non-empty ``spaces`` array.
        Edges whose endpoints are not among the imported nodes are dropped.
        All spaces are added in one transaction, or none are.

        Args:
            payload: Parsed JSON (dict) or a JSON string
            restore_session: Apply ``appSettings.lastOpenedSpaceId`` (whole-store import)

        Raises:
            ImportPayloadError: if spaces, nodes, edges or views fail validation
        """
        data = _coerce_payload(payload)
        if data is None or not _as_list(data.get("spaces")):
            logger.info("Import payload has no spaces; nothing imported")
            return None

        # Current exports say spaceViewState; older ones say views.
        raw_views = data.get("spaceViewState")
        if raw_views is None:
            raw_views = data.get("views")

        try:
            spaces = _SPACES.validate_python(data["spaces"])
            nodes = _NODES.validate_python(_as_list(data.get("nodes")))
            edges = _EDGES.validate_python(_as_list(data.get("edges")))
            views = _VIEWS.validate_python(_as_list(raw_views))
        except ValidationError as e:
            raise ImportPayloadError(
                f"Import payload contains invalid records: {e.error_count()} error(s)",
                {"errors": e.errors(include_url=False)},
            ) from e

        result = ImportResult()
        space_map: Dict[str, str] = {}
        timestamp = now_ms()

        with self.db.transaction() as conn:
            for space in spaces:
                new_space = space.model_copy(
                    update={
                        "id": new_id(),
                        "name": f"{space.name}{IMPORTED_SUFFIX}",
                        "created_at": timestamp,
                        "updated_at": timestamp,
                    }
                )
                tables.insert_space(conn, new_space)
                space_map.setdefault(space.id, new_space.id)
                result.added_spaces += 1
                result.space_ids.append(new_space.id)

                node_map: Dict[str, str] = {}
                new_nodes: list[Node] = []
                for node in nodes:
                    if node.space_id != space.id:
                        continue
                    node_map[node.id] = new_id()
                    new_nodes.append(
                        node.model_copy(
                            update={
                                "id": node_map[node.id],
                                "space_id": new_space.id,
                                "created_at": timestamp,
                                "updated_at": timestamp,
                            }
                        )
                    )
                tables.insert_nodes(conn, new_nodes)
                result.added_nodes += len(new_nodes)

                new_edges: list[Edge] = []
                dropped = 0
                for edge in edges:
                    if edge.space_id != space.id:
                        continue
                    mapped_from = node_map.get(edge.from_id)
                    mapped_to = node_map.get(edge.to_id)
                    if mapped_from is None or mapped_to is None:
                        dropped += 1
                        continue
                    new_edges.append(
                        edge.model_copy(
                            update={
                                "id": new_id(),
                                "space_id": new_space.id,
                                "from_id": mapped_from,
                                "to_id": mapped_to,
                            }
                        )
                    )
                tables.insert_edges(conn, new_edges)
                result.added_edges += len(new_edges)
                if dropped:
                    logger.debug("Dropped %s dangling edge(s) from space %s", dropped, space.id)

                view = self._find_view(views, space.id)
                if view.focus_node_id is not None:
                    view = view.model_copy(update={"focus_node_id": node_map.get(view.focus_node_id)})
                tables.put_view(conn, new_space.id, view)

            if restore_session:
                self._restore_session(conn, data.get("appSettings"), space_map)

        logger.info(
            "Imported %s space(s), %s node(s), %s edge(s)",
            result.added_spaces,
            result.added_nodes,
            result.added_edges,
        )
        return result

    @staticmethod
    def _find_view(views: list[SpaceViewState], space_id: str) -> ViewState:
        for record in views:
            if record.space_id == space_id:
                return ViewState.model_validate(record.model_dump(exclude={"space_id"}))
        return default_view_state()

    @staticmethod
    def _restore_session(conn, raw_settings: Any, space_map: Dict[str, str]) -> None:
        if not isinstance(raw_settings, dict):
            return
        last_opened = raw_settings.get("lastOpenedSpaceId") or raw_settings.get("last_opened_space_id")
        if last_opened in space_map:
            tables.set_last_opened_space(conn, space_map[last_opened], CURRENT_SCHEMA_VERSION)


__all__ = ["TransferService", "ImportPayloadError", "envelope_to_json", "IMPORTED_SUFFIX"]
