"""Export envelope, import result and session read models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .graph import Edge, Node, Space, SpaceViewState, ViewState, default_view_state
from .settings import AppSettings


class ExportEnvelope(BaseModel):
    """Versioned JSON envelope for a single space or the whole store."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    schema_version: int
    exported_at: int
    spaces: list[Space] = Field(default_factory=list)
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    space_view_state: list[SpaceViewState] = Field(default_factory=list)
    app_settings: Optional[AppSettings] = None


class ImportResult(BaseModel):
    """Aggregate counts of what an import added."""

    added_spaces: int = 0
    added_nodes: int = 0
    added_edges: int = 0
    space_ids: list[str] = Field(default_factory=list, description="New ids of the imported spaces")


class GraphSnapshot(BaseModel):
    """Read model of the store as seen by a client after initialize or any mutation."""

    spaces: list[Space] = Field(default_factory=list)
    active_space_id: Optional[str] = None
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    view: ViewState = Field(default_factory=default_view_state)
    selected_node_id: Optional[str] = None
