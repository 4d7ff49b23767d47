"""Graph entity models: spaces, nodes, edges and per-space view state."""

from __future__ import annotations

import time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .blocks import ContentBlock

Vector3 = tuple[float, float, float]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class _Record(BaseModel):
    """Records serialize with camelCase keys and accept either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Environment(str, Enum):
    DOME = "dome"
    WHITE_ROOM = "white-room"


class EdgeVisibility(str, Enum):
    NEIGHBORHOOD = "neighborhood"
    TWO_HOP = "two-hop"
    ALL = "all"


class InteractionMode(str, Enum):
    """Observe and edit are both reachable from either; there are no other states."""

    OBSERVE = "observe"
    EDIT = "edit"


class Camera(_Record):
    position: Vector3 = (8.0, 6.0, 10.0)
    target: Vector3 = (0.0, 0.0, 0.0)


class ViewState(_Record):
    """Persisted camera, environment, edge visibility and mode for one space."""

    focus_node_id: Optional[str] = None
    camera: Camera = Field(default_factory=Camera)
    environment: Environment = Environment.DOME
    edge_visibility: EdgeVisibility = EdgeVisibility.NEIGHBORHOOD
    mode: InteractionMode = InteractionMode.OBSERVE


class SpaceViewState(ViewState):
    """A view state keyed by its owning space (one row per space)."""

    space_id: str


def default_view_state() -> ViewState:
    return ViewState()


class Position(_Record):
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


class Space(_Record):
    id: str
    name: str
    icon: str = ""
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)
    view: ViewState = Field(default_factory=default_view_state, description="Default view set at creation")


def _unique_tags(value: list[str]) -> list[str]:
    seen: dict[str, None] = {}
    for tag in value:
        cleaned = tag.strip()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


class Node(_Record):
    id: str
    space_id: str
    title: str
    tags: list[str] = Field(default_factory=list)
    importance: int = Field(default=3, ge=1, le=5)
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)
    position: Position = Field(default_factory=Position)
    blocks: list[ContentBlock] = Field(default_factory=list)

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: list[str]) -> list[str]:
        # Tags behave as a set; first spelling wins.
        return _unique_tags(value)


class Edge(_Record):
    id: str
    space_id: str
    from_id: str = Field(..., alias="from")
    to_id: str = Field(..., alias="to")
    relation: Optional[str] = None


class NodeUpdate(_Record):
    """Partial node changes. Identity and owning space are not updatable."""

    title: Optional[str] = None
    tags: Optional[list[str]] = None
    importance: Optional[int] = Field(default=None, ge=1, le=5)
    position: Optional[Position] = None
    blocks: Optional[list[ContentBlock]] = None


class ViewUpdate(_Record):
    """Partial view changes; a provided camera replaces the stored one wholesale."""

    focus_node_id: Optional[str] = None
    camera: Optional[Camera] = None
    environment: Optional[Environment] = None
    edge_visibility: Optional[EdgeVisibility] = None
    mode: Optional[InteractionMode] = None


__all__ = [
    "Vector3",
    "now_ms",
    "Environment",
    "EdgeVisibility",
    "InteractionMode",
    "Camera",
    "ViewState",
    "SpaceViewState",
    "default_view_state",
    "Position",
    "Space",
    "Node",
    "Edge",
    "NodeUpdate",
    "ViewUpdate",
]
