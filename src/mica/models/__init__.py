"""Pydantic models for data validation and serialization."""

from .blocks import (
    ContentBlock,
    EmbedBlock,
    EmbedProvider,
    ImageBlock,
    LinkBlock,
    MarkdownBlock,
    block_text,
    detect_embed_provider,
)
from .graph import (
    Camera,
    Edge,
    EdgeVisibility,
    Environment,
    InteractionMode,
    Node,
    NodeUpdate,
    Position,
    Space,
    SpaceViewState,
    ViewState,
    ViewUpdate,
    default_view_state,
    now_ms,
)
from .search import SearchResult
from .settings import APP_SETTINGS_KEY, AppSettings
from .transfer import ExportEnvelope, GraphSnapshot, ImportResult

__all__ = [
    "ContentBlock",
    "MarkdownBlock",
    "ImageBlock",
    "LinkBlock",
    "EmbedBlock",
    "EmbedProvider",
    "block_text",
    "detect_embed_provider",
    "Camera",
    "Edge",
    "EdgeVisibility",
    "Environment",
    "InteractionMode",
    "Node",
    "NodeUpdate",
    "Position",
    "Space",
    "SpaceViewState",
    "ViewState",
    "ViewUpdate",
    "default_view_state",
    "now_ms",
    "SearchResult",
    "APP_SETTINGS_KEY",
    "AppSettings",
    "ExportEnvelope",
    "GraphSnapshot",
    "ImportResult",
]
