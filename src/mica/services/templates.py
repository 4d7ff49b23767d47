"""Built-in space templates.

A template instantiates into a self-consistent bundle: one space, its seed
nodes (a "Core" node plus satellites), "related" edges from the core to each
satellite, and the space's default view. Instantiation is pure apart from
fresh identifiers and timestamps.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Dict, Optional, Sequence

from ..identifiers import new_id
from ..models.blocks import ContentBlock, EmbedBlock, EmbedProvider, LinkBlock, MarkdownBlock
from ..models.graph import Edge, Node, Position, Space, ViewState, default_view_state, now_ms

logger = logging.getLogger(__name__)

FALLBACK_TEMPLATE_KEY = "blank"


class TemplateNotFoundError(Exception):
    """Raised when a template key or name matches no known template."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


@dataclass(frozen=True)
class SeedNode:
    title: str
    position: tuple[float, float, float]
    text: Optional[str] = None
    link: Optional[tuple[str, str]] = None
    tags: tuple[str, ...] = ()
    importance: int = 3

    def blocks(self) -> list[ContentBlock]:
        blocks: list[ContentBlock] = []
        if self.text is not None:
            blocks.append(MarkdownBlock(id=new_id(), text=self.text))
        if self.link is not None:
            url, label = self.link
            blocks.append(LinkBlock(id=new_id(), url=url, label=label))
        return blocks


@dataclass(frozen=True)
class Template:
    key: str
    name: str
    icon: str
    extra_nodes: tuple[SeedNode, ...] = ()
    core_embed: Optional[str] = None


@dataclass
class TemplateBundle:
    """Everything one template contributes to the store."""

    space: Space
    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)

    @property
    def view(self) -> ViewState:
        return self.space.view


CORE_TEXT = "Capture thoughts, links, and connections here."

SATELLITES: tuple[SeedNode, ...] = (
    SeedNode("Ideas", (2, 1, -2), text="Quick capture zone.", tags=("ideas",), importance=4),
    SeedNode(
        "Resources",
        (-2, 1.2, 2),
        link=("https://threejs.org", "Three.js"),
        tags=("resources",),
    ),
    SeedNode(
        "Next Actions",
        (0.5, -1, 2.5),
        text="Lightweight tasks to keep momentum.",
        tags=("actions",),
        importance=5,
    ),
)

TEMPLATES: tuple[Template, ...] = (
    Template(
        "blank",
        "Blank Space",
        "🌀",
        core_embed="https://www.youtube.com/watch?v=dQw4w9WgXcQ",
    ),
    Template(
        "research",
        "Research Brain",
        "🔬",
        extra_nodes=(
            SeedNode("Hypotheses", (-1.5, 1.4, -2), text="Track questions and early answers.", tags=("research",)),
            SeedNode("Sources", (1.8, -1.3, -1.6), text="Papers, datasets, interviews.", tags=("sources",)),
        ),
    ),
    Template(
        "life",
        "Life OS",
        "🌿",
        extra_nodes=(
            SeedNode(
                "Wellness",
                (1.2, 1.6, -2.8),
                text="Habits, reflection, gratitude.",
                tags=("life", "health"),
                importance=4,
            ),
            SeedNode("Journal", (-2.5, -0.8, -0.4), text="Daily snapshots of mood + learnings.", tags=("journal",)),
        ),
    ),
    Template(
        "startup",
        "Startup Map",
        "🚀",
        extra_nodes=(
            SeedNode("Customers", (2.6, -0.2, -1.2), text="Personas, interviews, pains.", tags=("customers",)),
            SeedNode("Product", (-2.4, 0.4, 1.8), text="Opportunities, experiments, roadmap.", tags=("product",)),
            SeedNode("Metrics", (0.4, -1.6, -2.2), text="North star, weekly pulse.", tags=("metrics",)),
        ),
    ),
)


def list_templates() -> Sequence[Template]:
    return TEMPLATES


def find_template(key_or_name: str) -> Template:
    """Look a template up by key ("research") or display name ("Research Brain")."""
    wanted = (key_or_name or "").strip().lower()
    for template in TEMPLATES:
        if wanted in (template.key, template.name.lower()):
            return template
    raise TemplateNotFoundError(
        f"No template named '{key_or_name}'",
        {"template": key_or_name, "available": [t.key for t in TEMPLATES]},
    )


def _make_node(space_id: str, seed: SeedNode, timestamp: int) -> Node:
    x, y, z = seed.position
    return Node(
        id=new_id(),
        space_id=space_id,
        title=seed.title,
        tags=list(seed.tags),
        importance=seed.importance,
        created_at=timestamp,
        updated_at=timestamp,
        position=Position(x=x, y=y, z=z),
        blocks=seed.blocks(),
    )


def instantiate_template(key_or_name: str) -> TemplateBundle:
    """Build a fresh space bundle from a template.

    Raises TemplateNotFoundError for unknown templates.
    """
    template = find_template(key_or_name)
    timestamp = now_ms()
    space = Space(
        id=new_id(),
        name=template.name,
        icon=template.icon,
        created_at=timestamp,
        updated_at=timestamp,
        view=default_view_state(),
    )

    core = _make_node(space.id, SeedNode(f"{template.name} Core", (0, 0, 0), text=CORE_TEXT), timestamp)
    if template.core_embed:
        core.blocks.append(EmbedBlock(id=new_id(), url=template.core_embed, provider=EmbedProvider.YOUTUBE))

    satellites = [_make_node(space.id, seed, timestamp) for seed in SATELLITES + template.extra_nodes]
    edges = [
        Edge(id=new_id(), space_id=space.id, from_id=core.id, to_id=node.id, relation="related")
        for node in satellites
    ]
    return TemplateBundle(space=space, nodes=[core, *satellites], edges=edges)


def instantiate_or_fallback(key_or_name: str) -> TemplateBundle:
    """Instantiate a template, falling back to the always-present blank one."""
    try:
        return instantiate_template(key_or_name)
    except TemplateNotFoundError:
        logger.warning("Unknown template '%s'; using '%s'", key_or_name, FALLBACK_TEMPLATE_KEY)
        return instantiate_template(FALLBACK_TEMPLATE_KEY)


def build_all_templates() -> list[TemplateBundle]:
    """One bundle per built-in template, in registry order (first-run seed)."""
    return [instantiate_template(template.key) for template in TEMPLATES]


__all__ = [
    "Template",
    "TemplateBundle",
    "TemplateNotFoundError",
    "TEMPLATES",
    "FALLBACK_TEMPLATE_KEY",
    "list_templates",
    "find_template",
    "instantiate_template",
    "instantiate_or_fallback",
    "build_all_templates",
]
