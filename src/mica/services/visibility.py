"""Which nodes and edges are shown for a view's edge-visibility mode."""

from __future__ import annotations

from typing import Optional, Sequence

from ..models.graph import Edge, EdgeVisibility, Node


def visible_node_ids(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    mode: EdgeVisibility,
    focus_id: Optional[str] = None,
) -> set[str]:
    """Return the visible node ids.

    ``all`` shows every node. Otherwise the focus (given, else the first node)
    and its direct neighbours are visible; ``two-hop`` expands one step more.
    """
    if mode == EdgeVisibility.ALL:
        return {node.id for node in nodes}

    focus = focus_id or (nodes[0].id if nodes else None)
    if focus is None:
        return set()

    visible = {focus}
    for edge in edges:
        if focus in (edge.from_id, edge.to_id):
            visible.update((edge.from_id, edge.to_id))

    if mode == EdgeVisibility.TWO_HOP:
        # Expands from a fixed copy of the first ring, so the reach is exactly
        # two hops whatever the edge order.
        ring = set(visible)
        for edge in edges:
            if edge.from_id in ring or edge.to_id in ring:
                visible.update((edge.from_id, edge.to_id))
    return visible


def visible_edges(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    mode: EdgeVisibility,
    focus_id: Optional[str] = None,
) -> list[Edge]:
    """Edges with at least one visible endpoint."""
    visible = visible_node_ids(nodes, edges, mode, focus_id)
    return [edge for edge in edges if edge.from_id in visible or edge.to_id in visible]


__all__ = ["visible_node_ids", "visible_edges"]
