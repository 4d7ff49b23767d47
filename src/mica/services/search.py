"""Lazy substring search over a space's nodes (no persistent index)."""

from __future__ import annotations

from typing import Iterable, List, Optional

from ..models.blocks import block_text
from ..models.graph import Node
from ..models.search import SearchResult

DEFAULT_LIMIT = 8
SNIPPET_LENGTH = 120


def _first_matching_text(node: Node, needle: str) -> Optional[str]:
    for block in node.blocks:
        text = block_text(block)
        if text is not None and needle in text.lower():
            return text
    return None


def search_nodes(
    nodes: Iterable[Node],
    query: str,
    limit: int = DEFAULT_LIMIT,
    snippet_length: int = SNIPPET_LENGTH,
) -> List[SearchResult]:
    """
    Case-insensitive substring match over titles and markdown text.

    Results keep the nodes' natural order (not relevance-ranked). The snippet
    is the first matching markdown block truncated, else the title.
    """
    if not query or not query.strip():
        return []
    needle = query.lower()

    results: List[SearchResult] = []
    for node in nodes:
        matching_text = _first_matching_text(node, needle)
        if matching_text is None and needle not in node.title.lower():
            continue
        snippet = matching_text[:snippet_length] if matching_text is not None else node.title
        results.append(SearchResult(id=node.id, title=node.title, snippet=snippet))
        if len(results) >= limit:
            break
    return results


__all__ = ["search_nodes", "DEFAULT_LIMIT", "SNIPPET_LENGTH"]
