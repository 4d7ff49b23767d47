from mica.models import Edge, EdgeVisibility, Node
from mica.services.visibility import visible_edges, visible_node_ids


def _chain():
    """a -> b -> c -> d, plus an isolated e."""
    nodes = [Node(id=node_id, space_id="s", title=node_id.upper()) for node_id in "abcde"]
    edges = [
        Edge(id="ab", space_id="s", from_id="a", to_id="b"),
        Edge(id="bc", space_id="s", from_id="b", to_id="c"),
        Edge(id="cd", space_id="s", from_id="c", to_id="d"),
    ]
    return nodes, edges


def test_all_mode_shows_every_node() -> None:
    nodes, edges = _chain()

    assert visible_node_ids(nodes, edges, EdgeVisibility.ALL, "a") == set("abcde")


def test_neighborhood_is_focus_and_direct_neighbours() -> None:
    nodes, edges = _chain()

    assert visible_node_ids(nodes, edges, EdgeVisibility.NEIGHBORHOOD, "b") == {"a", "b", "c"}
    assert [edge.id for edge in visible_edges(nodes, edges, EdgeVisibility.NEIGHBORHOOD, "b")] == [
        "ab",
        "bc",
        "cd",
    ]


def test_two_hop_expands_one_more_ring() -> None:
    nodes, edges = _chain()

    assert visible_node_ids(nodes, edges, EdgeVisibility.TWO_HOP, "a") == {"a", "b", "c"}


def test_focus_defaults_to_first_node() -> None:
    nodes, edges = _chain()

    assert visible_node_ids(nodes, edges, EdgeVisibility.NEIGHBORHOOD) == {"a", "b"}


def test_empty_graph_shows_nothing() -> None:
    assert visible_node_ids([], [], EdgeVisibility.NEIGHBORHOOD) == set()
    assert visible_edges([], [], EdgeVisibility.TWO_HOP) == []


def test_isolated_focus_shows_only_itself() -> None:
    nodes, edges = _chain()

    assert visible_node_ids(nodes, edges, EdgeVisibility.TWO_HOP, "e") == {"e"}
    assert visible_edges(nodes, edges, EdgeVisibility.TWO_HOP, "e") == []
