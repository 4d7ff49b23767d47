from mica.services.graph_store import GraphStore


def space_named(store: GraphStore, name: str):
    return next(space for space in store.spaces if space.name == name)


def node_titled(store: GraphStore, title: str):
    return next(node for node in store.nodes if node.title == title)
