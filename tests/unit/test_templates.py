import pytest

from mica.models import EmbedBlock, MarkdownBlock
from mica.services.templates import (
    TemplateNotFoundError,
    build_all_templates,
    find_template,
    instantiate_or_fallback,
    instantiate_template,
)


def test_all_templates_build_consistent_bundles() -> None:
    bundles = build_all_templates()

    assert [bundle.space.name for bundle in bundles] == [
        "Blank Space",
        "Research Brain",
        "Life OS",
        "Startup Map",
    ]
    for bundle in bundles:
        node_ids = {node.id for node in bundle.nodes}
        core = bundle.nodes[0]
        assert core.title.endswith("Core")
        assert len(bundle.nodes) >= 4
        assert len(bundle.edges) >= 3
        assert all(node.space_id == bundle.space.id for node in bundle.nodes)
        assert all(edge.space_id == bundle.space.id for edge in bundle.edges)
        assert all(edge.from_id == core.id and edge.to_id in node_ids for edge in bundle.edges)
        assert {edge.to_id for edge in bundle.edges} == node_ids - {core.id}


def test_research_template_has_extra_nodes() -> None:
    bundle = instantiate_template("research")

    titles = [node.title for node in bundle.nodes]

    assert titles == ["Research Brain Core", "Ideas", "Resources", "Next Actions", "Hypotheses", "Sources"]


def test_blank_core_carries_a_youtube_embed() -> None:
    core = instantiate_template("blank").nodes[0]

    assert isinstance(core.blocks[0], MarkdownBlock)
    assert isinstance(core.blocks[1], EmbedBlock)
    assert core.blocks[1].provider.value == "youtube"


def test_templates_can_be_found_by_display_name() -> None:
    assert find_template("Startup Map").key == "startup"
    assert find_template("  LIFE  ").key == "life"


def test_each_instantiation_uses_fresh_ids() -> None:
    first = instantiate_template("life")
    second = instantiate_template("life")

    assert first.space.id != second.space.id
    assert not {node.id for node in first.nodes} & {node.id for node in second.nodes}


def test_unknown_template_raises() -> None:
    with pytest.raises(TemplateNotFoundError):
        instantiate_template("does-not-exist")


def test_unknown_template_falls_back_to_blank() -> None:
    bundle = instantiate_or_fallback("does-not-exist")

    assert bundle.space.name == "Blank Space"
