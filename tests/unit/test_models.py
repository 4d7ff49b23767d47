import pytest
from pydantic import TypeAdapter, ValidationError

from mica.identifiers import ALPHABET, new_id
from mica.models import (
    ContentBlock,
    Edge,
    EmbedBlock,
    EmbedProvider,
    ImageBlock,
    LinkBlock,
    MarkdownBlock,
    Node,
    block_text,
    detect_embed_provider,
)


@pytest.mark.parametrize(
    "url, provider",
    [
        ("https://www.youtube.com/watch?v=abc", EmbedProvider.YOUTUBE),
        ("https://youtu.be/abc", EmbedProvider.YOUTUBE),
        ("https://player.vimeo.com/video/1", EmbedProvider.VIMEO),
        ("https://www.figma.com/file/xyz", EmbedProvider.FIGMA),
        ("https://example.com/video", EmbedProvider.UNKNOWN),
        ("https://notyoutube.com/watch", EmbedProvider.UNKNOWN),
        ("not a url", EmbedProvider.UNKNOWN),
    ],
)
def test_detect_embed_provider_uses_host(url: str, provider: EmbedProvider) -> None:
    assert detect_embed_provider(url) == provider


def test_embed_block_derives_missing_provider() -> None:
    block = EmbedBlock(url="https://vimeo.com/123")

    assert block.provider == EmbedProvider.VIMEO


def test_content_blocks_validate_by_type_tag() -> None:
    adapter = TypeAdapter(list[ContentBlock])

    blocks = adapter.validate_python(
        [
            {"id": "a", "type": "markdown", "text": "hello"},
            {"id": "b", "type": "image", "url": "https://x/y.png"},
            {"id": "c", "type": "link", "url": "https://x", "label": "X"},
            {"id": "d", "type": "embed", "url": "https://youtu.be/q"},
        ]
    )

    assert [type(block) for block in blocks] == [MarkdownBlock, ImageBlock, LinkBlock, EmbedBlock]
    assert [block_text(block) for block in blocks] == ["hello", None, None, None]


def test_unknown_block_type_is_rejected() -> None:
    with pytest.raises(ValidationError):
        TypeAdapter(ContentBlock).validate_python({"type": "video", "url": "https://x"})


def test_node_tags_behave_as_a_set() -> None:
    node = Node(id="n", space_id="s", title="T", tags=["a", " b ", "a", "", "b"])

    assert node.tags == ["a", "b"]


@pytest.mark.parametrize("importance", [0, 6])
def test_node_importance_is_bounded(importance: int) -> None:
    with pytest.raises(ValidationError):
        Node(id="n", space_id="s", title="T", importance=importance)


def test_edge_serializes_endpoints_as_from_and_to() -> None:
    edge = Edge.model_validate({"id": "e", "spaceId": "s", "from": "a", "to": "b"})

    data = edge.model_dump(by_alias=True)

    assert edge.from_id == "a" and edge.to_id == "b"
    assert data["from"] == "a"
    assert data["to"] == "b"
    assert data["spaceId"] == "s"


def test_new_id_is_url_safe_and_unique() -> None:
    ids = {new_id() for _ in range(500)}

    assert len(ids) == 500
    assert all(len(value) == 21 and set(value) <= set(ALPHABET) for value in ids)


def test_new_id_rejects_non_positive_size() -> None:
    with pytest.raises(ValueError):
        new_id(0)
