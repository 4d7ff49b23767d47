"""Content block models (tagged union over markdown, image, link and embed)."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union, assert_never
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..identifiers import new_id

EMBED_HOSTS: dict[str, str] = {
    "youtube.com": "youtube",
    "youtu.be": "youtube",
    "vimeo.com": "vimeo",
    "figma.com": "figma",
}


class EmbedProvider(str, Enum):
    """Closed set of embed providers."""

    YOUTUBE = "youtube"
    VIMEO = "vimeo"
    FIGMA = "figma"
    UNKNOWN = "unknown"


def detect_embed_provider(url: str | None) -> EmbedProvider:
    """Derive the embed provider from the URL host."""
    try:
        host = (urlparse(url or "").hostname or "").lower()
    except ValueError:
        return EmbedProvider.UNKNOWN
    if host.startswith("www."):
        host = host[4:]
    for domain, provider in EMBED_HOSTS.items():
        if host == domain or host.endswith(f".{domain}"):
            return EmbedProvider(provider)
    return EmbedProvider.UNKNOWN


class _BlockBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id, description="Block identifier, unique within its node")


class MarkdownBlock(_BlockBase):
    type: Literal["markdown"] = "markdown"
    text: str = ""


class ImageBlock(_BlockBase):
    type: Literal["image"] = "image"
    url: str
    alt: Optional[str] = None


class LinkBlock(_BlockBase):
    type: Literal["link"] = "link"
    url: str
    label: Optional[str] = None


class EmbedBlock(_BlockBase):
    type: Literal["embed"] = "embed"
    url: str
    provider: EmbedProvider = EmbedProvider.UNKNOWN

    @model_validator(mode="before")
    @classmethod
    def _fill_provider(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("provider"):
            data = {**data, "provider": detect_embed_provider(data.get("url"))}
        return data


ContentBlock = Annotated[
    Union[MarkdownBlock, ImageBlock, LinkBlock, EmbedBlock],
    Field(discriminator="type"),
]


def block_text(block: ContentBlock) -> Optional[str]:
    """Return the searchable text of a block (only markdown carries any)."""
    match block:
        case MarkdownBlock():
            return block.text
        case ImageBlock() | LinkBlock() | EmbedBlock():
            return None
        case _:
            assert_never(block)


__all__ = [
    "ContentBlock",
    "MarkdownBlock",
    "ImageBlock",
    "LinkBlock",
    "EmbedBlock",
    "EmbedProvider",
    "detect_embed_provider",
    "block_text",
]
