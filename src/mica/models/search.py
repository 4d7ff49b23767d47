"""Search result model."""

from pydantic import BaseModel, Field


class SearchResult(BaseModel):
    """Search result with snippet."""

    id: str = Field(..., description="Matching node id")
    title: str = Field(..., description="Node title")
    snippet: str = Field(..., description="First matching markdown text, or the title")
