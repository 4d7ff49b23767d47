"""Application settings record (singleton row keyed "app")."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

APP_SETTINGS_KEY = "app"


class AppSettings(BaseModel):
    """Schema version tag and the last opened space, used to restore a session."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    key: Literal["app"] = APP_SETTINGS_KEY
    schema_version: int
    last_opened_space_id: Optional[str] = None
