from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class FavoriteRecord(BaseModel):
    """A row of the local favorites store."""

    model_config = ConfigDict(frozen=True)

    pokemon_id: int
    name: str
    image_url: str | None = None
    created_at: datetime
