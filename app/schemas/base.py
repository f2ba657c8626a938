from datetime import datetime, timezone

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model persisted with camelCase field names."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
