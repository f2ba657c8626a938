from pydantic import Field
from typing import List, Literal, Optional
from datetime import datetime

from app.schemas.base import CamelModel, utcnow

AssetType = Literal["image", "video"]


class Project(CamelModel):
    """A named group of assets owned by one user."""
    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    type: AssetType = "image"
    assets: List[str] = Field(default_factory=list)  # Asset IDs
    collaborators: List[str] = Field(default_factory=list)  # User IDs
    is_public: bool = False
    tags: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
