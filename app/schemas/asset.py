from pydantic import Field
from typing import Literal, Optional
from datetime import datetime

from app.schemas.base import CamelModel, utcnow
from app.schemas.project import AssetType

AssetStatus = Literal["pending", "processing", "completed", "failed"]


class AssetSettings(CamelModel):
    """Generation settings the asset was produced with."""
    model: str
    style: Optional[str] = None
    aspect_ratio: str = "1:1"
    resolution: str = "1024x1024"
    duration: Optional[float] = None  # for videos
    fps: Optional[int] = None  # for videos


class AssetUrls(CamelModel):
    original: str = ""
    thumbnail: str = ""
    watermarked: Optional[str] = None


class Dimensions(CamelModel):
    width: int = 0
    height: int = 0


class AssetMetadata(CamelModel):
    file_size: int = 0
    duration: Optional[float] = None  # for videos
    dimensions: Dimensions = Field(default_factory=Dimensions)
    format: str = ""


class Asset(CamelModel):
    """A generated image or video."""
    id: str
    project_id: str
    user_id: str
    type: AssetType
    prompt: str
    settings: AssetSettings
    status: AssetStatus = "pending"
    urls: AssetUrls = Field(default_factory=AssetUrls)
    metadata: AssetMetadata = Field(default_factory=AssetMetadata)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
