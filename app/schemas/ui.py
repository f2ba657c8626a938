from pydantic import Field
from typing import List, Literal, Optional
from datetime import datetime

from app.schemas.asset import AssetStatus
from app.schemas.base import CamelModel
from app.schemas.project import AssetType

ViewMode = Literal["grid", "list"]


class DateRange(CamelModel):
    start: datetime
    end: datetime


class AssetFilters(CamelModel):
    type: Optional[AssetType] = None
    status: Optional[AssetStatus] = None
    date_range: Optional[DateRange] = None
    tags: Optional[List[str]] = None


class UIState(CamelModel):
    """Ephemeral dashboard state; never persisted."""
    is_loading: bool = False
    error: Optional[str] = None
    selected_assets: List[str] = Field(default_factory=list)
    view_mode: ViewMode = "grid"
    filters: AssetFilters = Field(default_factory=AssetFilters)
