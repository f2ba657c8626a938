from pydantic import Field
from typing import Any, Dict, Literal, Optional
from datetime import datetime

from app.schemas.base import CamelModel, utcnow

JobType = Literal["image", "video"]
JobStatus = Literal["queued", "processing", "completed", "failed"]


class GenerationJob(CamelModel):
    """Deferred generation work; priority comes from the owner's plan."""
    id: str
    user_id: str
    type: JobType
    priority: int = 0
    payload: Dict[str, Any] = Field(default_factory=dict)
    retry_count: int = 0
    status: JobStatus = "queued"
    result: Optional[str] = None  # URL to generated content
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class GenerationJobCreate(CamelModel):
    id: str
    type: JobType
    priority: Optional[int] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
