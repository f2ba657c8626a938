from pydantic import Field
from typing import List, Optional

from app.schemas.asset import Asset
from app.schemas.base import CamelModel
from app.schemas.job import GenerationJob
from app.schemas.project import Project
from app.schemas.ui import UIState
from app.schemas.user import User


class AppState(CamelModel):
    """Snapshot held by the application store. Replaced, never mutated."""
    user: Optional[User] = None
    is_authenticated: bool = False
    is_loading: bool = True
    ui: UIState = Field(default_factory=UIState)
    projects: List[Project] = Field(default_factory=list)
    assets: List[Asset] = Field(default_factory=list)
    generation_jobs: List[GenerationJob] = Field(default_factory=list)
