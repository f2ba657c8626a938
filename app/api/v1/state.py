from fastapi import APIRouter, Body, Depends, HTTPException
from typing import Any, Dict, List
import logging

from app.api.deps import get_current_user, get_store
from app.billing.plans import get_job_priority
from app.schemas.asset import Asset
from app.schemas.job import GenerationJob, GenerationJobCreate
from app.schemas.project import Project
from app.schemas.state import AppState
from app.schemas.ui import UIState, ViewMode
from app.schemas.user import User
from app.stores.app_store import AppStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/state", tags=["State"])


def _require(items, item_id: str, kind: str) -> None:
    if not any(item.id == item_id for item in items):
        raise HTTPException(status_code=404, detail=f"{kind} with ID '{item_id}' not found")


@router.get("/", response_model=AppState)
async def get_state(store: AppStore = Depends(get_store)):
    """Current snapshot of the application state."""
    return store.state


@router.post("/reset", response_model=AppState)
async def reset_state(store: AppStore = Depends(get_store)):
    store.reset()
    return store.state


# UI

@router.get("/ui", response_model=UIState)
async def get_ui(store: AppStore = Depends(get_store)):
    return store.ui


@router.put("/ui/view-mode", response_model=UIState)
async def set_view_mode(mode: ViewMode = Body(..., embed=True), store: AppStore = Depends(get_store)):
    store.set_view_mode(mode)
    return store.ui


@router.patch("/ui/filters", response_model=UIState)
async def set_filters(filters: Dict[str, Any] = Body(...), store: AppStore = Depends(get_store)):
    """Merge the given criteria into the current filters."""
    store.set_filters(filters)
    return store.ui


@router.put("/ui/selection", response_model=UIState)
async def set_selection(asset_ids: List[str] = Body(..., embed=True, alias="assetIds"), store: AppStore = Depends(get_store)):
    """Replace the selection. Unknown asset ids are ignored."""
    store.set_selected_assets(asset_ids)
    return store.ui


@router.post("/ui/selection/{asset_id}", response_model=UIState)
async def select_asset(asset_id: str, store: AppStore = Depends(get_store)):
    _require(store.assets, asset_id, "Asset")
    store.add_selected_asset(asset_id)
    return store.ui


@router.delete("/ui/selection/{asset_id}", response_model=UIState)
async def deselect_asset(asset_id: str, store: AppStore = Depends(get_store)):
    store.remove_selected_asset(asset_id)
    return store.ui


@router.delete("/ui/selection", response_model=UIState)
async def clear_selection(store: AppStore = Depends(get_store)):
    store.clear_selected_assets()
    return store.ui


# Projects

@router.get("/projects", response_model=List[Project])
async def list_projects(store: AppStore = Depends(get_store)):
    return store.projects


@router.put("/projects", response_model=List[Project])
async def replace_projects(projects: List[Project], store: AppStore = Depends(get_store)):
    store.set_projects(projects)
    return store.projects


@router.post("/projects", response_model=Project)
async def add_project(project: Project, store: AppStore = Depends(get_store)):
    store.add_project(project)
    return project


@router.patch("/projects/{project_id}", response_model=Project)
async def update_project(project_id: str, updates: Dict[str, Any] = Body(...), store: AppStore = Depends(get_store)):
    _require(store.projects, project_id, "Project")
    store.update_project(project_id, updates)
    return next(p for p in store.projects if p.id == project_id)


@router.delete("/projects/{project_id}")
async def remove_project(project_id: str, store: AppStore = Depends(get_store)):
    _require(store.projects, project_id, "Project")
    store.remove_project(project_id)
    return {"status": "success"}


# Assets

@router.get("/assets", response_model=List[Asset])
async def list_assets(store: AppStore = Depends(get_store)):
    return store.assets


@router.put("/assets", response_model=List[Asset])
async def replace_assets(assets: List[Asset], store: AppStore = Depends(get_store)):
    store.set_assets(assets)
    return store.assets


@router.post("/assets", response_model=Asset)
async def add_asset(asset: Asset, store: AppStore = Depends(get_store)):
    store.add_asset(asset)
    return asset


@router.patch("/assets/{asset_id}", response_model=Asset)
async def update_asset(asset_id: str, updates: Dict[str, Any] = Body(...), store: AppStore = Depends(get_store)):
    _require(store.assets, asset_id, "Asset")
    store.update_asset(asset_id, updates)
    return next(a for a in store.assets if a.id == asset_id)


@router.delete("/assets/{asset_id}")
async def remove_asset(asset_id: str, store: AppStore = Depends(get_store)):
    """Remove an asset; it is also dropped from the selection."""
    _require(store.assets, asset_id, "Asset")
    store.remove_asset(asset_id)
    return {"status": "success"}


# Generation jobs

@router.get("/jobs", response_model=List[GenerationJob])
async def list_jobs(store: AppStore = Depends(get_store)):
    return store.generation_jobs


@router.put("/jobs", response_model=List[GenerationJob])
async def replace_jobs(jobs: List[GenerationJob], store: AppStore = Depends(get_store)):
    store.set_generation_jobs(jobs)
    return store.generation_jobs


@router.post("/jobs", response_model=GenerationJob)
async def add_job(
    request: GenerationJobCreate,
    store: AppStore = Depends(get_store),
    user: User = Depends(get_current_user)
):
    """Queue a job for the current user. Priority defaults to the user's plan priority."""
    priority = request.priority
    if priority is None:
        priority = get_job_priority(user.subscription.plan)
    job = GenerationJob(
        id=request.id,
        user_id=user.uid,
        type=request.type,
        priority=priority,
        payload=request.payload,
    )
    store.add_generation_job(job)
    logger.info(f"Queued {job.type} job {job.id} for {user.uid} at priority {priority}")
    return job


@router.patch("/jobs/{job_id}", response_model=GenerationJob)
async def update_job(job_id: str, updates: Dict[str, Any] = Body(...), store: AppStore = Depends(get_store)):
    _require(store.generation_jobs, job_id, "Job")
    store.update_generation_job(job_id, updates)
    return next(j for j in store.generation_jobs if j.id == job_id)


@router.delete("/jobs/{job_id}")
async def remove_job(job_id: str, store: AppStore = Depends(get_store)):
    _require(store.generation_jobs, job_id, "Job")
    store.remove_generation_job(job_id)
    return {"status": "success"}
