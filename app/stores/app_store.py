from typing import Any, Callable, Dict, List, Optional, TypeVar
import logging

from pydantic import BaseModel

from app.schemas.asset import Asset
from app.schemas.job import GenerationJob
from app.schemas.project import Project
from app.schemas.state import AppState
from app.schemas.ui import UIState, ViewMode
from app.schemas.user import User

logger = logging.getLogger(__name__)

Listener = Callable[[AppState, AppState], None]
Item = TypeVar("Item", bound=BaseModel)


def _merge(item: Item, updates: Dict[str, Any]) -> Item:
    """Shallow merge of top-level fields, re-validated."""
    aliases = {field.alias: name for name, field in type(item).model_fields.items() if field.alias}
    data = item.model_dump()
    data.update({aliases.get(key, key): value for key, value in updates.items()})
    return type(item).model_validate(data)


def _update_by_id(items: List[Item], item_id: str, updates: Dict[str, Any]) -> Optional[List[Item]]:
    """
    Return a new list with the matching item patched, or None if the id is unknown.

    The id itself is immutable; an `id` key in the patch is ignored.
    """
    if not any(item.id == item_id for item in items):
        return None
    updates = {key: value for key, value in updates.items() if key != "id"}
    return [_merge(item, updates) if item.id == item_id else item for item in items]


def _without_id(items: List[Item], item_id: str) -> Optional[List[Item]]:
    remaining = [item for item in items if item.id != item_id]
    if len(remaining) == len(items):
        return None
    return remaining


def _unique(ids: List[str]) -> List[str]:
    return list(dict.fromkeys(ids))


class AppStore:
    """
    In-memory application state container.

    Every action builds the next AppState from the previous one, swaps it in
    with a single assignment and then notifies subscribers synchronously with
    (next_state, previous_state). Actions never await, so an action is never
    interleaved with another on the event loop.

    The selection is kept a duplicate-free subset of the known asset ids.
    """

    def __init__(self, initial: Optional[AppState] = None):
        self._state = initial or AppState()
        self._listeners: List[Listener] = []

    # Subscription

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, action: str, **changes) -> None:
        previous = self._state
        self._state = previous.model_copy(update=changes)
        logger.debug(f"Store action: {action}")
        for listener in list(self._listeners):
            try:
                listener(self._state, previous)
            except Exception as e:
                logger.error(f"Store listener failed after '{action}': {e}")

    def _set_ui(self, action: str, **changes) -> None:
        self._set(action, ui=self._state.ui.model_copy(update=changes))

    # Reads

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def user(self) -> Optional[User]:
        return self._state.user

    @property
    def is_authenticated(self) -> bool:
        return self._state.is_authenticated

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    @property
    def ui(self) -> UIState:
        return self._state.ui

    @property
    def projects(self) -> List[Project]:
        return self._state.projects

    @property
    def assets(self) -> List[Asset]:
        return self._state.assets

    @property
    def generation_jobs(self) -> List[GenerationJob]:
        return self._state.generation_jobs

    @property
    def selected_assets(self) -> List[str]:
        return self._state.ui.selected_assets

    # User actions

    def set_user(self, user: Optional[User]) -> None:
        self._set("set_user", user=user, is_authenticated=user is not None, is_loading=False)

    def set_loading(self, loading: bool) -> None:
        self._set("set_loading", is_loading=loading)

    # UI actions

    def set_ui_error(self, error: Optional[str]) -> None:
        self._set_ui("set_ui_error", error=error)

    def set_ui_loading(self, loading: bool) -> None:
        self._set_ui("set_ui_loading", is_loading=loading)

    def set_view_mode(self, mode: ViewMode) -> None:
        self._set_ui("set_view_mode", view_mode=mode)

    def _known_asset_ids(self) -> set:
        return {asset.id for asset in self._state.assets}

    def set_selected_assets(self, asset_ids: List[str]) -> None:
        known = self._known_asset_ids()
        self._set_ui("set_selected_assets", selected_assets=_unique([a for a in asset_ids if a in known]))

    def add_selected_asset(self, asset_id: str) -> None:
        selected = self._state.ui.selected_assets
        if asset_id in selected or asset_id not in self._known_asset_ids():
            return
        self._set_ui("add_selected_asset", selected_assets=selected + [asset_id])

    def remove_selected_asset(self, asset_id: str) -> None:
        selected = self._state.ui.selected_assets
        if asset_id not in selected:
            return
        self._set_ui("remove_selected_asset", selected_assets=[a for a in selected if a != asset_id])

    def clear_selected_assets(self) -> None:
        self._set_ui("clear_selected_assets", selected_assets=[])

    def set_filters(self, filters: Dict[str, Any]) -> None:
        """Shallow merge into the current filters."""
        self._set_ui("set_filters", filters=_merge(self._state.ui.filters, filters))

    # Project actions

    def set_projects(self, projects: List[Project]) -> None:
        self._set("set_projects", projects=list(projects))

    def add_project(self, project: Project) -> None:
        self._set("add_project", projects=self._state.projects + [project])

    def update_project(self, project_id: str, updates: Dict[str, Any]) -> None:
        projects = _update_by_id(self._state.projects, project_id, updates)
        if projects is not None:
            self._set("update_project", projects=projects)

    def remove_project(self, project_id: str) -> None:
        projects = _without_id(self._state.projects, project_id)
        if projects is not None:
            self._set("remove_project", projects=projects)

    # Asset actions

    def set_assets(self, assets: List[Asset]) -> None:
        known = {asset.id for asset in assets}
        selected = [a for a in self._state.ui.selected_assets if a in known]
        self._set(
            "set_assets",
            assets=list(assets),
            ui=self._state.ui.model_copy(update={"selected_assets": selected}),
        )

    def add_asset(self, asset: Asset) -> None:
        self._set("add_asset", assets=self._state.assets + [asset])

    def update_asset(self, asset_id: str, updates: Dict[str, Any]) -> None:
        assets = _update_by_id(self._state.assets, asset_id, updates)
        if assets is not None:
            self._set("update_asset", assets=assets)

    def remove_asset(self, asset_id: str) -> None:
        assets = _without_id(self._state.assets, asset_id)
        if assets is None:
            return
        selected = [a for a in self._state.ui.selected_assets if a != asset_id]
        self._set(
            "remove_asset",
            assets=assets,
            ui=self._state.ui.model_copy(update={"selected_assets": selected}),
        )

    # Generation job actions

    def set_generation_jobs(self, jobs: List[GenerationJob]) -> None:
        self._set("set_generation_jobs", generation_jobs=list(jobs))

    def add_generation_job(self, job: GenerationJob) -> None:
        self._set("add_generation_job", generation_jobs=self._state.generation_jobs + [job])

    def update_generation_job(self, job_id: str, updates: Dict[str, Any]) -> None:
        jobs = _update_by_id(self._state.generation_jobs, job_id, updates)
        if jobs is not None:
            self._set("update_generation_job", generation_jobs=jobs)

    def remove_generation_job(self, job_id: str) -> None:
        jobs = _without_id(self._state.generation_jobs, job_id)
        if jobs is not None:
            self._set("remove_generation_job", generation_jobs=jobs)

    # Utility actions

    def reset(self) -> None:
        """Restore the initial state, with loading cleared."""
        self._set(
            "reset",
            user=None,
            is_authenticated=False,
            is_loading=False,
            ui=UIState(),
            projects=[],
            assets=[],
            generation_jobs=[],
        )
