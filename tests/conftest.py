import pytest

from app.providers.documents import InMemoryDocumentStore
from app.providers.identity import InMemoryIdentityProvider
from app.schemas.asset import Asset, AssetSettings
from app.schemas.job import GenerationJob
from app.schemas.project import Project
from app.services.session_sync import SessionSynchronizer
from app.services.user_service import UserService
from app.stores.app_store import AppStore


def make_asset(asset_id: str, **overrides) -> Asset:
    data = {
        "id": asset_id,
        "project_id": "p1",
        "user_id": "u1",
        "type": "image",
        "prompt": "a lighthouse at dusk",
        "settings": AssetSettings(model="sdxl"),
    }
    data.update(overrides)
    return Asset(**data)


def make_project(project_id: str, **overrides) -> Project:
    data = {"id": project_id, "user_id": "u1", "name": f"Project {project_id}"}
    data.update(overrides)
    return Project(**data)


def make_job(job_id: str, **overrides) -> GenerationJob:
    data = {"id": job_id, "user_id": "u1", "type": "image"}
    data.update(overrides)
    return GenerationJob(**data)


@pytest.fixture
def store():
    return AppStore()


@pytest.fixture
def documents():
    return InMemoryDocumentStore()


@pytest.fixture
def provider():
    return InMemoryIdentityProvider()


@pytest.fixture
def user_service(documents):
    return UserService(documents)


@pytest.fixture
def synchronizer(store, provider, user_service):
    return SessionSynchronizer(store, provider, user_service)
