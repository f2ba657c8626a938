from fastapi import Request

from app.core.exceptions import NotAuthenticatedError
from app.schemas.user import User
from app.services.session_sync import SessionSynchronizer
from app.services.user_service import UserService
from app.stores.app_store import AppStore


def get_store(request: Request) -> AppStore:
    return request.app.state.store


def get_synchronizer(request: Request) -> SessionSynchronizer:
    return request.app.state.synchronizer


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


def get_current_user(request: Request) -> User:
    """The signed-in user held by the store."""
    user = request.app.state.store.user
    if user is None:
        raise NotAuthenticatedError()
    return user
