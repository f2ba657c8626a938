from fastapi import APIRouter, Depends
import logging

from app.api.deps import get_current_user, get_synchronizer
from app.schemas.auth import AuthResult
from app.schemas.user import (
    GoogleSignInRequest,
    PasswordResetRequest,
    ProfileUpdate,
    SignInForm,
    SignUpForm,
    User,
)
from app.services.session_sync import SessionSynchronizer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/sign-up", response_model=AuthResult)
async def sign_up(form: SignUpForm, synchronizer: SessionSynchronizer = Depends(get_synchronizer)):
    """Create an account; requires agreeing to the terms."""
    return await synchronizer.sign_up(form.email, form.password, form.display_name, form.agree_to_terms)


@router.post("/sign-in", response_model=AuthResult)
async def sign_in(form: SignInForm, synchronizer: SessionSynchronizer = Depends(get_synchronizer)):
    return await synchronizer.sign_in(form.email, form.password)


@router.post("/sign-in/google", response_model=AuthResult)
async def sign_in_with_google(
    request: GoogleSignInRequest,
    synchronizer: SessionSynchronizer = Depends(get_synchronizer)
):
    """
    Complete Google sign-in with the credential returned by the consent window.

    An empty body means the user closed the window.
    """
    return await synchronizer.sign_in_with_google(request.id_token)


@router.post("/sign-out", response_model=AuthResult)
async def sign_out(synchronizer: SessionSynchronizer = Depends(get_synchronizer)):
    return await synchronizer.sign_out()


@router.post("/reset-password", response_model=AuthResult)
async def reset_password(request: PasswordResetRequest, synchronizer: SessionSynchronizer = Depends(get_synchronizer)):
    return await synchronizer.reset_password(request.email)


@router.get("/me", response_model=User, response_model_by_alias=True)
async def get_me(user: User = Depends(get_current_user)):
    """Get current user information."""
    return user


@router.patch("/profile", response_model=AuthResult)
async def update_profile(request: ProfileUpdate, synchronizer: SessionSynchronizer = Depends(get_synchronizer)):
    """Merge the provided top-level fields into the profile."""
    return await synchronizer.update_profile(request.to_updates())


@router.post("/refresh", response_model=AuthResult)
async def refresh_user(synchronizer: SessionSynchronizer = Depends(get_synchronizer)):
    """Reload the current user's document."""
    return await synchronizer.refresh()


@router.delete("/error")
async def clear_error(synchronizer: SessionSynchronizer = Depends(get_synchronizer)):
    synchronizer.clear_error()
    return {"status": "success"}
