"""
Session synchronizer.

Keeps the store's `user` / `is_authenticated` slice in line with the identity
provider's session and runs the explicit authentication flows (sign up, sign
in, sign out, password reset, profile update, refresh).

Session notifications arrive through an asyncio.Queue: the provider callback
only enqueues, and a single consumer task applies events in FIFO order.

Stale completions: every sign-out (explicit, or a null session event) bumps
`epoch`. A flow or a listener resolution that started under an older epoch
drops its result instead of writing it, so a sign-in that resolves after a
sign-out cannot resurrect the user.
"""
import asyncio
import logging
from typing import Any, Dict, Optional, Set

from app.core.exceptions import AuthProviderError, NotAuthenticatedError, PersistenceError
from app.providers.identity import Identity, IdentityProvider
from app.schemas.auth import AuthResult
from app.schemas.user import User
from app.services.auth_errors import (
    CATEGORY_MESSAGES,
    AuthErrorCategory,
    categorize_auth_error,
    get_auth_error_message,
)
from app.services.user_service import UserService
from app.stores.app_store import AppStore

logger = logging.getLogger(__name__)

GOOGLE_SCOPES = ["email", "profile"]


class SessionSynchronizer:

    def __init__(self, store: AppStore, identity_provider: IdentityProvider, user_service: UserService):
        self.store = store
        self.identity_provider = identity_provider
        self.user_service = user_service
        self.epoch = 0
        self._events: "asyncio.Queue[Optional[Identity]]" = asyncio.Queue()
        self._consumer: Optional[asyncio.Task] = None
        self._unsubscribe = None
        # uids an explicit flow is resolving; listener events for them are skipped
        self._claimed: Set[str] = set()

    # Lifecycle

    def start(self) -> None:
        if self._consumer is not None:
            return
        self._consumer = asyncio.create_task(self._consume())
        self._unsubscribe = self.identity_provider.on_session_change(self._events.put_nowait)
        logger.info("Session synchronizer started")

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None
        logger.info("Session synchronizer stopped")

    async def drain(self) -> None:
        """Wait until every queued session event has been applied."""
        await self._events.join()

    async def _consume(self) -> None:
        while True:
            identity = await self._events.get()
            try:
                await self.handle_session_change(identity)
            except Exception as e:
                logger.error(f"Unexpected error in session listener: {e}")
            finally:
                self._events.task_done()

    # Session notifications

    async def handle_session_change(self, identity: Optional[Identity]) -> None:
        if identity is None:
            self.epoch += 1
            self.store.set_user(None)  # also clears loading
            return

        if identity.uid in self._claimed:
            logger.debug(f"Session event for {identity.uid} handled by an explicit flow")
            return

        epoch = self.epoch
        try:
            user: Optional[User] = await self.user_service.get_or_create(identity)
        except Exception as e:
            logger.error(f"Error loading user data for {identity.uid}: {e}")
            user = None

        if epoch != self.epoch:
            logger.warning(f"Discarding stale session resolution for {identity.uid}")
            self.store.set_loading(False)
        else:
            self.store.set_user(user)

    # Helpers

    def _fail(self, category: AuthErrorCategory, message: Optional[str] = None) -> AuthResult:
        message = message or CATEGORY_MESSAGES[category]
        self.store.set_ui_error(message)
        return AuthResult.failed(message, category.value)

    def _fail_provider(self, error: AuthProviderError) -> AuthResult:
        logger.warning(f"Identity provider error: {error.code}")
        return self._fail(categorize_auth_error(error.code), get_auth_error_message(error.code))

    def _apply(self, epoch: int, user: User) -> bool:
        if epoch != self.epoch:
            logger.warning(f"Discarding stale sign-in for {user.uid}; the session ended meanwhile")
            return False
        self.store.set_user(user)
        return True

    async def _run_sign_in(self, authenticate, extra_for=None) -> AuthResult:
        """
        Shared body of the sign-in flows. `authenticate` returns an Identity;
        `extra_for(identity)` may return fields for a newly created profile.
        """
        epoch = self.epoch
        self.store.set_ui_error(None)
        self.store.set_loading(True)
        identity: Optional[Identity] = None
        try:
            identity = await authenticate()
            self._claimed.add(identity.uid)
            extra = await extra_for(identity) if extra_for else None
            user = await self.user_service.get_or_create(identity, extra)
            if not self._apply(epoch, user):
                return AuthResult.failed("The session ended before sign-in completed.")
            return AuthResult.ok()
        except AuthProviderError as e:
            return self._fail_provider(e)
        except PersistenceError as e:
            logger.error(f"Profile unavailable after authentication: {e.detail}")
            return self._fail(AuthErrorCategory.PROFILE_UNAVAILABLE)
        except Exception as e:
            logger.error(f"Unexpected authentication error: {e}")
            return self._fail(AuthErrorCategory.UNKNOWN)
        finally:
            if identity is not None:
                self._claimed.discard(identity.uid)
            self.store.set_loading(False)

    # Flows

    async def sign_up(self, email: str, password: str, display_name: str, agree_to_terms: bool) -> AuthResult:
        if not agree_to_terms:
            return AuthResult.failed("You must agree to the terms to create an account.")

        async def set_display_name(identity: Identity) -> Dict[str, Any]:
            await self.identity_provider.update_display_name(identity, display_name)
            return {"display_name": display_name}

        return await self._run_sign_in(
            lambda: self.identity_provider.create_account(email, password),
            set_display_name,
        )

    async def sign_in(self, email: str, password: str) -> AuthResult:
        return await self._run_sign_in(lambda: self.identity_provider.authenticate(email, password))

    async def sign_in_with_google(self, credential: Optional[str] = None) -> AuthResult:
        return await self._run_sign_in(
            lambda: self.identity_provider.authenticate_interactive(GOOGLE_SCOPES, credential)
        )

    async def sign_out(self) -> AuthResult:
        """End the session. Local state is cleared even when the provider fails."""
        self.epoch += 1
        error: Optional[AuthProviderError] = None
        try:
            await self.identity_provider.sign_out()
        except AuthProviderError as e:
            error = e
        except Exception as e:
            logger.error(f"Unexpected sign-out error: {e}")
            error = AuthProviderError("auth/internal-error", str(e))
        finally:
            self.store.reset()

        if error is not None:
            return self._fail_provider(error)
        return AuthResult.ok()

    async def reset_password(self, email: str) -> AuthResult:
        self.store.set_ui_error(None)
        try:
            await self.identity_provider.send_password_reset(email)
        except AuthProviderError as e:
            return self._fail_provider(e)
        except Exception as e:
            logger.error(f"Unexpected password reset error: {e}")
            return self._fail(AuthErrorCategory.UNKNOWN)
        return AuthResult.ok()

    async def update_profile(self, updates: Dict[str, Any]) -> AuthResult:
        """
        Merge top-level fields into the current user's document and the store.

        Raises NotAuthenticatedError before any I/O when nobody is signed in.
        """
        user = self.store.user
        if user is None:
            raise NotAuthenticatedError()

        epoch = self.epoch
        try:
            merged = await self.user_service.update(user, updates)
        except PersistenceError as e:
            return self._fail(AuthErrorCategory.PROFILE_UNAVAILABLE, e.detail)

        current = self.store.user
        if epoch != self.epoch or current is None or current.uid != user.uid:
            logger.warning(f"Discarding stale profile update for {user.uid}")
            return AuthResult.failed("The session ended before the profile was updated.")
        self.store.set_user(merged)
        return AuthResult.ok()

    async def refresh(self) -> AuthResult:
        """Re-read the current identity's document. No-op when nobody is signed in."""
        identity = self.identity_provider.current_identity
        if identity is None:
            return AuthResult.ok()

        epoch = self.epoch
        try:
            user = await self.user_service.get(identity.uid)
        except PersistenceError:
            logger.error(f"Error refreshing user data for {identity.uid}")
            return self._fail(AuthErrorCategory.PROFILE_UNAVAILABLE)

        if user is not None:
            self._apply(epoch, user)
        return AuthResult.ok()

    def clear_error(self) -> None:
        self.store.set_ui_error(None)
