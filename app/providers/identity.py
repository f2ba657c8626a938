"""
Identity providers.

The session synchronizer only talks to the `IdentityProvider` protocol. Two
adapters are provided: `FirebaseIdentityProvider`, which drives the Firebase
Identity Toolkit REST API (the same endpoints the Firebase web SDK calls),
and `InMemoryIdentityProvider` for local development and tests.

Failures are raised as `AuthProviderError` carrying a Firebase web SDK style
code ("auth/wrong-password", ...), whatever the adapter.
"""
import asyncio
import logging
import uuid
from typing import Callable, Dict, List, Optional, Protocol
from urllib.parse import urlencode

import httpx
from firebase_admin import auth as firebase_auth
from pydantic import BaseModel

from app.core.exceptions import AuthProviderError

logger = logging.getLogger(__name__)

SessionCallback = Callable[[Optional["Identity"]], None]


class Identity(BaseModel):
    """Opaque handle for an authenticated identity."""
    uid: str
    email: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    id_token: Optional[str] = None
    refresh_token: Optional[str] = None


class IdentityProvider(Protocol):
    current_identity: Optional[Identity]

    async def create_account(self, email: str, password: str) -> Identity: ...

    async def authenticate(self, email: str, password: str) -> Identity: ...

    async def authenticate_interactive(self, scopes: List[str], credential: Optional[str] = None) -> Identity: ...

    async def sign_out(self) -> None: ...

    def on_session_change(self, callback: SessionCallback) -> Callable[[], None]: ...

    async def send_password_reset(self, email: str) -> None: ...

    async def update_display_name(self, identity: Identity, name: str) -> None: ...


class SessionNotifier:
    """Listener registry shared by the adapters. New listeners get the current session right away."""

    def __init__(self):
        self.current_identity: Optional[Identity] = None
        self._session_callbacks: List[SessionCallback] = []

    def on_session_change(self, callback: SessionCallback) -> Callable[[], None]:
        self._session_callbacks.append(callback)
        callback(self.current_identity)

        def unsubscribe():
            if callback in self._session_callbacks:
                self._session_callbacks.remove(callback)

        return unsubscribe

    def _set_session(self, identity: Optional[Identity]) -> None:
        self.current_identity = identity
        for callback in list(self._session_callbacks):
            try:
                callback(identity)
            except Exception as e:
                logger.error(f"Session listener failed: {e}")


# Identity Toolkit error strings -> web SDK codes
REST_ERROR_CODES = {
    "EMAIL_NOT_FOUND": "auth/user-not-found",
    "INVALID_PASSWORD": "auth/wrong-password",
    "INVALID_LOGIN_CREDENTIALS": "auth/invalid-credential",
    "EMAIL_EXISTS": "auth/email-already-in-use",
    "WEAK_PASSWORD": "auth/weak-password",
    "INVALID_EMAIL": "auth/invalid-email",
    "MISSING_EMAIL": "auth/invalid-email",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "auth/too-many-requests",
    "USER_DISABLED": "auth/user-disabled",
    "INVALID_IDP_RESPONSE": "auth/invalid-credential",
}


def rest_error_code(message: str) -> str:
    """
    Translate an Identity Toolkit error message to a web SDK code.

    Messages look like "EMAIL_EXISTS" or "WEAK_PASSWORD : Password should be ...".
    """
    token = (message or "").split(":")[0].strip()
    if token in REST_ERROR_CODES:
        return REST_ERROR_CODES[token]
    if not token:
        return "auth/internal-error"
    return "auth/" + token.lower().replace("_", "-")


class FirebaseIdentityProvider(SessionNotifier):
    """Firebase Authentication through the Identity Toolkit REST API."""

    def __init__(
        self,
        api_key: str,
        emulator_host: Optional[str] = None,
        request_uri: str = "http://localhost",
        timeout: float = 10.0,
        firebase_app=None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__()
        self.api_key = api_key
        self.request_uri = request_uri
        self.timeout = timeout
        self.firebase_app = firebase_app
        self.transport = transport
        self._interactive_pending = False
        if emulator_host:
            self.base_url = f"http://{emulator_host}/identitytoolkit.googleapis.com/v1"
        else:
            self.base_url = "https://identitytoolkit.googleapis.com/v1"

    async def _post(self, endpoint: str, payload: Dict) -> Dict:
        url = f"{self.base_url}/accounts:{endpoint}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, params={"key": self.api_key}, json=payload)
        except httpx.TransportError as e:
            logger.error(f"Identity Toolkit request {endpoint} failed: {e!r}")
            raise AuthProviderError("auth/network-request-failed", str(e))

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code != 200:
            message = data.get("error", {}).get("message", "") if isinstance(data, dict) else ""
            logger.warning(f"Identity Toolkit {endpoint} returned {response.status_code}: {message}")
            raise AuthProviderError(rest_error_code(message), message)
        return data

    @staticmethod
    def _identity_from(data: Dict) -> Identity:
        return Identity(
            uid=data["localId"],
            email=data.get("email", ""),
            display_name=data.get("displayName") or None,
            photo_url=data.get("photoUrl") or None,
            id_token=data.get("idToken"),
            refresh_token=data.get("refreshToken"),
        )

    async def create_account(self, email: str, password: str) -> Identity:
        data = await self._post("signUp", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        identity = self._identity_from(data)
        logger.info(f"Created account {identity.uid}")
        self._set_session(identity)
        return identity

    async def authenticate(self, email: str, password: str) -> Identity:
        data = await self._post("signInWithPassword", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        identity = self._identity_from(data)
        logger.info(f"Authenticated user: {identity.uid}")
        self._set_session(identity)
        return identity

    async def authenticate_interactive(self, scopes: List[str], credential: Optional[str] = None) -> Identity:
        """
        Exchange a Google OAuth id token obtained from the consent window.

        No credential means the user closed the window.
        """
        if self._interactive_pending:
            raise AuthProviderError("auth/cancelled-popup-request")
        if not credential:
            raise AuthProviderError("auth/popup-closed-by-user")

        self._interactive_pending = True
        try:
            logger.info(f"Google sign-in with scopes: {', '.join(scopes)}")
            data = await self._post("signInWithIdp", {
                "postBody": urlencode({"id_token": credential, "providerId": "google.com"}),
                "requestUri": self.request_uri,
                "returnSecureToken": True,
                "returnIdpCredential": True,
            })
        finally:
            self._interactive_pending = False

        identity = self._identity_from(data)
        self._set_session(identity)
        return identity

    async def sign_out(self) -> None:
        """Revoke refresh tokens when the Admin SDK is available. The local session always ends."""
        identity = self.current_identity
        try:
            if identity and self.firebase_app is not None:
                await asyncio.to_thread(firebase_auth.revoke_refresh_tokens, identity.uid, app=self.firebase_app)
                logger.info(f"Revoked refresh tokens for {identity.uid}")
        except Exception as e:
            logger.error(f"Error revoking tokens for {identity.uid}: {e}")
            raise AuthProviderError("auth/internal-error", str(e))
        finally:
            self._set_session(None)

    async def send_password_reset(self, email: str) -> None:
        await self._post("sendOobCode", {"requestType": "PASSWORD_RESET", "email": email})
        logger.info("Password reset email requested")

    async def update_display_name(self, identity: Identity, name: str) -> None:
        await self._post("update", {
            "idToken": identity.id_token,
            "displayName": name,
            "returnSecureToken": False,
        })
        if self.current_identity and self.current_identity.uid == identity.uid:
            self.current_identity = self.current_identity.model_copy(update={"display_name": name})


class InMemoryIdentityProvider(SessionNotifier):
    """
    Accounts kept in a dict. Mirrors the Firebase validation rules that the
    error taxonomy relies on (6 character passwords, one account per email).
    """

    def __init__(self):
        super().__init__()
        self.accounts: Dict[str, Dict] = {}
        self.password_resets: List[str] = []

    def _identity(self, account: Dict) -> Identity:
        return Identity(
            uid=account["uid"],
            email=account["email"],
            display_name=account.get("display_name"),
            photo_url=account.get("photo_url"),
            id_token=f"token-{account['uid']}",
        )

    def _account(self, email: str) -> Dict:
        if "@" not in (email or ""):
            raise AuthProviderError("auth/invalid-email")
        account = self.accounts.get(email.lower())
        if account is None:
            raise AuthProviderError("auth/user-not-found")
        return account

    async def create_account(self, email: str, password: str) -> Identity:
        if "@" not in (email or ""):
            raise AuthProviderError("auth/invalid-email")
        if email.lower() in self.accounts:
            raise AuthProviderError("auth/email-already-in-use")
        if len(password or "") < 6:
            raise AuthProviderError("auth/weak-password")
        account = {"uid": uuid.uuid4().hex, "email": email, "password": password}
        self.accounts[email.lower()] = account
        identity = self._identity(account)
        self._set_session(identity)
        return identity

    async def authenticate(self, email: str, password: str) -> Identity:
        account = self._account(email)
        if account.get("password") != password:
            raise AuthProviderError("auth/wrong-password")
        identity = self._identity(account)
        self._set_session(identity)
        return identity

    async def authenticate_interactive(self, scopes: List[str], credential: Optional[str] = None) -> Identity:
        """The credential is the Google account email; accounts are created on first use."""
        if not credential:
            raise AuthProviderError("auth/popup-closed-by-user")
        account = self.accounts.setdefault(credential.lower(), {
            "uid": uuid.uuid4().hex,
            "email": credential,
            "display_name": credential.split("@")[0],
        })
        identity = self._identity(account)
        self._set_session(identity)
        return identity

    async def sign_out(self) -> None:
        self._set_session(None)

    async def send_password_reset(self, email: str) -> None:
        self._account(email)
        self.password_resets.append(email)

    async def update_display_name(self, identity: Identity, name: str) -> None:
        account = self._account(identity.email)
        account["display_name"] = name
        if self.current_identity and self.current_identity.uid == identity.uid:
            self.current_identity = self.current_identity.model_copy(update={"display_name": name})
