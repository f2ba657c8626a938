import json
from unittest.mock import MagicMock, patch

import httpx
import pytest

from app.core.exceptions import AuthProviderError
from app.providers.identity import FirebaseIdentityProvider, InMemoryIdentityProvider, rest_error_code

ACCOUNT = {
    "localId": "uid-123",
    "email": "jane@example.com",
    "idToken": "id-token",
    "refreshToken": "refresh-token",
}


def firebase_provider(handler, **kwargs) -> FirebaseIdentityProvider:
    return FirebaseIdentityProvider(api_key="test-key", transport=httpx.MockTransport(handler), **kwargs)


def error_response(message: str) -> httpx.Response:
    return httpx.Response(400, json={"error": {"code": 400, "message": message}})


@pytest.mark.parametrize("message, code", [
    ("EMAIL_NOT_FOUND", "auth/user-not-found"),
    ("INVALID_PASSWORD", "auth/wrong-password"),
    ("INVALID_LOGIN_CREDENTIALS", "auth/invalid-credential"),
    ("EMAIL_EXISTS", "auth/email-already-in-use"),
    ("WEAK_PASSWORD : Password should be at least 6 characters", "auth/weak-password"),
    ("TOO_MANY_ATTEMPTS_TRY_LATER : Access to this account has been temporarily disabled", "auth/too-many-requests"),
    ("OPERATION_NOT_ALLOWED", "auth/operation-not-allowed"),
    ("", "auth/internal-error"),
])
def test_rest_error_code(message, code):
    assert rest_error_code(message) == code


@pytest.mark.asyncio
async def test_authenticate_posts_credentials_and_starts_session():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=ACCOUNT)

    provider = firebase_provider(handler)
    sessions = []
    provider.on_session_change(sessions.append)

    identity = await provider.authenticate("jane@example.com", "secret1")

    assert identity.uid == "uid-123"
    assert identity.id_token == "id-token"
    assert provider.current_identity == identity
    assert sessions == [None, identity]

    request = requests[0]
    assert request.url.path.endswith("/accounts:signInWithPassword")
    assert request.url.params["key"] == "test-key"
    assert json.loads(request.content) == {
        "email": "jane@example.com",
        "password": "secret1",
        "returnSecureToken": True,
    }


@pytest.mark.asyncio
async def test_authenticate_maps_rest_errors():
    provider = firebase_provider(lambda request: error_response("INVALID_PASSWORD"))

    with pytest.raises(AuthProviderError) as exc_info:
        await provider.authenticate("jane@example.com", "bad")

    assert exc_info.value.code == "auth/wrong-password"
    assert provider.current_identity is None


@pytest.mark.asyncio
async def test_network_failure_maps_to_network_code():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    provider = firebase_provider(handler)

    with pytest.raises(AuthProviderError) as exc_info:
        await provider.create_account("jane@example.com", "secret1")

    assert exc_info.value.code == "auth/network-request-failed"


@pytest.mark.asyncio
async def test_emulator_host_changes_base_url():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json=ACCOUNT)

    provider = firebase_provider(handler, emulator_host="localhost:9099")

    await provider.create_account("jane@example.com", "secret1")

    assert str(requests[0].url).startswith("http://localhost:9099/identitytoolkit.googleapis.com/v1/accounts:signUp")


@pytest.mark.asyncio
async def test_interactive_without_credential_is_cancelled():
    provider = firebase_provider(lambda request: httpx.Response(200, json=ACCOUNT))

    with pytest.raises(AuthProviderError) as exc_info:
        await provider.authenticate_interactive(["email", "profile"])

    assert exc_info.value.code == "auth/popup-closed-by-user"


@pytest.mark.asyncio
async def test_interactive_exchanges_google_token():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={**ACCOUNT, "displayName": "Jane", "photoUrl": "https://img/jane.png"})

    provider = firebase_provider(handler)

    identity = await provider.authenticate_interactive(["email", "profile"], "google-id-token")

    assert identity.display_name == "Jane"
    assert identity.photo_url == "https://img/jane.png"
    body = json.loads(requests[0].content)
    assert requests[0].url.path.endswith("/accounts:signInWithIdp")
    assert "id_token=google-id-token" in body["postBody"]
    assert "providerId=google.com" in body["postBody"]


@pytest.mark.asyncio
async def test_interactive_rejects_concurrent_attempt():
    provider = firebase_provider(lambda request: httpx.Response(200, json=ACCOUNT))
    provider._interactive_pending = True

    with pytest.raises(AuthProviderError) as exc_info:
        await provider.authenticate_interactive(["email"], "google-id-token")

    assert exc_info.value.code == "auth/cancelled-popup-request"


@pytest.mark.asyncio
async def test_sign_out_revokes_tokens_and_ends_session():
    provider = firebase_provider(lambda request: httpx.Response(200, json=ACCOUNT), firebase_app=MagicMock())
    await provider.authenticate("jane@example.com", "secret1")

    with patch("app.providers.identity.firebase_auth.revoke_refresh_tokens") as revoke:
        await provider.sign_out()

    revoke.assert_called_once_with("uid-123", app=provider.firebase_app)
    assert provider.current_identity is None


@pytest.mark.asyncio
async def test_sign_out_ends_session_when_revocation_fails():
    provider = firebase_provider(lambda request: httpx.Response(200, json=ACCOUNT), firebase_app=MagicMock())
    await provider.authenticate("jane@example.com", "secret1")

    with patch("app.providers.identity.firebase_auth.revoke_refresh_tokens", side_effect=ValueError("revoked")):
        with pytest.raises(AuthProviderError):
            await provider.sign_out()

    assert provider.current_identity is None


@pytest.mark.asyncio
async def test_update_display_name_updates_current_identity():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json=ACCOUNT)

    provider = firebase_provider(handler)
    identity = await provider.authenticate("jane@example.com", "secret1")

    await provider.update_display_name(identity, "Jane D.")

    assert json.loads(requests[1].content)["displayName"] == "Jane D."
    assert json.loads(requests[1].content)["idToken"] == "id-token"
    assert provider.current_identity.display_name == "Jane D."


@pytest.mark.asyncio
async def test_in_memory_provider_rules():
    provider = InMemoryIdentityProvider()

    with pytest.raises(AuthProviderError) as exc_info:
        await provider.create_account("not-an-email", "secret1")
    assert exc_info.value.code == "auth/invalid-email"

    await provider.create_account("Jane@Example.com", "secret1")

    with pytest.raises(AuthProviderError) as exc_info:
        await provider.create_account("jane@example.com", "secret1")
    assert exc_info.value.code == "auth/email-already-in-use"

    with pytest.raises(AuthProviderError) as exc_info:
        await provider.authenticate("jane@example.com", "wrong1")
    assert exc_info.value.code == "auth/wrong-password"

    identity = await provider.authenticate("jane@example.com", "secret1")
    assert provider.current_identity == identity


@pytest.mark.asyncio
async def test_unsubscribe_stops_notifications():
    provider = InMemoryIdentityProvider()
    sessions = []
    unsubscribe = provider.on_session_change(sessions.append)

    unsubscribe()
    await provider.create_account("jane@example.com", "secret1")

    assert sessions == [None]
