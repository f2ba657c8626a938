import json
from unittest.mock import MagicMock, patch

import pytest
import stripe
from fastapi.testclient import TestClient

from app.core.config import settings
from app.providers.documents import InMemoryDocumentStore
from app.providers.identity import InMemoryIdentityProvider
from main import create_app

API = settings.API_V1_PREFIX

ASSET = {
    "id": "a1",
    "projectId": "p1",
    "userId": "u1",
    "type": "image",
    "prompt": "a lighthouse at dusk",
    "settings": {"model": "sdxl"},
}


def settle(client: TestClient) -> None:
    """Let the session listener apply every queued provider event."""
    client.portal.call(client.app.state.synchronizer.drain)


@pytest.fixture
def client():
    app = create_app(InMemoryIdentityProvider(), InMemoryDocumentStore())
    with TestClient(app) as test_client:
        settle(test_client)
        yield test_client


def sign_up(client: TestClient, email: str = "jo@example.com", name: str = "Jo"):
    response = client.post(f"{API}/auth/sign-up", json={
        "email": email,
        "password": "secret1",
        "displayName": name,
        "agreeToTerms": True,
    })
    settle(client)
    return response


def test_health_reports_session(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "authenticated": False, "loading": False}


def test_me_requires_user(client):
    response = client.get(f"{API}/auth/me")

    assert response.status_code == 401
    assert response.json()["detail"] == "No user logged in"


def test_sign_up_and_me(client):
    response = sign_up(client)

    assert response.status_code == 200
    assert response.json()["success"] is True

    me = client.get(f"{API}/auth/me").json()
    assert me["displayName"] == "Jo"
    assert me["email"] == "jo@example.com"
    assert me["subscription"]["plan"] == "free"
    assert "photoURL" in me


def test_sign_up_without_terms(client):
    response = client.post(f"{API}/auth/sign-up", json={
        "email": "jo@example.com",
        "password": "secret1",
        "displayName": "Jo",
    })

    assert response.status_code == 200
    assert response.json()["error"] == "You must agree to the terms to create an account."


def test_sign_in_error_is_exposed_in_ui_state(client):
    sign_up(client)
    client.post(f"{API}/auth/sign-out")

    response = client.post(f"{API}/auth/sign-in", json={"email": "jo@example.com", "password": "nope"})

    assert response.json() == {
        "success": False,
        "error": "Incorrect password. Please try again.",
        "category": "invalid_credentials",
    }
    assert client.get(f"{API}/state/ui").json()["error"] == "Incorrect password. Please try again."

    client.delete(f"{API}/auth/error")
    assert client.get(f"{API}/state/ui").json()["error"] is None


def test_sign_out_resets_state(client):
    sign_up(client)

    response = client.post(f"{API}/auth/sign-out")
    settle(client)

    assert response.json()["success"] is True
    state = client.get(f"{API}/state/").json()
    assert state["user"] is None
    assert state["isAuthenticated"] is False
    assert state["isLoading"] is False


def test_update_profile(client):
    sign_up(client)

    response = client.patch(f"{API}/auth/profile", json={"displayName": "Jo S."})

    assert response.json()["success"] is True
    assert client.get(f"{API}/auth/me").json()["displayName"] == "Jo S."


def test_update_profile_requires_user(client):
    response = client.patch(f"{API}/auth/profile", json={"displayName": "Jo S."})

    assert response.status_code == 401


def test_google_sign_in_cancelled(client):
    response = client.post(f"{API}/auth/sign-in/google", json={})

    assert response.json()["category"] == "interactive_auth_cancelled"


def test_asset_selection_follows_removal(client):
    client.post(f"{API}/state/assets", json=ASSET)
    client.post(f"{API}/state/assets", json={**ASSET, "id": "a2"})

    ui = client.put(f"{API}/state/ui/selection", json={"assetIds": ["a1", "a2", "ghost"]}).json()
    assert ui["selectedAssets"] == ["a1", "a2"]

    assert client.delete(f"{API}/state/assets/a1").status_code == 200
    assert client.get(f"{API}/state/ui").json()["selectedAssets"] == ["a2"]

    assert client.post(f"{API}/state/ui/selection/ghost").status_code == 404


def test_update_missing_asset_is_404(client):
    response = client.patch(f"{API}/state/assets/missing", json={"status": "completed"})

    assert response.status_code == 404


def test_update_asset_merges_fields(client):
    client.post(f"{API}/state/assets", json=ASSET)

    asset = client.patch(f"{API}/state/assets/a1", json={"status": "completed"}).json()

    assert asset["status"] == "completed"
    assert asset["prompt"] == "a lighthouse at dusk"


def test_filters_and_view_mode(client):
    client.patch(f"{API}/state/ui/filters", json={"type": "video"})
    ui = client.patch(f"{API}/state/ui/filters", json={"status": "failed"}).json()

    assert ui["filters"]["type"] == "video"
    assert ui["filters"]["status"] == "failed"

    ui = client.put(f"{API}/state/ui/view-mode", json={"mode": "list"}).json()
    assert ui["viewMode"] == "list"


def test_projects_crud(client):
    client.post(f"{API}/state/projects", json={"id": "p1", "userId": "u1", "name": "Launch"})

    project = client.patch(f"{API}/state/projects/p1", json={"name": "Relaunch"}).json()
    assert project["name"] == "Relaunch"

    assert client.delete(f"{API}/state/projects/p1").status_code == 200
    assert client.get(f"{API}/state/projects").json() == []
    assert client.delete(f"{API}/state/projects/p1").status_code == 404


def test_job_priority_defaults_to_plan(client):
    sign_up(client)

    job = client.post(f"{API}/state/jobs", json={"id": "j1", "type": "image", "payload": {"prompt": "cat"}}).json()

    assert job["priority"] == 1
    assert job["status"] == "queued"
    assert len(client.get(f"{API}/state/jobs").json()) == 1


def test_plans_endpoints(client):
    assert [plan["id"] for plan in client.get(f"{API}/plans/").json()] == ["free", "pro", "enterprise"]

    pro = client.get(f"{API}/plans/pro").json()
    assert pro["price"] == 2900
    assert pro["features"]["storageGB"] == 25

    assert client.get(f"{API}/plans/pro/price", params={"interval": "year"}).json()["formatted"] == "$278.40/year"
    assert client.get(f"{API}/plans/free/limits").json() == {"images": 10, "videos": 3, "storage": 1024}
    assert client.get(f"{API}/plans/free/features/api_access").json()["enabled"] is False
    assert client.get(f"{API}/plans/discounts").json()["pro"]["discount"] == 20
    assert client.get(f"{API}/plans/platinum").status_code == 404


def test_usage_summary_for_current_user(client):
    sign_up(client)

    usage = client.get(f"{API}/plans/usage").json()

    assert usage["plan"] == "free"
    assert usage["images"] == {"used": 0, "limit": 10, "percent": 0}


def test_checkout_requires_user(client):
    response = client.post(f"{API}/payments/create-checkout-session", json={"priceId": "price_pro_monthly"})

    assert response.status_code == 401


def test_checkout_webhook_upgrades_current_user(client, monkeypatch):
    monkeypatch.setattr(settings, "TEST_MODE", True)
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", None)
    sign_up(client)
    uid = client.get(f"{API}/auth/me").json()["uid"]

    event = {
        "type": "checkout.session.completed",
        "data": {"object": {
            "client_reference_id": uid,
            "customer": "cus_123",
            "metadata": {"user_id": uid, "plan": "pro"},
        }},
    }
    response = client.post(f"{API}/payments/webhook", content=json.dumps(event))

    assert response.status_code == 200
    me = client.get(f"{API}/auth/me").json()
    assert me["subscription"]["plan"] == "pro"
    assert me["subscription"]["customerId"] == "cus_123"

    deleted = {
        "type": "customer.subscription.deleted",
        "data": {"object": {"id": "sub_1", "customer": "cus_123"}},
    }
    client.post(f"{API}/payments/webhook", content=json.dumps(deleted))

    me = client.get(f"{API}/auth/me").json()
    assert me["subscription"]["plan"] == "free"
    assert me["subscription"]["status"] == "canceled"


def test_webhook_requires_secret_outside_test_mode(client, monkeypatch):
    monkeypatch.setattr(settings, "TEST_MODE", False)
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", None)

    response = client.post(f"{API}/payments/webhook", content=b"{}")

    assert response.status_code == 500


def checkout_event(uid: str, plan: str = "enterprise") -> dict:
    return {
        "type": "checkout.session.completed",
        "data": {"object": {
            "client_reference_id": uid,
            "customer": "cus_123",
            "metadata": {"user_id": uid, "plan": plan},
        }},
    }


def test_webhook_rejects_unsigned_event_when_secret_is_set(client, monkeypatch):
    monkeypatch.setattr(settings, "TEST_MODE", False)
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "whsec_test")
    sign_up(client)
    uid = client.get(f"{API}/auth/me").json()["uid"]

    response = client.post(f"{API}/payments/webhook", content=json.dumps(checkout_event(uid)))

    assert response.status_code == 400
    assert client.get(f"{API}/auth/me").json()["subscription"]["plan"] == "free"


def test_webhook_rejects_invalid_signature(client, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "whsec_test")
    sign_up(client)
    uid = client.get(f"{API}/auth/me").json()["uid"]

    with patch(
        "app.api.v1.payments.stripe.Webhook.construct_event",
        side_effect=stripe.SignatureVerificationError("bad signature", "t=1,v1=bad"),
    ):
        response = client.post(
            f"{API}/payments/webhook",
            content=json.dumps(checkout_event(uid)),
            headers={"stripe-signature": "t=1,v1=bad"},
        )

    assert response.status_code == 400
    assert client.get(f"{API}/auth/me").json()["subscription"]["plan"] == "free"


def test_webhook_processes_verified_event(client, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "whsec_test")
    sign_up(client)
    uid = client.get(f"{API}/auth/me").json()["uid"]
    body = json.dumps(checkout_event(uid, plan="free"))
    verified = MagicMock()
    verified.__str__.return_value = json.dumps(checkout_event(uid, plan="pro"))

    with patch("app.api.v1.payments.stripe.Webhook.construct_event", return_value=verified) as construct:
        response = client.post(
            f"{API}/payments/webhook",
            content=body,
            headers={"stripe-signature": "t=1,v1=good"},
        )

    assert response.status_code == 200
    construct.assert_called_once_with(body.encode(), "t=1,v1=good", "whsec_test")
    assert client.get(f"{API}/auth/me").json()["subscription"]["plan"] == "pro"


@pytest.mark.parametrize("body", ['{"foo": 1}', "[]", '{"type": "invoice.paid", "data": null}'])
def test_webhook_rejects_malformed_events(client, monkeypatch, body):
    monkeypatch.setattr(settings, "TEST_MODE", True)
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", None)

    response = client.post(f"{API}/payments/webhook", content=body)

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid payload"


def test_patch_cannot_change_asset_id(client):
    client.post(f"{API}/state/assets", json=ASSET)
    client.post(f"{API}/state/ui/selection/a1")

    response = client.patch(f"{API}/state/assets/a1", json={"id": "a2", "status": "completed"})

    assert response.status_code == 200
    assert response.json()["id"] == "a1"
    assert response.json()["status"] == "completed"
    assert [asset["id"] for asset in client.get(f"{API}/state/assets").json()] == ["a1"]
    assert client.get(f"{API}/state/ui").json()["selectedAssets"] == ["a1"]
