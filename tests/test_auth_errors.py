import pytest

from app.services.auth_errors import (
    CATEGORY_MESSAGES,
    AuthErrorCategory,
    categorize_auth_error,
    get_auth_error_message,
)


@pytest.mark.parametrize("code, category", [
    ("auth/user-not-found", AuthErrorCategory.ACCOUNT_NOT_FOUND),
    ("auth/wrong-password", AuthErrorCategory.INVALID_CREDENTIALS),
    ("auth/invalid-credential", AuthErrorCategory.INVALID_CREDENTIALS),
    ("auth/email-already-in-use", AuthErrorCategory.ACCOUNT_ALREADY_EXISTS),
    ("auth/weak-password", AuthErrorCategory.WEAK_PASSWORD),
    ("auth/invalid-email", AuthErrorCategory.INVALID_EMAIL_FORMAT),
    ("auth/too-many-requests", AuthErrorCategory.RATE_LIMITED),
    ("auth/network-request-failed", AuthErrorCategory.NETWORK_FAILURE),
    ("auth/popup-closed-by-user", AuthErrorCategory.INTERACTIVE_AUTH_CANCELLED),
    ("auth/cancelled-popup-request", AuthErrorCategory.CONCURRENT_AUTH_IN_PROGRESS),
])
def test_known_codes_map_to_categories(code, category):
    assert categorize_auth_error(code) == category


@pytest.mark.parametrize("code", ["auth/something-new", "", None, "not-a-code"])
def test_unknown_codes_fall_back_to_generic_message(code):
    assert categorize_auth_error(code) == AuthErrorCategory.UNKNOWN
    assert get_auth_error_message(code) == "An error occurred during authentication. Please try again."


def test_user_facing_messages():
    assert get_auth_error_message("auth/wrong-password") == "Incorrect password. Please try again."
    assert get_auth_error_message("auth/user-not-found") == "No account found with this email address."
    assert get_auth_error_message("auth/weak-password") == "Password should be at least 6 characters long."
    assert get_auth_error_message("auth/popup-closed-by-user") == "Sign-in was cancelled. Please try again."


def test_every_category_has_a_message():
    assert set(CATEGORY_MESSAGES) == set(AuthErrorCategory)
