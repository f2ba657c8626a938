from enum import Enum
from typing import Optional


class AuthErrorCategory(str, Enum):
    ACCOUNT_NOT_FOUND = "account_not_found"
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_ALREADY_EXISTS = "account_already_exists"
    WEAK_PASSWORD = "weak_password"
    INVALID_EMAIL_FORMAT = "invalid_email_format"
    RATE_LIMITED = "rate_limited"
    NETWORK_FAILURE = "network_failure"
    INTERACTIVE_AUTH_CANCELLED = "interactive_auth_cancelled"
    CONCURRENT_AUTH_IN_PROGRESS = "concurrent_auth_in_progress"
    UNKNOWN = "unknown"
    # Not a provider code: the profile document could not be read or written.
    PROFILE_UNAVAILABLE = "profile_unavailable"


PROVIDER_CODE_CATEGORIES = {
    "auth/user-not-found": AuthErrorCategory.ACCOUNT_NOT_FOUND,
    "auth/wrong-password": AuthErrorCategory.INVALID_CREDENTIALS,
    "auth/invalid-credential": AuthErrorCategory.INVALID_CREDENTIALS,
    "auth/email-already-in-use": AuthErrorCategory.ACCOUNT_ALREADY_EXISTS,
    "auth/weak-password": AuthErrorCategory.WEAK_PASSWORD,
    "auth/invalid-email": AuthErrorCategory.INVALID_EMAIL_FORMAT,
    "auth/too-many-requests": AuthErrorCategory.RATE_LIMITED,
    "auth/network-request-failed": AuthErrorCategory.NETWORK_FAILURE,
    "auth/popup-closed-by-user": AuthErrorCategory.INTERACTIVE_AUTH_CANCELLED,
    "auth/cancelled-popup-request": AuthErrorCategory.CONCURRENT_AUTH_IN_PROGRESS,
}

CATEGORY_MESSAGES = {
    AuthErrorCategory.ACCOUNT_NOT_FOUND: "No account found with this email address.",
    AuthErrorCategory.INVALID_CREDENTIALS: "Incorrect password. Please try again.",
    AuthErrorCategory.ACCOUNT_ALREADY_EXISTS: "An account with this email already exists.",
    AuthErrorCategory.WEAK_PASSWORD: "Password should be at least 6 characters long.",
    AuthErrorCategory.INVALID_EMAIL_FORMAT: "Please enter a valid email address.",
    AuthErrorCategory.RATE_LIMITED: "Too many failed attempts. Please try again later.",
    AuthErrorCategory.NETWORK_FAILURE: "Network error. Please check your connection.",
    AuthErrorCategory.INTERACTIVE_AUTH_CANCELLED: "Sign-in was cancelled. Please try again.",
    AuthErrorCategory.CONCURRENT_AUTH_IN_PROGRESS: "Another sign-in attempt is in progress.",
    AuthErrorCategory.UNKNOWN: "An error occurred during authentication. Please try again.",
    AuthErrorCategory.PROFILE_UNAVAILABLE: "Could not load your profile. Please try again.",
}


def categorize_auth_error(code: Optional[str]) -> AuthErrorCategory:
    """Map a provider error code to its category. Unknown or missing codes map to UNKNOWN."""
    return PROVIDER_CODE_CATEGORIES.get(code or "", AuthErrorCategory.UNKNOWN)


def get_auth_error_message(code: Optional[str]) -> str:
    """Convert a provider error code to a user-friendly message."""
    return CATEGORY_MESSAGES[categorize_auth_error(code)]
