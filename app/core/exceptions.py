from fastapi import HTTPException, status


class PersistenceError(HTTPException):
    """Exception raised when a user document cannot be read or written."""

    def __init__(self, message: str = "Could not load your profile. Please try again."):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=message
        )


class NotAuthenticatedError(HTTPException):
    """Exception raised when an operation needs a signed-in user and there is none."""

    def __init__(self, message: str = "No user logged in"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=message
        )


class PlanNotFoundError(HTTPException):
    """Exception raised when a plan id or price id is not in the catalog."""

    def __init__(self, plan_id: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Plan '{plan_id}' not found"
        )


class PaymentConfigurationError(HTTPException):
    """Exception raised when Stripe is not configured."""

    def __init__(self, message: str = "Stripe API key not configured"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=message
        )


class AuthProviderError(Exception):
    """
    Failure reported by an identity provider.

    `code` is a canonical Firebase-style code such as "auth/wrong-password".
    """

    def __init__(self, code: str, message: str = ""):
        super().__init__(message or code)
        self.code = code
        self.message = message or code
