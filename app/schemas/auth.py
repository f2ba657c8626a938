from typing import Optional

from app.schemas.base import CamelModel


class AuthResult(CamelModel):
    """Outcome of an authentication flow. Failures carry a user-facing message."""
    success: bool
    error: Optional[str] = None
    category: Optional[str] = None

    @classmethod
    def ok(cls) -> "AuthResult":
        return cls(success=True)

    @classmethod
    def failed(cls, error: str, category: Optional[str] = None) -> "AuthResult":
        return cls(success=False, error=error, category=category)
