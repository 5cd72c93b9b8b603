"""Authentication provider package."""

from splitbook.services.auth.provider import (
    AuthCallback,
    AuthProviderInterface,
    InMemoryAuthProvider,
)

__all__ = [
    "AuthCallback",
    "AuthProviderInterface",
    "InMemoryAuthProvider",
]
