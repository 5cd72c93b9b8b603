"""
Authentication Provider

The ledger does not authenticate anyone itself. It only needs to know
who the current user is and to hear about sign-in/sign-out, so the
session can be rebuilt for the new user.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Optional

import structlog

from splitbook.models.expense import User


AuthCallback = Callable[[Optional[User]], None]

logger = structlog.get_logger(__name__)


class AuthProviderInterface(ABC):

    @abstractmethod
    def current_user(self) -> Optional[User]:
        """The signed-in user, or None."""
        pass

    @abstractmethod
    def on_auth_state_changed(self, callback: AuthCallback) -> Callable[[], None]:
        """
        Register for auth changes.

        The callback fires immediately with the current state and again on
        every change. Returns a function that unsubscribes.
        """
        pass


class InMemoryAuthProvider(AuthProviderInterface):
    """Auth provider driven directly by sign_in/sign_out calls."""

    def __init__(self, user: Optional[User] = None):
        self._user = user
        self._listeners: list[AuthCallback] = []

    def current_user(self) -> Optional[User]:
        return self._user

    def on_auth_state_changed(self, callback: AuthCallback) -> Callable[[], None]:
        self._listeners.append(callback)
        callback(self._user)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def sign_in(self, user: User) -> None:
        self._user = user
        logger.info("signed_in", user_id=user.id)
        self._notify()

    def sign_out(self) -> None:
        if self._user is not None:
            logger.info("signed_out", user_id=self._user.id)
        self._user = None
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._user)
