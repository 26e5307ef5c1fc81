# SPDX-License-Identifier: MIT

import logging
from typing import Callable, Optional

from nestegg.model.user import User
from nestegg.repository.session import SessionRepository

logger = logging.getLogger(__name__)

SessionListener = Callable[[Optional[User]], None]


class Session:
    """
    The authenticated user as seen by the sync engine.

    Token issuance happens elsewhere; this only stores what it is given and
    answers "who is signed in" and "which token to send".
    """

    def __init__(self, repository: SessionRepository) -> None:
        self._repository = repository
        self._listeners: list[SessionListener] = []

    @property
    def is_authenticated(self) -> bool:
        return (
            self._repository.get_token() is not None
            and self._repository.get_user() is not None
        )

    @property
    def current_user(self) -> Optional[User]:
        return self._repository.get_user()

    @property
    def user_id(self) -> Optional[int]:
        user = self._repository.get_user()
        return None if user is None else user["id"]

    def get_token(self) -> Optional[str]:
        return self._repository.get_token()

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def login(self, token: str, user: User) -> None:
        self._repository.save_session(token, user)
        logger.info("Signed in as user %s", user["id"])
        self.__notify()

    def logout(self) -> None:
        self._repository.clear()
        logger.info("Signed out")
        self.__notify()

    def update_user(self, user: User) -> None:
        self._repository.save_user(user)

    def __notify(self) -> None:
        user = self.current_user
        for listener in list(self._listeners):
            try:
                listener(user)
            except Exception:
                logger.exception("Session listener failed")
