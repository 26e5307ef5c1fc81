# SPDX-License-Identifier: MIT

from copy import deepcopy
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

from yaml import dump, load

try:
    from yaml import CDumper as Dumper
    from yaml import CLoader as Loader
except ImportError:
    from yaml import Dumper, Loader  # type: ignore[assignment]

from nestegg.model.user import SessionData, User


class SessionRepository:
    """Persists the authenticated session (bearer token and profile)."""

    def __init__(self, session_path: Path) -> None:
        self.session_path = session_path
        self._session: Optional[SessionData] = None

    @property
    def session(self) -> SessionData:
        if self._session is None:
            self.__load_data()
        if self._session is None:
            raise ValueError()
        return self._session

    def __load_data(self) -> None:
        self._session = {"token": None, "user": None}
        if not self.session_path.is_file():
            return
        raw_session = load(self.session_path.read_text(), Loader=Loader)
        if raw_session is None:
            return
        self._session["token"] = raw_session.get("token")
        if raw_session.get("user") is not None:
            self._session["user"] = self.__convert_user_for_deserialization(
                raw_session["user"]
            )

    def __save_data(self) -> None:
        serializable_session: dict[str, Any] = {
            "token": self.session["token"],
            "user": None,
        }
        if self.session["user"] is not None:
            serializable_session["user"] = self.__convert_user_for_serialization(
                self.session["user"]
            )
        self.session_path.parent.mkdir(parents=True, exist_ok=True)
        self.session_path.write_text(
            dump(serializable_session, Dumper=Dumper, sort_keys=False)
        )

    def __convert_user_for_serialization(self, user: User) -> dict[str, Any]:
        serializable_user: dict[str, Any] = dict(deepcopy(user))
        if serializable_user.get("net_income") is not None:
            serializable_user["net_income"] = str(serializable_user["net_income"])
        return serializable_user

    def __convert_user_for_deserialization(self, user: dict[str, Any]) -> User:
        deserializable_user = dict(user)
        if deserializable_user.get("net_income") is not None:
            deserializable_user["net_income"] = Decimal(
                str(deserializable_user["net_income"])
            )
        return deserializable_user  # type: ignore[return-value]

    def get_token(self) -> Optional[str]:
        return self.session["token"]

    def get_user(self) -> Optional[User]:
        return deepcopy(self.session["user"])

    def save_session(self, token: str, user: User) -> None:
        self.session["token"] = token
        self.session["user"] = deepcopy(user)
        self.__save_data()

    def save_user(self, user: User) -> None:
        self.session["user"] = deepcopy(user)
        self.__save_data()

    def clear(self) -> None:
        self._session = {"token": None, "user": None}
        if self.session_path.exists():
            self.session_path.unlink()
