# SPDX-License-Identifier: MIT

import logging
from typing import Any, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]


class StatusStream(Generic[T]):
    """
    Holds the latest value of a status record and notifies listeners on change.

    Listeners receive a copy, so they can keep it without seeing later updates.
    """

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._listeners: list[Listener[T]] = []

    @property
    def value(self) -> T:
        return self.__copy()

    def subscribe(self, listener: Listener[T]) -> Callable[[], None]:
        """Register a listener and return a function that removes it."""
        self._listeners.append(listener)
        listener(self.__copy())

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def update(self, **changes: Any) -> None:
        self._value.update(changes)  # type: ignore[attr-defined]
        for listener in list(self._listeners):
            try:
                listener(self.__copy())
            except Exception:
                logger.exception("Status listener failed")

    def __copy(self) -> T:
        return dict(self._value)  # type: ignore[call-overload, return-value]
