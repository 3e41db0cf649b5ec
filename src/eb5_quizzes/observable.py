"""Callback-based change notification shared by the content and preferences stores."""
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class Subscription:
    """Handle returned by ``observe``; call ``cancel`` to stop receiving updates."""

    def __init__(self, cancel: Callable[[], None]):
        self._cancel = cancel
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._cancel()


class Observable(Generic[T]):
    def __init__(self):
        self._callbacks: list[Callable[[T], None]] = []

    def observe(self, callback: Callable[[T], None]) -> Subscription:
        self._callbacks.append(callback)
        return Subscription(lambda: self._callbacks.remove(callback))

    def notify(self, value: T) -> None:
        for callback in list(self._callbacks):
            callback(value)
