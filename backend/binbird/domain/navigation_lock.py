from __future__ import annotations

from typing import Any, Callable, Protocol


Listener = Callable[[], None]


class HistoryLike(Protocol):
    def push_state(self, data: Any, unused: str, url: str | None = None) -> None: ...


class LocationLike(Protocol):
    href: str


class NavigationLockWindow(Protocol):
    """The slice of a browser window the back-navigation guard needs."""

    history: HistoryLike
    location: LocationLike

    def add_event_listener(self, event_type: str, listener: Listener) -> None: ...

    def remove_event_listener(self, event_type: str, listener: Listener) -> None: ...


def _noop() -> None:
    return None


def create_back_navigation_guard(
    window: NavigationLockWindow,
    should_stay_locked: Callable[[], bool],
    on_unlock: Callable[[], None] | None = None,
) -> Callable[[], None]:
    """
    Suppress back navigation while ``should_stay_locked`` holds.

    Each ``popstate`` re-pushes the current location while locked. The first
    ``popstate`` seen after the predicate flips calls ``on_unlock`` and
    detaches the listener; the guard does not re-arm. The returned disposer
    detaches the listener and may be called any number of times.
    """
    if not should_stay_locked():
        if on_unlock is not None:
            on_unlock()
        return _noop

    attached = True

    def detach() -> None:
        nonlocal attached
        if attached:
            attached = False
            window.remove_event_listener("popstate", handler)

    def handler() -> None:
        if not attached:
            return
        if should_stay_locked():
            window.history.push_state(None, "", window.location.href)
            return
        detach()
        if on_unlock is not None:
            on_unlock()

    window.history.push_state(None, "", window.location.href)
    window.add_event_listener("popstate", handler)

    return detach
