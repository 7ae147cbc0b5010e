from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from fastapi import Response


ACTIVE_RUN_COOKIE_NAME = "binbird-active-run"
ACTIVE_RUN_COOKIE_MAX_AGE = 60 * 60 * 24 * 365


class CookieSink(Protocol):
    def set_cookie(self, name: str, value: str, *, max_age: int | None = None) -> None: ...


@dataclass(slots=True)
class PendingCookie:
    value: str
    max_age: int | None


class CookieJar:
    """Collects cookie writes so the HTTP layer can attach them to a response."""

    def __init__(self) -> None:
        self._cookies: dict[str, PendingCookie] = {}

    def set_cookie(self, name: str, value: str, *, max_age: int | None = None) -> None:
        self._cookies[name] = PendingCookie(value, max_age)

    def get(self, name: str) -> PendingCookie | None:
        return self._cookies.get(name)

    def apply(self, response: Response) -> None:
        for name, cookie in self._cookies.items():
            response.set_cookie(
                name,
                cookie.value,
                max_age=cookie.max_age,
                path="/",
                samesite="lax",
            )


def set_active_run_cookie(sink: CookieSink) -> None:
    sink.set_cookie(ACTIVE_RUN_COOKIE_NAME, "true", max_age=ACTIVE_RUN_COOKIE_MAX_AGE)


def clear_active_run_cookie(sink: CookieSink) -> None:
    sink.set_cookie(ACTIVE_RUN_COOKIE_NAME, "", max_age=0)


def sync_active_run_cookie(sink: CookieSink, has_active_run: bool) -> None:
    if has_active_run:
        set_active_run_cookie(sink)
    else:
        clear_active_run_cookie(sink)
