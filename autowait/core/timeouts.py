"""
Timeout resolution: per-call value, then the owner's default, then the parent's,
then the global settings. Navigation waits have their own chain that falls back
to the general one.
"""
# @file purpose: Resolve effective timeouts for calls and navigations.

from __future__ import annotations

from typing import Optional

from .settings import Settings, settings as default_settings


class TimeoutSettings:
    def __init__(
        self,
        parent: Optional["TimeoutSettings"] = None,
        *,
        settings: Optional[Settings] = None,
    ) -> None:
        self._parent = parent
        self._settings = settings or default_settings
        self._default_timeout: Optional[float] = None
        self._default_navigation_timeout: Optional[float] = None

    def set_default_timeout(self, timeout: Optional[float]) -> None:
        self._default_timeout = timeout

    def set_default_navigation_timeout(self, timeout: Optional[float]) -> None:
        self._default_navigation_timeout = timeout

    def timeout(self, timeout: Optional[float] = None) -> float:
        if timeout is not None:
            return timeout
        if self._default_timeout is not None:
            return self._default_timeout
        if self._parent is not None:
            return self._parent.timeout()
        return self._settings.default_timeout_ms

    def navigation_timeout(self, timeout: Optional[float] = None) -> float:
        if timeout is not None:
            return timeout
        if self._default_navigation_timeout is not None:
            return self._default_navigation_timeout
        if self._default_timeout is not None:
            return self._default_timeout
        if self._parent is not None:
            return self._parent.navigation_timeout()
        if self._settings.navigation_timeout_ms is not None:
            return self._settings.navigation_timeout_ms
        return self._settings.default_timeout_ms
