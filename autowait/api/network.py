"""
Request / Response proxies. Read-only views over the driver's initializer.
"""
# @file purpose: Network request/response proxies returned by navigations.

from __future__ import annotations

from typing import Any, Dict, Optional

from ..core.objects import Handle, remote_type


@remote_type("Request")
class Request(Handle):
    @property
    def url(self) -> str:
        return self.initializer.get("url", "")

    @property
    def method(self) -> str:
        return self.initializer.get("method", "GET")

    @property
    def headers(self) -> Dict[str, str]:
        return dict(self.initializer.get("headers") or {})

    @property
    def is_navigation_request(self) -> bool:
        return bool(self.initializer.get("isNavigationRequest", False))


@remote_type("Response")
class Response(Handle):
    def __repr__(self) -> str:
        return f"<Response url={self.url!r} status={self.status}>"

    @property
    def url(self) -> str:
        return self.initializer.get("url", "")

    @property
    def status(self) -> int:
        return int(self.initializer.get("status", 0))

    @property
    def status_text(self) -> str:
        return self.initializer.get("statusText", "")

    @property
    def ok(self) -> bool:
        return self.status == 0 or 200 <= self.status <= 299

    @property
    def headers(self) -> Dict[str, str]:
        return dict(self.initializer.get("headers") or {})

    @property
    def request(self) -> Optional[Request]:
        ref: Any = self.initializer.get("request")
        if not ref:
            return None
        handle = self._connection.objects.lookup(ref["guid"])
        return handle if isinstance(handle, Request) else None
