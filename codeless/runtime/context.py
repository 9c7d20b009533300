"""Per-request state passed to generated route handlers and actions."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from starlette.requests import Request

from .auth import AuthGate
from .errors import AuthFailure, CodelessError
from .store import Database

_UNSET = object()
CONTEXT_NAMES = frozenset({"ctx", "req", "request"})


@dataclass
class RequestContext:
    """Minimal request abstraction: method, params, body in; JSON out.

    ``input`` merges query and path parameters with a JSON object body,
    body keys taking precedence. A non-object body is passed through as is.
    Path parameters are kept as the strings the URL carried.
    The body is decoded on first access so an authentication gate can run
    before malformed input is reported.
    """

    method: str
    path: str
    db: Optional[Database] = None
    auth: Optional[AuthGate] = None
    path_params: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, Any] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    raw_body: bytes = b""
    user: Optional[Dict[str, Any]] = None
    _body: Any = field(default=_UNSET, repr=False)

    @classmethod
    async def from_request(
        cls,
        request: Request,
        *,
        db: Optional[Database] = None,
        auth: Optional[AuthGate] = None,
    ) -> "RequestContext":
        return cls(
            method=request.method,
            path=request.url.path,
            db=db,
            auth=auth,
            path_params={key: str(value) for key, value in request.path_params.items()},
            query=dict(request.query_params),
            headers=request.headers,
            raw_body=await request.body(),
        )

    @property
    def body(self) -> Any:
        if self._body is _UNSET:
            if not self.raw_body.strip():
                self._body = None
            else:
                try:
                    self._body = json.loads(self.raw_body)
                except ValueError:
                    raise CodelessError("Invalid JSON body", 400) from None
        return self._body

    @property
    def input(self) -> Any:
        body = self.body
        if body is None:
            return {**self.query, **self.path_params}
        if isinstance(body, dict):
            return {**self.query, **self.path_params, **body}
        return body

    def require_auth(self) -> Dict[str, Any]:
        if self.auth is None:
            raise AuthFailure("Authentication is not configured")
        self.user = self.auth.authenticate(self.headers.get("authorization"))
        return self.user

    def bind(self, name: str, data: Any) -> Any:
        """Resolve an action parameter by name.

        Order: the threaded value for ``data``, the context itself, the
        table registry for ``db``, the authenticated claims for ``user``,
        then a key of the threaded value, a path parameter, a query
        parameter, and finally ``None``.
        """
        if name == "data":
            return data
        if name in CONTEXT_NAMES:
            return self
        if name == "db":
            return self.db
        if name == "user":
            return self.user
        if isinstance(data, dict) and name in data:
            return data[name]
        if name in self.path_params:
            return self.path_params[name]
        return self.query.get(name)


__all__ = ["RequestContext"]
