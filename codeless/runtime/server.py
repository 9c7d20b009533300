"""Mount generated route handlers on a FastAPI application."""

from __future__ import annotations

import logging
import re
from typing import Any, Awaitable, Callable, Iterable, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from .auth import AuthGate
from .context import RequestContext
from .errors import normalize_error
from .store import Database

logger = logging.getLogger(__name__)

Handler = Callable[[RequestContext], Awaitable[Any]]
RouteEntry = Tuple[str, str, Handler]

_PARAM_SEGMENT = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")


def to_fastapi_path(path: str) -> str:
    """``/users/:id`` -> ``/users/{id}``"""
    return _PARAM_SEGMENT.sub(r"{\1}", path)


def _endpoint(handler: Handler, *, db: Database, auth: Optional[AuthGate]):
    async def endpoint(request: Request):
        try:
            ctx = await RequestContext.from_request(request, db=db, auth=auth)
            result = await handler(ctx)
        except Exception as exc:
            error = normalize_error(exc)
            if error.status >= 500:
                logger.exception("%s %s failed", request.method, request.url.path)
            else:
                logger.info("%s %s -> %d %s", request.method, request.url.path, error.status, error.message)
            return JSONResponse(error.to_payload(), status_code=error.status)
        return JSONResponse(jsonable_encoder(result))

    endpoint.__name__ = handler.__name__
    return endpoint


def mount_routes(
    app: FastAPI,
    routes: Iterable[RouteEntry],
    *,
    db: Database,
    auth: Optional[AuthGate] = None,
) -> None:
    """Register each ``(method, path, handler)`` entry on ``app``."""
    for method, path, handler in routes:
        app.add_api_route(
            to_fastapi_path(path),
            _endpoint(handler, db=db, auth=auth),
            methods=[method],
            name=handler.__name__,
        )
        logger.debug("Mounted %s %s -> %s", method, path, handler.__name__)


__all__ = ["mount_routes", "to_fastapi_path", "RouteEntry"]
