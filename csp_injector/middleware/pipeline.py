"""Ordered middleware chain run around every dev server request."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

import structlog
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()


@dataclass
class RequestContext:
    """Per-request state shared by the middleware of one request."""

    request_id: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.request_id:
            self.request_id = uuid4().hex[:8]


class Middleware(abc.ABC):
    """Base class for middleware in the pipeline."""

    @property
    def name(self) -> str:
        return self.__class__.__name__

    async def process_request(self, request: Request, context: RequestContext) -> Response | None:
        """Return a Response to short-circuit the request, None to continue."""
        return None

    @abc.abstractmethod
    async def process_response(self, response: Response, context: RequestContext) -> Response:
        """Process an outgoing response."""
        ...


class MiddlewarePipeline:
    """Request hooks run in order; response hooks run in reverse."""

    def __init__(self) -> None:
        self._middleware: list[Middleware] = []

    def add(self, middleware: Middleware) -> None:
        self._middleware.append(middleware)
        logger.debug("middleware_registered", name=middleware.name)

    async def process_request(self, request: Request, context: RequestContext) -> Response | None:
        """Run the request through each middleware until one short-circuits.

        A failing middleware turns into a 500 rather than an unhandled error.
        """
        for mw in self._middleware:
            try:
                result = await mw.process_request(request, context)
            except Exception:
                logger.exception("middleware_request_error", middleware=mw.name)
                return Response(content="Internal server error", status_code=500)
            if result is not None:
                logger.debug("middleware_short_circuit", middleware=mw.name)
                return result
        return None

    async def process_response(self, response: Response, context: RequestContext) -> Response:
        """Run the response through each middleware in reverse order.

        A failing middleware is logged and skipped; the response still goes out.
        """
        for mw in reversed(self._middleware):
            try:
                response = await mw.process_response(response, context)
            except Exception:
                logger.exception("middleware_response_error", middleware=mw.name)
        return response
