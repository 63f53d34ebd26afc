"""Content-Security-Policy header delivery for the dev server."""

from __future__ import annotations

import structlog
from starlette.responses import Response

from csp_injector.config.runtime import AddonRuntime
from csp_injector.middleware.csp_builder import (
    CSP_HEADER,
    CSP_HEADER_REPORT_ONLY,
    build_csp,
    header_name,
    header_policy,
)
from csp_injector.middleware.pipeline import Middleware, RequestContext

logger = structlog.get_logger()

# Cleared before setting ours so upstream values never pile up
_CSP_HEADERS = (
    CSP_HEADER,
    CSP_HEADER_REPORT_ONLY,
    "X-" + CSP_HEADER,
    "X-" + CSP_HEADER_REPORT_ONLY,
)


class ContentSecurityPolicyHeaders(Middleware):
    """Attach the CSP header (and its legacy X- duplicate) to every response.

    Sent whenever the addon is enabled, whatever ``delivery`` says; meta
    delivery only adds the tag to built pages.

    - Adds the static test nonce, since the dev server may serve /tests
    - Allows the live-reload websocket when live reload is active
    - In report-only mode, routes violation reports back to this server
    """

    def __init__(self, runtime: AddonRuntime) -> None:
        self._runtime = runtime

    async def process_response(self, response: Response, context: RequestContext) -> Response:
        config = self._runtime.config
        if not config.enabled:
            return response

        policy = header_policy(config, self._runtime.live_reload, self._runtime.report_origin)
        value = build_csp(policy)
        if not value:
            logger.debug("csp_header_skipped", reason="empty policy", request_id=context.request_id)
            return response

        for name in _CSP_HEADERS:
            if name in response.headers:
                del response.headers[name]

        name = header_name(config.report_only)
        response.headers[name] = value
        # Internet Explorer 11 and below only understand the prefixed name
        response.headers["X-" + name] = value
        return response
