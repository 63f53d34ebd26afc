"""FastAPI dev server: serves the build output with CSP delivery."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, HTMLResponse, Response

from csp_injector.api.report_routes import router as report_router
from csp_injector.build.content_for import render_index
from csp_injector.config.loader import ServerSettings, get_settings
from csp_injector.config.runtime import AddonRuntime, resolve_runtime
from csp_injector.logging_config import setup_logging
from csp_injector.middleware.csp_headers import ContentSecurityPolicyHeaders
from csp_injector.middleware.pipeline import MiddlewarePipeline, RequestContext

logger = structlog.get_logger()


def _build_pipeline(runtime: AddonRuntime) -> MiddlewarePipeline:
    pipeline = MiddlewarePipeline()
    pipeline.add(ContentSecurityPolicyHeaders(runtime))
    return pipeline


def _resolve_build_file(build_dir: Path, path: str) -> Path | None:
    """Map a URL path to a file inside build_dir; None if missing or outside it."""
    root = build_dir.resolve()
    candidate = (root / path).resolve()
    if candidate != root and root not in candidate.parents:
        return None
    if candidate.is_dir():
        candidate = candidate / "index.html"
    return candidate if candidate.is_file() else None


def create_app(
    settings: ServerSettings | None = None,
    runtime: AddonRuntime | None = None,
) -> FastAPI:
    """Create the dev server app.

    Configuration is resolved once here and handed to the middleware and
    page rendering; nothing is read from module state afterwards.
    """
    settings = settings or get_settings()
    runtime = runtime or resolve_runtime(settings)
    build_dir = Path(settings.build_dir)
    pipeline = _build_pipeline(runtime)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(log_level=settings.log_level, json_format=settings.log_json)
        logger.info(
            "dev_server_started",
            environment=runtime.environment,
            port=settings.port,
            build_dir=str(build_dir),
        )
        yield
        logger.info("dev_server_stopped")

    app = FastAPI(title="CSP dev server", lifespan=lifespan)

    @app.middleware("http")
    async def run_pipeline(request: Request, call_next):
        context = RequestContext()
        response = await pipeline.process_request(request, context)
        if response is None:
            response = await call_next(request)
        return await pipeline.process_response(response, context)

    app.include_router(report_router)

    @app.get("/{path:path}")
    async def serve_build(path: str) -> Response:
        """Serve a file from the build output, falling back to index.html."""
        target = _resolve_build_file(build_dir, path)
        if target is None:
            target = _resolve_build_file(build_dir, "index.html")
        if target is None:
            return Response(content="Not found", status_code=404)
        if target.suffix == ".html":
            document = target.read_text(encoding="utf-8")
            return HTMLResponse(render_index(document, runtime))
        return FileResponse(target)

    return app
