"""Endpoint receiving CSP violation reports from the browser."""

from __future__ import annotations

import json

import structlog
from fastapi import APIRouter, HTTPException, Request

from csp_injector.middleware.csp_builder import REPORT_PATH

logger = structlog.get_logger()

router = APIRouter(tags=["csp"])

# Browsers send application/csp-report; report-to style clients send JSON
_REPORT_CONTENT_TYPES = frozenset({"application/csp-report", "application/json"})


def _media_type(request: Request) -> str:
    content_type = request.headers.get("content-type", "")
    return content_type.split(";")[0].strip().lower()


@router.post(REPORT_PATH)
async def csp_report(request: Request) -> dict:
    """Log a violation report and acknowledge it.

    Bodies in other content types are not parsed; the report is still
    acknowledged so the browser does not retry.
    """
    report: object = {}
    if _media_type(request) in _REPORT_CONTENT_TYPES:
        body = await request.body()
        if body:
            try:
                report = json.loads(body)
            except (UnicodeDecodeError, json.JSONDecodeError):
                logger.warning("csp_report_malformed", size=len(body))
                raise HTTPException(status_code=400, detail="Malformed CSP report")

    logger.warning(
        "csp_violation",
        message="Content Security Policy violation",
        report=report,
    )
    return {"status": "ok"}
