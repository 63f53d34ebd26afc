"""Build-time hooks: CSP meta tag for the page head and test script nonces."""

from __future__ import annotations

import html
import re

import structlog

from csp_injector.config.runtime import AddonRuntime
from csp_injector.middleware.csp_builder import (
    CSP_HEADER,
    STATIC_TEST_NONCE,
    build_csp,
    meta_policy,
    unsupported_meta_directives,
)

logger = structlog.get_logger()

HEAD_PLACEHOLDER_RE = re.compile(r"\{\{\s*content-for\s+['\"]head['\"]\s*\}\}")

# Inline script the test runner injects to assert the tests bundle loaded
_TESTS_LOADED_SCRIPT_RE = re.compile(r"<script>\s*[^<]*TESTS_FILE_LOADED\s*\)?;?\s*</script>")


def meta_tag(policy_string: str) -> str:
    # single quotes are part of CSP keywords and stay unescaped
    content = html.escape(policy_string, quote=False).replace('"', "&quot;")
    return f'<meta http-equiv="{CSP_HEADER}" content="{content}">'


def head_content(runtime: AddonRuntime) -> str | None:
    """Return the CSP meta tag for the page head, or None when not delivered via meta.

    Directives browsers ignore in meta (report-uri, frame-ancestors, sandbox)
    are reported but still written out.
    """
    config = runtime.config
    if not config.enabled or not config.meta_delivery:
        return None

    if config.report_only:
        logger.warning(
            "csp_meta_report_only_unsupported",
            message=(
                "Content Security Policy does not support report only mode if delivered via "
                "meta element. Either set report_only to false or remove 'meta' from delivery."
            ),
        )

    policy = meta_policy(config, runtime.environment, runtime.live_reload)
    for name in unsupported_meta_directives(policy):
        logger.warning(
            "csp_meta_directive_unsupported",
            directive=name,
            message=f"CSP delivered via meta does not support `{name}`, per the W3C recommendation.",
        )

    policy_string = build_csp(policy)
    if not policy_string:
        logger.warning("csp_meta_policy_empty", message="CSP via meta tag enabled but no policy exist.")
        return None
    return meta_tag(policy_string)


def add_nonce_to_test_scripts(entries: list[str]) -> list[str]:
    """Give the tests-loaded assertion script the static test nonce."""
    nonced = f'<script nonce="{STATIC_TEST_NONCE}">'
    return [
        _TESTS_LOADED_SCRIPT_RE.sub(lambda m: m.group(0).replace("<script>", nonced, 1), entry)
        for entry in entries
    ]


def render_index(document: str, runtime: AddonRuntime) -> str:
    """Fill the head placeholder of a built page and nonce its test scripts.

    Pages without a placeholder get the meta tag right after ``<head>``.
    """
    content = head_content(runtime) or ""
    if HEAD_PLACEHOLDER_RE.search(document):
        document = HEAD_PLACEHOLDER_RE.sub(lambda _: content, document)
    elif content:
        document = re.sub(r"(<head(?:\s[^>]*)?>)", lambda m: m.group(1) + content, document, count=1, flags=re.I)
    if runtime.config.enabled:
        document = add_nonce_to_test_scripts([document])[0]
    return document
