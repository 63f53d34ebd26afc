"""Pure-function CSP (Content-Security-Policy) merge and serialization utilities."""

from __future__ import annotations

from csp_injector.models.config import CspConfig, LiveReloadConfig
from csp_injector.models.policy import Policy, RawString, SourceList, normalize, render_value

CSP_SELF = "'self'"
CSP_NONE = "'none'"
REPORT_PATH = "/csp-report"

CSP_HEADER = "Content-Security-Policy"
CSP_HEADER_REPORT_ONLY = "Content-Security-Policy-Report-Only"

CSP_REPORT_URI = "report-uri"
CSP_FRAME_ANCESTORS = "frame-ancestors"
CSP_SANDBOX = "sandbox"

# Ignored by browsers when delivered through <meta http-equiv>
META_UNSUPPORTED_DIRECTIVES = (CSP_REPORT_URI, CSP_FRAME_ANCESTORS, CSP_SANDBOX)

STATIC_TEST_NONCE = "abcdefg"


def append_source(policy: Policy, directive: str, source: str) -> Policy:
    """Append one source to a directive, keeping default-src fallback intact.

    A directive that is missing or empty inherits default-src in the browser.
    Appending straight onto it would replace the inherited sources with just
    the new one, so default-src is copied in first.

    Example:
        >>> p = Policy.from_mapping({"default-src": ["'self'", "a.com"]})
        >>> build_csp(append_source(p, "connect-src", "b.com"))
        "default-src 'self' a.com; connect-src 'self' a.com b.com"
    """
    existing = normalize(policy.get(directive))
    base = existing or normalize(policy.get("default-src"))
    return policy.replace(directive, SourceList((*base, source)))


def add_test_nonce(policy: Policy) -> Policy:
    return append_source(policy, "script-src", f"'nonce-{STATIC_TEST_NONCE}'")


def live_reload_hosts(live_reload: LiveReloadConfig) -> list[str]:
    return [host for host in ("localhost", "0.0.0.0", live_reload.host) if host]


def allow_live_reload(policy: Policy, live_reload: LiveReloadConfig) -> Policy:
    """Allow the live-reload websocket and script on every candidate host."""
    protocol = "wss://" if live_reload.ssl else "ws://"
    for hostname in live_reload_hosts(live_reload):
        host = f"{hostname}:{live_reload.port}"
        policy = append_source(policy, "connect-src", protocol + host)
        policy = append_source(policy, "script-src", host)
    return policy


def report_origin(host: str, port: int, ssl: bool = False) -> str:
    protocol = "https://" if ssl else "http://"
    return f"{protocol}{host or 'localhost'}:{port}"


def add_report_endpoint(policy: Policy, origin: str) -> Policy:
    """Point report-uri at the dev server, unless one is configured already.

    report-uri is a single destination URL, so it is assigned rather than
    appended.
    """
    if CSP_REPORT_URI in policy:
        return policy
    policy = append_source(policy, "connect-src", origin)
    return policy.replace(CSP_REPORT_URI, RawString(origin + REPORT_PATH))


def unsupported_meta_directives(policy: Policy) -> list[str]:
    return [name for name in META_UNSUPPORTED_DIRECTIVES if name in policy]


def build_csp(policy: Policy) -> str:
    """Build a CSP string from a policy, skipping directives with no value.

    Returns an empty string when nothing is left to emit; callers must then
    skip the header or meta tag entirely.

    Example:
        >>> build_csp(Policy.from_mapping({"default-src": ["'none'"], "img-src": []}))
        "default-src 'none'"
    """
    parts = []
    for directive, value in policy.items():
        rendered = render_value(value).strip()
        if rendered:
            parts.append(f"{directive} {rendered}")
    return "; ".join(parts)


def header_name(report_only: bool) -> str:
    return CSP_HEADER_REPORT_ONLY if report_only else CSP_HEADER


def header_policy(
    config: CspConfig,
    live_reload: LiveReloadConfig | None = None,
    origin: str | None = None,
) -> Policy:
    """Policy served by the dev server.

    The dev server never serves production builds, so the test nonce is
    always added.
    """
    policy = add_test_nonce(config.policy)
    if live_reload is not None:
        policy = allow_live_reload(policy, live_reload)
    # report-uri is only honoured in headers, never in meta
    if config.report_only and origin:
        policy = add_report_endpoint(policy, origin)
    return policy


def meta_policy(
    config: CspConfig,
    environment: str,
    live_reload: LiveReloadConfig | None = None,
) -> Policy:
    """Policy written into the <meta> tag of a build."""
    policy = config.policy
    if environment == "test":
        policy = add_test_nonce(policy)
    if live_reload is not None:
        policy = allow_live_reload(policy, live_reload)
    return policy
