"""Shared test fixtures."""

from __future__ import annotations

import sys

import pytest
import structlog

from csp_injector.config.addon_config import calculate_config
from csp_injector.config.runtime import AddonRuntime
from csp_injector.models.config import LiveReloadConfig


@pytest.fixture(autouse=True)
def _mock_settings(monkeypatch, tmp_path):
    """Point settings at files that do not exist unless a test writes them."""
    for key in ("CSP_HOST", "CSP_PORT", "CSP_SSL", "CSP_LIVE_RELOAD_HOST", "CSP_LIVE_RELOAD_PORT"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("CSP_ENVIRONMENT", "development")
    monkeypatch.setenv("CSP_CONFIG_FILE", str(tmp_path / "content-security-policy.yaml"))
    monkeypatch.setenv("CSP_ENVIRONMENT_FILE", str(tmp_path / "environment.yaml"))
    monkeypatch.setenv("CSP_BUILD_DIR", str(tmp_path / "dist"))
    monkeypatch.setenv("CSP_LOG_LEVEL", "debug")
    monkeypatch.setenv("CSP_LOG_JSON", "false")

    # Reset cached settings
    import csp_injector.config.loader as loader
    loader._settings = None
    yield
    loader._settings = None


@pytest.fixture(autouse=True)
def _log_to_stderr():
    """Keep stdout free for CLI output assertions."""
    structlog.configure(logger_factory=structlog.PrintLoggerFactory(sys.stderr))
    yield
    structlog.reset_defaults()


@pytest.fixture
def make_runtime():
    """Build an AddonRuntime without touching the filesystem."""

    def _make(
        environment: str = "development",
        own_config: dict | None = None,
        live_reload: LiveReloadConfig | None = None,
        host: str = "",
        port: int = 4200,
        ssl: bool = False,
    ) -> AddonRuntime:
        return AddonRuntime(
            environment=environment,
            config=calculate_config(environment, own_config or {}),
            live_reload=live_reload,
            host=host,
            port=port,
            ssl=ssl,
        )

    return _make
