"""One-shot resolution of everything the hooks need at request/build time."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from csp_injector.config.addon_config import calculate_config, read_own_config
from csp_injector.config.loader import ServerSettings, load_yaml
from csp_injector.middleware.csp_builder import report_origin
from csp_injector.models.config import CspConfig, LiveReloadConfig

logger = structlog.get_logger()


@dataclass(frozen=True)
class AddonRuntime:
    """Resolved, immutable addon state shared by the server, build and CLI."""

    environment: str
    config: CspConfig
    live_reload: LiveReloadConfig | None = None
    host: str = ""
    port: int = 4200
    ssl: bool = False

    @property
    def report_origin(self) -> str:
        return report_origin(self.host, self.port, self.ssl)


def resolve_live_reload(settings: ServerSettings) -> LiveReloadConfig | None:
    if not settings.live_reload:
        return None
    return LiveReloadConfig(
        host=settings.live_reload_host,
        port=settings.live_reload_port or settings.port,
        ssl=settings.ssl,
    )


def resolve_runtime(settings: ServerSettings, environment: str | None = None) -> AddonRuntime:
    """Read the config files once and build the runtime for an environment."""
    environment = environment or settings.environment
    own_config = read_own_config(settings.config_file, environment)
    run_config = load_yaml(settings.environment_file)
    config = calculate_config(environment, own_config, run_config)
    runtime = AddonRuntime(
        environment=environment,
        config=config,
        live_reload=resolve_live_reload(settings),
        host=settings.host,
        port=settings.port,
        ssl=settings.ssl,
    )
    logger.info(
        "csp_config_resolved",
        environment=environment,
        enabled=config.enabled,
        delivery=list(config.delivery),
        report_only=config.report_only,
        live_reload=runtime.live_reload is not None,
    )
    return runtime
