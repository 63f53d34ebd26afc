"""Resolve the CSP configuration for an environment."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog

from csp_injector.config.loader import load_yaml
from csp_injector.middleware.csp_builder import CSP_HEADER, CSP_NONE, CSP_SELF
from csp_injector.models.config import DELIVERY_HEADER, DELIVERY_META, CspConfig
from csp_injector.models.policy import Policy

logger = structlog.get_logger()

_OWN_CONFIG_KEYS = ("delivery", "enabled", "policy", "report_only")

_LEGACY_POLICY = "content_security_policy"
_LEGACY_HEADER = "content_security_policy_header"
_LEGACY_META = "content_security_policy_meta"


def default_policy(environment: str) -> dict[str, Any]:
    policy: dict[str, Any] = {
        "default-src": [CSP_NONE],
        "script-src": [CSP_SELF],
        "font-src": [CSP_SELF],
        "connect-src": [CSP_SELF],
        "img-src": [CSP_SELF],
        "style-src": [CSP_SELF],
        "media-src": [CSP_SELF],
    }
    # the test runner loads the app in a frame
    if environment == "test":
        policy["frame-src"] = CSP_SELF
    return policy


def read_own_config(path: str | Path, environment: str) -> dict[str, Any]:
    """Read the addon config file and apply its per-environment section.

    Layout::

        enabled: true
        report_only: true
        delivery: [header]
        policy:
          default-src: ["'none'"]
        environments:
          production:
            report_only: false
    """
    data = load_yaml(path)
    environments = data.pop("environments", None) or {}
    if not isinstance(environments, dict):
        raise ValueError("'environments' must be a mapping of environment name to overrides")
    config = {key: value for key, value in data.items() if key in _OWN_CONFIG_KEYS}
    overrides = environments.get(environment) or {}
    if not isinstance(overrides, dict):
        raise ValueError(f"Overrides for environment '{environment}' must be a mapping")
    config.update({key: value for key, value in overrides.items() if key in _OWN_CONFIG_KEYS})

    unknown = sorted(set(data) - set(_OWN_CONFIG_KEYS))
    if unknown:
        logger.warning("csp_config_unknown_keys", keys=unknown, path=str(path))
    return config


def calculate_config(
    environment: str,
    own_config: dict[str, Any] | None = None,
    run_config: dict[str, Any] | None = None,
) -> CspConfig:
    """Merge defaults, legacy app settings and the addon config, in that order.

    Own config keys replace whole values: a ``policy`` given there replaces
    the default policy instead of merging into it.

    Raises InvalidPolicyValue when a directive value is malformed.
    """
    own_config = own_config or {}
    run_config = run_config or {}

    config: dict[str, Any] = {
        "delivery": [DELIVERY_HEADER],
        "enabled": True,
        "policy": default_policy(environment),
        "report_only": True,
    }

    legacy_keys = [key for key in (_LEGACY_POLICY, _LEGACY_HEADER, _LEGACY_META) if run_config.get(key)]
    if legacy_keys:
        logger.warning(
            "csp_legacy_config_deprecated",
            keys=legacy_keys,
            message=(
                "Configuring the content security policy through the application environment "
                "is deprecated. Move these settings into the addon config file."
            ),
        )

    if run_config.get(_LEGACY_POLICY):
        config["policy"] = {**config["policy"], **run_config[_LEGACY_POLICY]}
    if run_config.get(_LEGACY_META):
        config["delivery"] = [DELIVERY_META]
    if run_config.get(_LEGACY_HEADER):
        config["report_only"] = run_config[_LEGACY_HEADER] != CSP_HEADER

    config.update(own_config)

    delivery = config["delivery"]
    if isinstance(delivery, str):
        delivery = [delivery]

    return CspConfig(
        delivery=tuple(delivery),
        enabled=config["enabled"],
        policy=Policy.from_mapping(config["policy"]),
        report_only=config["report_only"],
    )
