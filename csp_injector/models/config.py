"""Pydantic models for the resolved addon configuration."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from csp_injector.models.policy import Policy

DELIVERY_HEADER = "header"
DELIVERY_META = "meta"


class CspConfig(BaseModel):
    """Resolved CSP configuration for one environment."""

    model_config = ConfigDict(frozen=True)

    delivery: tuple[Literal["header", "meta"], ...] = (DELIVERY_HEADER,)
    enabled: bool = True
    policy: Policy = Field(default_factory=Policy)
    report_only: bool = True

    @property
    def meta_delivery(self) -> bool:
        return DELIVERY_META in self.delivery


class LiveReloadConfig(BaseModel):
    """Live-reload server the dev build connects to."""

    model_config = ConfigDict(frozen=True)

    host: str = ""
    port: int
    ssl: bool = False
