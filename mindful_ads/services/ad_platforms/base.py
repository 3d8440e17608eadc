from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from mindful_ads.db.enums import AdPlatformEnum


class AdPlatformError(RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        platform: AdPlatformEnum,
        status_code: Optional[int] = None,
        error_payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.platform = platform
        self.status_code = status_code
        self.error_payload = error_payload
        # Set when the vendor campaign exists but a later setup step failed.
        self.partial: Optional[PlatformCampaignRef] = None


class AdPlatformConfigError(AdPlatformError):
    pass


@dataclass
class PlatformCampaignSpec:
    name: str
    budget: float
    target_audience: str
    objectives: list[str]
    landing_page_url: Optional[str] = None
    use_lead_gen: bool = False
    use_psychology_targeting: bool = False
    local_campaign_id: Optional[str] = None


@dataclass
class PlatformCampaignRef:
    platform_id: str
    # Secondary vendor objects needed for later updates (ad set, budget, form ids).
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class PlatformMetrics:
    impressions: int = 0
    clicks: int = 0
    conversions: int = 0
    cost: float = 0.0

    def as_dict(self) -> dict[str, Any]:
        return {
            "impressions": self.impressions,
            "clicks": self.clicks,
            "conversions": self.conversions,
            "cost": self.cost,
        }


class AdPlatformClient(ABC):
    """One vendor ad platform.

    Every campaign object a client creates starts out paused on the vendor
    side; activation is a separate call.
    """

    platform: AdPlatformEnum

    @abstractmethod
    async def create_campaign(self, spec: PlatformCampaignSpec) -> PlatformCampaignRef: ...

    @abstractmethod
    async def update_campaign(
        self,
        platform_id: str,
        spec: PlatformCampaignSpec,
        details: Optional[dict[str, Any]] = None,
    ) -> PlatformCampaignRef: ...

    async def _complete_setup(self, platform_id: str, spec: PlatformCampaignSpec, details: dict[str, Any]) -> None:
        """Create whichever secondary objects are missing from ``details``, recording their ids there."""

    async def _finish_setup(
        self, platform_id: str, spec: PlatformCampaignSpec, details: dict[str, Any]
    ) -> PlatformCampaignRef:
        try:
            await self._complete_setup(platform_id, spec, details)
        except AdPlatformError as exc:
            exc.partial = PlatformCampaignRef(platform_id=platform_id, details=dict(details))
            raise
        return PlatformCampaignRef(platform_id=platform_id, details=details)

    @abstractmethod
    async def pause_campaign(self, platform_id: str) -> None: ...

    @abstractmethod
    async def resume_campaign(self, platform_id: str) -> None: ...

    @abstractmethod
    async def fetch_metrics(self, platform_id: str) -> PlatformMetrics: ...


def daily_budget(budget: float) -> float:
    """Campaign budgets are monthly; vendors take a daily amount."""
    return budget / 30
