"""Pushes campaigns to the ad platforms and reports per-platform outcomes.

Each platform call runs in isolation under a fixed timeout. A failure on one
platform never stops the other; every failure becomes a structured outcome
instead of an exception.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional

from mindful_ads.config import settings
from mindful_ads.db.enums import AdPlatformEnum, PlatformEnum
from mindful_ads.db.models import Campaign
from mindful_ads.services.ad_platforms.base import (
    AdPlatformClient,
    AdPlatformError,
    PlatformCampaignRef,
    PlatformCampaignSpec,
    PlatformMetrics,
)
from mindful_ads.services.ad_platforms.google import GoogleAdsClient
from mindful_ads.services.ad_platforms.meta import MetaAdsClient

logger = logging.getLogger("ads.orchestrator")

ClientFactory = Callable[[], AdPlatformClient]

DEFAULT_CLIENT_FACTORIES: dict[AdPlatformEnum, ClientFactory] = {
    AdPlatformEnum.META: MetaAdsClient.from_settings,
    AdPlatformEnum.GOOGLE: GoogleAdsClient.from_settings,
}

PLATFORM_ID_FIELDS = {
    AdPlatformEnum.META: "meta_campaign_id",
    AdPlatformEnum.GOOGLE: "google_campaign_id",
}


@dataclass
class LaunchOptions:
    use_lead_gen: bool = False
    use_psychology_targeting: bool = False

    def as_dict(self) -> dict[str, bool]:
        return {"useLeadGen": self.use_lead_gen, "usePsychologyTargeting": self.use_psychology_targeting}


@dataclass
class PlatformOutcome:
    platform: AdPlatformEnum
    success: bool
    platform_id: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)
    created: bool = False
    error: Optional[str] = None
    timed_out: bool = False
    metrics: Optional[PlatformMetrics] = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.platform_id:
            payload["id"] = self.platform_id
        if self.success:
            payload["created"] = self.created
        else:
            payload["error"] = self.error
            payload["timedOut"] = self.timed_out
        if self.metrics is not None:
            payload["metrics"] = self.metrics.as_dict()
        return payload


@dataclass
class PlatformPushResult:
    outcomes: dict[AdPlatformEnum, PlatformOutcome] = field(default_factory=dict)

    @property
    def all_succeeded(self) -> bool:
        return all(outcome.success for outcome in self.outcomes.values())

    @property
    def any_failed(self) -> bool:
        return not self.all_succeeded

    @property
    def any_timed_out(self) -> bool:
        return any(outcome.timed_out for outcome in self.outcomes.values())

    def successful(self) -> list[PlatformOutcome]:
        return [outcome for outcome in self.outcomes.values() if outcome.success]

    def as_dict(self) -> dict[str, Any]:
        return {platform.value: outcome.as_dict() for platform, outcome in self.outcomes.items()}


def target_platforms(platform: PlatformEnum) -> list[AdPlatformEnum]:
    if platform == PlatformEnum.BOTH:
        return [AdPlatformEnum.META, AdPlatformEnum.GOOGLE]
    return [AdPlatformEnum(platform.value)]


def stored_platform_id(campaign: Campaign, platform: AdPlatformEnum) -> Optional[str]:
    return getattr(campaign, PLATFORM_ID_FIELDS[platform])


def linked_platforms(campaign: Campaign) -> list[AdPlatformEnum]:
    return [platform for platform in AdPlatformEnum if stored_platform_id(campaign, platform)]


def landing_page_url(campaign: Campaign) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/lp/{campaign.landing_page_slug or 'default'}"


def build_spec(campaign: Campaign, options: Optional[LaunchOptions] = None) -> PlatformCampaignSpec:
    options = options or LaunchOptions()
    return PlatformCampaignSpec(
        name=campaign.name,
        budget=campaign.budget,
        target_audience=campaign.target_audience,
        objectives=list(campaign.objectives or []),
        landing_page_url=landing_page_url(campaign),
        use_lead_gen=options.use_lead_gen,
        use_psychology_targeting=options.use_psychology_targeting,
        local_campaign_id=campaign.id,
    )


class AdsOrchestrator:
    def __init__(
        self,
        client_factories: Optional[Mapping[AdPlatformEnum, ClientFactory]] = None,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        self._factories = dict(client_factories or DEFAULT_CLIENT_FACTORIES)
        self.timeout = timeout if timeout is not None else settings.AD_PLATFORM_TIMEOUT_SECONDS
        self._clients: dict[AdPlatformEnum, AdPlatformClient] = {}

    def _client(self, platform: AdPlatformEnum) -> AdPlatformClient:
        client = self._clients.get(platform)
        if client is None:
            factory = self._factories.get(platform)
            if factory is None:
                raise AdPlatformError(f"No client configured for {platform.value}", platform=platform)
            client = factory()
            self._clients[platform] = client
        return client

    async def _run(
        self,
        platform: AdPlatformEnum,
        call: Callable[[AdPlatformClient], Awaitable[PlatformOutcome]],
        *,
        campaign_id: Optional[str],
        operation: str,
    ) -> PlatformOutcome:
        log_extra = {"campaign_id": campaign_id, "platform": platform.value, "operation": operation}
        try:
            client = self._client(platform)
            return await asyncio.wait_for(call(client), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Ad platform call timed out", extra={**log_extra, "timeout": self.timeout})
            return PlatformOutcome(
                platform=platform,
                success=False,
                error=f"{platform.value} request timed out after {self.timeout:g}s",
                timed_out=True,
            )
        except AdPlatformError as exc:
            logger.warning("Ad platform call failed", extra={**log_extra, "error": str(exc)})
            outcome = PlatformOutcome(platform=platform, success=False, error=str(exc))
            if exc.partial is not None:
                outcome.platform_id = exc.partial.platform_id
                outcome.details = exc.partial.details
            return outcome
        except Exception as exc:
            logger.exception("Unexpected ad platform failure", extra=log_extra)
            return PlatformOutcome(platform=platform, success=False, error=str(exc) or exc.__class__.__name__)

    async def _gather(
        self,
        platforms: list[AdPlatformEnum],
        make_call: Callable[[AdPlatformEnum], Callable[[AdPlatformClient], Awaitable[PlatformOutcome]]],
        *,
        campaign_id: Optional[str],
        operation: str,
    ) -> PlatformPushResult:
        outcomes = await asyncio.gather(
            *(
                self._run(platform, make_call(platform), campaign_id=campaign_id, operation=operation)
                for platform in platforms
            )
        )
        return PlatformPushResult(outcomes={outcome.platform: outcome for outcome in outcomes})

    async def launch(self, campaign: Campaign, options: Optional[LaunchOptions] = None) -> PlatformPushResult:
        """Create or update the vendor campaigns for every targeted platform.

        A platform that already has a stored id is updated in place, so
        re-running a launch never creates duplicates.
        """
        spec = build_spec(campaign, options)
        stored_details = dict(campaign.platform_details or {})

        def make_call(platform: AdPlatformEnum):
            existing_id = stored_platform_id(campaign, platform)

            async def call(client: AdPlatformClient) -> PlatformOutcome:
                if existing_id:
                    ref: PlatformCampaignRef = await client.update_campaign(
                        existing_id, spec, stored_details.get(platform.value)
                    )
                    created = False
                else:
                    ref = await client.create_campaign(spec)
                    created = True
                return PlatformOutcome(
                    platform=platform,
                    success=True,
                    platform_id=ref.platform_id,
                    details=ref.details,
                    created=created,
                )

            return call

        return await self._gather(
            target_platforms(campaign.platform), make_call, campaign_id=campaign.id, operation="launch"
        )

    async def update(self, campaign: Campaign) -> PlatformPushResult:
        spec = build_spec(campaign)
        stored_details = dict(campaign.platform_details or {})

        def make_call(platform: AdPlatformEnum):
            platform_id = stored_platform_id(campaign, platform)

            async def call(client: AdPlatformClient) -> PlatformOutcome:
                ref = await client.update_campaign(platform_id, spec, stored_details.get(platform.value))
                return PlatformOutcome(platform=platform, success=True, platform_id=ref.platform_id, details=ref.details)

            return call

        return await self._gather(linked_platforms(campaign), make_call, campaign_id=campaign.id, operation="update")

    async def _toggle(self, campaign: Campaign, *, pause: bool) -> PlatformPushResult:
        def make_call(platform: AdPlatformEnum):
            platform_id = stored_platform_id(campaign, platform)

            async def call(client: AdPlatformClient) -> PlatformOutcome:
                if pause:
                    await client.pause_campaign(platform_id)
                else:
                    await client.resume_campaign(platform_id)
                return PlatformOutcome(platform=platform, success=True, platform_id=platform_id)

            return call

        operation = "pause" if pause else "resume"
        return await self._gather(linked_platforms(campaign), make_call, campaign_id=campaign.id, operation=operation)

    async def pause(self, campaign: Campaign) -> PlatformPushResult:
        return await self._toggle(campaign, pause=True)

    async def resume(self, campaign: Campaign) -> PlatformPushResult:
        return await self._toggle(campaign, pause=False)

    async def fetch_metrics(self, campaign: Campaign) -> PlatformPushResult:
        def make_call(platform: AdPlatformEnum):
            platform_id = stored_platform_id(campaign, platform)

            async def call(client: AdPlatformClient) -> PlatformOutcome:
                metrics = await client.fetch_metrics(platform_id)
                return PlatformOutcome(platform=platform, success=True, platform_id=platform_id, metrics=metrics)

            return call

        return await self._gather(linked_platforms(campaign), make_call, campaign_id=campaign.id, operation="metrics")


def apply_platform_ids(campaign: Campaign, result: PlatformPushResult) -> None:
    """Copy ids and secondary object details onto the campaign.

    Failed outcomes still carry the id of a vendor campaign that was created
    before a later setup step failed; storing it lets the next launch finish
    that campaign instead of creating another one.
    """
    details = dict(campaign.platform_details or {})
    for outcome in result.outcomes.values():
        if not outcome.platform_id:
            continue
        setattr(campaign, PLATFORM_ID_FIELDS[outcome.platform], outcome.platform_id)
        if outcome.details:
            details[outcome.platform.value] = {**details.get(outcome.platform.value, {}), **outcome.details}
    campaign.platform_details = details


def get_ads_orchestrator() -> AdsOrchestrator:
    return AdsOrchestrator()
