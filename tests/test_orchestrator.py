import asyncio

from conftest import FakePlatformClient

from mindful_ads.db.enums import AdPlatformEnum, PlatformEnum
from mindful_ads.db.models import Campaign
from mindful_ads.services.ad_platforms.base import AdPlatformConfigError, PlatformMetrics
from mindful_ads.services.ad_platforms.meta import MetaAdsClient, MetaAdsError
from mindful_ads.services.ads_orchestrator import (
    AdsOrchestrator,
    LaunchOptions,
    apply_platform_ids,
    build_spec,
    linked_platforms,
    target_platforms,
)


def _campaign(**overrides) -> Campaign:
    fields = {
        "id": "cmp-local",
        "name": "Couples Counseling",
        "platform": PlatformEnum.BOTH,
        "budget": 900.0,
        "target_audience": "Couples in Portland",
        "objectives": ["traffic"],
        "landing_page_slug": "couples",
    }
    fields.update(overrides)
    return Campaign(**fields)


def _orchestrator(timeout: float = 0.2):
    clients = {platform: FakePlatformClient(platform) for platform in AdPlatformEnum}
    factories = {platform: (lambda client=client: client) for platform, client in clients.items()}
    return AdsOrchestrator(factories, timeout=timeout), clients


def test_target_platforms():
    assert target_platforms(PlatformEnum.BOTH) == [AdPlatformEnum.META, AdPlatformEnum.GOOGLE]
    assert target_platforms(PlatformEnum.GOOGLE) == [AdPlatformEnum.GOOGLE]


def test_build_spec_carries_launch_flags():
    spec = build_spec(_campaign(), LaunchOptions(use_lead_gen=True))
    assert spec.use_lead_gen is True
    assert spec.use_psychology_targeting is False
    assert spec.landing_page_url == "https://app.example.com/lp/couples"
    assert spec.local_campaign_id == "cmp-local"


def test_launch_creates_on_every_platform():
    orchestrator, clients = _orchestrator()
    campaign = _campaign()

    result = asyncio.run(orchestrator.launch(campaign))

    assert result.all_succeeded
    assert result.as_dict() == {
        "META": {"success": True, "id": "meta-1", "created": True},
        "GOOGLE": {"success": True, "id": "google-1", "created": True},
    }
    apply_platform_ids(campaign, result)
    assert campaign.meta_campaign_id == "meta-1"
    assert campaign.google_campaign_id == "google-1"
    assert campaign.platform_details["META"] == {"createdFor": "cmp-local"}
    assert linked_platforms(campaign) == [AdPlatformEnum.META, AdPlatformEnum.GOOGLE]


def test_relaunch_updates_instead_of_creating():
    orchestrator, clients = _orchestrator()
    campaign = _campaign(meta_campaign_id="meta-9", platform_details={"META": {"adSetId": "as-9"}})

    result = asyncio.run(orchestrator.launch(campaign))

    assert result.outcomes[AdPlatformEnum.META].created is False
    assert clients[AdPlatformEnum.META].created == []
    assert clients[AdPlatformEnum.META].updated[0][0] == "meta-9"
    assert clients[AdPlatformEnum.META].updated[0][2] == {"adSetId": "as-9"}
    assert result.outcomes[AdPlatformEnum.GOOGLE].created is True


def test_one_platform_failure_does_not_stop_the_other():
    orchestrator, clients = _orchestrator()
    clients[AdPlatformEnum.GOOGLE].fail_with = "quota exceeded"

    result = asyncio.run(orchestrator.launch(_campaign()))

    assert result.any_failed
    assert result.outcomes[AdPlatformEnum.META].success is True
    assert result.as_dict()["GOOGLE"] == {"success": False, "error": "quota exceeded", "timedOut": False}


def test_slow_platform_times_out():
    orchestrator, clients = _orchestrator(timeout=0.05)
    clients[AdPlatformEnum.META].delay = 0.5

    result = asyncio.run(orchestrator.launch(_campaign()))

    meta = result.outcomes[AdPlatformEnum.META]
    assert meta.timed_out is True
    assert "timed out" in meta.error
    assert result.any_timed_out
    assert result.outcomes[AdPlatformEnum.GOOGLE].success is True


def test_missing_configuration_becomes_an_outcome():
    def unconfigured():
        raise AdPlatformConfigError("META_ACCESS_TOKEN is required", platform=AdPlatformEnum.META)

    _, clients = _orchestrator()
    orchestrator = AdsOrchestrator(
        {AdPlatformEnum.META: unconfigured, AdPlatformEnum.GOOGLE: lambda: clients[AdPlatformEnum.GOOGLE]},
        timeout=0.2,
    )

    result = asyncio.run(orchestrator.launch(_campaign()))

    assert result.outcomes[AdPlatformEnum.META].error == "META_ACCESS_TOKEN is required"
    assert result.outcomes[AdPlatformEnum.GOOGLE].success is True


def test_unexpected_exception_is_captured():
    orchestrator, clients = _orchestrator()

    async def boom(spec):
        raise ValueError("bad payload")

    clients[AdPlatformEnum.GOOGLE].create_campaign = boom
    result = asyncio.run(orchestrator.launch(_campaign()))
    assert result.outcomes[AdPlatformEnum.GOOGLE].error == "bad payload"


def test_pause_only_touches_linked_platforms():
    orchestrator, clients = _orchestrator()
    campaign = _campaign(google_campaign_id="google-3")

    result = asyncio.run(orchestrator.pause(campaign))

    assert list(result.outcomes) == [AdPlatformEnum.GOOGLE]
    assert clients[AdPlatformEnum.GOOGLE].paused == ["google-3"]
    assert clients[AdPlatformEnum.META].paused == []


def test_fetch_metrics_reports_per_platform():
    orchestrator, clients = _orchestrator()
    clients[AdPlatformEnum.META].metrics = PlatformMetrics(impressions=10, clicks=2, conversions=1, cost=4.5)
    campaign = _campaign(meta_campaign_id="meta-1")

    result = asyncio.run(orchestrator.fetch_metrics(campaign))

    assert result.as_dict() == {
        "META": {
            "success": True,
            "id": "meta-1",
            "created": False,
            "metrics": {"impressions": 10, "clicks": 2, "conversions": 1, "cost": 4.5},
        }
    }


class FlakyGraphApi:
    """Answers Meta Graph calls, failing the first ad set creation."""

    def __init__(self) -> None:
        self.paths: list[str] = []
        self.adset_failures = 1

    async def request(self, method, path, *, params=None, data=None):
        self.paths.append(path)
        if path.endswith("/campaigns"):
            return {"id": "meta-cmp-1"}
        if path.endswith("/adsets"):
            if self.adset_failures:
                self.adset_failures -= 1
                raise MetaAdsError("Meta Graph API error (500).", status_code=500)
            return {"id": "meta-adset-1"}
        return {"success": True}


def test_relaunch_after_partial_create_reuses_vendor_campaign(monkeypatch):
    client = MetaAdsClient(access_token="token", api_version="v18.0", ad_account_id="12345")
    graph = FlakyGraphApi()
    monkeypatch.setattr(client, "_request", graph.request)
    orchestrator = AdsOrchestrator({AdPlatformEnum.META: lambda: client}, timeout=1)
    campaign = _campaign(platform=PlatformEnum.META)

    first = asyncio.run(orchestrator.launch(campaign))
    assert not first.all_succeeded
    assert first.as_dict()["META"]["id"] == "meta-cmp-1"
    apply_platform_ids(campaign, first)
    assert campaign.meta_campaign_id == "meta-cmp-1"

    second = asyncio.run(orchestrator.launch(campaign))
    assert second.all_succeeded
    assert second.outcomes[AdPlatformEnum.META].created is False
    apply_platform_ids(campaign, second)
    assert campaign.platform_details["META"]["adSetId"] == "meta-adset-1"
    assert graph.paths.count("act_12345/campaigns") == 1
    assert graph.paths.count("act_12345/adsets") == 2


def test_failed_outcome_without_vendor_campaign_stores_nothing():
    orchestrator, clients = _orchestrator()
    clients[AdPlatformEnum.GOOGLE].fail_with = "quota exceeded"
    campaign = _campaign()

    apply_platform_ids(campaign, asyncio.run(orchestrator.launch(campaign)))

    assert campaign.meta_campaign_id == "meta-1"
    assert campaign.google_campaign_id is None
    assert "GOOGLE" not in campaign.platform_details
