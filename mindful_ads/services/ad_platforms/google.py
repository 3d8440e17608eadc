from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx
from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2 import credentials as oauth2_credentials

from mindful_ads.config import settings
from mindful_ads.db.enums import AdPlatformEnum
from mindful_ads.services.ad_platforms.base import (
    AdPlatformClient,
    AdPlatformConfigError,
    AdPlatformError,
    PlatformCampaignRef,
    PlatformCampaignSpec,
    PlatformMetrics,
    daily_budget,
)
from mindful_ads.services.ad_platforms.targeting import psychology_keywords

logger = logging.getLogger("ads.google")

SCOPES = ["https://www.googleapis.com/auth/adwords"]
TOKEN_URI = "https://oauth2.googleapis.com/token"
MICROS = 1_000_000
TARGET_CPA_MICROS = 50 * MICROS
AD_GROUP_CPC_BID_MICROS = 2 * MICROS


class GoogleAdsConfigError(AdPlatformConfigError):
    def __init__(self, message: str) -> None:
        super().__init__(message, platform=AdPlatformEnum.GOOGLE)


class GoogleAdsError(AdPlatformError):
    def __init__(self, message: str, status_code: Optional[int] = None, error_payload: Any = None) -> None:
        super().__init__(
            message,
            platform=AdPlatformEnum.GOOGLE,
            status_code=status_code,
            error_payload=error_payload,
        )


def daily_budget_micros(budget: float) -> int:
    return int(round(daily_budget(budget) * MICROS))


def _normalize_customer_id(customer_id: str) -> str:
    return customer_id.replace("-", "").strip()


def _resource_id(resource_name: str) -> str:
    return resource_name.rsplit("/", 1)[-1]


def _first_resource_name(response: dict[str, Any], what: str) -> str:
    results = response.get("results") or []
    if not results or not results[0].get("resourceName"):
        raise GoogleAdsError(f"Google Ads API did not return a resource name for the {what}.", error_payload=response)
    return results[0]["resourceName"]


class GoogleAdsClient(AdPlatformClient):
    platform = AdPlatformEnum.GOOGLE

    def __init__(
        self,
        *,
        developer_token: str,
        customer_id: str,
        credentials: oauth2_credentials.Credentials,
        login_customer_id: Optional[str] = None,
        api_version: str = "v17",
        base_url: Optional[str] = None,
        timeout: float = 30.0,
    ) -> None:
        self.developer_token = developer_token
        self.customer_id = _normalize_customer_id(customer_id)
        self.login_customer_id = _normalize_customer_id(login_customer_id) if login_customer_id else None
        self.credentials = credentials
        self.api_version = api_version
        self.base_url = (base_url or "https://googleads.googleapis.com").rstrip("/")
        self._timeout = timeout

    @classmethod
    def from_settings(cls) -> "GoogleAdsClient":
        required = {
            "GOOGLE_ADS_DEVELOPER_TOKEN": settings.GOOGLE_ADS_DEVELOPER_TOKEN,
            "GOOGLE_ADS_CLIENT_ID": settings.GOOGLE_ADS_CLIENT_ID,
            "GOOGLE_ADS_CLIENT_SECRET": settings.GOOGLE_ADS_CLIENT_SECRET,
            "GOOGLE_ADS_REFRESH_TOKEN": settings.GOOGLE_ADS_REFRESH_TOKEN,
            "GOOGLE_ADS_CUSTOMER_ID": settings.GOOGLE_ADS_CUSTOMER_ID,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise GoogleAdsConfigError(f"{', '.join(missing)} required to use Google Ads integration.")
        credentials = oauth2_credentials.Credentials(
            token=None,
            refresh_token=settings.GOOGLE_ADS_REFRESH_TOKEN,
            client_id=settings.GOOGLE_ADS_CLIENT_ID,
            client_secret=settings.GOOGLE_ADS_CLIENT_SECRET,
            token_uri=TOKEN_URI,
            scopes=SCOPES,
        )
        return cls(
            developer_token=settings.GOOGLE_ADS_DEVELOPER_TOKEN,
            customer_id=settings.GOOGLE_ADS_CUSTOMER_ID,
            credentials=credentials,
            login_customer_id=settings.GOOGLE_ADS_LOGIN_CUSTOMER_ID,
            api_version=settings.GOOGLE_ADS_API_VERSION,
            base_url=settings.GOOGLE_ADS_API_BASE_URL,
            timeout=settings.AD_PLATFORM_TIMEOUT_SECONDS,
        )

    async def _access_token(self) -> str:
        if not self.credentials.valid:
            try:
                await asyncio.to_thread(self.credentials.refresh, Request())
            except RefreshError as exc:
                raise GoogleAdsError(f"Google OAuth token refresh failed: {exc}") from exc
        return self.credentials.token

    async def _request(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        token = await self._access_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "developer-token": self.developer_token,
        }
        if self.login_customer_id:
            headers["login-customer-id"] = self.login_customer_id
        url = f"{self.base_url}/{self.api_version}/customers/{self.customer_id}/{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.RequestError as exc:
            raise GoogleAdsError(f"Network error while calling Google Ads: {exc}") from exc

        if response.status_code >= 400:
            try:
                error_payload: Any = response.json()
            except ValueError:
                error_payload = {"text": response.text}
            raise GoogleAdsError(
                f"Google Ads API call failed ({response.status_code}).",
                status_code=response.status_code,
                error_payload=error_payload,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise GoogleAdsError("Google Ads API returned invalid JSON.") from exc
        if not isinstance(body, dict):
            raise GoogleAdsError("Google Ads API response must be a JSON object.")
        return body

    async def _mutate(self, resource: str, operations: list[dict[str, Any]]) -> dict[str, Any]:
        return await self._request(f"{resource}:mutate", {"operations": operations})

    def _campaign_resource(self, platform_id: str) -> str:
        return f"customers/{self.customer_id}/campaigns/{platform_id}"

    async def create_campaign(self, spec: PlatformCampaignSpec) -> PlatformCampaignRef:
        budget_response = await self._mutate(
            "campaignBudgets",
            [
                {
                    "create": {
                        "name": f"{spec.name} Budget {spec.local_campaign_id or ''}".strip(),
                        "amountMicros": str(daily_budget_micros(spec.budget)),
                        "deliveryMethod": "STANDARD",
                        "explicitlyShared": False,
                    }
                }
            ],
        )
        budget_resource = _first_resource_name(budget_response, "campaign budget")

        campaign: dict[str, Any] = {
            "name": spec.name,
            "advertisingChannelType": "SEARCH",
            "status": "PAUSED",
            "campaignBudget": budget_resource,
            "networkSettings": {
                "targetGoogleSearch": True,
                "targetSearchNetwork": True,
                "targetContentNetwork": False,
                "targetPartnerSearchNetwork": False,
            },
        }
        if spec.use_psychology_targeting:
            campaign["targetCpa"] = {"targetCpaMicros": str(TARGET_CPA_MICROS)}
        else:
            campaign["manualCpc"] = {}
        try:
            campaign_response = await self._mutate("campaigns", [{"create": campaign}])
            campaign_resource = _first_resource_name(campaign_response, "campaign")
        except GoogleAdsError:
            await self._remove_budget(budget_resource, spec)
            raise

        platform_id = _resource_id(campaign_resource)
        ref = await self._finish_setup(platform_id, spec, {"budgetResourceName": budget_resource})
        logger.info(
            "Google Ads campaign created",
            extra={
                "campaign_id": spec.local_campaign_id,
                "google_campaign_id": platform_id,
                "keywords": len(ref.details.get("keywords") or []),
            },
        )
        return ref

    async def _remove_budget(self, budget_resource: str, spec: PlatformCampaignSpec) -> None:
        try:
            await self._mutate("campaignBudgets", [{"remove": budget_resource}])
        except GoogleAdsError as exc:
            logger.warning(
                "Could not remove orphaned Google Ads budget",
                extra={"campaign_id": spec.local_campaign_id, "budget": budget_resource, "error": str(exc)},
            )

    async def _complete_setup(self, platform_id: str, spec: PlatformCampaignSpec, details: dict[str, Any]) -> None:
        ad_group_resource = details.get("adGroupResourceName")
        if not ad_group_resource:
            ad_group_response = await self._mutate(
                "adGroups",
                [
                    {
                        "create": {
                            "name": f"{spec.name} - Ad Group",
                            "campaign": self._campaign_resource(platform_id),
                            "status": "ENABLED",
                            "type": "SEARCH_STANDARD",
                            "cpcBidMicros": str(AD_GROUP_CPC_BID_MICROS),
                        }
                    }
                ],
            )
            ad_group_resource = _first_resource_name(ad_group_response, "ad group")
            details["adGroupResourceName"] = ad_group_resource

        if "keywords" in details:
            return
        keywords: list[str] = []
        if spec.use_psychology_targeting:
            keywords = psychology_keywords(spec.target_audience)
            await self._mutate(
                "adGroupCriteria",
                [
                    {
                        "create": {
                            "adGroup": ad_group_resource,
                            "status": "ENABLED",
                            "keyword": {"text": keyword, "matchType": "BROAD"},
                            "cpcBidMicros": str(AD_GROUP_CPC_BID_MICROS),
                        }
                    }
                    for keyword in keywords
                ],
            )
        details["keywords"] = keywords

    async def update_campaign(
        self,
        platform_id: str,
        spec: PlatformCampaignSpec,
        details: Optional[dict[str, Any]] = None,
    ) -> PlatformCampaignRef:
        details = dict(details or {})
        await self._mutate(
            "campaigns",
            [{"update": {"resourceName": self._campaign_resource(platform_id), "name": spec.name}, "updateMask": "name"}],
        )
        budget_resource = details.get("budgetResourceName")
        if budget_resource:
            await self._mutate(
                "campaignBudgets",
                [
                    {
                        "update": {
                            "resourceName": budget_resource,
                            "amountMicros": str(daily_budget_micros(spec.budget)),
                        },
                        "updateMask": "amountMicros",
                    }
                ],
            )
        ref = await self._finish_setup(platform_id, spec, details)
        logger.info(
            "Google Ads campaign updated",
            extra={"campaign_id": spec.local_campaign_id, "google_campaign_id": platform_id},
        )
        return ref

    async def _set_status(self, platform_id: str, status: str) -> None:
        await self._mutate(
            "campaigns",
            [{"update": {"resourceName": self._campaign_resource(platform_id), "status": status}, "updateMask": "status"}],
        )

    async def pause_campaign(self, platform_id: str) -> None:
        await self._set_status(platform_id, "PAUSED")

    async def resume_campaign(self, platform_id: str) -> None:
        await self._set_status(platform_id, "ENABLED")

    async def fetch_metrics(self, platform_id: str) -> PlatformMetrics:
        if not platform_id.isdigit():
            raise GoogleAdsError(f"Invalid Google Ads campaign id: {platform_id}")
        query = (
            "SELECT campaign.id, metrics.impressions, metrics.clicks, metrics.conversions, metrics.cost_micros "
            f"FROM campaign WHERE campaign.id = {platform_id}"
        )
        response = await self._request("googleAds:search", {"query": query})
        metrics = PlatformMetrics()
        cost_micros = 0
        for row in response.get("results") or []:
            values = row.get("metrics") or {}
            metrics.impressions += int(values.get("impressions") or 0)
            metrics.clicks += int(values.get("clicks") or 0)
            metrics.conversions += int(round(float(values.get("conversions") or 0)))
            cost_micros += int(values.get("costMicros") or 0)
        metrics.cost = cost_micros / MICROS
        return metrics
