from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

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
from mindful_ads.services.ad_platforms.targeting import (
    build_psychology_targeting,
    build_targeting,
    map_objective_to_meta,
)

logger = logging.getLogger("ads.meta")

LEAD_GEN_OBJECTIVE = "LEAD_GENERATION"


class MetaAdsConfigError(AdPlatformConfigError):
    def __init__(self, message: str) -> None:
        super().__init__(message, platform=AdPlatformEnum.META)


class MetaAdsError(AdPlatformError):
    def __init__(self, message: str, status_code: Optional[int] = None, error_payload: Any = None) -> None:
        super().__init__(
            message,
            platform=AdPlatformEnum.META,
            status_code=status_code,
            error_payload=error_payload,
        )


def _normalize_ad_account_id(ad_account_id: str) -> str:
    if ad_account_id.startswith("act_"):
        return ad_account_id
    return f"act_{ad_account_id}"


def _encode_payload(payload: dict[str, Any]) -> dict[str, Any]:
    encoded: dict[str, Any] = {}
    for key, value in payload.items():
        if value is None:
            continue
        if isinstance(value, bool):
            encoded[key] = "true" if value else "false"
            continue
        if isinstance(value, (dict, list)):
            encoded[key] = json.dumps(value)
            continue
        encoded[key] = value
    return encoded


def daily_budget_cents(budget: float) -> int:
    return int(round(daily_budget(budget) * 100))


def _as_int(value: Any) -> int:
    if isinstance(value, list):
        return sum(_as_int(item.get("value")) for item in value if isinstance(item, dict))
    try:
        return int(float(value or 0))
    except (TypeError, ValueError):
        return 0


def _as_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def build_lead_form(name: str, frontend_url: str) -> dict[str, Any]:
    base_url = frontend_url.rstrip("/")
    return {
        "name": f"{name} - Contact Form",
        "privacy_policy": {"url": f"{base_url}/privacy"},
        "questions": [
            {"type": "FULL_NAME", "key": "full_name"},
            {"type": "EMAIL", "key": "email"},
            {"type": "PHONE", "key": "phone_number"},
            {
                "type": "CUSTOM",
                "key": "preferred_contact_time",
                "label": "Preferred contact time",
                "options": [
                    {"value": "Morning", "key": "morning"},
                    {"value": "Afternoon", "key": "afternoon"},
                    {"value": "Evening", "key": "evening"},
                ],
            },
            {"type": "CUSTOM", "key": "reason", "label": "What brings you here today?"},
        ],
        "thank_you_page": {
            "title": "Thank you",
            "body": "Thank you for reaching out. We'll contact you within 24 hours to schedule your consultation.",
            "button_text": "Continue",
            "button_type": "VIEW_WEBSITE",
            "website_url": f"{base_url}/thank-you",
        },
    }


class MetaAdsClient(AdPlatformClient):
    platform = AdPlatformEnum.META

    def __init__(
        self,
        *,
        access_token: str,
        api_version: str,
        ad_account_id: str,
        page_id: Optional[str] = None,
        base_url: Optional[str] = None,
        frontend_url: Optional[str] = None,
        timeout: float = 30.0,
    ) -> None:
        self.access_token = access_token
        self.api_version = api_version
        self.ad_account_id = _normalize_ad_account_id(ad_account_id)
        self.page_id = page_id
        self.base_url = (base_url or "https://graph.facebook.com").rstrip("/")
        self.frontend_url = frontend_url or settings.FRONTEND_URL
        self.timeout = httpx.Timeout(timeout)

    @classmethod
    def from_settings(cls) -> "MetaAdsClient":
        if not settings.META_ACCESS_TOKEN:
            raise MetaAdsConfigError("META_ACCESS_TOKEN is required to use Meta Ads integration.")
        if not settings.META_AD_ACCOUNT_ID:
            raise MetaAdsConfigError("META_AD_ACCOUNT_ID is required to use Meta Ads integration.")
        return cls(
            access_token=settings.META_ACCESS_TOKEN,
            api_version=settings.META_GRAPH_API_VERSION,
            ad_account_id=settings.META_AD_ACCOUNT_ID,
            page_id=settings.META_PAGE_ID,
            base_url=settings.META_GRAPH_API_BASE_URL,
            frontend_url=settings.FRONTEND_URL,
            timeout=settings.AD_PLATFORM_TIMEOUT_SECONDS,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}/{self.api_version}/{path.lstrip('/')}"
        merged_params = {**(params or {}), "access_token": self.access_token}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(method, url, params=merged_params, data=data)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            error_payload: Any = None
            try:
                error_payload = response.json()
            except ValueError:
                error_payload = {"text": response.text}
            message = f"Meta Graph API error ({response.status_code})."
            if isinstance(error_payload, dict) and isinstance(error_payload.get("error"), dict):
                detail = error_payload["error"].get("message")
                if detail:
                    message = f"Meta Graph API error ({response.status_code}): {detail}"
            raise MetaAdsError(message, status_code=response.status_code, error_payload=error_payload) from exc
        except httpx.RequestError as exc:
            raise MetaAdsError(f"Meta Graph API request failed: {exc}") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise MetaAdsError("Meta Graph API returned a non-JSON response.") from exc

    def _require_id(self, response: dict[str, Any], what: str) -> str:
        object_id = response.get("id")
        if not object_id:
            raise MetaAdsError(f"Meta Graph API did not return an id for the {what}.", error_payload=response)
        return str(object_id)

    def _objective(self, spec: PlatformCampaignSpec) -> str:
        if spec.use_lead_gen:
            return LEAD_GEN_OBJECTIVE
        return map_objective_to_meta(spec.objectives[0] if spec.objectives else None)

    async def create_campaign(self, spec: PlatformCampaignSpec) -> PlatformCampaignRef:
        lead_gen = spec.use_lead_gen
        objective = self._objective(spec)
        campaign_name = f"{spec.name} - Lead Gen" if lead_gen else spec.name
        campaign_response = await self._request(
            "POST",
            f"{self.ad_account_id}/campaigns",
            data=_encode_payload(
                {
                    "name": campaign_name,
                    "objective": objective,
                    "status": "PAUSED",
                    "special_ad_categories": [],
                }
            ),
        )
        campaign_id = self._require_id(campaign_response, "campaign")

        ref = await self._finish_setup(campaign_id, spec, {"objective": objective})
        logger.info(
            "Meta campaign created",
            extra={"campaign_id": spec.local_campaign_id, "meta_campaign_id": campaign_id, "lead_gen": lead_gen},
        )
        return ref

    async def _complete_setup(self, platform_id: str, spec: PlatformCampaignSpec, details: dict[str, Any]) -> None:
        lead_gen = spec.use_lead_gen
        if not details.get("adSetId"):
            if lead_gen or spec.use_psychology_targeting:
                targeting = build_psychology_targeting(spec.target_audience)
            else:
                targeting = build_targeting(spec.target_audience)
            adset_response = await self._request(
                "POST",
                f"{self.ad_account_id}/adsets",
                data=_encode_payload(
                    {
                        "name": f"{spec.name} - {'Lead Gen Ad Set' if lead_gen else 'Ad Set'}",
                        "campaign_id": platform_id,
                        "daily_budget": daily_budget_cents(spec.budget),
                        "billing_event": "IMPRESSIONS",
                        "optimization_goal": LEAD_GEN_OBJECTIVE if lead_gen else "REACH",
                        "targeting": targeting,
                        "status": "PAUSED",
                    }
                ),
            )
            details["adSetId"] = self._require_id(adset_response, "ad set")
            details.setdefault("objective", self._objective(spec))

        if lead_gen and "leadFormId" not in details:
            details["leadFormId"] = await self._create_lead_form(spec)

    async def _create_lead_form(self, spec: PlatformCampaignSpec) -> Optional[str]:
        if not self.page_id:
            logger.warning(
                "META_PAGE_ID not configured; skipping lead form",
                extra={"campaign_id": spec.local_campaign_id},
            )
            return None
        form = build_lead_form(spec.name, self.frontend_url)
        response = await self._request("POST", f"{self.page_id}/leadgen_forms", data=_encode_payload(form))
        return self._require_id(response, "lead form")

    async def update_campaign(
        self,
        platform_id: str,
        spec: PlatformCampaignSpec,
        details: Optional[dict[str, Any]] = None,
    ) -> PlatformCampaignRef:
        details = dict(details or {})
        await self._request("POST", platform_id, data=_encode_payload({"name": spec.name}))
        adset_id = details.get("adSetId")
        if adset_id:
            await self._request(
                "POST",
                adset_id,
                data=_encode_payload({"daily_budget": daily_budget_cents(spec.budget)}),
            )
        # An earlier launch may have stopped before the ad set or lead form existed.
        ref = await self._finish_setup(platform_id, spec, details)
        logger.info(
            "Meta campaign updated",
            extra={"campaign_id": spec.local_campaign_id, "meta_campaign_id": platform_id},
        )
        return ref

    async def _set_status(self, platform_id: str, status: str) -> None:
        await self._request("POST", platform_id, data=_encode_payload({"status": status}))

    async def pause_campaign(self, platform_id: str) -> None:
        await self._set_status(platform_id, "PAUSED")

    async def resume_campaign(self, platform_id: str) -> None:
        await self._set_status(platform_id, "ACTIVE")

    async def fetch_metrics(self, platform_id: str) -> PlatformMetrics:
        response = await self._request(
            "GET",
            f"{platform_id}/insights",
            params={"fields": "impressions,clicks,conversions,spend", "date_preset": "maximum"},
        )
        rows = response.get("data") or []
        if not rows:
            return PlatformMetrics()
        row = rows[0]
        return PlatformMetrics(
            impressions=_as_int(row.get("impressions")),
            clicks=_as_int(row.get("clicks")),
            conversions=_as_int(row.get("conversions")),
            cost=_as_float(row.get("spend")),
        )
