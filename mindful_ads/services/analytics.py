"""Read-only reporting over campaigns, leads and users.

Client analytics are always scoped to one owner; the system summary is for
admins and spans every account.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from mindful_ads.db.enums import CampaignStatusEnum
from mindful_ads.db.models import utcnow
from mindful_ads.db.repositories.campaigns import CampaignsRepository
from mindful_ads.db.repositories.leads import LeadsRepository
from mindful_ads.db.repositories.users import UsersRepository
from mindful_ads.errors import NotFoundError
from mindful_ads.services.metrics import (
    calculate_campaign_metrics,
    calculate_percentage,
    counters_from_campaign,
    round_2,
)

TREND_DAYS = 7
RECENT_ITEMS = 5
COMPARISON_WINDOW_DAYS = 30


def performance_summary(totals: Mapping[str, float]) -> dict[str, Any]:
    ratios = calculate_campaign_metrics(totals)
    return {
        **totals,
        "cost": round_2(totals.get("cost") or 0),
        "budget": round_2(totals.get("budget") or 0),
        "ctr": ratios["ctr"],
        "cpc": ratios["cpc"],
        "cpl": ratios["cpl"],
        "conversionRate": ratios["conversionRate"],
        "budgetUtilization": calculate_percentage(totals.get("cost") or 0, totals.get("budget") or 0),
    }


def calculate_changes(current: Mapping[str, Any], previous: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    changes: dict[str, dict[str, Any]] = {}
    for key, value in current.items():
        before = previous.get(key)
        if not isinstance(value, (int, float)) or not isinstance(before, (int, float)):
            continue
        if before > 0:
            change = round_2((value - before) / before * 100)
        else:
            change = 100 if value > 0 else 0
        direction = "up" if change > 0 else "down" if change < 0 else "stable"
        changes[key] = {"value": change, "direction": direction}
    return changes


class AnalyticsService:
    def __init__(self, session: Session) -> None:
        self.campaigns = CampaignsRepository(session)
        self.leads = LeadsRepository(session)
        self.users = UsersRepository(session)

    def dashboard(self, user_id: str, date_range: int) -> dict[str, Any]:
        since = utcnow() - timedelta(days=date_range)
        lead_groups = self.leads.grouped("status", user_id=user_id)
        return {
            "campaigns": {
                "total": self.campaigns.count(user_id=user_id),
                "active": self.campaigns.count(user_id=user_id, status=CampaignStatusEnum.ACTIVE),
                "recent": self.campaigns.count(user_id=user_id, created_since=since),
                "byPlatform": self.campaigns.count_by("platform", user_id=user_id),
                "byStatus": self.campaigns.count_by("status", user_id=user_id),
            },
            "leads": {
                "total": self.leads.count(user_id=user_id),
                "recent": self.leads.count(user_id=user_id, created_from=since),
                "byStatus": {group["key"]: group["count"] for group in lead_groups},
            },
            "performance": performance_summary(self.campaigns.totals(user_id=user_id)),
            "recentActivity": self.recent_activity(user_id),
            "dateRange": date_range,
        }

    def recent_activity(self, user_id: str) -> dict[str, list[dict[str, Any]]]:
        leads = self.leads.recent(user_id, RECENT_ITEMS)
        names = self.campaigns.names([lead.campaign_id for lead in leads if lead.campaign_id])
        return {
            "campaigns": [
                {
                    "id": campaign.id,
                    "name": campaign.name,
                    "status": campaign.status.value,
                    "createdAt": campaign.created_at,
                    "updatedAt": campaign.updated_at,
                }
                for campaign in self.campaigns.recently_updated(user_id, RECENT_ITEMS)
            ],
            "leads": [
                {
                    "id": lead.id,
                    "name": lead.name,
                    "email": lead.email,
                    "status": lead.status.value,
                    "createdAt": lead.created_at,
                    "campaignName": names.get(lead.campaign_id) if lead.campaign_id else None,
                }
                for lead in leads
            ],
        }

    def campaign_breakdown(self, user_id: str, campaign_id: Optional[str] = None) -> list[dict[str, Any]]:
        campaigns = self.campaigns.for_owner(user_id, campaign_id=campaign_id)
        if campaign_id and not campaigns:
            raise NotFoundError("Campaign")
        lead_counts = {group["key"]: group["count"] for group in self.leads.grouped("campaign_id", user_id=user_id)}
        rows = []
        for campaign in campaigns:
            counters = counters_from_campaign(campaign)
            rows.append(
                {
                    "id": campaign.id,
                    "name": campaign.name,
                    "platform": campaign.platform.value,
                    "status": campaign.status.value,
                    "metrics": {**counters, **calculate_campaign_metrics(counters)},
                    "totalLeads": lead_counts.get(campaign.id, 0),
                }
            )
        return rows

    def lead_breakdown(self, user_id: str) -> dict[str, Any]:
        by_campaign = self.leads.grouped("campaign_id", user_id=user_id)
        names = self.campaigns.names([group["key"] for group in by_campaign])
        return {
            "byStatus": [
                {"status": group["key"], "count": group["count"], "value": group["value"]}
                for group in self.leads.grouped("status", user_id=user_id)
            ],
            "byCampaign": [
                {
                    "campaignId": group["key"],
                    "campaignName": names.get(group["key"], "Unknown"),
                    "count": group["count"],
                    "value": group["value"],
                }
                for group in by_campaign
            ],
            "bySource": [
                {"source": group["key"], "count": group["count"], "value": group["value"]}
                for group in self.leads.grouped("source", user_id=user_id)
            ],
            "trend": self.lead_trend(user_id, TREND_DAYS),
        }

    def lead_trend(self, user_id: str, days: int, *, now: Optional[datetime] = None) -> list[dict[str, Any]]:
        """Lead counts per UTC calendar day, oldest first, ending today."""
        today = (now or utcnow()).replace(hour=0, minute=0, second=0, microsecond=0)
        trend = []
        for offset in range(days - 1, -1, -1):
            start = today - timedelta(days=offset)
            count = self.leads.count(user_id=user_id, created_from=start, created_to=start + timedelta(days=1))
            trend.append({"date": start.date().isoformat(), "count": count})
        return trend

    def performance(self, user_id: str, compare: bool = True) -> dict[str, Any]:
        current = performance_summary(self.campaigns.totals(user_id=user_id))
        metrics: dict[str, Any] = {"current": current}
        if compare:
            now = utcnow()
            previous = performance_summary(
                self.campaigns.totals(
                    user_id=user_id,
                    created_from=now - timedelta(days=COMPARISON_WINDOW_DAYS * 2),
                    created_to=now - timedelta(days=COMPARISON_WINDOW_DAYS),
                )
            )
            metrics["comparison"] = previous
            metrics["changes"] = calculate_changes(current, previous)
        return metrics

    def system_stats(self) -> dict[str, Any]:
        by_role = self.users.count_by_role()
        lead_groups = self.leads.grouped("status")
        campaign_totals = self.campaigns.totals()
        total_campaigns = self.campaigns.count()
        total_spend = round_2(campaign_totals["cost"])
        return {
            "users": {
                "total": sum(bucket["total"] for bucket in by_role.values()),
                "active": sum(bucket["active"] for bucket in by_role.values()),
                "byRole": {role: bucket["total"] for role, bucket in by_role.items()},
            },
            "campaigns": {
                "total": total_campaigns,
                "active": self.campaigns.count(status=CampaignStatusEnum.ACTIVE),
                "byStatus": self.campaigns.count_by("status"),
                "byPlatform": self.campaigns.count_by("platform"),
            },
            "leads": {
                "total": sum(group["count"] for group in lead_groups),
                "byStatus": {group["key"]: group["count"] for group in lead_groups},
                "totalValue": round_2(sum(group["value"] for group in lead_groups)),
            },
            "revenue": {
                "totalSpend": total_spend,
                "averagePerCampaign": round_2(total_spend / total_campaigns) if total_campaigns else 0,
            },
        }
