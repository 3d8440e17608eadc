from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from mindful_ads.auth.dependencies import AuthContext, get_current_user
from mindful_ads.db.deps import get_session
from mindful_ads.schemas.common import envelope
from mindful_ads.services.analytics import AnalyticsService

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/dashboard")
def dashboard(
    dateRange: int = Query(default=30, ge=1, le=365),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return envelope(AnalyticsService(session).dashboard(auth.id, dateRange))


@router.get("/campaigns")
def campaign_analytics(
    campaignId: str | None = None,
    dateRange: int = Query(default=30, ge=1, le=365),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    campaigns = AnalyticsService(session).campaign_breakdown(auth.id, campaignId)
    return envelope({"campaigns": campaigns, "dateRange": dateRange})


@router.get("/leads")
def lead_analytics(
    dateRange: int = Query(default=30, ge=1, le=365),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return envelope({"leads": AnalyticsService(session).lead_breakdown(auth.id), "dateRange": dateRange})


@router.get("/performance")
def performance(
    compareWith: str = Query(default="previous_period", pattern="^(previous_period|none)$"),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    metrics = AnalyticsService(session).performance(auth.id, compare=compareWith == "previous_period")
    return envelope({"metrics": metrics})
