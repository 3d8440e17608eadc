from mindful_ads.db.repositories.users import UsersRepository
from mindful_ads.db.repositories.sessions import UserSessionsRepository
from mindful_ads.db.repositories.security_events import SecurityEventsRepository
from mindful_ads.db.repositories.campaigns import CampaignsRepository
from mindful_ads.db.repositories.approvals import CampaignApprovalsRepository
from mindful_ads.db.repositories.leads import LeadsRepository
from mindful_ads.db.repositories.landing_pages import LandingPagesRepository

__all__ = [
    "UsersRepository",
    "UserSessionsRepository",
    "SecurityEventsRepository",
    "CampaignsRepository",
    "CampaignApprovalsRepository",
    "LeadsRepository",
    "LandingPagesRepository",
]
