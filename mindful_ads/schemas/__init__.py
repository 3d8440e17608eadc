from mindful_ads.schemas import approvals, auth, campaigns, common, fields, landing_pages, leads, users

__all__ = [
    "approvals",
    "auth",
    "campaigns",
    "common",
    "fields",
    "landing_pages",
    "leads",
    "users",
]
