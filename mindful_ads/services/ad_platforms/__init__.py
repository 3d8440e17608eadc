from mindful_ads.services.ad_platforms.base import (
    AdPlatformClient,
    AdPlatformConfigError,
    AdPlatformError,
    PlatformCampaignRef,
    PlatformCampaignSpec,
    PlatformMetrics,
)
from mindful_ads.services.ad_platforms.google import GoogleAdsClient
from mindful_ads.services.ad_platforms.meta import MetaAdsClient

__all__ = [
    "AdPlatformClient",
    "AdPlatformConfigError",
    "AdPlatformError",
    "GoogleAdsClient",
    "MetaAdsClient",
    "PlatformCampaignRef",
    "PlatformCampaignSpec",
    "PlatformMetrics",
]
