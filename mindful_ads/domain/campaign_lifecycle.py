"""Campaign status transitions.

Every status change goes through :func:`ensure_transition`, which checks the
edge against :data:`TRANSITIONS` together with the action taking it.
"""

from __future__ import annotations

from mindful_ads.db.enums import CampaignStatusEnum
from mindful_ads.errors import ValidationError

S = CampaignStatusEnum

SUBMIT = "submit"
LAUNCH = "launch"
REQUEST_CHANGES = "request_changes"
REJECT = "reject"
PAUSE = "pause"
RESUME = "resume"
COMPLETE = "complete"
CANCEL = "cancel"

TRANSITIONS: dict[tuple[CampaignStatusEnum, CampaignStatusEnum], frozenset[str]] = {
    (S.DRAFT, S.PENDING): frozenset({SUBMIT}),
    (S.PENDING, S.ACTIVE): frozenset({LAUNCH}),
    (S.PENDING, S.DRAFT): frozenset({REQUEST_CHANGES}),
    (S.PENDING, S.CANCELLED): frozenset({REJECT, CANCEL}),
    (S.ACTIVE, S.PAUSED): frozenset({PAUSE}),
    (S.PAUSED, S.ACTIVE): frozenset({RESUME}),
    (S.ACTIVE, S.COMPLETED): frozenset({COMPLETE}),
    (S.PAUSED, S.COMPLETED): frozenset({COMPLETE}),
    (S.DRAFT, S.CANCELLED): frozenset({CANCEL}),
    (S.ACTIVE, S.CANCELLED): frozenset({CANCEL}),
    (S.PAUSED, S.CANCELLED): frozenset({CANCEL}),
}

TERMINAL_STATES = frozenset({S.COMPLETED, S.CANCELLED})
EDITABLE_STATES = frozenset({S.DRAFT, S.ACTIVE, S.PAUSED})
DELETABLE_STATES = frozenset({S.DRAFT, S.CANCELLED})
# Fields that may change after launch; they are pushed to the ad platforms.
LIVE_EDITABLE_FIELDS = frozenset({"name", "budget"})


def can_transition(current: CampaignStatusEnum, target: CampaignStatusEnum, action: str) -> bool:
    return action in TRANSITIONS.get((current, target), frozenset())


def ensure_transition(current: CampaignStatusEnum, target: CampaignStatusEnum, action: str) -> None:
    if not can_transition(current, target, action):
        raise ValidationError(
            f"Cannot transition campaign from {current.value} to {target.value}",
            details={"currentStatus": current.value, "targetStatus": target.value, "action": action},
        )


def allowed_targets(current: CampaignStatusEnum) -> list[CampaignStatusEnum]:
    return [target for (source, target) in TRANSITIONS if source == current]


def is_live(status: CampaignStatusEnum) -> bool:
    return status in (S.ACTIVE, S.PAUSED)
