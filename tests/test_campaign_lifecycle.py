import pytest

from mindful_ads.db.enums import CampaignStatusEnum as S
from mindful_ads.domain import campaign_lifecycle as lifecycle
from mindful_ads.errors import ValidationError


@pytest.mark.parametrize(
    ("current", "target", "action"),
    [
        (S.DRAFT, S.PENDING, lifecycle.SUBMIT),
        (S.PENDING, S.ACTIVE, lifecycle.LAUNCH),
        (S.PENDING, S.DRAFT, lifecycle.REQUEST_CHANGES),
        (S.PENDING, S.CANCELLED, lifecycle.REJECT),
        (S.ACTIVE, S.PAUSED, lifecycle.PAUSE),
        (S.PAUSED, S.ACTIVE, lifecycle.RESUME),
        (S.PAUSED, S.COMPLETED, lifecycle.COMPLETE),
        (S.DRAFT, S.CANCELLED, lifecycle.CANCEL),
    ],
)
def test_allowed_transitions(current, target, action):
    assert lifecycle.can_transition(current, target, action)
    lifecycle.ensure_transition(current, target, action)


def test_edge_requires_matching_action():
    # DRAFT -> PENDING exists, but only approval submission may take it.
    assert not lifecycle.can_transition(S.DRAFT, S.PENDING, lifecycle.RESUME)
    # PENDING -> ACTIVE is reserved for a successful launch.
    assert not lifecycle.can_transition(S.PENDING, S.ACTIVE, lifecycle.RESUME)


def test_draft_cannot_jump_to_active():
    with pytest.raises(ValidationError) as exc_info:
        lifecycle.ensure_transition(S.DRAFT, S.ACTIVE, lifecycle.LAUNCH)
    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "Cannot transition campaign from DRAFT to ACTIVE"
    assert exc_info.value.details["targetStatus"] == "ACTIVE"


@pytest.mark.parametrize("terminal", [S.COMPLETED, S.CANCELLED])
def test_terminal_states_have_no_exits(terminal):
    assert terminal in lifecycle.TERMINAL_STATES
    assert lifecycle.allowed_targets(terminal) == []


def test_allowed_targets_from_active():
    assert set(lifecycle.allowed_targets(S.ACTIVE)) == {S.PAUSED, S.COMPLETED, S.CANCELLED}


def test_live_states():
    assert lifecycle.is_live(S.ACTIVE)
    assert lifecycle.is_live(S.PAUSED)
    assert not lifecycle.is_live(S.PENDING)
