import pytest

from mindful_ads.db.enums import AdPlatformEnum, ApprovalStatusEnum, CampaignStatusEnum, PlatformEnum
from mindful_ads.db.models import Campaign, CampaignApproval

from conftest import auth_headers, make_campaign

REJECT_FEEDBACK = "Please soften the claims in the audience description."


def _submit(api_client, campaign, user):
    return api_client.post(f"/api/campaigns/{campaign.id}/approvals/submit", headers=auth_headers(user))


def _approve(api_client, campaign, reviewer, **body):
    return api_client.post(
        f"/api/approvals/campaigns/{campaign.id}/approve",
        json=body,
        headers=auth_headers(reviewer),
    )


def _approvals(db_session, campaign):
    db_session.expire_all()
    return db_session.query(CampaignApproval).filter(CampaignApproval.campaign_id == campaign.id).all()


def _reload(db_session, campaign) -> Campaign:
    db_session.expire_all()
    return db_session.get(Campaign, campaign.id)


def test_submit_moves_draft_to_pending(api_client, db_session, client_user, draft_campaign, sent_emails):
    response = _submit(api_client, draft_campaign, client_user)
    assert response.status_code == 200
    body = response.json()
    assert body["data"]["campaign"]["status"] == "PENDING"
    assert body["data"]["approval"]["status"] == "PENDING_REVIEW"
    assert body["data"]["approval"]["reviewData"]["platform"] == "BOTH"
    assert body["warnings"] == []
    assert _reload(db_session, draft_campaign).status == CampaignStatusEnum.PENDING
    assert [email.to for email in sent_emails] == [client_user.email]


def test_second_submit_conflicts_without_new_row(api_client, db_session, client_user, draft_campaign):
    assert _submit(api_client, draft_campaign, client_user).status_code == 200

    response = _submit(api_client, draft_campaign, client_user)
    assert response.status_code == 409
    assert response.json()["code"] == "APPROVAL_PENDING"
    assert len(_approvals(db_session, draft_campaign)) == 1


def test_pending_row_is_unique_at_the_database(db_session, client_user, draft_campaign):
    from sqlalchemy.exc import IntegrityError

    for _ in range(2):
        db_session.add(
            CampaignApproval(
                campaign_id=draft_campaign.id,
                user_id=client_user.id,
                status=ApprovalStatusEnum.PENDING_REVIEW,
            )
        )
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_submit_validates_campaign(api_client, db_session, client_user):
    campaign = make_campaign(db_session, client_user, budget=50.0, name="Miracle treatment for anxiety")
    response = _submit(api_client, campaign, client_user)
    assert response.status_code == 400
    errors = response.json()["details"]["errors"]
    assert "Minimum budget is $100" in errors
    assert "Campaign contains prohibited content for mental health advertising" in errors
    assert _approvals(db_session, campaign) == []
    assert _reload(db_session, campaign).status == CampaignStatusEnum.DRAFT


def test_submit_warns_on_high_budget(api_client, db_session, client_user):
    campaign = make_campaign(db_session, client_user, budget=75000.0)
    response = _submit(api_client, campaign, client_user)
    assert response.status_code == 200
    assert response.json()["warnings"] == ["High budget campaigns require additional review time"]


def test_submit_requires_ownership(api_client, other_client, draft_campaign):
    assert _submit(api_client, draft_campaign, other_client).status_code == 403


def test_submit_rejected_from_active(api_client, db_session, client_user):
    campaign = make_campaign(db_session, client_user, status=CampaignStatusEnum.ACTIVE)
    response = _submit(api_client, campaign, client_user)
    assert response.status_code == 400
    assert response.json()["message"] == "Cannot transition campaign from ACTIVE to PENDING"


def test_approve_launches_on_every_platform(
    api_client, db_session, client_user, admin_user, draft_campaign, fake_platforms, sent_emails
):
    _submit(api_client, draft_campaign, client_user)

    response = _approve(api_client, draft_campaign, admin_user, notes="Looks good")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["activated"] is True
    assert data["platformResults"]["META"] == {"success": True, "id": "meta-1", "created": True}
    assert data["platformResults"]["GOOGLE"]["id"] == "google-1"

    campaign = _reload(db_session, draft_campaign)
    assert campaign.status == CampaignStatusEnum.ACTIVE
    assert campaign.meta_campaign_id == "meta-1"
    assert campaign.google_campaign_id == "google-1"
    (approval,) = _approvals(db_session, draft_campaign)
    assert approval.status == ApprovalStatusEnum.APPROVED
    assert approval.reviewer_id == admin_user.id
    assert approval.reviewed_at is not None
    assert approval.review_notes == "Looks good"
    assert sent_emails[-1].subject.startswith("Campaign approved")


def test_approve_forwards_launch_flags(api_client, client_user, admin_user, draft_campaign, fake_platforms):
    _submit(api_client, draft_campaign, client_user)
    _approve(api_client, draft_campaign, admin_user, useLeadGen=True, usePsychologyTargeting=True)

    for platform in AdPlatformEnum:
        (spec,) = fake_platforms[platform].created
        assert spec.use_lead_gen is True
        assert spec.use_psychology_targeting is True
        assert spec.budget == 1500.0
        assert spec.landing_page_url.startswith("https://app.example.com/lp/")


def test_approve_requires_admin(api_client, client_user, draft_campaign):
    _submit(api_client, draft_campaign, client_user)
    response = _approve(api_client, draft_campaign, client_user)
    assert response.status_code == 403


def test_approve_requires_pending_campaign(api_client, admin_user, draft_campaign):
    response = _approve(api_client, draft_campaign, admin_user)
    assert response.status_code == 400


def test_partial_failure_keeps_campaign_pending(
    api_client, db_session, client_user, admin_user, draft_campaign, fake_platforms
):
    fake_platforms[AdPlatformEnum.GOOGLE].fail_with = "Google Ads API call failed (500)."
    _submit(api_client, draft_campaign, client_user)

    response = _approve(api_client, draft_campaign, admin_user)
    assert response.status_code == 207
    data = response.json()["data"]
    assert data["activated"] is False
    assert data["platformResults"]["META"]["success"] is True
    assert data["platformResults"]["GOOGLE"] == {
        "success": False,
        "error": "Google Ads API call failed (500).",
        "timedOut": False,
    }

    campaign = _reload(db_session, draft_campaign)
    assert campaign.status == CampaignStatusEnum.PENDING
    assert campaign.meta_campaign_id == "meta-1"
    assert campaign.google_campaign_id is None
    (approval,) = _approvals(db_session, draft_campaign)
    assert approval.status == ApprovalStatusEnum.APPROVED
    assert approval.platform_results["GOOGLE"]["success"] is False


def test_platform_timeout_is_reported(api_client, db_session, client_user, admin_user, draft_campaign, fake_platforms):
    fake_platforms[AdPlatformEnum.META].delay = 1.0
    _submit(api_client, draft_campaign, client_user)

    response = _approve(api_client, draft_campaign, admin_user)
    assert response.status_code == 207
    meta = response.json()["data"]["platformResults"]["META"]
    assert meta["success"] is False
    assert meta["timedOut"] is True
    assert _reload(db_session, draft_campaign).status == CampaignStatusEnum.PENDING


def test_retry_launch_updates_instead_of_duplicating(
    api_client, db_session, client_user, admin_user, draft_campaign, fake_platforms
):
    google = fake_platforms[AdPlatformEnum.GOOGLE]
    meta = fake_platforms[AdPlatformEnum.META]
    google.fail_with = "temporarily unavailable"
    _submit(api_client, draft_campaign, client_user)
    assert _approve(api_client, draft_campaign, admin_user, useLeadGen=True).status_code == 207

    google.fail_with = None
    response = api_client.post(
        f"/api/approvals/campaigns/{draft_campaign.id}/retry-launch",
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 200
    assert response.json()["data"]["activated"] is True

    assert len(meta.created) == 1
    assert [platform_id for platform_id, _spec, _details in meta.updated] == ["meta-1"]
    assert len(google.created) == 1
    assert google.created[0].use_lead_gen is True

    campaign = _reload(db_session, draft_campaign)
    assert campaign.status == CampaignStatusEnum.ACTIVE
    assert campaign.meta_campaign_id == "meta-1"
    assert campaign.google_campaign_id == "google-1"
    assert len(_approvals(db_session, draft_campaign)) == 1


def test_single_platform_campaign_only_targets_that_platform(
    api_client, db_session, client_user, admin_user, fake_platforms
):
    campaign = make_campaign(db_session, client_user, platform=PlatformEnum.META)
    _submit(api_client, campaign, client_user)
    response = _approve(api_client, campaign, admin_user)
    assert response.status_code == 200
    assert set(response.json()["data"]["platformResults"]) == {"META"}
    assert fake_platforms[AdPlatformEnum.GOOGLE].created == []


def test_reject_without_feedback_changes_nothing(api_client, db_session, client_user, admin_user, draft_campaign):
    _submit(api_client, draft_campaign, client_user)

    response = api_client.post(
        f"/api/approvals/campaigns/{draft_campaign.id}/reject",
        json={"needsChanges": False},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 422
    assert _reload(db_session, draft_campaign).status == CampaignStatusEnum.PENDING
    (approval,) = _approvals(db_session, draft_campaign)
    assert approval.status == ApprovalStatusEnum.PENDING_REVIEW
    assert approval.reviewer_id is None


def test_needs_changes_returns_to_draft_and_allows_resubmit(
    api_client, db_session, client_user, admin_user, draft_campaign, sent_emails
):
    _submit(api_client, draft_campaign, client_user)
    response = api_client.post(
        f"/api/approvals/campaigns/{draft_campaign.id}/reject",
        json={"feedback": REJECT_FEEDBACK, "reasons": ["tone"], "suggestedChanges": ["Remove urgency"]},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Campaign marked as needing changes"
    assert _reload(db_session, draft_campaign).status == CampaignStatusEnum.DRAFT
    assert sent_emails[-1].subject.startswith("Changes requested")

    assert _submit(api_client, draft_campaign, client_user).status_code == 200
    approvals = _approvals(db_session, draft_campaign)
    assert sorted(approval.status.value for approval in approvals) == ["NEEDS_CHANGES", "PENDING_REVIEW"]
    resolved = next(a for a in approvals if a.status == ApprovalStatusEnum.NEEDS_CHANGES)
    assert resolved.review_notes == REJECT_FEEDBACK
    assert resolved.suggested_changes == ["Remove urgency"]


def test_reject_cancels_campaign(api_client, db_session, client_user, admin_user, draft_campaign):
    _submit(api_client, draft_campaign, client_user)
    response = api_client.post(
        f"/api/approvals/campaigns/{draft_campaign.id}/reject",
        json={"feedback": REJECT_FEEDBACK, "needsChanges": False},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 200
    assert _reload(db_session, draft_campaign).status == CampaignStatusEnum.CANCELLED
    (approval,) = _approvals(db_session, draft_campaign)
    assert approval.status == ApprovalStatusEnum.REJECTED

    resubmit = _submit(api_client, draft_campaign, client_user)
    assert resubmit.status_code == 400


def test_resolved_approval_cannot_be_reviewed_again(api_client, client_user, admin_user, draft_campaign):
    _submit(api_client, draft_campaign, client_user)
    api_client.post(
        f"/api/approvals/campaigns/{draft_campaign.id}/reject",
        json={"feedback": REJECT_FEEDBACK},
        headers=auth_headers(admin_user),
    )
    again = api_client.post(
        f"/api/approvals/campaigns/{draft_campaign.id}/reject",
        json={"feedback": REJECT_FEEDBACK},
        headers=auth_headers(admin_user),
    )
    assert again.status_code == 400


def test_history_is_newest_first(api_client, client_user, admin_user, other_client, draft_campaign):
    _submit(api_client, draft_campaign, client_user)
    api_client.post(
        f"/api/approvals/campaigns/{draft_campaign.id}/reject",
        json={"feedback": REJECT_FEEDBACK},
        headers=auth_headers(admin_user),
    )
    _submit(api_client, draft_campaign, client_user)

    response = api_client.get(
        f"/api/approvals/campaigns/{draft_campaign.id}/history",
        headers=auth_headers(client_user),
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["currentStatus"] == "PENDING_REVIEW"
    assert [item["status"] for item in data["approvals"]] == ["PENDING_REVIEW", "NEEDS_CHANGES"]

    forbidden = api_client.get(
        f"/api/approvals/campaigns/{draft_campaign.id}/history",
        headers=auth_headers(other_client),
    )
    assert forbidden.status_code == 403


def test_pending_queue_orders_by_budget(api_client, db_session, client_user, admin_user):
    small = make_campaign(db_session, client_user, name="Small budget", budget=500.0, platform=PlatformEnum.META)
    large = make_campaign(db_session, client_user, name="Large budget", budget=9000.0)
    for campaign in (small, large):
        _submit(api_client, campaign, client_user)

    response = api_client.get(
        "/api/approvals/pending",
        params={"priority": "high-budget"},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert [item["id"] for item in data["campaigns"]] == [large.id, small.id]
    assert data["campaigns"][0]["urgencyScore"] == 4
    assert data["campaigns"][1]["urgencyScore"] == 1
    assert data["stats"] == {"totalPending": 2, "averageWaitTime": 0, "highPriority": 1}
    assert data["pagination"]["total"] == 2


def test_pending_queue_rejects_unknown_priority(api_client, admin_user):
    response = api_client.get("/api/approvals/pending", params={"priority": "loudest"}, headers=auth_headers(admin_user))
    assert response.status_code == 422


def test_statistics(api_client, db_session, client_user, admin_user, fake_platforms):
    approved = make_campaign(db_session, client_user, name="Approved one")
    rejected = make_campaign(db_session, client_user, name="Rejected one")
    waiting = make_campaign(db_session, client_user, name="Waiting one")
    for campaign in (approved, rejected, waiting):
        _submit(api_client, campaign, client_user)
    _approve(api_client, approved, admin_user)
    api_client.post(
        f"/api/approvals/campaigns/{rejected.id}/reject",
        json={"feedback": REJECT_FEEDBACK, "needsChanges": False},
        headers=auth_headers(admin_user),
    )

    response = api_client.get("/api/approvals/statistics", params={"days": 7}, headers=auth_headers(admin_user))
    assert response.status_code == 200
    stats = response.json()["data"]
    assert stats["totalSubmissions"] == 3
    assert stats["totalApproved"] == 1
    assert stats["totalRejected"] == 1
    assert stats["pendingReview"] == 1
    assert stats["approvalRate"] == 33.33


def test_bulk_approve_continues_past_failures(
    api_client, db_session, client_user, super_admin, draft_campaign, fake_platforms
):
    other = make_campaign(db_session, client_user, name="Second campaign", platform=PlatformEnum.GOOGLE)
    _submit(api_client, draft_campaign, client_user)
    _submit(api_client, other, client_user)
    not_pending = make_campaign(db_session, client_user, name="Still a draft")

    response = api_client.post(
        "/api/approvals/bulk/approve",
        json={
            "campaignIds": [draft_campaign.id, "missing-id", not_pending.id, other.id],
            "approvalData": {"notes": "Batch approved"},
        },
        headers=auth_headers(super_admin),
    )
    assert response.status_code == 200
    body = response.json()
    results = {item["campaignId"]: item for item in body["data"]["results"]}
    assert results[draft_campaign.id]["success"] is True
    assert results[draft_campaign.id]["activated"] is True
    assert results["missing-id"] == {"campaignId": "missing-id", "success": False, "error": "Campaign not found"}
    assert results[not_pending.id]["success"] is False
    assert results[other.id]["success"] is True
    assert body["data"]["summary"] == {"total": 4, "successful": 2, "failed": 2, "activated": 2}
    assert _reload(db_session, other).status == CampaignStatusEnum.ACTIVE


def test_bulk_approve_requires_super_admin(api_client, admin_user, draft_campaign):
    response = api_client.post(
        "/api/approvals/bulk/approve",
        json={"campaignIds": [draft_campaign.id]},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 403


def test_bulk_approve_limits_batch_size(api_client, super_admin):
    response = api_client.post(
        "/api/approvals/bulk/approve",
        json={"campaignIds": [f"id-{index}" for index in range(11)]},
        headers=auth_headers(super_admin),
    )
    assert response.status_code == 422


def test_cancel_while_pending_closes_open_review(api_client, db_session, client_user, admin_user, draft_campaign):
    assert _submit(api_client, draft_campaign, client_user).status_code == 200

    response = api_client.post(f"/api/campaigns/{draft_campaign.id}/cancel", headers=auth_headers(client_user))
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "CANCELLED"

    approvals = _approvals(db_session, draft_campaign)
    assert [approval.status for approval in approvals] == [ApprovalStatusEnum.REJECTED]
    assert approvals[0].reviewer_id == client_user.id
    assert approvals[0].reviewed_at is not None
    assert approvals[0].review_notes.startswith("Withdrawn")

    history = api_client.get(
        f"/api/approvals/campaigns/{draft_campaign.id}/history", headers=auth_headers(client_user)
    ).json()["data"]
    assert history["currentStatus"] == "REJECTED"
    assert history["campaignStatus"] == "CANCELLED"

    stats = api_client.get("/api/approvals/statistics", headers=auth_headers(admin_user)).json()["data"]
    assert stats["pendingReview"] == 0

    queue = api_client.get("/api/approvals/pending", headers=auth_headers(admin_user)).json()["data"]
    assert queue["campaigns"] == []


def test_deleting_campaign_removes_its_approvals(api_client, db_session, client_user, admin_user, draft_campaign):
    _submit(api_client, draft_campaign, client_user)
    api_client.post(
        f"/api/approvals/campaigns/{draft_campaign.id}/reject",
        json={"feedback": REJECT_FEEDBACK, "needsChanges": False},
        headers=auth_headers(admin_user),
    )
    assert _reload(db_session, draft_campaign).status == CampaignStatusEnum.CANCELLED

    response = api_client.delete(f"/api/campaigns/{draft_campaign.id}", headers=auth_headers(client_user))
    assert response.status_code == 200
    assert _approvals(db_session, draft_campaign) == []
