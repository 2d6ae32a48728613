"""
HTTP tests for research proposals and community-service programs:
ownership isolation, status rules, review and decision flow, statistics.
"""

import pytest
from sqlalchemy import func, select

from database.models import Review
from tests.helpers import TEST_TTL, bearer

PROPOSALS = "/api/v1/research/proposals"
SERVICES = "/api/v1/service"

PROPOSAL = {
    "title": "Deteksi dini banjir berbasis IoT",
    "abstract": "Sensor network for early flood warnings.",
    "type": "penelitian_dasar",
    "budget": 25_000_000,
    "duration": 12,
    "keywords": ["iot", "banjir"],
}

SERVICE = {
    "title": "Pelatihan literasi digital",
    "description": "Digital literacy workshop for village officials.",
    "type": "pelatihan",
    "budget": 7_500_000,
    "start_date": "2026-03-01",
    "end_date": "2026-03-05",
    "location": "Desa Sukamaju",
}


async def _create(client, token, path=PROPOSALS, body=PROPOSAL):
    resp = await client.post(path, json=body, headers=bearer(token))
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["id"]


class TestOwnershipIsolation:
    @pytest.mark.asyncio
    async def test_lecturer_cannot_see_or_touch_foreign_rows(self, client, user_token):
        _, ana = await user_token("ana@univ.ac.id", "lecturer")
        _, budi = await user_token("budi@univ.ac.id", "student")
        proposal_id = await _create(client, ana)

        listing = await client.get(PROPOSALS, headers=bearer(budi))
        assert listing.status_code == 200
        assert listing.json()["data"] == []

        for method, path, body in [
            ("GET", f"{PROPOSALS}/{proposal_id}", None),
            ("PUT", f"{PROPOSALS}/{proposal_id}", {"title": "hijacked"}),
            ("DELETE", f"{PROPOSALS}/{proposal_id}", None),
            ("POST", f"{PROPOSALS}/{proposal_id}/submit", None),
        ]:
            resp = await client.request(method, path, json=body, headers=bearer(budi))
            assert resp.status_code == 404, (method, path)
            assert resp.json() == {"success": False, "message": "Proposal not found"}

        # A foreign row and a missing row are indistinguishable.
        missing = await client.get(f"{PROPOSALS}/99999", headers=bearer(budi))
        assert missing.status_code == 404
        assert missing.json() == {"success": False, "message": "Proposal not found"}

    @pytest.mark.asyncio
    async def test_owner_sees_own_rows_with_creator(self, client, user_token):
        _, ana = await user_token("ana@univ.ac.id", "lecturer")
        proposal_id = await _create(client, ana)

        listing = (await client.get(PROPOSALS, headers=bearer(ana))).json()["data"]
        assert [p["id"] for p in listing] == [proposal_id]
        assert listing[0]["creator_email"] == "ana@univ.ac.id"
        assert listing[0]["status"] == "draft"

        detail = (await client.get(f"{PROPOSALS}/{proposal_id}", headers=bearer(ana))).json()["data"]
        assert detail["keywords"] == ["iot", "banjir"]
        assert detail["reviews"] == []

    @pytest.mark.asyncio
    async def test_admin_sees_everything(self, client, user_token):
        _, ana = await user_token("ana@univ.ac.id", "lecturer")
        _, budi = await user_token("budi@univ.ac.id", "lecturer")
        _, admin = await user_token("admin@univ.ac.id", "admin")
        await _create(client, ana)
        await _create(client, budi)

        listing = await client.get(PROPOSALS, headers=bearer(admin))
        assert len(listing.json()["data"]) == 2

    @pytest.mark.asyncio
    async def test_unauthenticated(self, client):
        resp = await client.get(PROPOSALS)
        assert resp.status_code == 401
        assert resp.json()["message"] == "No token provided"

    @pytest.mark.asyncio
    async def test_reviewer_cannot_author(self, client, user_token):
        _, reviewer = await user_token("rev@univ.ac.id", "reviewer")
        resp = await client.post(PROPOSALS, json=PROPOSAL, headers=bearer(reviewer))
        assert resp.status_code == 403
        assert resp.json() == {
            "success": False,
            "message": "Insufficient permissions",
            "userRole": "reviewer",
        }


class TestStatusRules:
    @pytest.mark.asyncio
    async def test_draft_is_editable_by_owner(self, client, user_token):
        _, ana = await user_token("ana@univ.ac.id")
        proposal_id = await _create(client, ana)

        resp = await client.put(f"{PROPOSALS}/{proposal_id}", json={"title": "Judul baru"}, headers=bearer(ana))
        assert resp.status_code == 200
        assert resp.json()["data"]["title"] == "Judul baru"
        assert resp.json()["data"]["budget"] == PROPOSAL["budget"]

    @pytest.mark.asyncio
    async def test_submitted_is_frozen_for_owner(self, client, user_token):
        _, ana = await user_token("ana@univ.ac.id")
        _, admin = await user_token("admin@univ.ac.id", "lppm_admin")
        proposal_id = await _create(client, ana)
        assert (await client.post(f"{PROPOSALS}/{proposal_id}/submit", headers=bearer(ana))).status_code == 200

        update = await client.put(f"{PROPOSALS}/{proposal_id}", json={"title": "late"}, headers=bearer(ana))
        assert update.status_code == 403
        assert update.json()["userRole"] == "lecturer"
        delete = await client.delete(f"{PROPOSALS}/{proposal_id}", headers=bearer(ana))
        assert delete.status_code == 403

        by_admin = await client.put(f"{PROPOSALS}/{proposal_id}", json={"title": "fixed"}, headers=bearer(admin))
        assert by_admin.status_code == 200

    @pytest.mark.asyncio
    async def test_submit_twice(self, client, user_token):
        _, ana = await user_token("ana@univ.ac.id")
        proposal_id = await _create(client, ana)
        first = await client.post(f"{PROPOSALS}/{proposal_id}/submit", headers=bearer(ana))
        assert first.json()["data"]["status"] == "submitted"
        assert first.json()["data"]["submitted_at"] is not None

        second = await client.post(f"{PROPOSALS}/{proposal_id}/submit", headers=bearer(ana))
        assert second.status_code == 400

    @pytest.mark.asyncio
    async def test_owner_deletes_draft(self, client, user_token):
        _, ana = await user_token("ana@univ.ac.id")
        proposal_id = await _create(client, ana)
        assert (await client.delete(f"{PROPOSALS}/{proposal_id}", headers=bearer(ana))).status_code == 200
        assert (await client.get(f"{PROPOSALS}/{proposal_id}", headers=bearer(ana))).status_code == 404

    @pytest.mark.asyncio
    async def test_empty_update(self, client, user_token):
        _, ana = await user_token("ana@univ.ac.id")
        proposal_id = await _create(client, ana)
        resp = await client.put(f"{PROPOSALS}/{proposal_id}", json={}, headers=bearer(ana))
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_null_required_fields_are_left_unchanged(self, client, user_token):
        _, ana = await user_token("ana@univ.ac.id")
        proposal_id = await _create(client, ana)

        only_null = await client.put(f"{PROPOSALS}/{proposal_id}", json={"title": None}, headers=bearer(ana))
        assert only_null.status_code == 400

        mixed = await client.put(
            f"{PROPOSALS}/{proposal_id}",
            json={"title": None, "abstract": None, "budget": None, "duration": 6},
            headers=bearer(ana),
        )
        assert mixed.status_code == 200
        data = mixed.json()["data"]
        assert data["title"] == PROPOSAL["title"]
        assert data["abstract"] == PROPOSAL["abstract"]
        assert data["budget"] is None
        assert data["duration"] == 6

        service_id = await _create(client, ana, SERVICES, SERVICE)
        resp = await client.put(
            f"{SERVICES}/{service_id}", json={"description": None, "type": None}, headers=bearer(ana)
        )
        assert resp.status_code == 400


class TestReviewAndDecision:
    @pytest.mark.asyncio
    async def test_full_workflow(self, client, user_token, session_factory):
        _, ana = await user_token("ana@univ.ac.id")
        _, reviewer = await user_token("rev@univ.ac.id", "reviewer")
        _, admin = await user_token("admin@univ.ac.id", "admin")
        proposal_id = await _create(client, ana)

        # Drafts are invisible to reviewers.
        assert (await client.get(f"{PROPOSALS}/{proposal_id}", headers=bearer(reviewer))).status_code == 404
        review = {"score": 80, "comments": "Solid methodology.", "recommendation": "accept"}
        early = await client.post(f"{PROPOSALS}/{proposal_id}/review", json=review, headers=bearer(reviewer))
        assert early.status_code == 404

        await client.post(f"{PROPOSALS}/{proposal_id}/submit", headers=bearer(ana))
        listing = await client.get(PROPOSALS, headers=bearer(reviewer))
        assert [p["id"] for p in listing.json()["data"]] == [proposal_id]

        first = await client.post(f"{PROPOSALS}/{proposal_id}/review", json=review, headers=bearer(reviewer))
        assert first.status_code == 200
        assert first.json()["message"] == "Review submitted successfully"
        assert first.json()["data"]["status"] == "under_review"

        revised = {**review, "score": 65, "recommendation": "minor_revision"}
        second = await client.post(f"{PROPOSALS}/{proposal_id}/review", json=revised, headers=bearer(reviewer))
        assert second.json()["message"] == "Review updated successfully"

        async with session_factory() as session:
            count = await session.scalar(select(func.count(Review.id)))
        assert count == 1

        detail = (await client.get(f"{PROPOSALS}/{proposal_id}", headers=bearer(admin))).json()["data"]
        assert len(detail["reviews"]) == 1
        assert detail["reviews"][0]["score"] == 65
        assert detail["reviews"][0]["recommendation"] == "minor_revision"

        denied = await client.post(
            f"{PROPOSALS}/{proposal_id}/decision", json={"status": "approved"}, headers=bearer(reviewer)
        )
        assert denied.status_code == 403

        decided = await client.post(
            f"{PROPOSALS}/{proposal_id}/decision",
            json={"status": "approved", "review_notes": "Funded."},
            headers=bearer(admin),
        )
        assert decided.status_code == 200
        assert decided.json()["data"]["status"] == "approved"
        assert decided.json()["data"]["decision_notes"] == "Funded."

        # Decided rows leave the review queue.
        after = await client.post(f"{PROPOSALS}/{proposal_id}/review", json=review, headers=bearer(reviewer))
        assert after.status_code == 404
        again = await client.post(
            f"{PROPOSALS}/{proposal_id}/decision", json={"status": "rejected"}, headers=bearer(admin)
        )
        assert again.status_code == 400

    @pytest.mark.asyncio
    async def test_reviewer_sees_only_the_review_queue(self, client, user_token):
        _, ana = await user_token("ana@univ.ac.id")
        _, reviewer = await user_token("rev@univ.ac.id", "reviewer")
        draft_id = await _create(client, ana)
        submitted_id = await _create(client, ana, body={**PROPOSAL, "title": "Submitted"})
        await client.post(f"{PROPOSALS}/{submitted_id}/submit", headers=bearer(ana))

        listing = await client.get(PROPOSALS, headers=bearer(reviewer))
        assert [p["id"] for p in listing.json()["data"]] == [submitted_id]

        hidden = await client.get(f"{PROPOSALS}/{draft_id}", headers=bearer(reviewer))
        assert hidden.status_code == 404
        assert hidden.json() == {"success": False, "message": "Proposal not found"}
        visible = await client.get(f"{PROPOSALS}/{submitted_id}", headers=bearer(reviewer))
        assert visible.status_code == 200
        assert visible.json()["data"]["status"] == "submitted"

    @pytest.mark.asyncio
    async def test_authors_cannot_review(self, client, user_token):
        _, ana = await user_token("ana@univ.ac.id")
        proposal_id = await _create(client, ana)
        await client.post(f"{PROPOSALS}/{proposal_id}/submit", headers=bearer(ana))
        review = {"score": 100, "comments": "Mine is great.", "recommendation": "accept"}
        resp = await client.post(f"{PROPOSALS}/{proposal_id}/review", json=review, headers=bearer(ana))
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_cannot_review_draft(self, client, user_token):
        _, ana = await user_token("ana@univ.ac.id")
        _, admin = await user_token("admin@univ.ac.id", "super_admin")
        proposal_id = await _create(client, ana)
        review = {"score": 50, "comments": "Too early.", "recommendation": "reject"}
        resp = await client.post(f"{PROPOSALS}/{proposal_id}/review", json=review, headers=bearer(admin))
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_invalid_score(self, client, user_token):
        _, reviewer = await user_token("rev@univ.ac.id", "reviewer")
        review = {"score": 101, "comments": "x", "recommendation": "accept"}
        resp = await client.post(f"{PROPOSALS}/1/review", json=review, headers=bearer(reviewer))
        assert resp.status_code == 422


class TestStatistics:
    @pytest.mark.asyncio
    async def test_scoped_to_caller(self, client, user_token):
        _, ana = await user_token("ana@univ.ac.id")
        _, budi = await user_token("budi@univ.ac.id")
        _, admin = await user_token("admin@univ.ac.id", "admin")
        first = await _create(client, ana)
        await _create(client, ana)
        await _create(client, budi)
        await client.post(f"{PROPOSALS}/{first}/submit", headers=bearer(ana))
        await client.post(f"{PROPOSALS}/{first}/decision", json={"status": "approved"}, headers=bearer(admin))

        mine = (await client.get(f"{PROPOSALS}/statistics", headers=bearer(ana))).json()["data"]
        assert mine["total"] == 2
        assert mine["draft"] == 1
        assert mine["approved"] == 1
        assert mine["total_budget"] == float(PROPOSAL["budget"])

        everything = (await client.get(f"{PROPOSALS}/statistics", headers=bearer(admin))).json()["data"]
        assert everything["total"] == 3
        assert everything["draft"] == 2


class TestCommunityService:
    @pytest.mark.asyncio
    async def test_crud(self, client, user_token):
        _, ana = await user_token("ana@univ.ac.id")
        service_id = await _create(client, ana, SERVICES, SERVICE)

        detail = await client.get(f"{SERVICES}/{service_id}", headers=bearer(ana))
        assert detail.status_code == 200
        assert detail.json()["data"]["start_date"] == "2026-03-01"
        assert "reviews" not in detail.json()["data"]

        update = await client.put(f"{SERVICES}/{service_id}", json={"location": "Desa Mekar"}, headers=bearer(ana))
        assert update.json()["data"]["location"] == "Desa Mekar"

    @pytest.mark.asyncio
    async def test_date_order(self, client, user_token):
        _, ana = await user_token("ana@univ.ac.id")
        bad = {**SERVICE, "end_date": "2026-02-01"}
        resp = await client.post(SERVICES, json=bad, headers=bearer(ana))
        assert resp.status_code == 422

        service_id = await _create(client, ana, SERVICES, SERVICE)
        resp = await client.put(f"{SERVICES}/{service_id}", json={"end_date": "2026-01-01"}, headers=bearer(ana))
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_foreign_service_not_found(self, client, user_token):
        _, ana = await user_token("ana@univ.ac.id")
        _, budi = await user_token("budi@univ.ac.id")
        service_id = await _create(client, ana, SERVICES, SERVICE)
        resp = await client.get(f"{SERVICES}/{service_id}", headers=bearer(budi))
        assert resp.status_code == 404
        assert resp.json()["message"] == "Community service not found"


class TestSessionLifecycle:
    @pytest.mark.asyncio
    async def test_login_list_expire(self, client, user_token, clock):
        _, ana = await user_token("ana@univ.ac.id")
        await _create(client, ana)

        clock.advance(TEST_TTL - 1)
        assert (await client.get(PROPOSALS, headers=bearer(ana))).status_code == 200

        clock.advance(1)
        expired = await client.get(PROPOSALS, headers=bearer(ana))
        assert expired.status_code == 401
        assert expired.json()["message"] == "Invalid token"
