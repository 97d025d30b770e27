"""
API tests for policies, reviews and the diff endpoint.
"""
import pytest

BASE_TEXT = "Virtual currency transactions are treated like cash."

API = "/api/v1"


@pytest.fixture
def created(client, finding):
    response = client.post(
        f"{API}/policies",
        json={"name": "AML Policy", "tenant_id": "tenant-a", "text": BASE_TEXT, "findings": [finding]},
    )
    assert response.status_code == 201
    return response.json()


def change_url(policy, action):
    change_id = policy["pending_review"]["changes"][0]["id"]
    return f"{API}/policies/{policy['id']}/review/changes/{change_id}/{action}"


class TestPolicies:
    def test_health(self, client):
        assert client.get("/healthz").json() == {"status": "ok"}

    def test_create_with_findings_requires_review(self, created):
        assert created["status"] == "Review Required"
        assert created["current_version_number"] == 1
        review = created["pending_review"]
        assert review["triggered_by"] == "Initial Upload Analysis"
        assert review["counts"]["pending"] == 1
        assert review["changes"][0]["original_text"] == "treated like cash"
        assert review["changes"][0]["severity"] == "High"

    def test_create_without_findings_is_active(self, client):
        response = client.post(
            f"{API}/policies", json={"name": "KYC Policy", "tenant_id": "tenant-b", "text": "Verify identity."}
        )
        assert response.status_code == 201
        assert response.json()["status"] == "Active"
        assert response.json()["pending_review"] is None

    def test_list_and_get(self, client, created):
        page = client.get(f"{API}/policies", params={"tenant_id": "tenant-a"}).json()
        assert page["total"] == 1
        assert page["items"][0]["id"] == created["id"]

        fetched = client.get(f"{API}/policies/{created['id']}").json()
        assert fetched["current_version"]["text"] == BASE_TEXT

    def test_unknown_policy(self, client):
        response = client.get(f"{API}/policies/00000000-0000-0000-0000-000000000000")
        assert response.status_code == 404


class TestReviewWorkflow:
    def test_accept_and_finalize(self, client, created):
        response = client.post(change_url(created, "accept"))
        assert response.status_code == 200
        assert response.json()["status"] == "accepted"

        preview = client.get(f"{API}/policies/{created['id']}/review/preview").json()
        assert preview["text"] == "Virtual currency transactions are subject to enhanced due diligence."
        assert preview["diff"]["spans"][0] == {"text": "Virtual currency transactions are ", "kind": "unchanged"}

        response = client.post(f"{API}/policies/{created['id']}/review/finalize")
        assert response.status_code == 200
        body = response.json()
        assert body["version_number"] == 2
        assert body["skipped"] == []

        policy = client.get(f"{API}/policies/{created['id']}").json()
        assert policy["status"] == "Active"
        assert policy["current_version"]["text"] == preview["text"]

        versions = client.get(f"{API}/policies/{created['id']}/versions").json()
        assert [v["version_number"] for v in versions] == [1, 2]
        assert client.get(f"{API}/policies/{created['id']}/versions/1").json()["text"] == BASE_TEXT

        history = client.get(f"{API}/policies/{created['id']}/reviews").json()
        assert len(history) == 1
        assert history[0]["result_version_number"] == 2

    def test_modify_with_text(self, client, created):
        response = client.post(change_url(created, "modify"), json={"modified_text": "subject to review"})
        assert response.status_code == 200
        assert response.json()["modified_text"] == "subject to review"

    def test_modify_without_text(self, client, created):
        response = client.post(change_url(created, "modify"), json={"modified_text": "  "})
        assert response.status_code == 422

    def test_unknown_action(self, client, created):
        assert client.post(change_url(created, "approve")).status_code == 422

    def test_unknown_change(self, client, created):
        response = client.post(f"{API}/policies/{created['id']}/review/changes/nope/accept")
        assert response.status_code == 404

    def test_finalize_with_pending_changes(self, client, created):
        response = client.post(f"{API}/policies/{created['id']}/review/finalize")
        assert response.status_code == 409
        assert response.json()["detail"]["pending_count"] == 1
        assert client.get(f"{API}/policies/{created['id']}").json()["current_version_number"] == 1

    def test_second_review_conflicts(self, client, created, finding):
        response = client.post(
            f"{API}/policies/{created['id']}/reviews",
            json={"findings": [finding], "triggered_by": "Regulation Update"},
        )
        assert response.status_code == 409

    def test_open_review_after_discard(self, client, created, finding):
        assert client.delete(f"{API}/policies/{created['id']}/review").status_code == 204
        assert client.get(f"{API}/policies/{created['id']}/review").status_code == 404

        response = client.post(
            f"{API}/policies/{created['id']}/reviews",
            json={"findings": [finding], "triggered_by": "Regulation Update"},
        )
        assert response.status_code == 201
        assert response.json()["triggered_by"] == "Regulation Update"

    def test_review_without_changes(self, client, created, finding):
        client.delete(f"{API}/policies/{created['id']}/review")
        response = client.post(
            f"{API}/policies/{created['id']}/reviews",
            json={"findings": [{**finding, "isCompliant": True}], "triggered_by": "Regulation Update"},
        )
        assert response.status_code == 422

    def test_changes_by_severity(self, client, created):
        response = client.get(f"{API}/policies/{created['id']}/review/changes", params={"order": "severity"})
        assert response.status_code == 200
        assert len(response.json()) == 1


class TestDiffEndpoint:
    def test_word_diff(self, client):
        response = client.post(
            f"{API}/diff",
            json={
                "old_text": BASE_TEXT,
                "new_text": "Virtual currency transactions are subject to enhanced due diligence.",
                "mode": "combined",
                "granularity": "word",
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert [span["kind"] for span in body["spans"]] == ["unchanged", "removed", "added", "unchanged"]
        assert body["degraded"] is False
        assert body["stats"]["removed"] == len("treated like cash")

    def test_invalid_mode(self, client):
        response = client.post(f"{API}/diff", json={"old_text": "a", "new_text": "b", "mode": "sideways"})
        assert response.status_code == 422
