"""HTTP-level tests: a deal from proposal to paid delivery through the API."""

from conftest import auth
from marketplace.dependencies import get_notification_emitter


def create_payload(freelancer_id, **overrides):
    data = {
        "freelancerId": freelancer_id,
        "title": "Mobile app MVP",
        "terms": "Build an MVP for iOS and Android.",
        "totalBudget": 3000,
        "phases": [
            {"phase": 1, "title": "Design", "amount": 900},
            {"phase": 2, "title": "Build", "amount": 1500},
            {"phase": 3, "title": "Launch", "amount": 600},
        ],
    }
    data.update(overrides)
    return data


def activate(api, client_user, freelancer_user):
    """Create, send and sign a contract; returns (contract_id, workspace_id)"""
    created = api.post("/contracts", json=create_payload(freelancer_user.id), headers=auth(client_user))
    assert created.status_code == 200
    contract_id = created.json()["id"]

    assert api.post(f"/contracts/{contract_id}/send", headers=auth(client_user)).status_code == 200
    first = api.post(f"/contracts/{contract_id}/sign", json={"signature": "c"}, headers=auth(client_user))
    assert first.json()["fullyExecuted"] is False
    second = api.post(f"/contracts/{contract_id}/sign", headers=auth(freelancer_user))
    body = second.json()
    assert body["fullyExecuted"] is True
    assert body["status"] == "active"
    return contract_id, body["workspaceId"]


class TestAuth:

    def test_health_is_public(self, api):
        response = api.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_missing_token(self, api):
        assert api.get("/contracts").status_code == 401

    def test_unknown_subject(self, api):
        response = api.get("/contracts", headers={"Authorization": "Bearer nobody"})
        assert response.status_code == 401


class TestContractEndpoints:

    def test_create_and_list(self, api, client_user, freelancer_user):
        created = api.post("/contracts", json=create_payload(freelancer_user.id), headers=auth(client_user))
        assert created.status_code == 200
        body = created.json()
        assert body["status"] == "draft"
        assert [p["status"] for p in body["phases"]] == ["pending", "pending", "pending"]

        listed = api.get("/contracts", params={"role": "freelancer"}, headers=auth(freelancer_user)).json()
        assert listed["total"] == 1
        assert listed["pages"] == 1
        assert listed["contracts"][0]["id"] == body["id"]

    def test_validation_error_shape(self, api, client_user, freelancer_user):
        response = api.post(
            "/contracts", json=create_payload(freelancer_user.id, totalBudget=0), headers=auth(client_user)
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "validation_failure"

    def test_stranger_gets_not_found(self, api, client_user, freelancer_user, stranger_user):
        contract_id = api.post(
            "/contracts", json=create_payload(freelancer_user.id), headers=auth(client_user)
        ).json()["id"]
        assert api.get(f"/contracts/{contract_id}", headers=auth(stranger_user)).status_code == 404

    def test_double_sign_conflict(self, api, client_user, freelancer_user):
        contract_id = api.post(
            "/contracts", json=create_payload(freelancer_user.id), headers=auth(client_user)
        ).json()["id"]
        api.post(f"/contracts/{contract_id}/sign", headers=auth(client_user))
        again = api.post(f"/contracts/{contract_id}/sign", headers=auth(client_user))
        assert again.status_code == 409
        assert again.json()["detail"]["code"] == "already_signed"

    def test_signing_status(self, api, client_user, freelancer_user):
        contract_id, _ = activate(api, client_user, freelancer_user)
        status = api.get(f"/contracts/{contract_id}/signing-status", headers=auth(freelancer_user)).json()
        assert status["bothSigned"] is True
        assert status["status"] == "active"

    def test_ensure_workspace_returns_existing(self, api, client_user, freelancer_user):
        contract_id, workspace_id = activate(api, client_user, freelancer_user)
        response = api.post(f"/contracts/{contract_id}/workspace", headers=auth(client_user))
        assert response.status_code == 200
        assert response.json()["workspaceId"] == workspace_id


class TestWorkspaceEndpoints:

    def test_role_views(self, api, client_user, freelancer_user, stranger_user):
        _, workspace_id = activate(api, client_user, freelancer_user)

        client_view = api.get(f"/workspaces/{workspace_id}", headers=auth(client_user)).json()
        assert client_view["role"] == "client"
        assert "budgetTracking" in client_view["private"]
        assert "earningsTracking" not in client_view["private"]

        freelancer_view = api.get(f"/workspaces/{workspace_id}", headers=auth(freelancer_user)).json()
        assert freelancer_view["role"] == "freelancer"
        assert "earningsTracking" in freelancer_view["private"]

        assert api.get(f"/workspaces/{workspace_id}", headers=auth(stranger_user)).status_code == 403

    def test_claimed_role_must_match(self, api, client_user, freelancer_user):
        _, workspace_id = activate(api, client_user, freelancer_user)
        response = api.get(
            f"/workspaces/{workspace_id}", params={"role": "client"}, headers=auth(freelancer_user)
        )
        assert response.status_code == 403

    def test_messages_and_listing(self, api, client_user, freelancer_user):
        _, workspace_id = activate(api, client_user, freelancer_user)
        sent = api.post(
            f"/workspaces/{workspace_id}/messages", json={"content": "Hello!"}, headers=auth(client_user)
        )
        assert sent.status_code == 200

        summaries = api.get("/workspaces", params={"role": "freelancer"}, headers=auth(freelancer_user)).json()
        assert summaries[0]["unreadMessages"] >= 1

        read = api.post(f"/workspaces/{workspace_id}/messages/read", headers=auth(freelancer_user)).json()
        assert read["marked"] >= 1
        summaries = api.get("/workspaces", headers=auth(freelancer_user)).json()
        assert summaries[0]["unreadMessages"] == 0

    def test_private_file_hidden_from_counterpart(self, api, client_user, freelancer_user):
        _, workspace_id = activate(api, client_user, freelancer_user)
        api.post(
            f"/workspaces/{workspace_id}/files",
            json={"filename": "rates.pdf", "fileUrl": "https://files/rates.pdf", "private": True},
            headers=auth(freelancer_user),
        )
        client_view = api.get(f"/workspaces/{workspace_id}", headers=auth(client_user)).json()
        assert client_view["shared"]["files"] == []
        assert client_view["private"]["files"] == []


class TestMilestoneFlow:

    def test_delivery_to_completion(self, api, client_user, freelancer_user, payments):
        contract_id, workspace_id = activate(api, client_user, freelancer_user)
        base = f"/workspaces/{workspace_id}/milestones"

        milestones = api.get(base, headers=auth(freelancer_user)).json()["milestones"]
        assert [m["status"] for m in milestones] == ["pending"] * 3

        for expected, milestone in zip((33, 67, 100), milestones):
            mid = milestone["milestoneId"]
            assert api.post(f"{base}/{mid}/start", headers=auth(freelancer_user)).status_code == 200
            submitted = api.post(
                f"{base}/{mid}/submit", json={"submittedWork": ["build.zip"]}, headers=auth(freelancer_user)
            )
            assert submitted.json()["milestone"]["status"] == "awaiting_approval"
            approved = api.post(f"{base}/{mid}/approve", json={"feedback": "Good"}, headers=auth(client_user))
            assert approved.status_code == 200
            assert approved.json()["workspaceProgress"] == expected

        assert len(payments.ready) == 3

        first_mid = milestones[0]["milestoneId"]
        paid = api.post(f"{base}/{first_mid}/release-payment", headers=auth(client_user))
        assert paid.json()["milestone"]["progress"]["paymentProcessed"] is True

        phases = api.get(f"/contracts/{contract_id}", headers=auth(client_user)).json()["phases"]
        assert [p["status"] for p in phases] == ["paid", "completed", "completed"]

        stats = api.get(f"{base}/stats", headers=auth(client_user)).json()
        assert stats["stats"]["completed"] == 3

        done = api.post(f"/contracts/{contract_id}/complete", headers=auth(client_user))
        assert done.status_code == 200
        assert done.json()["status"] == "completed"

    def test_approving_pending_milestone_conflicts(self, api, client_user, freelancer_user):
        _, workspace_id = activate(api, client_user, freelancer_user)
        base = f"/workspaces/{workspace_id}/milestones"
        mid = api.get(base, headers=auth(client_user)).json()["milestones"][0]["milestoneId"]

        response = api.post(f"{base}/{mid}/approve", headers=auth(client_user))
        assert response.status_code == 409
        assert api.get(f"{base}/{mid}", headers=auth(client_user)).json()["status"] == "pending"

    def test_freelancer_cannot_approve(self, api, client_user, freelancer_user):
        _, workspace_id = activate(api, client_user, freelancer_user)
        base = f"/workspaces/{workspace_id}/milestones"
        mid = api.get(base, headers=auth(client_user)).json()["milestones"][0]["milestoneId"]
        api.post(f"{base}/{mid}/start", headers=auth(freelancer_user))
        api.post(f"{base}/{mid}/submit", json={}, headers=auth(freelancer_user))

        assert api.post(f"{base}/{mid}/approve", headers=auth(freelancer_user)).status_code == 403


class TestNotificationFeed:

    def test_lifecycle_events_reach_the_feed(self, api, client_user, freelancer_user):
        # Use the real database emitter for this test
        del api.app.dependency_overrides[get_notification_emitter]

        activate(api, client_user, freelancer_user)

        feed = api.get("/notifications", headers=auth(freelancer_user)).json()
        kinds = {n["type"] for n in feed["notifications"]}
        assert {"contract_sent", "contract_activated", "workspace_created"} <= kinds
        assert feed["unreadCount"] == len(feed["notifications"])

        first = feed["notifications"][0]
        marked = api.post(f"/notifications/{first['id']}/read", headers=auth(freelancer_user))
        assert marked.json()["isRead"] is True
        remaining = api.get("/notifications", headers=auth(freelancer_user)).json()["unreadCount"]
        assert remaining == feed["unreadCount"] - 1

    def test_unknown_notification(self, api, client_user):
        assert api.post("/notifications/nope/read", headers=auth(client_user)).status_code == 404
