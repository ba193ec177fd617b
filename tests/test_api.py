"""End-to-end tests through the Flask test client."""

from conftest import PASSWORD, REPORT_ARGS, login_as

from extensions import db
from models import OperationLog, Transaction


class TestAuth:

    def test_healthz(self, client):
        assert client.get("/healthz").get_json() == {"status": "ok"}

    def test_login_and_me(self, client, tree):
        response = client.post("/api/auth/login", json={"username": "agent_a", "password": PASSWORD})
        assert response.status_code == 200

        me = client.get("/api/auth/me").get_json()
        assert me["id"] == tree.agent_a
        assert me["lastLoginIp"] is not None

    def test_wrong_password(self, client, tree):
        response = client.post("/api/auth/login", json={"username": "agent_a", "password": "nope-nope"})

        assert response.status_code == 401
        assert response.get_json()["code"] == "UNAUTHORIZED"

    def test_routes_require_login(self, client, tree):
        response = client.get("/api/agent-management/agents")

        assert response.status_code == 401
        assert response.get_json() == {"error": "Authentication required", "code": "UNAUTHORIZED"}

    def test_members_are_kept_out(self, client, tree):
        login_as(client, tree.member_a1)

        assert client.get("/api/agent-report/dashboard").status_code == 403

    def test_unknown_route_is_json(self, client):
        response = client.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.get_json()["code"] == "NOT_FOUND"


class TestAgentManagement:

    def test_list_agents_with_downline_counts(self, client, tree):
        login_as(client, tree.agent_a)

        body = client.get("/api/agent-management/agents").get_json()

        assert body["total"] == 1
        assert body["totalPages"] == 1
        (agent,) = body["agents"]
        assert agent["username"] == "agent_b"
        assert (agent["agentCount"], agent["directMemberCount"], agent["totalMemberCount"]) == (0, 1, 1)

    def test_list_members_paginates(self, client, tree):
        login_as(client, tree.admin)
        for i in range(3):
            client.post("/api/agent-management/members", json={"username": f"m_{i}", "password": "password123"})

        body = client.get("/api/agent-management/members?page=2&limit=2").get_json()

        assert body["total"] == 3
        assert body["totalPages"] == 2
        assert len(body["members"]) == 1

    def test_create_agent(self, client, tree):
        login_as(client, tree.agent_a)

        response = client.post("/api/agent-management/agents", json={
            "username": "agent_new", "password": "password123", "sharePercent": 5, "initialBalance": 100,
        })

        assert response.status_code == 201
        body = response.get_json()
        assert body["agentLevel"] == 3
        assert body["balance"] == 100.0

    def test_balance_adjustment(self, client, tree):
        login_as(client, tree.agent_a)

        response = client.post(f"/api/agent-management/users/{tree.member_a1}/balance",
                               json={"type": "deposit", "amount": 25})

        assert response.status_code == 200
        assert response.get_json() == {
            "success": True, "type": "deposit", "amount": 25.0,
            "operatorBalance": 975.0, "targetBalance": 75.0,
        }

    def test_non_parent_balance_change_is_forbidden(self, client, app, tree):
        login_as(client, tree.agent_c)

        response = client.post(f"/api/agent-management/users/{tree.member_b1}/balance",
                               json={"type": "deposit", "amount": 10})

        assert response.status_code == 403
        assert response.get_json()["code"] == "FORBIDDEN"
        with app.app_context():
            assert db.session.query(Transaction).count() == 0

    def test_invalid_balance_type(self, client, tree):
        login_as(client, tree.agent_a)

        response = client.post(f"/api/agent-management/users/{tree.member_a1}/balance",
                               json={"type": "steal", "amount": 10})

        assert response.status_code == 400
        assert response.get_json() == {"error": "Type must be deposit or withdraw", "code": "INVALID_INPUT"}

    def test_oversized_amount_is_rejected(self, client, tree):
        login_as(client, tree.agent_a)

        response = client.post(f"/api/agent-management/users/{tree.member_a1}/balance",
                               json={"type": "deposit", "amount": "1e30"})

        assert response.status_code == 400
        assert response.get_json()["code"] == "INVALID_INPUT"

    def test_insufficient_funds(self, client, tree):
        login_as(client, tree.agent_a)

        response = client.post(f"/api/agent-management/users/{tree.member_a1}/balance",
                               json={"type": "withdraw", "amount": 1000})

        assert response.status_code == 400
        assert response.get_json()["code"] == "INSUFFICIENT_FUNDS"

    def test_withdraw_all(self, client, app, tree):
        login_as(client, tree.agent_a)

        body = client.post(f"/api/agent-management/users/{tree.agent_b}/withdraw-all").get_json()

        assert body["amountWithdrawn"] == 500.0
        assert body["operatorBalance"] == 1500.0
        assert body["targetBalance"] == 0.0
        with app.app_context():
            assert db.session.query(Transaction).count() == 2
            assert db.session.query(OperationLog).count() == 1

    def test_status_update_scope(self, client, tree):
        login_as(client, tree.agent_a)

        ok = client.put(f"/api/agent-management/users/{tree.agent_b}/status", json={"isLocked": True})
        denied = client.put(f"/api/agent-management/users/{tree.member_b1}/status", json={"isLocked": True})

        assert ok.status_code == 200
        assert ok.get_json()["isLocked"] is True
        assert denied.status_code == 403

    def test_share_settings_round_trip(self, client, tree):
        login_as(client, tree.agent_a)
        url = f"/api/agent-management/users/{tree.agent_b}/share-settings"

        put = client.put(url, json={"sharePercent": 30, "settings": [
            {"gameCategory": "live", "platform": "evo", "sharePercent": 15, "rebatePercent": 0.5},
        ]})
        got = client.get(url).get_json()
        history = client.get(f"/api/agent-management/users/{tree.agent_b}/share-history").get_json()

        assert put.get_json() == {"success": True, "changesRecorded": 1}
        assert got["sharePercent"] == 30.0
        assert got["settings"][0]["platform"] == "evo"
        assert history["total"] == 1
        assert history["history"][0]["newValue"] == 30.0

    def test_transactions_and_operation_logs(self, client, tree):
        login_as(client, tree.agent_a)
        client.post(f"/api/agent-management/users/{tree.member_a1}/balance", json={"type": "deposit", "amount": 5})

        transactions = client.get(f"/api/agent-management/users/{tree.member_a1}/transactions").get_json()
        logs = client.get("/api/agent-management/operation-logs?action=deposit_to_user").get_json()

        assert [entry["type"] for entry in transactions["transactions"]] == ["deposit"]
        assert logs["total"] == 1
        assert logs["logs"][0]["targetId"] == tree.member_a1

    def test_grandchild_transactions_are_visible(self, client, tree):
        login_as(client, tree.agent_a)

        response = client.get(f"/api/agent-management/users/{tree.member_b1}/transactions")

        assert response.status_code == 200

    def test_dashboard(self, client, tree):
        login_as(client, tree.agent_a)

        body = client.get("/api/agent-management/dashboard").get_json()

        assert body["user"]["username"] == "agent_a"
        assert set(body["today"]) >= {"earnedRebate", "receivable", "payable", "profit"}


class TestReportEndpoints:

    def test_agent_report(self, client, bets):
        login_as(client, bets.agent_a)

        body = client.get("/api/agent-report/agent", query_string=REPORT_ARGS).get_json()

        assert body["currentUser"]["profit"] == 770.0
        assert body["directMembers"]["agentLevel"] == -1
        assert body["subAgents"]["agentLevel"] == -2

    def test_member_report_for_sub_agent(self, client, bets):
        login_as(client, bets.agent_a)

        body = client.get("/api/agent-report/member",
                          query_string=dict(REPORT_ARGS, viewAgentId=bets.agent_b)).get_json()

        assert [row["id"] for row in body["members"]] == [bets.member_b1]

    def test_outsider_view_forbidden(self, client, bets):
        login_as(client, bets.agent_a)

        response = client.get("/api/agent-report/agent", query_string={"viewAgentId": bets.agent_c})

        assert response.status_code == 403

    def test_bad_view_agent_id(self, client, bets):
        login_as(client, bets.agent_a)

        response = client.get("/api/agent-report/agent", query_string={"viewAgentId": "abc"})

        assert response.status_code == 400

    def test_bad_date_range(self, client, bets):
        login_as(client, bets.agent_a)

        response = client.get("/api/agent-report/agent", query_string={"startDate": "2026-01-15T00:00:00"})

        assert response.status_code == 400
        assert response.get_json()["code"] == "INVALID_INPUT"
