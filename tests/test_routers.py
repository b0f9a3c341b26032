from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from autoshop.services.errors import StorageError

PHONE = "5511999990000"


class TestAdminToken:
    def test_missing_token(self, client):
        response = client.get("/attendance/queue", headers={"X-Admin-Token": ""})
        assert response.status_code == 401

    def test_wrong_token(self, client):
        response = client.get("/attendance/queue", headers={"X-Admin-Token": "nope"})
        assert response.status_code == 401

    def test_token_not_configured(self, client, core):
        core.settings.admin_token = None
        response = client.get("/attendance/queue")
        assert response.status_code == 500

    def test_health_is_public(self, client):
        response = client.get("/health", headers={"X-Admin-Token": ""})
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestAttendanceRoutes:
    def test_enqueue_and_list(self, client):
        response = client.post(f"/attendance/{PHONE}@s.whatsapp.net", json={"reason": "brakes"})
        assert response.status_code == 200
        body = response.json()
        assert body["created"] is True
        assert body["phone"] == PHONE
        assert body["placement"]["position"] == 1

        queue = client.get("/attendance/queue").json()
        assert queue["count"] == 1
        assert queue["items"][0]["ticket"]["reason"] == "brakes"

    def test_duplicate_enqueue_returns_existing(self, client):
        first = client.post(f"/attendance/{PHONE}", json={}).json()
        response = client.post(f"/attendance/{PHONE}", json={"reason": "again"})
        assert response.status_code == 200
        body = response.json()
        assert body["created"] is False
        assert body["placement"]["ticket"]["id"] == first["placement"]["ticket"]["id"]

    def test_claim_finish_flow(self, client):
        client.post(f"/attendance/{PHONE}", json={})

        claimed = client.post(f"/attendance/{PHONE}/claim", json={"operator_id": "7", "operator_name": "Ana"})
        assert claimed.status_code == 200
        assert claimed.json()["ticket"]["status"] == "in_service"
        assert client.get("/attendance/active").json()["count"] == 1

        finished = client.post(f"/attendance/{PHONE}/finish", json={"notes": "resolvido"})
        assert finished.status_code == 200
        assert finished.json()["ticket"]["status"] == "finished"
        assert client.get(f"/sessions/{PHONE}").json()["state"] == "idle"

    def test_claim_accepts_numeric_operator_id(self, client):
        client.post(f"/attendance/{PHONE}", json={})

        response = client.post(f"/attendance/{PHONE}/claim", json={"operator_id": 7, "operator_name": "Ana"})
        assert response.status_code == 200
        assert response.json()["ticket"]["claimed_by_id"] == "7"

    def test_second_claim_conflicts(self, client):
        client.post(f"/attendance/{PHONE}", json={})
        client.post(f"/attendance/{PHONE}/claim", json={"operator_id": "7", "operator_name": "Ana"})

        response = client.post(f"/attendance/{PHONE}/claim", json={"operator_id": "8", "operator_name": "Bruno"})
        assert response.status_code == 409
        assert response.json()["detail"] == "Already being attended by Ana"

    def test_cancel_without_ticket(self, client):
        response = client.post(f"/attendance/{PHONE}/cancel")
        assert response.status_code == 404

    def test_next_and_claim_next(self, client):
        assert client.get("/attendance/next").status_code == 404
        assert client.post("/attendance/next/claim", json={"operator_id": "7"}).status_code == 404

        client.post("/attendance/1111", json={})
        client.post("/attendance/2222", json={"priority": 3})
        assert client.get("/attendance/next").json()["phone"] == "2222"

        response = client.post("/attendance/next/claim", json={"operator_id": "7", "operator_name": "Ana"})
        assert response.status_code == 200
        assert response.json()["phone"] == "2222"

    def test_stats(self, client):
        client.post(f"/attendance/{PHONE}", json={})
        stats = client.get("/attendance/stats").json()
        assert stats == {
            "waiting_count": 1,
            "in_service_count": 0,
            "finished_today": 0,
            "average_service_minutes": 0,
        }

    def test_invalid_phone(self, client):
        response = client.post("/attendance/not-a-phone/cancel")
        assert response.status_code == 422

    def test_overlong_phone_is_rejected(self, client):
        response = client.post(f"/attendance/{'19' * 21}", json={})
        assert response.status_code == 422


class TestConversationRoutes:
    def test_history_and_session(self, client, orchestrator):
        orchestrator.record_inbound(PHONE, "oi", push_name="Ana")
        orchestrator.record_outbound(PHONE, "olá")

        body = client.get(f"/conversations/{PHONE}").json()
        assert body["count"] == 2
        assert [m["text"] for m in body["messages"]] == ["oi", "olá"]
        assert body["session"]["ai_context"][-1] == {"role": "assistant", "content": "olá"}

    def test_history_paging(self, client, orchestrator):
        for i in range(5):
            orchestrator.record_inbound(PHONE, f"m{i}")
        page = client.get(f"/conversations/{PHONE}", params={"limit": 2}).json()["messages"]
        assert [m["text"] for m in page] == ["m3", "m4"]
        older = client.get(f"/conversations/{PHONE}", params={"limit": 2, "before": page[0]["id"]}).json()
        assert [m["text"] for m in older["messages"]] == ["m1", "m2"]

    def test_unread_and_mark_read(self, client, orchestrator):
        orchestrator.record_inbound(PHONE, "oi", push_name="Ana")

        unread = client.get("/conversations/unread").json()
        assert unread["count"] == 1
        assert unread["conversations"][0]["name"] == "Ana"

        assert client.post(f"/conversations/{PHONE}/read").json() == {"phone": PHONE, "marked": 1}
        assert client.get("/conversations/unread").json()["count"] == 0

    def test_stats(self, client, orchestrator):
        orchestrator.record_inbound(PHONE, "oi")
        stats = client.get("/conversations/stats").json()
        assert stats == {"total": 1, "today": 1, "by_origin": {"customer": 1}}


class TestSessionRoutes:
    def test_reset_closes_ticket(self, client, orchestrator):
        orchestrator.enqueue(PHONE)

        response = client.delete(f"/sessions/{PHONE}")
        assert response.status_code == 200
        assert response.json()["state"] == "idle"
        assert client.get("/attendance/queue").json()["count"] == 0

    def test_storage_failure_maps_to_503(self, client):
        error = StorageError("session.get", OperationalError("SELECT", {}, Exception("db down")))
        with patch("autoshop.services.session_store.SessionStore.get", side_effect=error):
            response = client.get(f"/sessions/{PHONE}")
        assert response.status_code == 503
        assert response.json()["operation"] == "session.get"
