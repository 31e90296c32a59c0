"""HTTP route tests against a fake session client."""
from __future__ import annotations

import pytest

from services.exceptions import SessionCommandError

PAIRING_IMAGE = "data:image/png;base64,iVBORw0KGgo="


# ---------------------------------------------------------------------------
# Health / status
# ---------------------------------------------------------------------------


class TestHealthAndStatus:
    @pytest.mark.parametrize("ready,image", [
        (False, None),
        (False, PAIRING_IMAGE),
        (True, None),
    ])
    def test_health_always_ok(self, client, state, ready, image) -> None:
        if image:
            state.set_pairing(image)
        if ready:
            state.set_ready()
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["whatsapp"] is ready
        assert body["timestamp"]

    def test_health_reads_state_through_dependency(self, client) -> None:
        from main import app

        route = next(r for r in app.routes if getattr(r, "path", None) == "/health")
        assert [d.name for d in route.dependant.dependencies] == ["state"]

    def test_status_reports_pairing_image(self, client, state) -> None:
        state.set_pairing(PAIRING_IMAGE)
        body = client.get("/status").json()
        assert body["connected"] is False
        assert body["qrAvailable"] is True

    def test_status_when_ready(self, client, state) -> None:
        state.set_ready()
        resp = client.get("/status")
        assert resp.status_code == 200
        assert resp.json()["connected"] is True
        assert resp.json()["qrAvailable"] is False

    def test_home_lists_endpoints(self, client) -> None:
        resp = client.get("/")
        assert resp.status_code == 200
        assert "/send-bulk" in resp.text


# ---------------------------------------------------------------------------
# QR / connect page
# ---------------------------------------------------------------------------


class TestQr:
    def test_qr_pending_image(self, client, state) -> None:
        state.set_pairing(PAIRING_IMAGE)
        body = client.get("/qr").json()
        assert body["connected"] is False
        assert body["qrCode"] == PAIRING_IMAGE

    def test_qr_ready_hides_image(self, client, state) -> None:
        state.set_pairing(PAIRING_IMAGE)
        state.set_ready()
        body = client.get("/qr").json()
        assert body == {
            "connected": True,
            "qrCode": None,
            "message": "WhatsApp is already connected",
        }

    def test_qr_nothing_yet(self, client) -> None:
        body = client.get("/qr").json()
        assert body["connected"] is False
        assert body["qrCode"] is None

    def test_connect_page_shows_image_and_refreshes(self, client, state) -> None:
        state.set_pairing(PAIRING_IMAGE)
        resp = client.get("/connect")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/html")
        assert PAIRING_IMAGE in resp.text
        assert "location.reload()" in resp.text

    def test_connect_page_waiting_refreshes(self, client) -> None:
        resp = client.get("/connect")
        assert "Generating QR code" in resp.text
        assert "location.reload()" in resp.text

    def test_connect_page_ready_does_not_refresh(self, client, state) -> None:
        state.set_ready()
        resp = client.get("/connect")
        assert "already connected" in resp.text
        assert "location.reload()" not in resp.text


# ---------------------------------------------------------------------------
# /send
# ---------------------------------------------------------------------------


class TestSend:
    def test_not_ready_rejected_without_sending(self, client, session) -> None:
        resp = client.post("/send", json={"phone": "9876543210", "message": "hi"})
        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert "not connected" in resp.json()["error"]
        assert session.sent == []

    @pytest.mark.parametrize("body", [
        {"phone": "9876543210"},
        {"message": "hi"},
        {"phone": "", "message": "hi"},
        {},
    ])
    def test_missing_fields(self, client, state, session, body) -> None:
        state.set_ready()
        resp = client.post("/send", json=body)
        assert resp.status_code == 400
        assert resp.json()["error"] == "Phone and message are required"
        assert session.sent == []

    def test_sends_to_normalized_chat_id(self, client, state, session) -> None:
        state.set_ready()
        resp = client.post("/send", json={"phone": "+91-98765-43210", "message": "Fee reminder"})
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert resp.json()["to"] == "919876543210@c.us"
        assert session.sent == [("919876543210@c.us", "Fee reminder", None)]

    def test_domestic_number_gets_prefix(self, client, state, session) -> None:
        state.set_ready()
        resp = client.post("/send", json={"phone": "9876543210", "message": "hi"})
        assert resp.json()["to"] == "919876543210@c.us"

    def test_send_failure_is_500_with_error_text(self, client, state, session) -> None:
        state.set_ready()
        session.fail_for.add("919876543210@c.us")
        resp = client.post("/send", json={"phone": "9876543210", "message": "hi"})
        assert resp.status_code == 500
        assert resp.json() == {
            "success": False,
            "error": "No LID for user 919876543210@c.us",
        }

    def test_wrongly_typed_body_is_400(self, client, state) -> None:
        state.set_ready()
        resp = client.post("/send", json={"phone": ["9876543210"], "message": "hi"})
        assert resp.status_code == 400
        assert resp.json()["success"] is False


# ---------------------------------------------------------------------------
# /send-bulk
# ---------------------------------------------------------------------------


class TestSendBulk:
    def test_not_ready_rejected(self, client, session) -> None:
        resp = client.post("/send-bulk", json={"recipients": ["9876543210"], "message": "hi"})
        assert resp.status_code == 400
        assert session.sent == []

    @pytest.mark.parametrize("body", [
        {"recipients": [], "message": "hi"},
        {"recipients": "9876543210", "message": "hi"},
        {"recipients": ["9876543210"]},
        {"message": "hi"},
    ])
    def test_malformed_body(self, client, state, session, body) -> None:
        state.set_ready()
        resp = client.post("/send-bulk", json=body)
        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert session.sent == []

    def test_failure_does_not_stop_loop(self, client, state, session) -> None:
        state.set_ready()
        session.fail_for.add("919000000002@c.us")
        resp = client.post("/send-bulk", json={
            "recipients": ["9000000001", "9000000002", "9000000003"],
            "message": "Holiday notice",
        })
        assert resp.status_code == 200
        body = resp.json()
        assert [r["phone"] for r in body["results"]] == ["9000000001", "9000000002", "9000000003"]
        assert [r["success"] for r in body["results"]] == [True, False, True]
        assert "error" in body["results"][1]
        assert "error" not in body["results"][0]
        assert body["sent"] == 2
        assert body["failed"] == 1
        assert body["sent"] + body["failed"] == 3
        assert [chat for chat, _, _ in session.sent] == ["919000000001@c.us", "919000000003@c.us"]

    def test_non_phone_recipients_fail_without_sending(self, client, state, session) -> None:
        state.set_ready()
        resp = client.post("/send-bulk", json={
            "recipients": [None, True, {"phone": "9000000009"}, "9000000001"],
            "message": "Holiday notice",
        })
        assert resp.status_code == 200
        body = resp.json()
        assert [r["success"] for r in body["results"]] == [False, False, False, True]
        assert body["results"][0] == {"phone": "null", "success": False, "error": "Invalid phone number"}
        assert body["sent"] == 1
        assert body["failed"] == 3
        assert session.sent == [("919000000001@c.us", "Holiday notice", None)]


# ---------------------------------------------------------------------------
# /logout and /info
# ---------------------------------------------------------------------------


class TestLogoutAndInfo:
    def test_logout_not_ready(self, client, session) -> None:
        resp = client.post("/logout")
        assert resp.status_code == 400
        assert session.logged_out is False

    def test_logout_clears_state(self, client, state, session) -> None:
        state.set_ready()
        resp = client.post("/logout")
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert session.logged_out is True
        assert state.snapshot() == (False, None)

    def test_logout_failure_is_500(self, client, state, session) -> None:
        state.set_ready()
        session.logout_error = "Session closed"
        resp = client.post("/logout")
        assert resp.status_code == 500
        assert resp.json()["error"] == "Session closed"
        assert state.is_ready() is True

    def test_info_not_ready(self, client) -> None:
        resp = client.get("/info")
        assert resp.status_code == 400

    def test_info(self, client, state) -> None:
        state.set_ready()
        resp = client.get("/info")
        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "info": {
                "pushname": "KRP Academy",
                "wid": "919876543210@c.us",
                "platform": "android",
            },
        }

    def test_info_command_error_is_500(self, client, state, session) -> None:
        state.set_ready()
        session.info_error = SessionCommandError("info", "RPC call 'info' timed out after 5s")
        resp = client.get("/info")
        assert resp.status_code == 500
        assert resp.json()["error"] == "RPC call 'info' timed out after 5s"

    def test_unexpected_error_is_generic_500(self, client, state, session) -> None:
        state.set_ready()
        session.info_error = RuntimeError("browser crashed")
        resp = client.get("/info")
        assert resp.status_code == 500
        body = resp.json()
        assert body["success"] is False
        assert body["error"] == "Internal server error"
        assert body["message"] == "browser crashed"
