"""HTTP tests for the booking routes."""

from fastapi.testclient import TestClient
import pytest

from booking_engine.dependencies import get_booking_engine
from booking_engine.main import REQUEST_ID_HEADER, create_app

PROVIDER_ID = "provider-1"

FORM = {
    "name": "Maria José",
    "email": "maria@example.com",
    "phone": "(11) 99999-8888",
    "birth_date": "1990-05-10",
    "notes": "First consultation",
    "is_first_time": True,
    "terms_accepted": True,
}


@pytest.fixture
def client(booking_engine):
    app = create_app(create_tables=False)
    app.dependency_overrides[get_booking_engine] = lambda: booking_engine
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _post(client, path, body=None, expected=200):
    response = client.post(path, json=body)
    assert response.status_code == expected, response.text
    return response.json() if response.content else None


def _review(client, slot_id="2024-01-02-09:00", form=FORM):
    session = _post(client, f"/providers/{PROVIDER_ID}/sessions", expected=201)
    session = _post(client, "/sessions/select-date", {"session": session, "date": "2024-01-02"})
    session = _post(client, "/sessions/select-slot", {"session": session, "slot_id": slot_id})
    return _post(client, "/sessions/patient-form", {"session": session, "form": form})


class TestAvailability:
    def test_slots(self, client):
        response = client.get(f"/providers/{PROVIDER_ID}/slots", params={"date": "2024-01-02"})

        assert response.status_code == 200
        first = response.json()[0]
        assert first["id"] == "2024-01-02-09:00"
        assert first["time"] == "09:00"
        assert first["is_available"] is True

    def test_unknown_provider(self, client):
        response = client.get("/providers/nobody/slots", params={"date": "2024-01-02"})

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "SCHEDULE_NOT_FOUND"

    def test_calendar(self, client):
        response = client.get(
            f"/providers/{PROVIDER_ID}/calendar", params={"year": 2024, "month": 1}
        )

        assert response.status_code == 200
        assert len(response.json()) == 42

    def test_calendar_rejects_bad_month(self, client):
        response = client.get(
            f"/providers/{PROVIDER_ID}/calendar", params={"year": 2024, "month": 13}
        )
        assert response.status_code == 422


class TestBookingFlow:
    def test_full_flow(self, client):
        reviewing = _review(client)
        assert reviewing["state"] == "reviewing_confirmation"
        assert reviewing["selected_slot"]["price"] == 150

        result = _post(client, "/sessions/confirm", {"session": reviewing})

        assert result["session"]["state"] == "confirmed"
        assert result["appointment"]["appointment_type"] == "initial"
        assert result["payment_link"]["amount"] == 150
        assert result["error"] is None

        replay = _post(client, "/sessions/confirm", {"session": result["session"]})
        assert replay["appointment"]["id"] == result["appointment"]["id"]

    def test_no_slot_date_returns_notice(self, client):
        session = _post(client, f"/providers/{PROVIDER_ID}/sessions", expected=201)
        session = _post(client, "/sessions/select-date", {"session": session, "date": "2024-01-06"})

        assert session["state"] == "selecting_date"
        assert session["notice"] == "no available slots"

    def test_conflict_comes_back_as_failed_session(self, client):
        winner = _review(client)
        loser = _review(client, form={**FORM, "email": "other@example.com"})
        _post(client, "/sessions/confirm", {"session": winner})

        result = _post(client, "/sessions/confirm", {"session": loser})

        assert result["session"]["state"] == "failed"
        assert result["error"]["code"] == "BOOKING_CONFLICT"

        back = _post(client, "/sessions/return-to-slots", {"session": result["session"]})
        assert back["state"] == "selecting_slot"

        response = client.post(
            "/sessions/select-slot", json={"session": back, "slot_id": "2024-01-02-09:00"}
        )
        assert response.status_code == 409
        assert response.json()["detail"]["details"]["block_reason"] == "conflict"

    def test_edited_session_is_rebuilt_from_schedule(self, client):
        reviewing = _review(client)
        reviewing["selected_slot"].update(
            {
                "date": "2024-01-06",
                "start_minute": 187,
                "duration_minutes": 5,
                "modality": "online",
                "price": 0,
            }
        )
        reviewing["patient_form"]["terms_accepted"] = False

        result = _post(client, "/sessions/confirm", {"session": reviewing})

        assert result["session"]["state"] == "failed"
        assert result["appointment"] is None
        slots = client.get(
            f"/providers/{PROVIDER_ID}/slots", params={"date": "2024-01-02"}
        ).json()
        assert all(slot["is_available"] for slot in slots)

    def test_edited_price_is_ignored(self, client):
        reviewing = _review(client)
        reviewing["selected_slot"]["price"] = 0

        result = _post(client, "/sessions/confirm", {"session": reviewing})

        assert result["appointment"]["price"] == 150
        assert result["payment_link"]["amount"] == 150

    def test_invalid_form_lists_fields(self, client):
        session = _post(client, f"/providers/{PROVIDER_ID}/sessions", expected=201)
        session = _post(client, "/sessions/select-date", {"session": session, "date": "2024-01-02"})
        session = _post(
            client, "/sessions/select-slot", {"session": session, "slot_id": "2024-01-02-09:00"}
        )

        response = client.post(
            "/sessions/patient-form",
            json={"session": session, "form": {**FORM, "phone": "123", "terms_accepted": False}},
        )

        assert response.status_code == 400
        errors = response.json()["detail"]["details"]["errors"]
        assert [error["field"] for error in errors] == ["phone", "terms_accepted"]

    def test_modality_and_back(self, client):
        reviewing = _review(client)
        entering = _post(client, "/sessions/back", {"session": reviewing})
        online = _post(client, "/sessions/modality", {"session": entering, "modality": "online"})

        assert online["selected_slot"]["modality"] == "online"
        assert online["selected_slot"]["price"] == 100

    def test_invalid_transition(self, client):
        session = _post(client, f"/providers/{PROVIDER_ID}/sessions", expected=201)

        response = client.post("/sessions/confirm", json={"session": session})

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "INVALID_TRANSITION"

    def test_cancel_session(self, client):
        session = _post(client, f"/providers/{PROVIDER_ID}/sessions", expected=201)
        response = client.post("/sessions/cancel", json={"session": session})
        assert response.status_code == 204


class TestAppointments:
    def _book(self, client, slot_id="2024-01-02-09:00"):
        reviewing = _review(client, slot_id=slot_id)
        return _post(client, "/sessions/confirm", {"session": reviewing})

    def test_cancel(self, client):
        appointment = self._book(client)["appointment"]

        cancelled = _post(client, f"/appointments/{appointment['id']}/cancel")
        assert cancelled["status"] == "cancelled"

    def test_cancel_unknown(self, client):
        response = client.post("/appointments/missing/cancel")
        assert response.status_code == 404

    def test_reschedule(self, client):
        appointment = self._book(client)["appointment"]

        moved = _post(
            client,
            f"/appointments/{appointment['id']}/reschedule",
            {"date": "2024-01-04", "time": "10:00", "idempotency_key": "r-1"},
        )
        assert moved["id"] == appointment["id"]
        assert moved["date"] == "2024-01-04"
        assert moved["start_minute"] == 600

    def test_reschedule_rejects_malformed_time(self, client):
        response = client.post(
            "/appointments/whatever/reschedule",
            json={"date": "2024-01-04", "time": "10am", "idempotency_key": "r-1"},
        )
        assert response.status_code == 422

    def test_payment_status(self, client):
        link = self._book(client)["payment_link"]

        response = client.get(f"/payments/{link['id']}/status")

        assert response.status_code == 200
        assert response.json() == {"payment_id": link["id"], "status": "pending"}


def test_health_and_request_id(client):
    response = client.get("/health", headers={REQUEST_ID_HEADER: "req-123"})

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers[REQUEST_ID_HEADER] == "req-123"


def test_metrics_endpoint(client):
    client.get(f"/providers/{PROVIDER_ID}/slots", params={"date": "2024-01-02"})

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "booking_engine_service_operations_total" in response.text
