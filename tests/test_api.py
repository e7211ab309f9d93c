import threading
from datetime import datetime, timedelta, timezone

import httpx
import pytest

import main
from app.utils import mailer
from app.utils.mailer import MailResult
from config import settings


@pytest.fixture
def client(store):
    main.app.dependency_overrides[main.get_store] = lambda: store
    transport = httpx.ASGITransport(app=main.app)
    yield httpx.AsyncClient(transport=transport, base_url="http://test")
    main.app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_cron_reminders_returns_run_summary(client, store, monkeypatch, mail):
    monkeypatch.setattr(mailer, "send_mail", mail)
    store.caregivers.add("u1", email="ann@example.com")
    store.reminders.add(owner_id="u1", remind_at=datetime.now(timezone.utc) - timedelta(minutes=1))

    async with client:
        resp = await client.get("/api/cron/reminders")

    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["processed"] == 1
    assert body["results"][0]["action"] == "marked_sent"
    assert body["results"][0]["mail"] == "sent"
    assert len(mail.calls) == 1


@pytest.mark.asyncio
async def test_cron_goals_accepts_post(client, store):
    store.goals.add(owner_id="u1", name="Walk", metric="steps", target=10000)

    async with client:
        resp = await client.post("/api/cron/goals")

    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True and body["processed"] == 1
    assert body["results"][0]["missed"] is True


@pytest.mark.asyncio
async def test_cron_weekly_summary(client, store):
    store.vitals.add("u1", datetime.now(timezone.utc) - timedelta(days=1), heart_rate=70)

    async with client:
        resp = await client.get("/api/cron/weekly-summary")

    assert resp.status_code == 200
    assert resp.json()["processed"] == 1
    assert store.insights.rows[0].title == "Weekly Health Summary"


@pytest.mark.asyncio
async def test_cron_job_failure_returns_500(client, store, monkeypatch):
    async def broken(now, limit=None):
        raise RuntimeError("store unreachable")

    monkeypatch.setattr(store.reminders, "fetch_due", broken)

    async with client:
        resp = await client.get("/api/cron/reminders")

    assert resp.status_code == 500
    assert resp.json() == {"ok": False, "error": "store unreachable"}


@pytest.mark.asyncio
async def test_missing_store_configuration_returns_500(monkeypatch):
    monkeypatch.setattr(settings, "DATABASE_URL", None)
    monkeypatch.setattr(settings, "DATABASE_PUBLIC_URL", None)
    transport = httpx.ASGITransport(app=main.app)

    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/api/cron/goals")

    assert resp.status_code == 500
    assert resp.json() == {"ok": False, "error": "DATABASE_URL not set"}


@pytest.mark.asyncio
async def test_vitals_endpoint_scores_and_stores(client, store):
    async with client:
        resp = await client.post("/v1/vitals", json={
            "owner_id": "u1",
            "blood_sugar": 150,
            "profile": {"age": 45},
        })

    assert resp.status_code == 200
    body = resp.json()
    assert body["risks"]["diabetes"] == 70
    assert body["alert"] is False
    assert body["side_effects"]["followup"]["ok"] is True
    assert store.vitals.rows[0].owner_id == "u1"


@pytest.mark.asyncio
async def test_vitals_endpoint_requires_owner(client):
    async with client:
        resp = await client.post("/v1/vitals", json={"owner_id": " ", "heart_rate": 80})

    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_vitals_store_failure_is_500(client, store, monkeypatch):
    async def broken(reading):
        raise RuntimeError("db down")

    monkeypatch.setattr(store.vitals, "insert", broken)

    async with client:
        resp = await client.post("/v1/vitals", json={"owner_id": "u1"})

    assert resp.status_code == 500
    assert resp.json()["detail"] == "DB error"


@pytest.mark.asyncio
async def test_symptoms_endpoint_needs_content(client):
    async with client:
        resp = await client.post("/v1/symptoms", json={"owner_id": "u1"})

    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_symptoms_endpoint_with_notes_only(client, store):
    async with client:
        resp = await client.post("/v1/symptoms", json={"owner_id": "u1", "notes": "dry cough"})

    assert resp.status_code == 200
    assert resp.json()["risks"]["copd"] == 35
    assert store.symptoms.rows[0].notes == "dry cough"


@pytest.mark.asyncio
async def test_risk_endpoint_is_stateless(client, store):
    async with client:
        resp = await client.post("/v1/risks", json={"blood_sugar": 200, "profile": {"age": 70}})

    assert resp.status_code == 200
    body = resp.json()
    assert body["risks"]["diabetes"] == 95
    assert body["alert"] is True
    assert body["tips"][0].startswith("Very high blood sugar")
    assert store.vitals.rows == []


@pytest.mark.asyncio
async def test_risk_endpoint_tolerates_huge_numbers(client):
    async with client:
        resp = await client.post("/v1/risks", json={"blood_sugar": 10 ** 400})

    assert resp.status_code == 200
    assert resp.json()["risks"]["diabetes"] == 10


@pytest.mark.asyncio
async def test_notify_without_mailer_is_500(client):
    async with client:
        resp = await client.post("/api/notify", json={"to": "a@example.com", "subject": "Hi"})

    assert resp.status_code == 500
    assert "MAILER_URL" in resp.json()["error"]


@pytest.mark.asyncio
async def test_notify_validates_payload(client, monkeypatch):
    monkeypatch.setattr(settings, "MAILER_URL", "https://relay.example.com/send")

    async with client:
        resp = await client.post("/api/notify", json={"subject": "Hi"})

    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_notify_forwards_to_relay(client, monkeypatch):
    monkeypatch.setattr(settings, "MAILER_URL", "https://relay.example.com/send")
    calls = []

    def fake_send(to, subject, text, html=None):
        calls.append((to, subject, text, html))
        return MailResult(ok=True, status=200, body={"id": "m1"})

    monkeypatch.setattr(mailer, "send_mail", fake_send)

    async with client:
        resp = await client.post(
            "/api/notify", json={"to": ["a@example.com"], "subject": "Hi", "text": "Hello"}
        )

    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "result": {"id": "m1"}}
    assert calls == [(["a@example.com"], "Hi", "Hello", None)]


@pytest.mark.asyncio
async def test_notify_relay_call_runs_in_threadpool(client, monkeypatch):
    monkeypatch.setattr(settings, "MAILER_URL", "https://relay.example.com/send")
    threads = []

    def fake_send(to, subject, text, html=None):
        threads.append(threading.current_thread())
        return MailResult(ok=True, status=200, body={"id": "m1"})

    monkeypatch.setattr(mailer, "send_mail", fake_send)

    async with client:
        resp = await client.post("/api/notify", json={"to": "a@example.com", "subject": "Hi"})

    assert resp.status_code == 200
    assert threads and threads[0] is not threading.current_thread()


@pytest.mark.asyncio
async def test_create_reminder_then_cron_dispatches_it(client, store, monkeypatch, mail):
    monkeypatch.setattr(mailer, "send_mail", mail)
    due = datetime.now(timezone.utc) - timedelta(minutes=1)

    async with client:
        resp = await client.post("/v1/reminders", json={
            "owner_id": "u1",
            "title": "  Evening pills ",
            "remind_at": due.isoformat(),
            "repeat": "daily",
            "recipient_email": "ann@example.com",
        })
        assert resp.status_code == 201
        created = resp.json()
        cron = await client.get("/api/cron/reminders")

    assert created["title"] == "Evening pills"
    assert created["sent"] is False
    assert cron.json()["results"][0]["id"] == created["id"]
    assert mail.calls[0]["to"] == ["ann@example.com"]
    assert store.reminders.rows[created["id"]].remind_at == due + timedelta(days=1)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "changes",
    [
        {"title": "   "},
        {"owner_id": ""},
        {"recipient_email": "not-an-address"},
        {"repeat": "hourly"},
    ],
)
async def test_create_reminder_rejects_bad_input(client, store, changes):
    payload = {"owner_id": "u1", "title": "Walk", "remind_at": "2025-10-20T08:00:00Z"}
    payload.update(changes)

    async with client:
        resp = await client.post("/v1/reminders", json=payload)

    assert resp.status_code == 422
    assert store.reminders.rows == {}


@pytest.mark.asyncio
async def test_create_reminder_naive_time_is_utc_and_blank_email_dropped(client, store):
    async with client:
        resp = await client.post("/v1/reminders", json={
            "owner_id": "u1",
            "title": "Walk",
            "remind_at": "2025-10-20T08:00:00",
            "recipient_email": " ",
        })

    assert resp.status_code == 201
    row = store.reminders.rows[resp.json()["id"]]
    assert row.remind_at == datetime(2025, 10, 20, 8, tzinfo=timezone.utc)
    assert row.recipient_email is None


@pytest.mark.asyncio
async def test_upcoming_reminders_lists_unsent_soonest_first(client, store):
    base = datetime(2025, 10, 20, 8, tzinfo=timezone.utc)
    later = store.reminders.add(owner_id="u1", title="Later", remind_at=base + timedelta(days=2))
    sooner = store.reminders.add(owner_id="u1", title="Sooner", remind_at=base)
    store.reminders.add(owner_id="u1", title="Done", remind_at=base, sent=True)
    store.reminders.add(owner_id="u2", title="Other", remind_at=base)

    async with client:
        resp = await client.get("/v1/reminders", params={"owner_id": "u1"})
        limited = await client.get("/v1/reminders", params={"owner_id": "u1", "limit": 1})

    assert resp.status_code == 200
    assert [r["id"] for r in resp.json()] == [sooner.id, later.id]
    assert [r["id"] for r in limited.json()] == [sooner.id]


@pytest.mark.asyncio
async def test_mark_reminder_sent_and_back(client, store):
    r = store.reminders.add(owner_id="u1", remind_at=datetime(2025, 10, 20, tzinfo=timezone.utc))

    async with client:
        done = await client.patch(f"/v1/reminders/{r.id}/sent", json={"owner_id": "u1"})
        assert store.reminders.rows[r.id].sent is True
        assert store.reminders.rows[r.id].sent_at is not None
        undone = await client.patch(f"/v1/reminders/{r.id}/sent", json={"owner_id": "u1", "sent": False})

    assert done.status_code == 200 and undone.status_code == 200
    assert store.reminders.rows[r.id].sent is False
    assert store.reminders.rows[r.id].sent_at is None


@pytest.mark.asyncio
async def test_reminder_of_another_owner_is_not_found(client, store):
    r = store.reminders.add(owner_id="u1", remind_at=datetime(2025, 10, 20, tzinfo=timezone.utc))

    async with client:
        patched = await client.patch(f"/v1/reminders/{r.id}/sent", json={"owner_id": "u2"})
        deleted = await client.delete(f"/v1/reminders/{r.id}", params={"owner_id": "u2"})
        missing = await client.delete("/v1/reminders/nope", params={"owner_id": "u1"})

    assert patched.status_code == 404
    assert deleted.status_code == 404
    assert missing.status_code == 404
    assert store.reminders.rows[r.id].sent is False


@pytest.mark.asyncio
async def test_delete_reminder(client, store):
    r = store.reminders.add(owner_id="u1", remind_at=datetime(2025, 10, 20, tzinfo=timezone.utc))

    async with client:
        resp = await client.delete(f"/v1/reminders/{r.id}", params={"owner_id": "u1"})

    assert resp.status_code == 200
    assert resp.json() == {"ok": True}
    assert store.reminders.rows == {}


@pytest.mark.asyncio
async def test_reminder_store_failure_is_500(client, store, monkeypatch):
    async def broken(owner_id, limit=None):
        raise RuntimeError("db down")

    monkeypatch.setattr(store.reminders, "upcoming", broken)

    async with client:
        resp = await client.get("/v1/reminders", params={"owner_id": "u1"})

    assert resp.status_code == 500
    assert resp.json()["detail"] == "DB error"


@pytest.mark.asyncio
async def test_caregiver_create_list_delete(client, store):
    async with client:
        created = await client.post("/v1/caregivers", json={
            "patient_id": "u1", "name": "Ann", "email": "ann@example.com",
        })
        listed = await client.get("/v1/caregivers", params={"patient_id": "u1"})
        other = await client.get("/v1/caregivers", params={"patient_id": "u2"})

        assert created.status_code == 201
        caregiver_id = created.json()["id"]
        assert [c["id"] for c in listed.json()] == [caregiver_id]
        assert other.json() == []

        removed = await client.delete(f"/v1/caregivers/{caregiver_id}", params={"patient_id": "u1"})
        again = await client.delete(f"/v1/caregivers/{caregiver_id}", params={"patient_id": "u1"})

    assert removed.status_code == 200
    assert again.status_code == 404
    assert await store.caregivers.for_patient("u1") == []


@pytest.mark.asyncio
async def test_caregiver_needs_a_contact(client, store):
    async with client:
        resp = await client.post("/v1/caregivers", json={"patient_id": "u1", "name": " "})

    assert resp.status_code == 400
    assert store.caregivers.rows == []
