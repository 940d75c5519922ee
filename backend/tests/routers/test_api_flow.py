from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from fieldbook.deps import get_clock, get_current_principal, get_reaper, get_session
from fieldbook.domain.principal import Principal
from fieldbook.domain.reaper import ExpiryReaper
from fieldbook.main import app
from fieldbook.models import UserRole
from fieldbook.routers import admin as admin_router
from fieldbook.routers import public as public_router
from fieldbook.routers import reservations as reservations_router
from fieldbook.routers import slots as slots_router


class Caller:
    """Switchable identity returned by the principal dependency."""

    def __init__(self) -> None:
        self.principal = Principal(username="alice", role=UserRole.USER)

    def as_user(self, username: str = "alice") -> None:
        self.principal = Principal(username=username, role=UserRole.USER)

    def as_admin(self) -> None:
        self.principal = Principal(username="root", role=UserRole.ADMIN)


@pytest.fixture
def caller() -> Caller:
    return Caller()


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, store, clock, dummy_session, caller) -> Iterator[TestClient]:
    for module in (admin_router, public_router, reservations_router, slots_router):
        monkeypatch.setattr(module, "build_repositories", lambda s: store.repos)

    async def override_session():
        yield dummy_session

    reaper = ExpiryReaper(clock)
    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_current_principal] = lambda: caller.principal
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_reaper] = lambda: reaper
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_book_then_slot_is_taken(client: TestClient, caller: Caller, store) -> None:
    store.users.add("alice", credits=3)
    store.users.add("bob", credits=3)
    body = {"field_id": "f1", "date": "2026-10-15", "time": "10:00"}

    resp = client.post("/reservations", json=body)
    assert resp.status_code == 201
    assert resp.json()["time"] == "10:00"
    assert resp.headers["X-Request-ID"]

    me = client.get("/me").json()
    assert me["credits"] == 2

    slots = client.get("/slots", params={"date": "2026-10-15", "field_id": "f1"}).json()
    ten = next(s for s in slots["slots"] if s["time"] == "10:00")
    assert ten["taken"] is True
    assert ten["username"] == "alice"

    caller.as_user("bob")
    resp = client.post("/reservations", json=body)
    assert resp.status_code == 409
    assert resp.json()["detail"] == "SLOT_TAKEN"


def test_my_reservations_and_cancel(client: TestClient, store) -> None:
    store.users.add("alice", credits=3)
    created = client.post("/reservations", json={"field_id": "f2", "date": "2026-10-16", "time": "18:00"}).json()

    items = client.get("/me/reservations").json()["items"]
    assert [i["reservation_id"] for i in items] == [created["reservation_id"]]
    assert client.get("/reservations", params={"date": "2026-10-16"}).json()["items"][0]["field_id"] == "f2"

    assert client.delete(f"/reservations/{created['reservation_id']}").json() == {"ok": True}
    assert client.delete(f"/reservations/{created['reservation_id']}").json() == {"ok": True}
    assert client.get("/me/reservations").json()["items"] == []
    assert store.users.rows["alice"].credits == 2


def test_malformed_booking_body_is_rejected(client: TestClient, store) -> None:
    store.users.add("alice", credits=3)
    assert client.post("/reservations", json={"field_id": "f1", "date": "nope", "time": "10:00"}).status_code == 422
    resp = client.post("/reservations", json={"field_id": "f1", "date": "2026-10-15", "time": "10:30"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "INVALID_SLOT"


def test_admin_routes_require_admin(client: TestClient) -> None:
    resp = client.get("/admin/users")
    assert resp.status_code == 403
    assert resp.json()["detail"] == "NOT_AUTHORIZED"


def test_admin_closure_lifecycle(client: TestClient, caller: Caller, store) -> None:
    caller.as_admin()
    payload = {
        "field_id": "f1",
        "start_date": "2026-10-15",
        "end_date": "2026-10-15",
        "start_time": "10:00",
        "end_time": "12:00",
        "reason": "maintenance",
    }

    bad = client.post("/admin/closed-slots", json={**payload, "start_time": "12:00", "end_time": "10:00"})
    assert bad.status_code == 400
    assert bad.json()["detail"] == "INVALID_WINDOW"

    created = client.post("/admin/closed-slots", json=payload)
    assert created.status_code == 201
    assert created.json()["end_time"] == "12:00"
    assert len(client.get("/public/closed-slots").json()["items"]) == 1

    caller.as_user()
    store.users.add("alice", credits=3)
    resp = client.post("/reservations", json={"field_id": "f1", "date": "2026-10-15", "time": "11:00"})
    assert resp.status_code == 409
    assert resp.json()["detail"] == "FIELD_CLOSED_TIME"
    ok = client.post("/reservations", json={"field_id": "f1", "date": "2026-10-15", "time": "12:00"})
    assert ok.status_code == 201

    caller.as_admin()
    assert client.delete(f"/admin/closed-slots/{created.json()['id']}").status_code == 200
    assert client.delete(f"/admin/closed-slots/{created.json()['id']}").status_code == 404


def test_admin_closed_days(client: TestClient, caller: Caller) -> None:
    caller.as_admin()
    resp = client.post(
        "/admin/closed-days/range",
        json={"start_date": "2026-12-24", "end_date": "2026-12-26", "reason": "holidays"},
    )
    assert resp.status_code == 201
    assert len(resp.json()["days"]) == 3

    slots = client.get("/slots", params={"date": "2026-12-25", "field_id": "f1"}).json()
    assert slots["day_closed"] is True
    assert slots["reason"] == "holidays"

    assert client.delete("/admin/closed-days/2026-12-25").json() == {"ok": True}
    days = client.get("/public/closed-days").json()["days"]
    assert [d["date"] for d in days] == ["2026-12-24", "2026-12-26"]


def test_admin_user_management(client: TestClient, caller: Caller, store) -> None:
    caller.as_admin()
    store.users.add("alice", credits=1)
    store.users.add("bob", credits=0)

    resp = client.put("/admin/users/credits", json={"username": "alice", "delta": 4})
    assert resp.json()["credits"] == 5
    assert client.put("/admin/users/credits", json={"username": "zed", "delta": 1}).status_code == 404

    assert client.post("/admin/users/add-credits-all", json={"amount": 2}).json() == {"updated": 2}

    taken = client.post("/admin/users/rename", json={"username": "alice", "new_username": "bob"})
    assert taken.status_code == 409
    assert taken.json()["detail"] == "USERNAME_TAKEN"
    renamed = client.post("/admin/users/rename", json={"username": "alice", "new_username": "alicia"})
    assert renamed.json() == {"username": "alicia", "reservations_moved": 0}

    status = client.put("/admin/users/status", json={"username": "bob", "disabled": True})
    assert status.json()["disabled"] is True

    users = client.get("/admin/users").json()["items"]
    assert [(u["username"], u["credits"]) for u in users] == [("alicia", 7), ("bob", 2)]


def test_admin_config_and_fields(client: TestClient, caller: Caller) -> None:
    caller.as_admin()
    config = {
        "slot_minutes": 45,
        "open_ranges": [{"start": "09:00", "end": "11:00"}],
        "max_per_day": 1,
        "max_per_week": 3,
        "max_active": 1,
    }
    assert client.put("/admin/config", json=config).status_code == 200
    inverted = {**config, "open_ranges": [{"start": "11:00", "end": "09:00"}]}
    assert client.put("/admin/config", json=inverted).status_code == 422

    fields = {"fields": [{"id": "court-1", "name": "Court 1"}]}
    assert client.put("/admin/fields", json=fields).json() == fields["fields"]

    public = client.get("/public/config").json()
    assert public["open_ranges"] == [{"start": "09:00", "end": "11:00"}]
    assert public["fields"] == fields["fields"]

    slots = client.get("/slots", params={"date": "2026-10-15", "field_id": "court-1"}).json()
    assert [s["time"] for s in slots["slots"]] == ["09:00", "09:45"]
    assert client.get("/slots", params={"date": "2026-10-15", "field_id": "f1"}).status_code == 400
