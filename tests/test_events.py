from __future__ import annotations

import pytest

from models import EventAttendance

EVENT = {
    "title": "Trail day",
    "description": "Group trail run",
    "date": "2099-05-10T08:00:00",
    "location": "Park entrance",
    "type": "TRAINING",
    "maxAttendees": 20,
}


def ledger(db, event_id):
    db.expire_all()
    records = db.query(EventAttendance).filter(EventAttendance.event_id == event_id).all()
    return {r.user_id: r.confirmed for r in records}


def create_event(client, headers, **overrides):
    response = client.post("/api/events/", json={**EVENT, **overrides}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["event"]


@pytest.fixture
def students(make_user):
    return make_user("a@example.com", name="Student A"), make_user("b@example.com", name="Student B")


def test_create_event_seeds_targeted_students(client, db, admin_headers, students):
    a, b = students

    event = create_event(client, admin_headers, studentIds=[a.id, b.id])

    assert event["max_attendees"] == 20
    assert ledger(db, event["id"]) == {a.id: False, b.id: False}


def test_rsvp_scenario(client, db, admin_headers, headers_for, students):
    a, b = students
    event = create_event(client, admin_headers, studentIds=[a.id, b.id])

    response = client.put(f"/api/events/{event['id']}/attendance", json={"confirmed": True}, headers=headers_for(a))
    assert response.status_code == 200
    assert response.json()["message"] == "Attendance confirmed"
    assert ledger(db, event["id"]) == {a.id: True, b.id: False}

    again = client.put(f"/api/events/{event['id']}/attendance", json={"confirmed": True}, headers=headers_for(a))
    assert again.json()["attendance"]["id"] == response.json()["attendance"]["id"]
    assert ledger(db, event["id"]) == {a.id: True, b.id: False}


def test_create_event_without_targets_invites_every_student(client, db, admin, admin_headers, students):
    event = create_event(client, admin_headers)

    assert set(ledger(db, event["id"])) == {s.id for s in students}


def test_create_event_with_unknown_student_is_400(client, db, admin, admin_headers, students):
    response = client.post("/api/events/", json={**EVENT, "studentIds": [students[0].id, admin.id]}, headers=admin_headers)

    assert response.status_code == 400
    assert client.get("/api/events/", headers=admin_headers).json()["pagination"]["total"] == 0


def test_create_event_survives_seed_failure(client, db, admin_headers, students, monkeypatch):
    from sqlalchemy.exc import OperationalError
    import routers.events

    def broken_seed(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("disk full"))

    monkeypatch.setattr(routers.events, "seed_attendance", broken_seed)

    event = create_event(client, admin_headers)

    assert ledger(db, event["id"]) == {}
    assert client.get(f"/api/events/{event['id']}", headers=admin_headers).status_code == 200


def test_both_rsvp_routes_share_one_record(client, db, admin_headers, student, student_headers):
    event = create_event(client, admin_headers, studentIds=[])

    put = client.put(f"/api/events/{event['id']}/attendance", json={"confirmed": False}, headers=student_headers)
    post = client.post(f"/api/events/{event['id']}/attend", json={"confirmed": True}, headers=student_headers)
    cancel = client.post(f"/api/events/{event['id']}/attend", json={"confirmed": False}, headers=student_headers)

    assert put.json()["message"] == "Attendance declined"
    assert post.json()["message"] == "Attendance confirmed"
    assert cancel.json()["message"] == "Attendance cancelled"
    assert put.json()["attendance"]["id"] == post.json()["attendance"]["id"] == cancel.json()["attendance"]["id"]
    assert ledger(db, event["id"]) == {student.id: False}


def test_rsvp_requires_boolean(client, admin_headers, student_headers):
    event = create_event(client, admin_headers)

    response = client.post(f"/api/events/{event['id']}/attend", json={}, headers=student_headers)

    assert response.status_code == 400


def test_rsvp_unknown_event_is_404(client, student_headers):
    response = client.put("/api/events/999/attendance", json={"confirmed": True}, headers=student_headers)

    assert response.status_code == 404
    assert response.json() == {"error": "Event not found"}


def test_students_cannot_manage_events(client, admin_headers, student_headers):
    event = create_event(client, admin_headers)

    assert client.post("/api/events/", json=EVENT, headers=student_headers).status_code == 403
    assert client.put(f"/api/events/{event['id']}", json=EVENT, headers=student_headers).status_code == 403
    assert client.delete(f"/api/events/{event['id']}", headers=student_headers).status_code == 403
    assert client.get(f"/api/events/{event['id']}/attendances", headers=student_headers).status_code == 403
    assert client.get("/api/events/stats/overview", headers=student_headers).status_code == 403


def test_event_validation(client, admin_headers):
    short_title = client.post("/api/events/", json={**EVENT, "title": "5k"}, headers=admin_headers)
    bad_type = client.post("/api/events/", json={**EVENT, "type": "PARTY"}, headers=admin_headers)
    bad_capacity = client.post("/api/events/", json={**EVENT, "maxAttendees": 0}, headers=admin_headers)

    assert short_title.status_code == bad_type.status_code == bad_capacity.status_code == 400


def test_list_events_filters_upcoming_and_type(client, admin_headers, headers_for, students):
    create_event(client, admin_headers, title="Future training")
    create_event(client, admin_headers, title="Future race", type="COMPETITION")
    create_event(client, admin_headers, title="Old training", date="2001-01-01T08:00:00")
    a, _ = students

    upcoming = client.get("/api/events/", headers=headers_for(a)).json()
    everything = client.get("/api/events/?upcoming=false", headers=headers_for(a)).json()
    races = client.get("/api/events/?type=COMPETITION", headers=headers_for(a)).json()

    assert upcoming["pagination"]["total"] == 2
    assert everything["pagination"]["total"] == 3
    assert [e["title"] for e in races["events"]] == ["Future race"]
    assert races["events"][0]["attendance_count"] == len(students)


def test_my_events_only_shows_own_attendance(client, admin_headers, headers_for, students):
    a, b = students
    event = create_event(client, admin_headers)
    client.post(f"/api/events/{event['id']}/attend", json={"confirmed": True}, headers=headers_for(b))

    mine = client.get("/api/events/my-events", headers=headers_for(a)).json()["events"]

    assert len(mine) == 1
    assert mine[0]["my_attendance"]["user_id"] == a.id
    assert mine[0]["my_attendance"]["confirmed"] is False
    assert "attendances" not in mine[0]


def test_my_attendances_filter(client, admin_headers, headers_for, students):
    a, _ = students
    first = create_event(client, admin_headers, title="First event")
    create_event(client, admin_headers, title="Second event")
    client.put(f"/api/events/{first['id']}/attendance", json={"confirmed": True}, headers=headers_for(a))

    confirmed = client.get("/api/events/my/attendances?confirmed=true", headers=headers_for(a)).json()
    all_mine = client.get("/api/events/my/attendances", headers=headers_for(a)).json()

    assert [r["event"]["title"] for r in confirmed["attendances"]] == ["First event"]
    assert all_mine["pagination"]["total"] == 2


def test_admin_lists_event_attendances(client, admin_headers, headers_for, students):
    a, b = students
    event = create_event(client, admin_headers)
    client.put(f"/api/events/{event['id']}/attendance", json={"confirmed": True}, headers=headers_for(a))

    response = client.get(f"/api/events/{event['id']}/attendances?confirmed=true", headers=admin_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["pagination"] == {"page": 1, "limit": 10, "total": 1, "pages": 1}
    assert body["attendances"][0]["user"]["email"] == a.email


def test_update_and_delete_event(client, db, admin_headers, students):
    event = create_event(client, admin_headers)

    updated = client.put(f"/api/events/{event['id']}", json={**EVENT, "title": "Trail day (moved)"}, headers=admin_headers)
    assert updated.status_code == 200
    assert updated.json()["event"]["title"] == "Trail day (moved)"

    deleted = client.delete(f"/api/events/{event['id']}", headers=admin_headers)
    assert deleted.status_code == 200
    assert ledger(db, event["id"]) == {}
    assert client.get(f"/api/events/{event['id']}", headers=admin_headers).status_code == 404


def test_event_stats(client, admin_headers, headers_for, students):
    a, _ = students
    event = create_event(client, admin_headers)
    create_event(client, admin_headers, type="SOCIAL", date="2001-01-01T08:00:00")
    client.put(f"/api/events/{event['id']}/attendance", json={"confirmed": True}, headers=headers_for(a))

    stats = client.get("/api/events/stats/overview", headers=admin_headers).json()

    assert stats["total_events"] == 2
    assert stats["upcoming_events"] == 1
    assert stats["total_attendances"] == 1
    assert sorted((row["type"], row["count"]) for row in stats["events_by_type"]) == [("SOCIAL", 1), ("TRAINING", 1)]
