from __future__ import annotations

from models import Evaluation, EvaluationType, Role, StudentProfile, User


def test_students_list_is_admin_only(client, student_headers):
    assert client.get("/api/users/students", headers=student_headers).status_code == 403


def test_students_list_and_search(client, admin_headers, make_user):
    make_user("ana@example.com", name="Ana Souza")
    make_user("bruno@example.com", name="Bruno Lima")

    everyone = client.get("/api/users/students", headers=admin_headers).json()
    search = client.get("/api/users/students?search=BRUNO", headers=admin_headers).json()

    assert everyone["pagination"]["total"] == 2
    assert all("password" not in s for s in everyone["students"])
    assert [s["name"] for s in search["students"]] == ["Bruno Lima"]


def test_update_own_profile(client, db, student, student_headers):
    response = client.put(
        "/api/users/profile",
        json={"name": "Ana S. Souza", "weight": 61.5, "goals": "Half marathon"},
        headers=student_headers,
    )

    assert response.status_code == 200
    user = response.json()["user"]
    assert user["name"] == "Ana S. Souza"
    assert user["student_profile"]["weight"] == 61.5
    assert user["student_profile"]["goals"] == "Half marathon"


def test_profile_update_cannot_change_role(client, db, student, student_headers):
    response = client.put("/api/users/profile", json={"role": "ADMIN", "name": "Ana Admin"}, headers=student_headers)

    assert response.status_code == 200
    db.expire_all()
    assert db.get(User, student.id).role is Role.STUDENT


def test_get_profile(client, db, student, student_headers):
    db.add(Evaluation(user_id=student.id, type=EvaluationType.INITIAL, weight=60))
    db.commit()

    user = client.get("/api/users/profile", headers=student_headers).json()["user"]

    assert user["email"] == student.email
    assert len(user["recent_evaluations"]) == 1
    assert user["recent_workouts"] == []


def test_admin_student_detail_update_and_delete(client, db, admin_headers, student):
    student_id = student.id
    detail = client.get(f"/api/users/students/{student_id}", headers=admin_headers)
    assert detail.status_code == 200
    assert detail.json()["student"]["event_attendances"] == []

    updated = client.put(f"/api/users/students/{student_id}", json={"height": 168}, headers=admin_headers)
    assert updated.json()["user"]["student_profile"]["height"] == 168

    deleted = client.delete(f"/api/users/students/{student_id}", headers=admin_headers)
    assert deleted.status_code == 200
    db.expunge_all()
    assert db.query(User).filter(User.id == student_id).first() is None
    assert db.query(StudentProfile).filter(StudentProfile.user_id == student_id).count() == 0


def test_admin_is_not_a_student(client, admin, admin_headers):
    assert client.get(f"/api/users/students/{admin.id}", headers=admin_headers).status_code == 404
    assert client.delete(f"/api/users/students/{admin.id}", headers=admin_headers).status_code == 404


def test_dashboard_stats(client, admin_headers, student, student_headers):
    client.post("/api/workouts/record", json={"modality": "RUNNING", "distance": 5}, headers=student_headers)

    stats = client.get("/api/users/stats", headers=admin_headers).json()

    assert stats["total_students"] == 1
    assert stats["total_workouts"] == 1
    assert stats["total_events"] == 0
    assert stats["recent_workouts"][0]["user_name"] == student.name
