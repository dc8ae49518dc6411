from __future__ import annotations

from models import StudentProfile

PLAN = {
    "title": "Hill repeats",
    "description": "6x400m uphill",
    "modality": "RUNNING",
    "type": "ramp",
    "courseType": "uphill",
    "workoutDate": "2099-02-01T07:00:00",
    "exercises": [
        {"sequence": "2", "name": "Cool down", "sets": "", "reps": None},
        {"sequence": 1, "name": "Repeats", "sets": 6, "reps": "1", "load": "n/a", "interval": "90s"},
    ],
}


def create_plan(client, headers, **overrides):
    response = client.post("/api/workouts/plans", json={**PLAN, **overrides}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["workout_plan"]


def profile_of(db, user_id):
    db.expire_all()
    return db.query(StudentProfile).filter(StudentProfile.user_id == user_id).one()


def test_create_plan_coerces_exercise_cells(client, admin_headers):
    plan = create_plan(client, admin_headers)

    assert plan["status"] == "PROPOSED"
    assert [e["name"] for e in plan["exercises"]] == ["Repeats", "Cool down"]
    repeats = plan["exercises"][0]
    assert (repeats["sets"], repeats["reps"], repeats["load"]) == (6, 1, None)
    assert plan["exercises"][1]["sets"] is None


def test_plans_are_admin_managed(client, admin_headers, student_headers):
    plan = create_plan(client, admin_headers)

    assert client.post("/api/workouts/plans", json=PLAN, headers=student_headers).status_code == 403
    assert client.delete(f"/api/workouts/plans/{plan['id']}", headers=student_headers).status_code == 403
    assert client.get(f"/api/workouts/plans/{plan['id']}", headers=student_headers).status_code == 200


def test_update_plan_replaces_exercises(client, admin_headers):
    plan = create_plan(client, admin_headers)

    response = client.put(
        f"/api/workouts/plans/{plan['id']}",
        json={**PLAN, "status": "ACTIVE", "exercises": [{"sequence": 1, "name": "Tempo"}]},
        headers=admin_headers,
    )

    assert response.json()["workout_plan"]["status"] == "ACTIVE"
    assert [e["name"] for e in response.json()["workout_plan"]["exercises"]] == ["Tempo"]


def test_list_plans_filters(client, admin_headers, student_headers):
    create_plan(client, admin_headers)
    create_plan(client, admin_headers, title="Leg day", modality="MUSCLE_TRAINING")

    running = client.get("/api/workouts/plans?modality=RUNNING", headers=student_headers).json()

    assert running["pagination"]["total"] == 1
    assert running["plans"][0]["title"] == "Hill repeats"


def test_assign_and_complete(client, admin_headers, student, student_headers):
    plan = create_plan(client, admin_headers)

    assigned = client.post(
        "/api/workouts/assign",
        json={"userId": student.id, "workoutPlanId": plan["id"], "notes": "Easy pace"},
        headers=admin_headers,
    )
    assert assigned.status_code == 201
    workout_id = assigned.json()["workout"]["id"]

    mine = client.get("/api/workouts/assigned-workouts", headers=student_headers).json()
    assert mine["total"] == 1
    assert mine["workouts"][0]["workout_plan"]["title"] == "Hill repeats"

    done = client.put(f"/api/workouts/assigned-workouts/{workout_id}/complete", headers=student_headers)
    assert done.status_code == 200
    assert done.json()["workout"]["status"] == "COMPLETED"

    again = client.put(f"/api/workouts/assigned-workouts/{workout_id}/complete", headers=student_headers)
    assert again.status_code == 404


def test_assign_only_to_students(client, admin, admin_headers, student):
    plan = create_plan(client, admin_headers)

    to_admin = client.post("/api/workouts/assign", json={"userId": admin.id, "workoutPlanId": plan["id"]}, headers=admin_headers)
    no_plan = client.post("/api/workouts/assign", json={"userId": student.id, "workoutPlanId": 999}, headers=admin_headers)

    assert to_admin.status_code == 400
    assert no_plan.status_code == 404


def test_create_plan_for_student_assigns_it(client, admin_headers, student, student_headers):
    create_plan(client, admin_headers, userId=student.id)

    mine = client.get("/api/workouts/assigned-workouts", headers=student_headers).json()

    assert mine["total"] == 1
    assert mine["workouts"][0]["status"] == "ASSIGNED"


def test_record_update_delete_keep_totals(client, db, student, student_headers):
    recorded = client.post(
        "/api/workouts/record",
        json={"modality": "RUNNING", "distance": 10, "calories": 600, "duration": 55, "pace": "5:30"},
        headers=student_headers,
    )
    assert recorded.status_code == 201
    workout_id = recorded.json()["workout"]["id"]
    assert recorded.json()["workout"]["completed_at"] is not None

    profile = profile_of(db, student.id)
    assert (profile.total_workouts, profile.total_distance, profile.total_calories) == (1, 10, 600)

    client.put(
        f"/api/workouts/my-workouts/{workout_id}",
        json={"modality": "RUNNING", "distance": 12, "calories": 700},
        headers=student_headers,
    )
    profile = profile_of(db, student.id)
    assert (profile.total_workouts, profile.total_distance, profile.total_calories) == (1, 12, 700)

    deleted = client.delete(f"/api/workouts/my-workouts/{workout_id}", headers=student_headers)
    assert deleted.status_code == 200
    profile = profile_of(db, student.id)
    assert (profile.total_workouts, profile.total_distance, profile.total_calories) == (0, 0, 0)


def test_cannot_edit_other_or_assigned_workouts(client, admin_headers, headers_for, make_user, student, student_headers):
    other = make_user("other@example.com")
    theirs = client.post("/api/workouts/record", json={"modality": "FUNCTIONAL"}, headers=headers_for(other)).json()
    plan = create_plan(client, admin_headers)
    assigned = client.post(
        "/api/workouts/assign", json={"userId": student.id, "workoutPlanId": plan["id"]}, headers=admin_headers
    ).json()

    assert client.delete(f"/api/workouts/my-workouts/{theirs['workout']['id']}", headers=student_headers).status_code == 404
    assert client.delete(f"/api/workouts/my-workouts/{assigned['workout']['id']}", headers=student_headers).status_code == 404


def test_stats_and_admin_view(client, admin_headers, student, student_headers):
    client.post("/api/workouts/record", json={"modality": "RUNNING", "distance": 5, "pace": "6:00"}, headers=student_headers)
    client.post("/api/workouts/record", json={"modality": "MUSCLE_TRAINING", "duration": 40}, headers=student_headers)

    stats = client.get("/api/workouts/stats?period=week", headers=student_headers).json()
    assert stats["total_workouts"] == 2
    assert stats["total_distance"] == 5
    assert stats["total_duration"] == 40
    assert [p["pace"] for p in stats["pace_evolution"]] == ["6:00"]

    admin_view = client.get(f"/api/workouts/user/{student.id}?modality=RUNNING", headers=admin_headers).json()
    assert admin_view["pagination"]["total"] == 1
    assert client.get(f"/api/workouts/user/{student.id}", headers=student_headers).status_code == 403
