import pytest
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from lms.main import app
from lms.progression.dependencies import get_store
from lms.progression.permissions import get_current_student


@pytest.fixture
def client(store, student):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_current_student] = lambda: student
    yield TestClient(app)
    app.dependency_overrides.clear()


def ids(course):
    m1, m2, m3 = course["modules"]
    return m1["module_id"], m2["module_id"], m3["module_id"]


def complete_module_days(client, course, index=0):
    for day in course["days"][index]:
        resp = client.patch(f"/student/day-contents/{day['day_id']}/complete")
        assert resp.status_code == 200
        assert resp.json() == {"message": "Day marked as completed"}


def test_progression_flow(client, course):
    m1, m2, _ = ids(course)

    assert client.get(f"/student/modules/{m2}").status_code == 403

    complete_module_days(client, course)

    resp = client.get(f"/student/modules/{m1}/mcq")
    assert resp.status_code == 200
    body = resp.json()
    assert body["attempted"] is False
    assert body["passing_score"] == 70
    assert "correct" not in str(body)

    resp = client.post(f"/student/modules/{m1}/mcq/responses", json={"responses": ["a", "b", "c", "x"]})
    assert resp.status_code == 200
    assert resp.json() == {"score": 75.0, "passed": True, "correct": 3, "total": 4}

    resp = client.get(f"/student/modules/{m1}/completion")
    assert resp.json() == {
        "module_id": m1,
        "all_days_completed": True,
        "mcq_attempted": True,
        "mcq_passed": True,
        "module_fully_completed": True,
        "state": "passed",
    }

    resp = client.get(f"/student/modules/{m2}")
    assert resp.status_code == 200
    assert resp.json()["state"] == "unlocked"


def test_submit_twice(client, course):
    m1, _, _ = ids(course)
    payload = {"responses": ["a", "b", "x", "x"]}
    assert client.post(f"/student/modules/{m1}/mcq/responses", json=payload).status_code == 200

    resp = client.post(f"/student/modules/{m1}/mcq/responses", json=payload)
    assert resp.status_code == 403
    assert resp.json()["detail"] == "You have already attempted this MCQ"


def test_submit_wrong_count(client, course):
    m1, _, _ = ids(course)
    resp = client.post(f"/student/modules/{m1}/mcq/responses", json={"responses": ["a"]})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Expected 4 responses, received 1"


def test_submit_requires_list_body(client, course):
    m1, _, _ = ids(course)
    resp = client.post(f"/student/modules/{m1}/mcq/responses", json={"responses": "a"})
    assert resp.status_code == 422


def test_retake_flow(client, course):
    m1, _, _ = ids(course)
    complete_module_days(client, course)
    client.post(f"/student/modules/{m1}/mcq/responses", json={"responses": ["a", "x", "x", "x"]})

    status = client.get(f"/student/modules/{m1}/mcq/retake-status").json()
    assert status["can_retake"] is True
    assert status["score"] == 25.0

    resp = client.get(f"/student/modules/{m1}/mcq")
    assert resp.status_code == 200
    assert resp.json()["attempted"] is True

    status = client.get(f"/student/modules/{m1}/mcq/retake-status").json()
    assert status["can_take"] is True


def test_fetch_after_pass(client, course):
    m1, _, _ = ids(course)
    complete_module_days(client, course)
    client.post(f"/student/modules/{m1}/mcq/responses", json={"responses": ["a", "b", "c", "d"]})

    resp = client.get(f"/student/modules/{m1}/mcq")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "You have already passed this MCQ"


def test_fetch_before_days_completed(client, course):
    m1, _, _ = ids(course)
    resp = client.get(f"/student/modules/{m1}/mcq")
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Complete all days to access MCQ"


def test_unknown_module(client, course):
    resp = client.get("/student/modules/MOD_NOPE")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Module not found"


def test_locked_day_completion(client, course):
    day = course["days"][1][0]
    resp = client.patch(f"/student/day-contents/{day['day_id']}/complete")
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Module is locked"


def test_course_view(client, course):
    resp = client.get(f"/student/courses/{course['course']['course_id']}")
    assert resp.status_code == 200
    assert [m["is_locked"] for m in resp.json()["modules"]] == [False, True, True]


def test_day_content_and_results(client, course):
    m1, _, _ = ids(course)
    day = course["days"][0][0]
    assert client.get(f"/student/day-contents/{day['day_id']}").json()["content"] == "Variables"

    assert client.get(f"/student/modules/{m1}/mcq/results").status_code == 404
    client.post(f"/student/modules/{m1}/mcq/responses", json={"responses": ["a", "b", "c", "d"]})
    assert client.get(f"/student/modules/{m1}/mcq/results").json()["score"] == 100.0

    review = client.get(f"/student/modules/{m1}/mcq/review").json()
    assert all(q["is_correct"] for q in review["questions"])


def test_persistence_failure_is_500(client, store, course):
    m1, _, _ = ids(course)
    store.fail_with = ServerSelectionTimeoutError("no servers")

    resp = client.get(f"/student/modules/{m1}")
    assert resp.status_code == 500
    assert resp.json() == {"detail": "Internal server error"}


def test_health_reports_database(client, store):
    assert client.get("/health").json()["status"]["database"] == "UP"

    store.fail_with = ServerSelectionTimeoutError("no servers")
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"]["database"] == "DOWN"
