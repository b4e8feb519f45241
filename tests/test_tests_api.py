from datetime import datetime, timedelta

from conftest import run


def _create(client, headers, payload):
    response = client.post("/api/tests", json=payload, headers=headers)
    assert response.status_code == 201, response.json()
    return response.json()["data"]["test"]


def _submit(client, headers, test, picks, start=None):
    start = start or datetime.utcnow() - timedelta(minutes=3)
    answers = [
        {"questionId": question["id"], "selectedOption": pick}
        for question, pick in zip(test["questions"], picks)
    ]
    return client.post(
        f"/api/tests/{test['id']}/submit",
        json={"answers": answers, "startTime": start.isoformat()},
        headers=headers,
    )


def test_admin_creates_test_and_correct_answers_stay_hidden(client, db, admin, make_test_payload):
    user, headers = admin
    test = _create(client, headers, make_test_payload())

    assert test["createdBy"] == {"id": user["id"], "name": "Ada Admin"}
    assert all("correctAnswer" not in q for q in test["questions"])
    assert all(q["id"] for q in test["questions"])

    stored = run(db.tests.find_one({"id": test["id"]}))
    assert [q["correctAnswer"] for q in stored["questions"]] == ["Paris", "4"]

    listing = client.get("/api/tests", headers=headers).json()
    assert listing["results"] == 1
    assert "correctAnswer" not in listing["data"]["tests"][0]["questions"][0]

    detail = client.get(f"/api/tests/{test['id']}", headers=headers).json()
    assert "correctAnswer" not in detail["data"]["test"]["questions"][1]


def test_option_index_is_stored_as_option_text(client, db, admin, make_test_payload):
    _, headers = admin
    payload = make_test_payload()
    payload["questions"][0]["correctAnswer"] = 2
    test = _create(client, headers, payload)

    stored = run(db.tests.find_one({"id": test["id"]}))
    assert stored["questions"][0]["correctAnswer"] == "Berlin"


def test_correct_answer_must_be_an_option(client, admin, make_test_payload):
    _, headers = admin
    payload = make_test_payload()
    payload["questions"][0]["correctAnswer"] = "Madrid"
    response = client.post("/api/tests", json=payload, headers=headers)
    assert response.status_code == 400
    assert response.json()["status"] == "error"


def test_students_cannot_create_tests(client, student, make_test_payload):
    _, headers = student
    response = client.post("/api/tests", json=make_test_payload(), headers=headers)
    assert response.status_code == 403


def test_passing_marks_cannot_exceed_total(client, db, admin, make_test_payload):
    _, headers = admin
    response = client.post("/api/tests", json=make_test_payload(totalMarks=40, passingMarks=50), headers=headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Passing marks cannot exceed total marks"
    assert run(db.tests.count_documents({})) == 0


def test_update_checks_passing_marks_against_stored_total(client, admin, make_test_payload):
    _, headers = admin
    test = _create(client, headers, make_test_payload())

    response = client.put(f"/api/tests/{test['id']}", json={"passingMarks": 120}, headers=headers)
    assert response.status_code == 400

    response = client.put(f"/api/tests/{test['id']}", json={"title": "Renamed test", "passingMarks": 70}, headers=headers)
    assert response.status_code == 200
    updated = response.json()["data"]["test"]
    assert updated["title"] == "Renamed test"
    assert updated["passingMarks"] == 70
    assert updated["totalMarks"] == 100


def test_unknown_test_is_404(client, student):
    _, headers = student
    response = client.get("/api/tests/missing", headers=headers)
    assert response.status_code == 404
    assert response.json() == {"status": "error", "message": "No test found with that ID"}


def test_submission_scores_and_records_result(client, db, admin, student, make_test_payload):
    _, admin_headers = admin
    learner, headers = student
    test = _create(client, admin_headers, make_test_payload())

    response = _submit(client, headers, test, ["Paris", "5"])
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["testResult"]["score"] == 50
    assert data["testResult"]["student"] == learner["id"]
    assert data["testResult"]["status"] == "completed"
    assert data["testDetails"]["passed"] is True
    assert data["testDetails"]["marksObtained"] == 1
    assert data["testDetails"]["answers"][1]["correctAnswer"] == "4"

    stored = run(db.test_results.find_one({"test": test["id"]}))
    assert stored["startTime"] <= stored["endTime"]
    assert stored["expiresAt"] > stored["endTime"]
    assert [a["isCorrect"] for a in stored["answers"]] == [True, False]


def test_start_time_in_the_future_is_clamped(client, db, admin, student, make_test_payload):
    _, admin_headers = admin
    _, headers = student
    test = _create(client, admin_headers, make_test_payload())

    _submit(client, headers, test, ["Paris", "4"], start=datetime.utcnow() + timedelta(hours=2))
    stored = run(db.test_results.find_one({"test": test["id"]}))
    assert stored["startTime"] == stored["endTime"]
    assert stored["score"] == 100


def test_inactive_test_cannot_be_submitted(client, admin, student, make_test_payload):
    _, admin_headers = admin
    _, headers = student
    test = _create(client, admin_headers, make_test_payload(isActive=False))
    assert _submit(client, headers, test, ["Paris", "4"]).status_code == 400


def test_submission_requires_answers(client, admin, student, make_test_payload):
    _, admin_headers = admin
    _, headers = student
    test = _create(client, admin_headers, make_test_payload())
    response = client.post(
        f"/api/tests/{test['id']}/submit",
        json={"answers": [], "startTime": datetime.utcnow().isoformat()},
        headers=headers,
    )
    assert response.status_code == 400


def test_results_listing_is_scoped_to_the_student(client, admin, student, make_user, make_test_payload):
    _, admin_headers = admin
    _, headers = student
    _, other_headers = make_user("student")
    test = _create(client, admin_headers, make_test_payload())
    _submit(client, headers, test, ["Paris", "4"])
    _submit(client, other_headers, test, ["Rome", "3"])

    body = client.get("/api/tests/results", headers=headers).json()
    assert body["results"] == 1
    assert body["data"]["results"][0]["test"] == {"id": test["id"], "title": test["title"]}
    assert body["data"]["results"][0]["score"] == 100


def test_delete_removes_test_and_its_results(client, db, admin, student, make_test_payload):
    _, admin_headers = admin
    _, headers = student
    test = _create(client, admin_headers, make_test_payload())
    keep = _create(client, admin_headers, make_test_payload(title="Another test"))
    _submit(client, headers, test, ["Paris", "4"])
    _submit(client, headers, keep, ["Paris", "4"])

    response = client.delete(f"/api/tests/{test['id']}", headers=admin_headers)
    assert response.status_code == 204
    assert run(db.tests.find_one({"id": test["id"]})) is None
    assert run(db.test_results.count_documents({"test": test["id"]})) == 0
    assert run(db.test_results.count_documents({"test": keep["id"]})) == 1


def test_only_creator_or_admin_may_delete(client, db, admin, student, make_test_payload):
    _, admin_headers = admin
    _, headers = student
    test = _create(client, admin_headers, make_test_payload())

    response = client.delete(f"/api/tests/{test['id']}", headers=headers)
    assert response.status_code == 403
    assert run(db.tests.count_documents({"id": test["id"]})) == 1


def test_stats_summarize_attempts(client, admin, student, make_user, make_test_payload):
    _, admin_headers = admin
    _, headers = student
    _, other_headers = make_user("student")
    test = _create(client, admin_headers, make_test_payload())
    _submit(client, headers, test, ["Paris", "4"])
    _submit(client, other_headers, test, ["Rome", "3"])

    response = client.get(f"/api/tests/{test['id']}/stats", headers=admin_headers)
    assert response.status_code == 200
    stats = response.json()["data"]
    assert stats["attempts"] == 2
    assert stats["averageScore"] == 50
    assert stats["maxScore"] == 100
    assert stats["minScore"] == 0
    assert stats["passRate"] == 50

    assert client.get(f"/api/tests/{test['id']}/stats", headers=headers).status_code == 403


def test_failed_delete_restores_results(client, lenient_client, db, admin, student, break_collection,
                                        make_test_payload):
    _, admin_headers = admin
    _, headers = student
    test = _create(client, admin_headers, make_test_payload())
    _submit(client, headers, test, ["Paris", "4"])
    _submit(client, headers, test, ["Rome", "4"])

    break_collection("tests", "delete_one")
    response = lenient_client.delete(f"/api/tests/{test['id']}", headers=admin_headers)

    assert response.status_code == 500
    assert response.json() == {"status": "error", "message": "Something went wrong"}
    assert run(db.tests.count_documents({"id": test["id"]})) == 1
    assert run(db.test_results.count_documents({"test": test["id"]})) == 2


def test_stats_fall_back_to_zero_when_results_are_unavailable(client, admin, student, break_collection,
                                                              make_test_payload):
    _, admin_headers = admin
    _, headers = student
    test = _create(client, admin_headers, make_test_payload())
    _submit(client, headers, test, ["Paris", "4"])

    break_collection("test_results", "find")
    response = client.get(f"/api/tests/{test['id']}/stats", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["data"] == {
        "attempts": 0,
        "averageScore": 0,
        "maxScore": 0,
        "minScore": 0,
        "passCount": 0,
        "passRate": 0,
    }


def test_question_ids_must_be_unique(client, admin, make_test_payload):
    _, headers = admin
    payload = make_test_payload()
    for question in payload["questions"]:
        question["id"] = "shared"
    response = client.post("/api/tests", json=payload, headers=headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Question ids must be unique within a test"
