import pytest

import applications
from errors import InvalidId, InvalidState, InvalidStatus, MissingFields, MissingParameter, NotFound
from schemas import APPLICATION_STATUSES


def _fields(**overrides):
    fields = {
        "scholar": {
            "scholarshipName": "STEM Grant",
            "universityName": "MIT",
            "postedUserEmail": "mod@example.com",
        },
        "scholarshipId": "65f000000000000000000001",
        "scholarshipName": "STEM Grant",
        "universityName": "MIT",
        "fees": "50",
        "applicant": "student@example.com",
        "userName": "Sam",
    }
    fields.update(overrides)
    return fields


def test_create_defaults_status_and_applied_date(db):
    app_id = applications.create(db, _fields())
    doc = applications.get_by_id(db, app_id)
    assert doc["status"] == "pending"
    assert doc["appliedDate"] is not None
    assert doc["fees"] == 50


@pytest.mark.parametrize("field", applications.REQUIRED_FIELDS)
def test_create_with_missing_field_inserts_nothing(db, field):
    with pytest.raises(MissingFields) as excinfo:
        applications.create(db, _fields(**{field: None}))
    assert field in excinfo.value.fields
    assert db["applications"].count_documents({}) == 0


def test_create_rejects_blank_values(db):
    with pytest.raises(MissingFields):
        applications.create(db, _fields(userName="   ", scholar={}))
    assert db["applications"].count_documents({}) == 0


def test_create_ignores_client_status(db):
    app_id = applications.create(db, _fields(status="completed", feedback="self-approved"))
    assert applications.get_by_id(db, app_id)["status"] == "pending"


def test_list_by_applicant_requires_email(db):
    with pytest.raises(MissingParameter):
        applications.list_by_applicant(db, None)


def test_lists_by_applicant_and_issuer(db):
    applications.create(db, _fields())
    applications.create(db, _fields(applicant="other@example.com"))
    applications.create(db, _fields(scholar={"postedUserEmail": "admin@example.com"}))
    assert len(applications.list_by_applicant(db, "student@example.com")) == 2
    assert len(applications.list_by_issuer(db, "mod@example.com")) == 2
    assert len(applications.list_by_issuer(db, "admin@example.com")) == 1


def test_get_by_id_invalid_vs_missing(db):
    with pytest.raises(InvalidId):
        applications.get_by_id(db, "123")
    with pytest.raises(NotFound):
        applications.get_by_id(db, "65f0000000000000000000ff")


@pytest.mark.parametrize("status", APPLICATION_STATUSES)
def test_update_status_accepts_every_state(db, status):
    app_id = applications.create(db, _fields())
    applications.update_status(db, app_id, "rejected")
    applications.update_status(db, app_id, status)
    assert applications.get_by_id(db, app_id)["status"] == status


@pytest.mark.parametrize("status", ["Pending", "approved", "", None, "done"])
def test_update_status_rejects_anything_else(db, status):
    app_id = applications.create(db, _fields())
    with pytest.raises(InvalidStatus):
        applications.update_status(db, app_id, status)
    assert applications.get_by_id(db, app_id)["status"] == "pending"


def test_update_status_unknown_id(db):
    with pytest.raises(NotFound):
        applications.update_status(db, "65f0000000000000000000ff", "processing")


def test_feedback_and_full_update(db):
    app_id = applications.create(db, _fields())
    applications.update_feedback(db, app_id, "Please upload your transcript")
    applications.update_full(db, app_id, {"userName": "Samantha", "_id": "ignored"})
    doc = applications.get_by_id(db, app_id)
    assert doc["feedback"] == "Please upload your transcript"
    assert doc["userName"] == "Samantha"
    with pytest.raises(InvalidStatus):
        applications.update_full(db, app_id, {"status": "archived"})
    with pytest.raises(NotFound):
        applications.update_full(db, "65f0000000000000000000ff", {"userName": "x"})


def test_delete_if_pending_removes_pending(db):
    app_id = applications.create(db, _fields())
    assert applications.delete_if_pending(db, app_id) == 1
    with pytest.raises(NotFound):
        applications.get_by_id(db, app_id)


@pytest.mark.parametrize("status", ["processing", "completed", "rejected"])
def test_delete_if_pending_keeps_other_states(db, status):
    app_id = applications.create(db, _fields())
    applications.update_status(db, app_id, status)
    with pytest.raises(InvalidState):
        applications.delete_if_pending(db, app_id)
    assert applications.get_by_id(db, app_id)["status"] == status


def test_force_delete_ignores_state(db):
    app_id = applications.create(db, _fields())
    applications.update_status(db, app_id, "completed")
    assert applications.force_delete(db, app_id) == 1
    with pytest.raises(NotFound):
        applications.force_delete(db, app_id)


def test_snapshot_is_not_touched_by_listing_edits(client, moderator, student):
    scholarship_id = client.post(
        "/scholarships",
        json={"scholarshipName": "STEM Grant", "universityName": "MIT", "postedUserEmail": "mod@example.com"},
        headers=moderator,
    ).json()["insertedId"]
    snapshot = client.get(f"/scholarship/data/{scholarship_id}").json()
    app_id = client.post(
        "/applications", json=_fields(scholar=snapshot, scholarshipId=scholarship_id), headers=student
    ).json()["insertedId"]

    client.put(f"/scholarship/update/{scholarship_id}", json={"scholarshipName": "Renamed"}, headers=moderator)

    stored = client.get(f"/applications/details/{app_id}", headers=student).json()
    assert stored["scholar"]["scholarshipName"] == "STEM Grant"


def test_scenarios_b_and_c_guarded_delete_over_http(client, student, moderator):
    # B: status omitted -> pending, guarded delete succeeds
    res = client.post("/applications", json=_fields(), headers=student)
    assert res.status_code == 201
    first = res.json()["insertedId"]
    assert client.get(f"/applications/details/{first}", headers=student).json()["status"] == "pending"
    res = client.delete(f"/applications/{first}", headers=student)
    assert res.status_code == 200
    assert res.json()["deletedCount"] == 1

    # C: completed -> guarded delete refused, record still there
    second = client.post("/applications", json=_fields(), headers=student).json()["insertedId"]
    res = client.put(f"/applications/{second}/status", json={"status": "completed"}, headers=moderator)
    assert res.json() == {"success": True, "message": "Status updated"}
    res = client.delete(f"/applications/{second}", headers=student)
    assert res.status_code == 400
    assert res.json()["code"] == "INVALID_STATE"
    assert client.get(f"/applications/details/{second}", headers=student).status_code == 200


def test_status_route_is_moderator_only_and_validates(client, student, moderator):
    app_id = client.post("/applications", json=_fields(), headers=student).json()["insertedId"]
    assert client.put(f"/applications/{app_id}/status", json={"status": "completed"}, headers=student).status_code == 403
    res = client.put(f"/applications/{app_id}/status", json={"status": "shipped"}, headers=moderator)
    assert res.status_code == 400
    assert res.json()["code"] == "INVALID_STATUS"


def test_force_delete_route_is_admin_only(client, student, moderator, admin):
    app_id = client.post("/applications", json=_fields(), headers=student).json()["insertedId"]
    client.put(f"/applications/{app_id}/status", json={"status": "processing"}, headers=moderator)
    assert client.delete(f"/applications/delete/{app_id}", headers=moderator).status_code == 403
    res = client.delete(f"/applications/delete/{app_id}", headers=admin)
    assert res.json() == {"success": True, "deleted": True, "deletedCount": 1}


def test_applicant_and_issuer_routes(client, student, moderator):
    client.post("/applications", json=_fields(), headers=student)
    assert client.get("/applications/user", headers=student).json()["code"] == "MISSING_PARAMETER"
    mine = client.get("/applications/user", params={"email": "student@example.com"}, headers=student).json()
    assert len(mine) == 1
    queue = client.get("/applications/mod@example.com", headers=moderator).json()
    assert [a["userName"] for a in queue] == ["Sam"]


def test_created_over_http_as_completed_is_still_deletable(client, student):
    app_id = client.post("/applications", json=_fields(status="completed"), headers=student).json()["insertedId"]
    assert client.get(f"/applications/details/{app_id}", headers=student).json()["status"] == "pending"
    assert client.delete(f"/applications/{app_id}", headers=student).json()["deletedCount"] == 1


def test_full_update_cannot_set_review_fields_as_student(client, student, moderator):
    app_id = client.post("/applications", json=_fields(), headers=student).json()["insertedId"]

    res = client.put(
        f"/applications/{app_id}", json={"status": "completed", "feedback": "self-approved"}, headers=student
    )
    assert res.status_code == 403
    assert client.put(f"/applications/{app_id}", json={"feedback": "looks good"}, headers=student).status_code == 403
    stored = client.get(f"/applications/details/{app_id}", headers=student).json()
    assert stored["status"] == "pending"
    assert "feedback" not in stored

    assert client.put(f"/applications/{app_id}", json={"userName": "Samantha"}, headers=student).status_code == 200
    res = client.put(f"/applications/{app_id}", json={"status": "processing", "feedback": "ok"}, headers=moderator)
    assert res.json() == {"success": True, "message": "Application updated"}
    stored = client.get(f"/applications/details/{app_id}", headers=student).json()
    assert (stored["userName"], stored["status"], stored["feedback"]) == ("Samantha", "processing", "ok")


def test_full_update_of_someone_elses_application(client, student, make_user):
    app_id = client.post("/applications", json=_fields(), headers=student).json()["insertedId"]
    other = make_user("other@example.com")
    assert client.put(f"/applications/{app_id}", json={"userName": "Mallory"}, headers=other).status_code == 403
    assert client.get(f"/applications/details/{app_id}", headers=student).json()["userName"] == "Sam"


def test_guarded_delete_is_owner_or_admin(client, student, admin, make_user):
    app_id = client.post("/applications", json=_fields(), headers=student).json()["insertedId"]
    other = make_user("other@example.com")

    res = client.delete(f"/applications/{app_id}", headers=other)
    assert res.status_code == 403
    assert res.json()["code"] == "FORBIDDEN"
    assert client.get(f"/applications/details/{app_id}", headers=student).status_code == 200

    assert client.delete(f"/applications/{app_id}", headers=admin).json()["deletedCount"] == 1


def test_applicant_listing_is_owner_or_admin(client, student, admin, make_user):
    client.post("/applications", json=_fields(), headers=student)
    other = make_user("other@example.com")
    params = {"email": "student@example.com"}
    assert client.get("/applications/user", params=params, headers=other).status_code == 403
    assert len(client.get("/applications/user", params=params, headers=admin).json()) == 1
