import pytest

import reviews
from errors import InvalidId, MissingFields, NotFound


def _review(**overrides):
    fields = {
        "scholarshipId": "s1",
        "universityName": "MIT",
        "scholarshipName": "STEM Grant",
        "userName": "Sam",
        "userEmail": "student@example.com",
        "postByEmail": "mod@example.com",
        "ratingPoint": 5,
        "reviewComment": "Smooth process",
    }
    fields.update(overrides)
    return fields


def test_filters_combine(db):
    reviews.create(db, _review())
    reviews.create(db, _review(scholarshipId="s2"))
    reviews.create(db, _review(userEmail="other@example.com", postByEmail="admin@example.com"))
    assert len(reviews.list_reviews(db)) == 3
    assert len(reviews.list_reviews(db, scholarship_id="s1")) == 2
    assert len(reviews.list_reviews(db, author_email="student@example.com")) == 2
    assert len(reviews.list_reviews(db, moderator_email="admin@example.com")) == 1
    assert len(reviews.list_reviews(db, scholarship_id="s2", author_email="other@example.com")) == 0


def test_create_requires_fields(db):
    with pytest.raises(MissingFields) as excinfo:
        reviews.create(db, _review(reviewComment="", postByEmail=None))
    assert set(excinfo.value.fields) == {"reviewComment", "postByEmail"}


def test_update_refreshes_review_date(db):
    review_id = reviews.create(db, _review())
    db["reviews"].update_one({}, {"$set": {"reviewDate": None}})
    reviews.update(db, review_id, reviewComment="Edited", ratingPoint="3")
    doc = db["reviews"].find_one({})
    assert doc["reviewComment"] == "Edited"
    assert doc["ratingPoint"] == 3
    assert doc["reviewDate"] is not None


def test_update_and_delete_errors(db):
    with pytest.raises(InvalidId):
        reviews.update(db, "bad-id", reviewComment="x")
    with pytest.raises(NotFound):
        reviews.update(db, "65f0000000000000000000aa", reviewComment="x")
    with pytest.raises(NotFound):
        reviews.delete(db, "65f0000000000000000000aa")


def test_scenario_d_string_rating_becomes_number(client, student):
    res = client.post("/reviews", json=_review(ratingPoint="4"), headers=student)
    assert res.status_code == 201
    stored = client.get("/reviews", params={"scholarshipId": "s1"}).json()
    assert stored[0]["ratingPoint"] == 4
    assert isinstance(stored[0]["ratingPoint"], int)


def test_review_routes(client, student):
    review_id = client.post("/reviews", json=_review(), headers=student).json()["insertedId"]
    assert client.put(f"/reviews/{review_id}", json={"reviewComment": "Better"}, headers=student).status_code == 200
    assert client.get("/reviews", params={"email": "student@example.com"}).json()[0]["reviewComment"] == "Better"
    assert client.delete(f"/reviews/{review_id}", headers=student).json() == {"success": True, "deletedCount": 1}
    assert client.delete(f"/reviews/{review_id}", headers=student).status_code == 404
