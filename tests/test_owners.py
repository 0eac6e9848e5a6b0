import pytest
from fastapi import status

from core.exceptions import NotFoundOrUnauthorized
from models.rating import Rating
from security.policy import Principal
from services import ratings as rating_service


def _rated(db, store, user, score=4):
    rating = Rating(user_id=user.id, store_id=store.id, score=score)
    db.add(rating)
    db.commit()
    db.refresh(rating)
    return rating


class TestOwnerRatings:

    def test_owner_sees_ratings_on_own_stores_only(self, client, db, test_store, test_user, other_owner, make_store, owner_headers):
        _rated(db, test_store, test_user, 5)
        elsewhere = make_store(other_owner, "Second Owner Bakery House", "bakery@example.com")
        _rated(db, elsewhere, test_user, 1)

        response = client.get("/api/owners/ratings", headers=owner_headers)
        assert response.status_code == status.HTTP_200_OK
        rows = response.json()
        assert len(rows) == 1
        assert rows[0]["store_name"] == "Corner Coffee Roasters Ltd"
        assert rows[0]["store_address"] == "12 Market Street"
        assert rows[0]["user_name"] == "Regular Rating User Person"
        assert rows[0]["score"] == 5

    def test_non_owner_forbidden(self, client, user_headers, admin_headers):
        for headers in (user_headers, admin_headers):
            response = client.get("/api/owners/ratings", headers=headers)
            assert response.status_code == status.HTTP_403_FORBIDDEN


class TestRespondToRating:

    def test_owner_responds(self, client, db, test_store, test_user, owner_headers):
        rating = _rated(db, test_store, test_user)

        response = client.post(
            f"/api/owners/ratings/{rating.id}/respond",
            json={"response": "  Thanks for stopping by!  "},
            headers=owner_headers,
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["owner_response"] == "Thanks for stopping by!"
        assert data["owner_response_date"] is not None
        assert data["store_name"] == "Corner Coffee Roasters Ltd"

        rows = client.get(f"/api/ratings/{test_store.id}", headers=owner_headers).json()
        assert rows[0]["owner_response"] == "Thanks for stopping by!"

    def test_response_can_be_overwritten(self, client, db, test_store, test_user, owner_headers):
        rating = _rated(db, test_store, test_user)
        url = f"/api/owners/ratings/{rating.id}/respond"
        client.post(url, json={"response": "First reply"}, headers=owner_headers)
        response = client.post(url, json={"response": "Second reply"}, headers=owner_headers)

        assert response.json()["owner_response"] == "Second reply"
        db.refresh(rating)
        assert rating.owner_response == "Second reply"

    def test_other_owner_gets_not_found(self, client, db, test_store, test_user, other_owner, auth_headers):
        rating = _rated(db, test_store, test_user)

        response = client.post(
            f"/api/owners/ratings/{rating.id}/respond",
            json={"response": "Not my store"},
            headers=auth_headers(other_owner),
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"]["message"] == "Rating not found or not authorized"
        db.refresh(rating)
        assert rating.owner_response is None

    def test_missing_rating_looks_the_same(self, client, owner_headers):
        response = client.post("/api/owners/ratings/999/respond", json={"response": "Hello"}, headers=owner_headers)
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"]["message"] == "Rating not found or not authorized"

    def test_empty_response_rejected(self, client, db, test_store, test_user, owner_headers):
        rating = _rated(db, test_store, test_user)
        response = client.post(
            f"/api/owners/ratings/{rating.id}/respond",
            json={"response": "   "},
            headers=owner_headers,
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["details"]["errors"][0]["field"] == "response"

    def test_regular_user_cannot_respond(self, client, db, test_store, test_user, user_headers):
        rating = _rated(db, test_store, test_user)
        response = client.post(
            f"/api/owners/ratings/{rating.id}/respond",
            json={"response": "Hijack"},
            headers=user_headers,
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestRespondService:

    def test_ownership_is_checked_against_the_ratings_store(self, db, test_store, test_user, test_owner, other_owner, test_admin):
        rating = _rated(db, test_store, test_user)

        for caller in (other_owner, test_admin):
            with pytest.raises(NotFoundOrUnauthorized):
                rating_service.respond_to_rating(db, Principal.from_user(caller), rating.id, "Not mine")

        row = rating_service.respond_to_rating(db, Principal.from_user(test_owner), rating.id, "Thanks")
        assert row["owner_response"] == "Thanks"
        assert row["user_name"] == "Regular Rating User Person"
