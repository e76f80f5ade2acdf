from datetime import datetime, timedelta, timezone

import pytest

from conftest import insert_user
from coupons import apply_coupon, is_expired
from errors import ExpiredError, NotFoundError, ValidationError


def add_coupon(database, code="SAVE20", percentage=20, expires_in=timedelta(days=3)):
    database.coupons.insert_one(
        {
            "code": code,
            "discount_percentage": percentage,
            "expiry_date": datetime.utcnow() + expires_in,
            "created_at": datetime.utcnow(),
        }
    )


class TestApplyCoupon:
    def test_percentage_discount(self, database):
        add_coupon(database)

        assert apply_coupon(database.coupons, "SAVE20", 1000) == {
            "discount": 200,
            "final_total": 800,
        }

    def test_unknown_code(self, database):
        with pytest.raises(NotFoundError):
            apply_coupon(database.coupons, "NOPE", 1000)

    def test_expired(self, database):
        add_coupon(database, expires_in=timedelta(days=-1))

        with pytest.raises(ExpiredError):
            apply_coupon(database.coupons, "SAVE20", 1000)

    @pytest.mark.parametrize("cart_total", [None, "100", -1, True, float("nan"), float("inf")])
    def test_invalid_cart_total(self, database, cart_total):
        add_coupon(database)

        with pytest.raises(ValidationError):
            apply_coupon(database.coupons, "SAVE20", cart_total)

    def test_expiry_is_an_instant_comparison(self):
        expiry = datetime(2024, 1, 1, 12, 0, 0)
        coupon = {"expiry_date": expiry}

        assert not is_expired(coupon, now=expiry)
        assert is_expired(coupon, now=expiry + timedelta(microseconds=1))
        assert not is_expired(
            coupon, now=datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        )


class TestCouponRoutes:
    def test_save_coupon_requires_admin(self, client, customer, make_headers):
        response = client.post(
            "/api/coupons",
            json={"code": "NEW10", "discountPercentage": 10, "expiryDate": "2099-01-01"},
            headers=make_headers(customer["email"], account_type="user"),
        )

        assert response.status_code == 403

    def test_save_coupon_requires_token(self, client):
        response = client.post(
            "/api/coupons",
            json={"code": "NEW10", "discountPercentage": 10, "expiryDate": "2099-01-01"},
        )

        assert response.status_code == 401

    def test_save_coupon_notifies_users(
        self, client, database, notifier, admin_headers, customer
    ):
        response = client.post(
            "/save-coupon",
            json={"code": "NEW10", "discountPercentage": 10, "expiryDate": "2099-01-01"},
            headers=admin_headers,
        )

        assert response.status_code == 201
        data = response.get_json()
        assert data["coupon"]["code"] == "NEW10"
        assert data["coupon"]["expiryDate"] == "2099-01-01T00:00:00Z"
        assert database.coupons.count_documents({"code": "NEW10"}) == 1

        recipients = sorted(message["to"][0] for message in notifier.sent)
        assert recipients == ["admin@example.com", "asha@example.com"]
        assert notifier.sent[0]["subject"] == "New Coupon Available!"

    def test_save_coupon_survives_broadcast_failure(
        self, client, notifier, admin_headers
    ):
        notifier.should_succeed = False

        response = client.post(
            "/api/coupons",
            json={"code": "NEW10", "discountPercentage": 10, "expiryDate": "2099-01-01"},
            headers=admin_headers,
        )

        assert response.status_code == 201

    def test_duplicate_code(self, client, database, admin_headers):
        add_coupon(database, code="NEW10")

        response = client.post(
            "/api/coupons",
            json={"code": "NEW10", "discountPercentage": 10, "expiryDate": "2099-01-01"},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.get_json()["message"] == "Coupon code already exists"

    @pytest.mark.parametrize(
        "body",
        [
            {"discountPercentage": 10, "expiryDate": "2099-01-01"},
            {"code": "X", "discountPercentage": 0, "expiryDate": "2099-01-01"},
            {"code": "X", "discountPercentage": 150, "expiryDate": "2099-01-01"},
            {"code": "X", "discountPercentage": "10", "expiryDate": "2099-01-01"},
            {"code": "X", "discountPercentage": 10, "expiryDate": "someday"},
        ],
    )
    def test_invalid_coupon(self, client, admin_headers, body):
        response = client.post("/api/coupons", json=body, headers=admin_headers)

        assert response.status_code == 400

    def test_list_coupons(self, client, database):
        add_coupon(database, code="A")
        add_coupon(database, code="B")

        response = client.get("/get-coupon")

        assert response.status_code == 200
        assert sorted(c["code"] for c in response.get_json()["coupons"]) == ["A", "B"]

    def test_apply_coupon(self, client, database):
        add_coupon(database)

        response = client.post(
            "/api/coupons/apply", json={"code": "SAVE20", "cartTotal": 1000}
        )

        assert response.status_code == 200
        assert response.get_json() == {"success": True, "discount": 200, "finalTotal": 800}

    def test_apply_unknown_coupon(self, client):
        response = client.post("/apply-coupon", json={"code": "NOPE", "cartTotal": 10})

        assert response.status_code == 404
        assert response.get_json()["message"] == "Invalid coupon code"

    def test_apply_expired_coupon(self, client, database):
        add_coupon(database, expires_in=timedelta(minutes=-5))

        response = client.post(
            "/api/coupons/apply", json={"code": "SAVE20", "cartTotal": 1000}
        )

        assert response.status_code == 400
        assert response.get_json()["message"] == "Coupon has expired"

    def test_verify_coupon(self, client, database):
        add_coupon(database)

        found = client.post("/verify-coupon", json={"code": "SAVE20"})
        missing = client.post("/verify-coupon", json={"code": "NOPE"})

        assert found.status_code == 200
        assert found.get_json()["coupon"]["discountPercentage"] == 20
        assert missing.status_code == 404

    def test_delete_coupon(self, client, database, notifier, admin_headers):
        add_coupon(database)
        insert_user(database, "ravi@example.com", name="Ravi")

        response = client.delete(
            "/api/coupons", json={"code": "SAVE20"}, headers=admin_headers
        )

        assert response.status_code == 200
        assert database.coupons.count_documents({}) == 0
        assert {message["subject"] for message in notifier.sent} == {"Coupon Expired"}
        assert len(notifier.sent) == 2

    def test_delete_missing_coupon(self, client, admin_headers):
        response = client.delete(
            "/delete-coupon", json={"code": "NOPE"}, headers=admin_headers
        )

        assert response.status_code == 404
