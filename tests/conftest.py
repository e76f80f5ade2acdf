import re
from datetime import datetime

import bcrypt
import mongomock
import pytest
from flask_jwt_extended import create_access_token

from app import create_app

ADMIN_EMAIL = "admin@example.com"


class RecordingNotifier:
    """Notifier that keeps sent payloads in memory for assertions."""

    def __init__(self):
        self.sent = []
        self.should_succeed = True
        self.failure_reason = "Email delivery failed"

    def send(self, payload):
        if not self.should_succeed:
            return False, self.failure_reason
        self.sent.append(payload)
        return True, None

    def last_code(self):
        match = re.search(r"\b(\d{6})\b", self.sent[-1]["text"])
        return match.group(1) if match else None


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def database():
    return mongomock.MongoClient()["storefront_test"]


@pytest.fixture
def app(database, notifier, tmp_path):
    return create_app(
        {
            "TESTING": True,
            "JWT_SECRET_KEY": "test-secret-key-that-is-long-enough-for-hs256",
            "PRODUCT_UPLOAD_FOLDER": str(tmp_path / "uploads"),
            "DEFAULT_ADMIN_EMAIL": ADMIN_EMAIL,
            "BASE_URL": "http://shop.test",
            "MAIL_SENDER": "Storefront <orders@shop.test>",
        },
        database=database,
        notifier=notifier,
    )


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_headers(app):
    def _make(identity, **claims):
        with app.app_context():
            token = create_access_token(identity=identity, additional_claims=claims)
        return {"Authorization": f"Bearer {token}"}

    return _make


def insert_user(database, email, name="Asha", password="secret", **extra):
    document = {
        "email": email,
        "name": name,
        "password": bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()),
        "role": "standard",
        "account_status": "open",
        "email_verified": True,
        "created_at": datetime.utcnow(),
    }
    document.update(extra)
    document["_id"] = database.users.insert_one(document).inserted_id
    return document


@pytest.fixture
def customer(database):
    return insert_user(database, "asha@example.com")


@pytest.fixture
def admin(database):
    return insert_user(database, ADMIN_EMAIL, name="Admin")


@pytest.fixture
def admin_headers(admin, make_headers):
    return make_headers(ADMIN_EMAIL, account_type="user")
