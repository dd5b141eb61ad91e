"""
Shared pytest fixtures: an app on a throwaway database and upload dir.
"""
import json

import pytest
from fastapi.testclient import TestClient

from motomart.config import Config
from motomart.main import create_app

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32

LISTING_FORM = {
    "brand": "Honda",
    "model": "CB Shine",
    "year": "2020",
    "price": "150000",
    "condition": "Used",
    "kilometers_driven": "12000",
    "registration_year": "2020",
    "registration_number": "BA 12 PA 3456",
    "description": "Well maintained bike, single owner, all papers clear.",
    "contact_number": "9812345678",
    "location": "Kathmandu",
    "specifications": json.dumps({"engine": "125cc", "mileage": "60 kmpl"}),
}


@pytest.fixture
def settings(tmp_path):
    return Config(
        DB_PATH=str(tmp_path / "motomart.db"),
        UPLOAD_DIR=str(tmp_path / "uploads"),
        LOG_FILE=None,
        JWT_SECRET="test-secret",
        ADMIN_USERNAME="admin",
        ADMIN_EMAIL="admin@example.com",
        ADMIN_PASSWORD="admin-pass",
    )


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


def register(client, username, email=None, password="secret123"):
    """Register a user and return (user_id, auth headers)."""
    response = client.post("/api/users/register", json={
        "username": username,
        "email": email or f"{username}@example.com",
        "password": password,
    })
    assert response.status_code == 201, response.text
    body = response.json()
    return body["user"]["id"], {"Authorization": f"Bearer {body['token']}"}


def post_listing(client, headers, image_count=1, **overrides):
    form = dict(LISTING_FORM)
    form.update(overrides)
    files = [("images", (f"bike{i}.png", PNG_BYTES, "image/png")) for i in range(image_count)]
    return client.post("/api/listings", data=form, files=files or None, headers=headers)


@pytest.fixture
def seller(client):
    return register(client, "seller")


@pytest.fixture
def buyer(client):
    return register(client, "buyer")
