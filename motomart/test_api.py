"""
End-to-end tests for the HTTP API using FastAPI's TestClient.
"""
import logging
import os

import pytest

from motomart.conftest import LISTING_FORM, PNG_BYTES, post_listing, register
from motomart.utils import iso_from_now


@pytest.fixture
def catalog(client, seller):
    """Four listings owned by the seller, returned as ids in creation order."""
    _, headers = seller
    specs = [
        dict(brand="Honda", model="CB Shine", year="2020", price="150000",
             specifications='{"engine": "125cc"}'),
        dict(brand="Yamaha", model="FZ", year="2022", price="350000", condition="New",
             specifications='{"engine": "150"}'),
        dict(brand="Bajaj", model="Pulsar 220", year="2019", price="280000",
             specifications='{"engine": "220 CC"}'),
        dict(brand="Honda", model="Hornet", year="2022", price="350000",
             specifications='{"engine": 160}'),
    ]
    ids = []
    for overrides in specs:
        response = post_listing(client, headers, **overrides)
        assert response.status_code == 201, response.text
        ids.append(response.json()["id"])
    return ids


def listing_ids(response):
    assert response.status_code == 200, response.text
    return [item["id"] for item in response.json()["listings"]]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["database"] == "connected"


# Accounts

def test_register_and_login(client):
    user_id, _ = register(client, "rider")

    response = client.post("/api/users/login",
                           json={"email": "RIDER@example.com", "password": "secret123"})
    assert response.status_code == 200
    assert response.json()["user"]["id"] == user_id
    assert response.json()["token"]

    db = client.app.state.db
    assert db.fetch_value("SELECT COUNT(*) FROM login_history WHERE user_id = ?", (user_id,)) == 1


def test_register_rejects_duplicates_and_missing_fields(client):
    register(client, "rider")

    response = client.post("/api/users/register",
                           json={"username": "rider", "email": "new@example.com", "password": "x"})
    assert response.status_code == 400
    assert response.json()["detail"] == "User with this email or username already exists"

    response = client.post("/api/users/register", json={"username": "nobody"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Please provide all required fields"


def test_login_with_wrong_password(client):
    register(client, "rider")
    response = client.post("/api/users/login",
                           json={"email": "rider@example.com", "password": "wrong"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


def test_forgot_password_stores_reset_token(client):
    user_id, _ = register(client, "rider")

    assert client.post("/api/users/forgot-password",
                       json={"email": "ghost@example.com"}).status_code == 404

    response = client.post("/api/users/forgot-password", json={"email": "rider@example.com"})
    assert response.status_code == 200
    user = client.app.state.db.fetch_one("SELECT * FROM users WHERE id = ?", (user_id,))
    assert user["reset_token"]
    assert user["reset_token_expires"]


# Listing creation

def test_create_listing_requires_auth(client):
    response = post_listing(client, headers={})
    assert response.status_code == 401
    assert response.json()["detail"] == "No token, authorization denied"

    response = post_listing(client, headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Token is not valid"


def test_create_listing_stores_images(client, seller, settings):
    _, headers = seller
    response = post_listing(client, headers, image_count=3)
    assert response.status_code == 201, response.text

    listing = response.json()
    assert listing["owner_name"] == "seller"
    assert listing["specifications"] == {"engine": 125, "mileage": "60 kmpl"}
    assert listing["listing_status"] == "active"
    assert listing["image_url"].startswith("/uploads/motorcycle_images/")
    assert len(listing["additional_images"]) == 2
    assert len(os.listdir(settings.listing_images_dir)) == 3

    served = client.get(listing["image_url"])
    assert served.status_code == 200
    assert served.content == PNG_BYTES


def test_create_listing_validation_errors(client, seller, settings):
    _, headers = seller
    response = post_listing(client, headers, description="short", contact_number="123")

    assert response.status_code == 400
    body = response.json()
    assert body["detail"] == "Validation failed"
    assert "Description must be at least 20 characters long" in body["errors"]
    assert os.listdir(settings.listing_images_dir) == []


def test_create_listing_needs_an_image(client, seller):
    _, headers = seller
    response = post_listing(client, headers, image_count=0)
    assert response.status_code == 400
    assert "At least one image is required" in response.json()["errors"]


def test_create_listing_rejects_bad_uploads(client, seller, settings):
    _, headers = seller
    response = client.post(
        "/api/listings",
        data=LISTING_FORM,
        files=[("images", ("doc.pdf", b"%PDF-1.4", "application/pdf"))],
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json() == {"detail": "File upload failed",
                               "errors": ["Only .png, .jpg and .jpeg format allowed!"]}

    response = post_listing(client, headers, image_count=6)
    assert response.status_code == 400
    assert response.json()["errors"] == ["Maximum 5 images allowed"]
    assert os.listdir(settings.listing_images_dir) == []


# Search

def test_search_returns_everything_by_default(client, catalog):
    response = client.get("/api/listings")
    assert set(listing_ids(response)) == set(catalog)
    assert response.json()["pagination"] == {"total": 4, "page": 1, "limit": 10, "totalPages": 1}


def test_search_filters(client, catalog):
    cb_shine, fz, pulsar, hornet = catalog

    assert sorted(listing_ids(client.get("/api/listings?brand=HONDA"))) == [cb_shine, hornet]
    assert listing_ids(client.get("/api/listings?model=puls")) == [pulsar]
    assert listing_ids(client.get("/api/listings?condition=new")) == [fz]
    assert sorted(listing_ids(client.get("/api/listings?engineCapacity=150-200"))) == [fz, hornet]
    assert listing_ids(client.get("/api/listings?year=2022&brand=honda")) == [hornet]
    assert listing_ids(client.get("/api/listings?brand=")) != []


def test_search_sorting_and_ties(client, catalog):
    cb_shine, fz, pulsar, hornet = catalog
    response = client.get("/api/listings?priceRange=200000-400000&sortBy=price_asc")
    assert listing_ids(response) == [pulsar, fz, hornet]

    response = client.get("/api/listings?sortBy=not_a_sort")
    assert response.status_code == 200


def test_search_pagination(client, catalog):
    first = client.get("/api/listings?limit=3&sortBy=year_asc")
    second = client.get("/api/listings?limit=3&page=2&sortBy=year_asc")

    assert len(listing_ids(first)) == 3
    assert len(listing_ids(second)) == 1
    assert set(listing_ids(first) + listing_ids(second)) == set(catalog)
    assert second.json()["pagination"] == {"total": 4, "page": 2, "limit": 3, "totalPages": 2}

    capped = client.get("/api/listings?limit=1000")
    assert capped.json()["pagination"]["limit"] == 100


@pytest.mark.parametrize("query", [
    "priceRange=abc-500",
    "engineCapacity=400-100",
    "year=twenty",
    "colour=red",
    "priceRange=1-99999999999999999999",
    "engineCapacity=0-9223372036854775808",
])
def test_search_rejects_bad_parameters(client, catalog, query):
    response = client.get(f"/api/listings?{query}")
    assert response.status_code == 400
    assert response.json()["detail"]


def test_motorcycles_alias_matches_listings(client, catalog):
    query = "brand=honda&sortBy=price_desc"
    listings = client.get(f"/api/listings?{query}")
    motorcycles = client.get(f"/api/motorcycles?{query}")

    assert motorcycles.status_code == 200
    assert motorcycles.json() == listings.json()
    assert client.get(f"/api/motorcycles/{catalog[0]}").json()["id"] == catalog[0]


def test_listings_for_owner(client, seller, catalog):
    seller_id, headers = seller
    response = client.put(f"/api/listings/{catalog[1]}", json={"listing_status": "sold"},
                          headers=headers)
    assert response.status_code == 200

    assert len(listing_ids(client.get(f"/api/listings/user/{seller_id}"))) == 4
    assert listing_ids(client.get(f"/api/listings/user/{seller_id}?status=sold")) == [catalog[1]]


def test_csv_export(client, catalog):
    response = client.get("/api/listings/export/csv?brand=honda")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")

    lines = response.text.strip().splitlines()
    assert lines[0].startswith("id,brand,model,year,price")
    assert lines[0].endswith("engine_cc")
    assert len(lines) == 3

    empty = client.get("/api/listings/export/csv?brand=nomatch")
    assert len(empty.text.strip().splitlines()) == 1


# Views and saves

def test_detail_records_views_for_signed_in_users(client, catalog, buyer):
    buyer_id, headers = buyer
    db = client.app.state.db

    assert client.get("/api/listings/99999").status_code == 404

    client.get(f"/api/listings/{catalog[0]}")
    assert db.fetch_value("SELECT COUNT(*) FROM user_motorcycle_interactions") == 0

    client.get(f"/api/listings/{catalog[0]}", headers=headers)
    client.get(f"/api/listings/{catalog[0]}", headers=headers)
    client.get(f"/api/motorcycles/{catalog[2]}", headers=headers)
    assert db.fetch_value(
        "SELECT COUNT(*) FROM user_motorcycle_interactions WHERE user_id = ?", (buyer_id,)
    ) == 2

    recent = client.get("/api/listings/recent-views", headers=headers)
    assert set(listing_ids(recent)) == {catalog[0], catalog[2]}
    assert all(item["viewed_at"] for item in recent.json()["listings"])
    assert client.get("/api/users/recent-views", headers=headers).json() == recent.json()


def test_recent_views_require_auth(client):
    assert client.get("/api/listings/recent-views").status_code == 401


def test_track_view_endpoint(client, catalog, buyer):
    _, headers = buyer

    response = client.post(f"/api/listings/{catalog[1]}/view")
    assert response.json() == {"success": True}
    assert client.post("/api/listings/99999/view").status_code == 404

    client.post(f"/api/motorcycles/{catalog[1]}/view", headers=headers)
    assert listing_ids(client.get("/api/users/recent-views", headers=headers)) == [catalog[1]]


def test_save_and_unsave(client, catalog, buyer):
    _, headers = buyer
    url = f"/api/users/save-motorcycle/{catalog[3]}"

    response = client.post(url, json={"action": "save"}, headers=headers)
    assert response.json() == {"message": "Motorcycle saved successfully"}
    client.post(url, json={"action": "save"}, headers=headers)

    saved = client.get("/api/users/saved-motorcycles", headers=headers).json()["motorcycles"]
    assert [item["id"] for item in saved] == [catalog[3]]
    assert saved[0]["saved_at"]

    response = client.post(url, json={"action": "unsave"}, headers=headers)
    assert response.json() == {"message": "Motorcycle unsaved successfully"}
    assert client.get("/api/users/saved-motorcycles", headers=headers).json() == {"motorcycles": []}

    assert client.post(url, json={"action": "like"}, headers=headers).status_code == 400
    missing = client.post("/api/users/save-motorcycle/99999", json={"action": "save"}, headers=headers)
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Motorcycle not found"


# Profile

def test_profile_includes_activity(client, catalog, buyer):
    _, headers = buyer
    client.post(f"/api/users/save-motorcycle/{catalog[0]}", json={"action": "save"}, headers=headers)
    client.get(f"/api/listings/{catalog[1]}", headers=headers)

    profile = client.get("/api/users/profile", headers=headers).json()
    assert profile["username"] == "buyer"
    assert "password" not in profile
    assert [item["id"] for item in profile["savedBikes"]] == [catalog[0]]
    assert [item["id"] for item in profile["recentViews"]] == [catalog[1]]


def test_update_profile(client, buyer, settings):
    _, headers = buyer

    response = client.put("/api/users/profile", data={"full_name": "  "}, headers=headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Full name is required"

    response = client.put(
        "/api/users/profile",
        data={"full_name": "Sita Rider", "riding_experience": "5 years"},
        files={"profile_picture": ("me.png", PNG_BYTES, "image/png")},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    first_picture = response.json()["profile_picture"]
    assert response.json()["full_name"] == "Sita Rider"
    assert first_picture.startswith("/uploads/profile_pictures/profile-")

    response = client.post(
        "/api/users/profile/picture",
        files={"profile_picture": ("me2.jpg", PNG_BYTES, "image/jpeg")},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["profile_picture"] != first_picture
    assert os.listdir(settings.profile_pictures_dir) == [
        os.path.basename(response.json()["profile_picture"])
    ]


def test_profile_picture_upload_needs_a_file(client, buyer):
    _, headers = buyer
    response = client.post("/api/users/profile/picture", headers=headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "No file uploaded"


# Update and delete

def test_update_listing_by_owner_only(client, catalog, seller, buyer):
    _, seller_headers = seller
    _, buyer_headers = buyer
    url = f"/api/listings/{catalog[0]}"

    response = client.put(url, json={"price": "120000", "specifications": {"engine": "130cc"}},
                          headers=seller_headers)
    assert response.status_code == 200, response.text
    assert response.json()["price"] == 120000.0
    assert response.json()["specifications"] == {"engine": 130}

    response = client.put(url, json={"price": "1"}, headers=buyer_headers)
    assert response.status_code == 403
    assert response.json()["detail"] == "You can only modify your own listings"

    response = client.put(url, json={"owner_id": 2}, headers=seller_headers)
    assert response.status_code == 400
    assert response.json()["errors"] == ["Unknown field(s): owner_id"]

    assert client.put("/api/listings/99999", json={"price": "1"},
                      headers=seller_headers).status_code == 404


def test_delete_listing_removes_images(client, seller, buyer, settings):
    _, seller_headers = seller
    _, buyer_headers = buyer
    listing = post_listing(client, seller_headers, image_count=2).json()
    url = f"/api/listings/{listing['id']}"

    assert client.delete(url, headers=buyer_headers).status_code == 403

    response = client.delete(url, headers=seller_headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Listing deleted successfully"}
    assert os.listdir(settings.listing_images_dir) == []
    assert client.get(url).status_code == 404


# Admin

def admin_headers(client):
    response = client.post("/api/admin/login", json={"username": "admin", "password": "admin-pass"})
    assert response.status_code == 200, response.text
    assert response.json()["admin"]["role"] == "admin"
    return {"Authorization": f"Bearer {response.json()['token']}"}


def test_admin_login(client, seller):
    admin_headers(client)

    response = client.post("/api/admin/login", json={"username": "admin", "password": "nope"})
    assert response.status_code == 401

    response = client.post("/api/admin/login", json={"username": "seller", "password": "secret123"})
    assert response.status_code == 401


def test_admin_stats(client, catalog, seller, buyer):
    _, seller_headers = seller
    buyer_id, buyer_headers = buyer
    db = client.app.state.db

    assert client.get("/api/admin/stats", headers=seller_headers).status_code == 403
    assert client.get("/api/admin/stats").status_code == 401

    client.get(f"/api/listings/{catalog[0]}", headers=buyer_headers)
    client.put(f"/api/listings/{catalog[1]}", json={"listing_status": "sold"}, headers=seller_headers)
    db.execute("UPDATE motorcycles SET is_premium = 1 WHERE id = ?", (catalog[2],))
    db.execute("INSERT INTO transactions (user_id, amount, created_at) VALUES (?, ?, ?)",
               (buyer_id, 500.0, iso_from_now(days=-2)))
    db.execute("INSERT INTO transactions (user_id, amount, created_at) VALUES (?, ?, ?)",
               (buyer_id, 250.0, iso_from_now(days=-90)))

    response = client.get("/api/admin/stats", headers=admin_headers(client))
    assert response.status_code == 200
    assert response.json() == {
        "totalUsers": 2,
        "totalListings": 4,
        "activeListings": 3,
        "premiumListings": 1,
        "featuredListings": 0,
        "totalViews": 1,
        "totalEarnings": 750.0,
        "monthlyEarnings": 500.0,
    }


def test_admin_can_modify_any_listing(client, catalog):
    response = client.put(f"/api/listings/{catalog[0]}", json={"listing_status": "inactive"},
                          headers=admin_headers(client))
    assert response.status_code == 200
    assert response.json()["listing_status"] == "inactive"


def test_search_with_huge_page_number(client, catalog):
    response = client.get("/api/listings", params={"page": "99999999999999999999"})
    assert response.status_code == 200
    assert response.json()["listings"] == []
    assert response.json()["pagination"]["total"] == 4


@pytest.mark.parametrize("method, path", [
    ("get", "/api/listings/99999999999999999999"),
    ("post", "/api/listings/99999999999999999999/view"),
    ("get", "/api/motorcycles/99999999999999999999"),
    ("get", "/api/listings/user/99999999999999999999"),
    ("get", "/api/listings/0"),
])
def test_out_of_range_ids_are_rejected(client, method, path):
    response = getattr(client, method)(path)
    assert response.status_code == 422


def test_out_of_range_ids_on_authenticated_routes(client, buyer):
    _, headers = buyer
    huge = "99999999999999999999"

    assert client.put(f"/api/listings/{huge}", json={"price": "1"}, headers=headers).status_code == 422
    assert client.delete(f"/api/listings/{huge}", headers=headers).status_code == 422
    response = client.post(f"/api/users/save-motorcycle/{huge}", json={"action": "save"}, headers=headers)
    assert response.status_code == 422


def test_oversized_kilometers_are_a_validation_error(client, seller):
    _, headers = seller
    response = post_listing(client, headers, kilometers_driven="99999999999999999999")
    assert response.status_code == 400
    assert "Kilometers driven must be a non-negative number" in response.json()["errors"]


def test_logging_follows_app_settings(client):
    log_files = [getattr(handler, "baseFilename", "") for handler in logging.getLogger().handlers]
    assert not any(name.endswith("api.log") for name in log_files)
