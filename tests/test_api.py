from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from bookshare.app import create_app

PASSWORD = "correct horse battery"


@pytest.fixture()
def client(db_env, outbox):
    with TestClient(create_app()) as test_client:
        yield test_client


def _signup(client: TestClient, outbox, email: str, first_name: str = "Ada") -> str:
    resp = client.post(
        "/auth/register",
        json={"first_name": first_name, "last_name": "Reader", "email": email, "password": PASSWORD},
    )
    assert resp.status_code == 202
    assert "token" not in resp.json()

    resp = client.get("/auth/activate-account", params={"token": outbox.last_code(email)})
    assert resp.status_code == 200
    assert resp.json()["activated"] is True

    resp = client.post("/auth/authenticate", json={"email": email, "password": PASSWORD})
    assert resp.status_code == 200
    return resp.json()["token"]


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy", "database": "connected"}
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


def test_lending_flow_over_http(client, outbox):
    owner = _auth(_signup(client, outbox, "owner@example.com", "Olive"))
    reader = _auth(_signup(client, outbox, "reader@example.com"))

    resp = client.post(
        "/books",
        json={"title": "Dune", "author_name": "Frank Herbert", "isbn": "9780441013593", "shareable": True},
        headers=owner,
    )
    assert resp.status_code == 201
    book_id = resp.json()["id"]

    catalog = client.get("/books", headers=reader).json()
    assert [b["id"] for b in catalog["content"]] == [book_id]

    resp = client.post(f"/books/borrow/{book_id}", headers=reader)
    assert resp.status_code == 201
    first_loan = resp.json()["id"]

    resp = client.post(f"/books/borrow/{book_id}", headers=reader)
    assert resp.status_code == 400
    assert resp.json()["business_error_code"] == 402

    resp = client.post(f"/books/borrow/{book_id}", headers=owner)
    assert resp.status_code == 400
    assert resp.json()["business_error_code"] == 401

    resp = client.patch(f"/books/borrow/return/approve/{book_id}", headers=owner)
    assert resp.status_code == 400
    assert resp.json()["business_error_code"] == 404

    resp = client.patch(f"/books/borrow/return/{book_id}", headers=reader)
    assert resp.status_code == 200
    assert resp.json()["returned"] is True

    resp = client.patch(f"/books/borrow/return/approve/{book_id}", headers=reader)
    assert resp.status_code == 400

    resp = client.patch(f"/books/borrow/return/approve/{book_id}", headers=owner)
    assert resp.status_code == 200
    assert resp.json()["return_approved"] is True

    resp = client.post(f"/books/borrow/{book_id}", headers=reader)
    assert resp.status_code == 201
    assert resp.json()["id"] != first_loan

    borrowed = client.get("/books/borrowed", headers=reader).json()
    assert borrowed["total_elements"] == 2
    returned = client.get("/books/returned", headers=owner).json()
    assert returned["total_elements"] == 2


def test_missing_book_is_not_found(client, outbox):
    reader = _auth(_signup(client, outbox, "reader@example.com"))
    resp = client.post("/books/borrow/999", headers=reader)
    assert resp.status_code == 404
    assert resp.json()["business_error_code"] == 400


def test_protected_routes_require_a_credential(client):
    resp = client.get("/books")
    assert resp.status_code == 401
    assert resp.json()["business_error_code"] == 305

    resp = client.get("/books", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401
    assert resp.json()["business_error_code"] == 306


def test_login_before_activation_is_rejected(client):
    client.post(
        "/auth/register",
        json={"first_name": "Ada", "last_name": "Reader", "email": "late@example.com", "password": PASSWORD},
    )
    resp = client.post("/auth/authenticate", json={"email": "late@example.com", "password": PASSWORD})
    assert resp.status_code == 401
    assert resp.json()["business_error_code"] == 303


def test_unknown_activation_code(client):
    resp = client.get("/auth/activate-account", params={"token": "000000"})
    assert resp.status_code == 404
    assert resp.json()["business_error_code"] == 310


def test_validation_errors_are_listed(client):
    resp = client.post(
        "/auth/register",
        json={"first_name": "", "last_name": "Reader", "email": "not-an-email", "password": "short"},
    )
    body = resp.json()
    assert resp.status_code == 400
    assert body["business_error_code"] == 100
    assert len(body["validation_errors"]) == 3
    assert any(msg.startswith("email") for msg in body["validation_errors"])


def test_unexpected_errors_do_not_leak_details(db_env, outbox):
    app = create_app()

    def explode():
        raise RuntimeError("database password is hunter2")

    app.add_api_route("/explode", explode)

    with TestClient(app, raise_server_exceptions=False) as test_client:
        resp = test_client.get("/explode")

    assert resp.status_code == 500
    assert "hunter2" not in resp.text
    assert resp.json()["business_error_description"] == "Internal Server Error"


def test_error_payload_is_documented(client):
    schema = client.get("/openapi.json").json()

    assert "ErrorResponse" in schema["components"]["schemas"]
    borrow = schema["paths"]["/books/borrow/{book_id}"]["post"]["responses"]
    assert borrow["401"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")


def test_login_is_throttled_per_client(client):
    payload = {"email": "nobody@example.com", "password": PASSWORD}
    for _ in range(10):
        assert client.post("/auth/authenticate", json=payload).status_code == 401

    resp = client.post("/auth/authenticate", json=payload)

    assert resp.status_code == 429
    assert 1 <= int(resp.headers["Retry-After"]) <= 60
    assert resp.json()["error"] == "Too many requests. Try again shortly."
