import logging
from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import build_engine, init_db
from main import SESSION_COOKIE, app, get_db

ANA = {"name": "Ana", "email": "ana@example.com", "password": "secret"}


@pytest.fixture()
def client():
    engine = build_engine("sqlite+pysqlite:///:memory:", poolclass=StaticPool)
    init_db(engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_requests_without_session_are_rejected(client) -> None:
    assert client.get("/api/dashboard").status_code == 401
    assert client.get("/api/auth/me").status_code == 401


def test_register_logout_login_keeps_data(client) -> None:
    resp = client.post("/api/auth/register", json=ANA)
    assert resp.status_code == 201
    assert resp.json()["email"] == "ana@example.com"
    assert "password_hash" not in resp.json()
    assert SESSION_COOKIE in client.cookies

    dashboard = client.get("/api/dashboard")
    assert dashboard.status_code == 200
    body = dashboard.json()
    assert body["goal"]["amount_cents"] == 600_000
    assert set(body["goal_progress"]) == {"goal_cents", "spent_cents", "percent", "band"}

    txn_id = client.get("/api/transactions").json()[0]["id"]
    assert client.delete(f"/api/transactions/{txn_id}").status_code == 204

    stale_token = client.cookies[SESSION_COOKIE]
    assert client.post("/api/auth/logout").status_code == 204
    client.cookies.clear()
    assert client.get("/api/dashboard").status_code == 401

    # A token issued before logout no longer opens the session.
    resp = client.get("/api/dashboard", headers={"Cookie": f"{SESSION_COOKIE}={stale_token}"})
    assert resp.status_code == 401

    resp = client.post("/api/auth/login", json={"email": "ANA@example.com", "password": "secret"})
    assert resp.status_code == 200
    assert len(client.get("/api/transactions").json()) == 24


def test_duplicate_registration_and_bad_login(client) -> None:
    assert client.post("/api/auth/register", json=ANA).status_code == 201
    resp = client.post("/api/auth/register", json={**ANA, "name": "Other"})
    assert resp.status_code == 409
    assert resp.json()["detail"] == "This email is already registered."

    resp = client.post("/api/auth/login", json={"email": ANA["email"], "password": "wrong"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Incorrect password."


def test_report_period_validation(client) -> None:
    client.post("/api/auth/register", json=ANA)

    assert client.get("/api/reports", params={"period": "last-year"}).status_code == 400

    resp = client.get("/api/reports", params={"period": "last-3-months"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["period"]["slug"] == "last-3-months"
    assert body["previous_period"]["slug"] == "previous-last-3-months"
    assert len(body["monthly"]) == 3
    assert "income_change" in body


def test_transaction_errors_map_to_status_codes(client) -> None:
    client.post("/api/auth/register", json=ANA)
    payload = {
        "type": "expense",
        "category_id": "cat-1",
        "description": "Lunch",
        "amount_cents": 1_500,
        "date": "2024-03-10",
    }

    assert client.post("/api/transactions", json=payload).status_code == 400
    assert client.post("/api/transactions", json={**payload, "amount_cents": -1}).status_code == 422

    created = client.post("/api/transactions", json={**payload, "category_id": "cat-4"})
    assert created.status_code == 201
    assert created.json()["amount_cents"] == 1_500
    assert client.get("/api/transactions/tx-missing").status_code == 404


def test_card_import_and_cascade(client) -> None:
    client.post("/api/auth/register", json=ANA)
    card = client.post("/api/cards", json={"name": "Visa", "holder": "Ana", "due_day": 10}).json()
    statement = b"Date,Description,Amount,Category\n2024-03-02,Bakery,12.50,Food\n"

    preview = client.post(
        f"/api/cards/{card['id']}/import/preview",
        files={"file": ("statement.csv", statement, "text/csv")},
    )
    assert preview.status_code == 200
    assert preview.json()["rows"][0]["category_id"] == "cat-4"

    commit = client.post(
        f"/api/cards/{card['id']}/import/commit",
        files={"file": ("statement.csv", statement, "text/csv")},
    )
    assert commit.json() == {"imported": 1}
    assert len(client.get(f"/api/cards/{card['id']}/transactions").json()) == 1

    resp = client.delete(f"/api/cards/{card['id']}")
    assert resp.json() == {"transactions_removed": 1}
    assert client.get(f"/api/cards/{card['id']}/transactions").status_code == 404


def test_profile_and_theme(client) -> None:
    client.post("/api/auth/register", json=ANA)

    resp = client.put("/api/profile", json={"name": "Ana Maria", "email": "ana@example.com"})
    assert resp.json()["name"] == "Ana Maria"

    resp = client.post(
        "/api/profile/avatar", files={"file": ("a.txt", b"hello", "text/plain")}
    )
    assert resp.status_code == 400

    assert client.put("/api/profile/theme", json={"theme": "dark"}).json() == {"theme": "dark"}
    assert client.get("/api/auth/me").json()["theme"] == "dark"


def test_exports(client) -> None:
    client.post("/api/auth/register", json=ANA)

    resp = client.get("/export/transactions.csv")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    lines = resp.text.strip().splitlines()
    assert lines[0] == "Date,Type,Category,Description,Amount,Card"
    assert len(lines) == 26

    resp = client.get("/export/workbook.xlsx")
    assert resp.status_code == 200
    workbook = load_workbook(BytesIO(resp.content))
    assert workbook.sheetnames == ["Transactions", "Summary"]


def test_statement_that_is_not_utf8_is_rejected(client) -> None:
    client.post("/api/auth/register", json=ANA)
    card = client.post("/api/cards", json={"name": "Visa", "holder": "Ana", "due_day": 10}).json()
    statement = "Date,Description,Amount,Category\n2024-03-02,São João,12.50,Food\n".encode("latin-1")

    for step in ("preview", "commit"):
        resp = client.post(
            f"/api/cards/{card['id']}/import/{step}",
            files={"file": ("statement.csv", statement, "text/csv")},
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Statement must be UTF-8 encoded CSV"

    assert client.get(f"/api/cards/{card['id']}/transactions").json() == []


def test_category_type_filter(client) -> None:
    client.post("/api/auth/register", json=ANA)

    income = client.get("/api/categories", params={"type": "income"})
    assert [c["name"] for c in income.json()] == ["Salary", "Freelance", "Investments"]

    resp = client.get("/api/categories", params={"type": "savings"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Unknown category type 'savings'"


def test_registration_is_logged_once(client, caplog) -> None:
    with caplog.at_level(logging.INFO):
        client.post("/api/auth/register", json=ANA)

    messages = [r.getMessage() for r in caplog.records]
    assert sum(m.startswith("account_registered:") for m in messages) == 1
    assert not any(m.startswith("register:") for m in messages)
