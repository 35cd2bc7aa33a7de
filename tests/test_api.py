import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from main import app, get_db


@pytest.fixture
def client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    testing_session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = testing_session()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    engine.dispose()


def _auth(client: TestClient, email: str = "ana@example.com") -> dict:
    response = client.post(
        "/auth/register",
        json={
            "first_name": "Ana",
            "last_name": "Silva",
            "email": email,
            "password": "hunter22",
        },
    )
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['token']}"}


def _seeded(client: TestClient, headers: dict) -> tuple[dict, dict]:
    accounts = client.post("/accounts/seed", headers=headers).json()
    categories = client.post("/categories/seed", headers=headers).json()
    return (
        {a["name"]: a for a in accounts},
        {c["name"]: c for c in categories},
    )


def test_routes_require_a_bearer_token(client) -> None:
    response = client.get("/transactions")

    assert response.status_code == 401
    assert response.json()["detail"]["kind"] == "authentication"

    response = client.get("/accounts", headers={"Authorization": "Bearer forged"})
    assert response.status_code == 401
    assert response.json()["detail"]["message"] == "Failed to authenticate: Invalid token"


def test_register_login_and_profile(client) -> None:
    headers = _auth(client)

    login = client.post(
        "/auth/login", json={"email": "ana@example.com", "password": "hunter22"}
    )
    assert login.status_code == 200

    me = client.get("/auth/me", headers=headers)
    assert me.json()["full_name"] == "Ana Silva"

    patched = client.patch("/auth/me", headers=headers, json={"first_name": "Anna"})
    assert patched.json()["full_name"] == "Anna Silva"

    too_short = client.patch("/auth/me", headers=headers, json={"last_name": "  x  "})
    assert too_short.status_code == 400
    assert too_short.json()["detail"]["message"] == (
        "Failed to update profile: Last name must be at least 2 characters long"
    )

    bad = client.post("/auth/login", json={"email": "ana@example.com", "password": "x"})
    assert bad.status_code == 401
    assert bad.json()["detail"]["errors"] == ["Invalid email or password"]


def test_duplicate_registration_conflicts(client) -> None:
    _auth(client)
    response = client.post(
        "/auth/register",
        json={
            "first_name": "Ana",
            "last_name": "Silva",
            "email": "ana@example.com",
            "password": "hunter22",
        },
    )

    assert response.status_code == 409


def test_transaction_lifecycle(client) -> None:
    headers = _auth(client)
    accounts, categories = _seeded(client, headers)

    created = client.post(
        "/transactions",
        headers=headers,
        json={
            "account_id": accounts["Primary Checking"]["id"],
            "category_id": categories["Food & Dining"]["id"],
            "type": "Expense",
            "amount": "42.50",
            "description": "Dinner out",
            "transaction_date": "2026-03-05",
            "tags": ["friends"],
        },
    )
    assert created.status_code == 201
    body = created.json()
    assert body["type"] == "expense"
    assert body["account"]["name"] == "Primary Checking"
    assert body["category"]["icon"] == "utensils"

    fetched = client.get(f"/transactions/{body['id']}", headers=headers)
    assert fetched.json()["description"] == "Dinner out"

    patched = client.patch(
        f"/transactions/{body['id']}", headers=headers, json={"notes": "birthday"}
    )
    assert patched.json()["notes"] == "birthday"
    assert patched.json()["amount"] == body["amount"]

    deleted = client.delete(f"/transactions/{body['id']}", headers=headers)
    assert deleted.status_code == 204
    missing = client.get(f"/transactions/{body['id']}", headers=headers)
    assert missing.status_code == 404
    assert missing.json()["detail"]["kind"] == "not_found"


def test_validation_errors_carry_operation_prefix(client) -> None:
    headers = _auth(client)
    accounts, categories = _seeded(client, headers)

    response = client.post(
        "/transactions",
        headers=headers,
        json={
            "account_id": accounts["Primary Checking"]["id"],
            "category_id": categories["Salary"]["id"],
            "type": "expense",
            "amount": "10",
            "description": "Coffee",
        },
    )

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["kind"] == "validation"
    assert detail["message"] == (
        "Failed to create transaction: "
        "Category type 'income' does not match transaction type 'expense'"
    )


def test_listing_filters_sorting_and_isolation(client) -> None:
    headers = _auth(client)
    accounts, categories = _seeded(client, headers)
    checking = accounts["Primary Checking"]["id"]
    wallet = accounts["Cash Wallet"]["id"]
    food = categories["Food & Dining"]["id"]
    for account_id, amount, day in [(checking, "10", 1), (wallet, "30", 2), (checking, "20", 3)]:
        client.post(
            "/transactions",
            headers=headers,
            json={
                "account_id": account_id,
                "category_id": food,
                "type": "expense",
                "amount": amount,
                "description": f"Meal {day}",
                "transaction_date": f"2026-03-0{day}",
            },
        )

    listed = client.get(
        "/transactions",
        headers=headers,
        params={"account_id": checking, "order_by": "amount", "order_direction": "asc"},
    )
    assert [t["description"] for t in listed.json()] == ["Meal 1", "Meal 3"]

    bad_sort = client.get("/transactions", headers=headers, params={"order_by": "1; --"})
    assert bad_sort.status_code == 400

    searched = client.get("/transactions/search", headers=headers, params={"q": "cash"})
    assert [t["description"] for t in searched.json()] == ["Meal 2"]

    recent = client.get("/transactions/recent", headers=headers, params={"limit": 1})
    assert [t["description"] for t in recent.json()] == ["Meal 3"]

    stranger = _auth(client, "bo@example.com")
    assert client.get("/transactions", headers=stranger).json() == []
    theirs = client.get(f"/accounts/{checking}/transactions", headers=stranger)
    assert theirs.status_code == 404


def test_quick_entries_and_reports(client) -> None:
    headers = _auth(client)

    no_default = client.post(
        "/transactions/quick-expense",
        headers=headers,
        json={"amount": "5", "description": "Bus", "category_id": 1},
    )
    assert no_default.status_code == 404
    assert no_default.json()["detail"]["errors"] == [
        "No default account found. Please specify an account."
    ]

    accounts, categories = _seeded(client, headers)
    expense = client.post(
        "/transactions/quick-expense",
        headers=headers,
        json={
            "amount": "4.50",
            "description": "Bus fare",
            "category_id": categories["Transportation"]["id"],
        },
    )
    assert expense.status_code == 201
    assert expense.json()["account"]["name"] == "Primary Checking"

    income = client.post(
        "/transactions/quick-income",
        headers=headers,
        json={
            "amount": "100",
            "description": "Side gig",
            "category_id": categories["Freelance"]["id"],
            "account_id": accounts["Cash Wallet"]["id"],
        },
    )
    assert income.json()["account"]["name"] == "Cash Wallet"

    trends = client.get("/reports/trends", headers=headers).json()
    assert len(trends) == 6
    assert trends[-1]["transaction_count"] == 2
    assert trends[-1]["net_income"] == pytest.approx(95.5)

    current = trends[-1]
    summary = client.get(
        f"/reports/monthly/{current['year']}/{current['month']}", headers=headers
    ).json()
    assert summary["total_income"] == pytest.approx(100)
    assert summary["expenses_by_category"]["Transportation"]["count"] == 1

    bad_month = client.get("/reports/monthly/2026/13", headers=headers)
    assert bad_month.status_code == 400

    stats = client.get("/transactions/stats", headers=headers).json()
    assert {row["type"] for row in stats} == {"expense", "income"}


def test_account_routes(client) -> None:
    headers = _auth(client)
    accounts, _ = _seeded(client, headers)

    assert client.get("/accounts/default", headers=headers).json()["name"] == (
        "Primary Checking"
    )
    assert [a["name"] for a in client.get("/accounts/savings", headers=headers).json()] == [
        "Savings Account"
    ]

    duplicate = client.post(
        "/accounts", headers=headers, json={"name": "Cash Wallet", "account_type": "cash"}
    )
    assert duplicate.status_code == 409

    card = client.post(
        "/accounts",
        headers=headers,
        json={"name": "Visa", "account_type": "CREDIT_CARD", "initial_balance": "-120"},
    )
    assert card.status_code == 201
    card_id = card.json()["id"]
    assert [a["name"] for a in client.get("/accounts/credit-cards", headers=headers).json()] == [
        "Visa"
    ]

    balance = client.put(
        f"/accounts/{card_id}/balance", headers=headers, json={"balance": "-80.25"}
    )
    assert balance.json()["current_balance"] == "-80.25"

    promoted = client.post(f"/accounts/{card_id}/default", headers=headers)
    assert promoted.json()["is_default"] is True
    listed = client.get("/accounts", headers=headers).json()
    assert [a["name"] for a in listed if a["is_default"]] == ["Visa"]

    deactivated = client.post(f"/accounts/{card_id}/deactivate", headers=headers)
    assert deactivated.json()["is_default"] is False
    assert client.get("/accounts/default", headers=headers).status_code == 404

    summary = client.get("/accounts/summary", headers=headers).json()
    assert sum(row["account_count"] for row in summary) == 3

    bad_type = client.get("/accounts", headers=headers, params={"account_type": "yacht"})
    assert bad_type.status_code == 400

    deleted = client.delete(f"/accounts/{accounts['Cash Wallet']['id']}", headers=headers)
    assert deleted.status_code == 204


def test_category_routes(client) -> None:
    headers = _auth(client)
    accounts, categories = _seeded(client, headers)
    assert len(client.get("/categories/income", headers=headers).json()) == 5
    assert len(client.get("/categories/expense", headers=headers).json()) == 7

    created = client.post(
        "/categories", headers=headers, json={"name": "Pets", "type": "Expense"}
    )
    assert created.status_code == 201
    pets = created.json()["id"]

    client.post(
        "/transactions",
        headers=headers,
        json={
            "account_id": accounts["Primary Checking"]["id"],
            "category_id": pets,
            "type": "expense",
            "amount": "30",
            "description": "Dog food",
            "transaction_date": "2026-03-02",
        },
    )
    in_use = client.delete(f"/categories/{pets}", headers=headers)
    assert in_use.status_code == 409
    assert in_use.json()["detail"]["message"].startswith("Failed to delete category: ")

    listed = client.get(f"/categories/{pets}/transactions", headers=headers).json()
    assert [t["description"] for t in listed] == ["Dog food"]

    archived = client.post(f"/categories/{pets}/deactivate", headers=headers)
    assert archived.json()["active"] is False

    renamed = client.patch(
        f"/categories/{categories['Shopping']['id']}",
        headers=headers,
        json={"name": "Shopping & Gifts"},
    )
    assert renamed.json()["name"] == "Shopping & Gifts"

    unused = client.delete(f"/categories/{categories['Shopping']['id']}", headers=headers)
    assert unused.status_code == 204
