from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.main import app
from backend.app.models.client import Client
from backend.app.models.invoice import Invoice
from backend.app.models.user import User
from backend.app.services.dashboard_service import get_dashboard_metrics


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def _seed_owner(db, email="owner@example.com"):
    user = User(email=email, hashed_password="x")
    db.add(user)
    db.commit()
    client = Client(owner_id=user.id, name="Globex", email="billing@globex.com")
    db.add(client)
    db.commit()
    return user, client


def _invoice(db, user, client, number, status, total, issue, due):
    invoice = Invoice(
        owner_id=user.id,
        client_id=client.id,
        invoice_number=number,
        status=status,
        total_amount=Decimal(total),
        issue_date=issue,
        due_date=due,
    )
    db.add(invoice)
    db.commit()
    return invoice


def test_sent_invoice_past_due_counts_as_overdue():
    with SessionLocal() as db:
        user, client = _seed_owner(db)
        _invoice(db, user, client, "INV-1", "sent", "250.00", date(2023, 12, 1), date(2024, 1, 1))

        metrics = get_dashboard_metrics(db, owner_id=user.id, today=date(2024, 1, 10))

        assert metrics["overdue_amount"] == Decimal("250.00")
        assert metrics["pending_amount"] == Decimal("0.00")
        assert metrics["recent_invoices"][0]["status"] == "overdue"


def test_amounts_grouped_by_status():
    with SessionLocal() as db:
        user, client = _seed_owner(db)
        today = date(2024, 1, 10)
        _invoice(db, user, client, "INV-1", "sent", "100.00", date(2024, 1, 1), date(2024, 1, 31))
        _invoice(db, user, client, "INV-2", "viewed", "50.50", date(2024, 1, 2), date(2024, 1, 20))
        _invoice(db, user, client, "INV-3", "paid", "300.00", date(2024, 1, 3), date(2024, 1, 5))
        _invoice(db, user, client, "INV-4", "overdue", "75.25", date(2023, 11, 1), date(2023, 12, 1))
        _invoice(db, user, client, "INV-5", "draft", "999.00", date(2024, 1, 4), date(2024, 1, 1))

        metrics = get_dashboard_metrics(db, owner_id=user.id, today=today)

        assert metrics["pending_amount"] == Decimal("150.50")
        assert metrics["paid_amount"] == Decimal("300.00")
        assert metrics["overdue_amount"] == Decimal("75.25")
        assert metrics["total_clients"] == 1


def test_recent_invoices_limited_to_five_newest():
    with SessionLocal() as db:
        user, client = _seed_owner(db)
        for day in range(1, 8):
            _invoice(db, user, client, f"INV-{day}", "draft", "10.00", date(2024, 1, day), date(2024, 2, day))

        metrics = get_dashboard_metrics(db, owner_id=user.id, today=date(2024, 1, 10))

        numbers = [row["invoice_number"] for row in metrics["recent_invoices"]]
        assert numbers == ["INV-7", "INV-6", "INV-5", "INV-4", "INV-3"]
        assert metrics["recent_invoices"][0]["client_name"] == "Globex"


def test_upcoming_payments_window_and_order():
    with SessionLocal() as db:
        user, client = _seed_owner(db)
        today = date(2024, 1, 10)
        _invoice(db, user, client, "LATE", "sent", "10.00", date(2024, 1, 1), date(2024, 1, 9))
        _invoice(db, user, client, "TODAY", "sent", "10.00", date(2024, 1, 1), date(2024, 1, 10))
        _invoice(db, user, client, "EDGE", "draft", "10.00", date(2024, 1, 1), date(2024, 2, 9))
        _invoice(db, user, client, "FAR", "sent", "10.00", date(2024, 1, 1), date(2024, 2, 10))
        _invoice(db, user, client, "PAID", "paid", "10.00", date(2024, 1, 1), date(2024, 1, 12))
        _invoice(db, user, client, "SOON", "viewed", "10.00", date(2024, 1, 1), date(2024, 1, 15))
        _invoice(db, user, client, "LATER", "sent", "10.00", date(2024, 1, 1), date(2024, 1, 25))

        metrics = get_dashboard_metrics(db, owner_id=user.id, today=today)

        upcoming = metrics["upcoming_payments"]
        assert [row["invoice_number"] for row in upcoming] == ["TODAY", "SOON", "LATER"]
        assert [row["days_until_due"] for row in upcoming] == [0, 5, 15]


def test_metrics_are_owner_scoped():
    with SessionLocal() as db:
        alice, alice_client = _seed_owner(db, "alice@example.com")
        bob, bob_client = _seed_owner(db, "bob@example.com")
        _invoice(db, alice, alice_client, "A-1", "paid", "10.00", date(2024, 1, 1), date(2024, 1, 2))
        _invoice(db, bob, bob_client, "B-1", "paid", "99.00", date(2024, 1, 1), date(2024, 1, 2))

        metrics = get_dashboard_metrics(db, owner_id=alice.id, today=date(2024, 1, 10))

        assert metrics["paid_amount"] == Decimal("10.00")
        assert [row["invoice_number"] for row in metrics["recent_invoices"]] == ["A-1"]


def test_dashboard_metrics_endpoint():
    client = TestClient(app)
    client.post("/auth/register", json={"email": "dash@example.com", "password": "secret"})
    token = client.post("/auth/login", json={"email": "dash@example.com", "password": "secret"}).json()[
        "access_token"
    ]
    headers = {"Authorization": f"Bearer {token}"}
    client_id = client.post(
        "/clients/", json={"name": "Globex", "email": "billing@globex.com"}, headers=headers
    ).json()["id"]
    invoice = client.post(
        "/invoices/",
        json={
            "client_id": client_id,
            "issue_date": "2023-12-01",
            "due_date": "2024-01-01",
            "items": [{"description": "Design", "quantity": "2", "unit_price": "125.00"}],
        },
        headers=headers,
    ).json()
    client.patch(f"/invoices/{invoice['id']}/status", json={"status": "sent"}, headers=headers)

    response = client.get("/dashboard/metrics", params={"today": "2024-01-10"}, headers=headers)

    assert response.status_code == 200
    data = response.json()
    assert data["as_of"] == "2024-01-10"
    assert Decimal(data["overdue_amount"]) == Decimal("250.00")
    assert Decimal(data["pending_amount"]) == Decimal("0")
    assert data["total_clients"] == 1
    assert data["recent_invoices"][0]["client_name"] == "Globex"
