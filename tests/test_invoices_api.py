from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.main import app
from backend.app.models.invoice_item import InvoiceItem


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def register_and_login(client: TestClient, email: str, password: str = "secret") -> dict:
    client.post("/auth/register", json={"email": email, "password": password})
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def create_client(client: TestClient, headers: dict) -> int:
    resp = client.post("/clients/", json={"name": "Globex", "email": "billing@globex.com"}, headers=headers)
    assert resp.status_code == 201
    return resp.json()["id"]


def create_invoice(client: TestClient, headers: dict, client_id: int, **overrides) -> dict:
    payload = {
        "client_id": client_id,
        "issue_date": "2024-01-01",
        "due_date": "2024-01-31",
        "items": [
            {"description": "Design", "quantity": "2", "unit_price": "125.00"},
            {"description": "Hosting", "quantity": "1", "unit_price": "19.99"},
        ],
    }
    payload.update(overrides)
    resp = client.post("/invoices/", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_create_invoice_computes_amounts_server_side():
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)

    data = create_invoice(client, headers, client_id)

    assert data["status"] == "draft"
    assert data["invoice_number"].startswith("INV-20240101-")
    assert Decimal(data["total_amount"]) == Decimal("269.99")
    assert [Decimal(item["amount"]) for item in data["items"]] == [Decimal("250.00"), Decimal("19.99")]


def test_invalid_items_are_rejected():
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)
    for bad_item in (
        {"description": "Zero", "quantity": "0", "unit_price": "10"},
        {"description": "Negative", "quantity": "1", "unit_price": "-10"},
        {"quantity": "1", "unit_price": "10"},
    ):
        resp = client.post(
            "/invoices/",
            json={"client_id": client_id, "issue_date": "2024-01-01", "due_date": "2024-01-31", "items": [bad_item]},
            headers=headers,
        )
        assert resp.status_code == 422


def test_invoice_for_other_owners_client_is_not_found():
    client = TestClient(app)
    alice = register_and_login(client, "alice@example.com")
    bob = register_and_login(client, "bob@example.com")
    alice_client = create_client(client, alice)

    resp = client.post(
        "/invoices/",
        json={"client_id": alice_client, "issue_date": "2024-01-01", "due_date": "2024-01-31"},
        headers=bob,
    )

    assert resp.status_code == 404
    assert resp.json()["detail"] == "Client not found"


def test_duplicate_invoice_number_rejected():
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)
    create_invoice(client, headers, client_id, invoice_number="2024-001")

    resp = client.post(
        "/invoices/",
        json={"client_id": client_id, "invoice_number": "2024-001", "issue_date": "2024-01-01", "due_date": "2024-01-31"},
        headers=headers,
    )

    assert resp.status_code == 400


def test_list_invoices_filters_and_sorts():
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)
    first = create_invoice(client, headers, client_id, due_date="2024-03-01")
    second = create_invoice(client, headers, client_id, due_date="2024-02-01")
    client.patch(f"/invoices/{second['id']}/status", json={"status": "sent"}, headers=headers)

    by_due = client.get("/invoices/", params={"sort_by": "due_date", "sort_order": "asc"}, headers=headers).json()
    assert [row["id"] for row in by_due] == [second["id"], first["id"]]

    sent_only = client.get("/invoices/", params={"status": "sent"}, headers=headers).json()
    assert [row["id"] for row in sent_only] == [second["id"]]

    assert client.get("/invoices/", params={"sort_by": "bogus"}, headers=headers).status_code == 400
    assert client.get("/invoices/", params={"sort_order": "sideways"}, headers=headers).status_code == 400


def test_update_invoice_fields():
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)
    invoice = create_invoice(client, headers, client_id)

    resp = client.patch(f"/invoices/{invoice['id']}", json={"notes": "Net 30", "due_date": "2024-02-15"}, headers=headers)

    assert resp.status_code == 200
    assert resp.json()["notes"] == "Net 30"
    assert resp.json()["due_date"] == "2024-02-15"
    assert resp.json()["status"] == "draft"


def test_status_transitions_follow_state_machine():
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)
    invoice = create_invoice(client, headers, client_id)
    url = f"/invoices/{invoice['id']}/status"

    assert client.patch(url, json={"status": "overdue"}, headers=headers).status_code == 409
    sent = client.patch(url, json={"status": "sent"}, headers=headers)
    assert sent.status_code == 200
    assert sent.json()["last_sent_date"] is not None
    assert client.patch(url, json={"status": "paid"}, headers=headers).json()["status"] == "paid"
    back = client.patch(url, json={"status": "sent"}, headers=headers)
    assert back.status_code == 409
    assert "paid" in back.json()["detail"]
    assert client.patch(url, json={"status": "void"}, headers=headers).status_code == 422


def test_manual_overdue_requires_past_due_date():
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)
    not_due = create_invoice(client, headers, client_id, due_date="2099-01-01")
    past_due = create_invoice(client, headers, client_id, due_date="2024-01-31")

    for invoice in (not_due, past_due):
        client.patch(f"/invoices/{invoice['id']}/status", json={"status": "sent"}, headers=headers)

    early = client.patch(f"/invoices/{not_due['id']}/status", json={"status": "overdue"}, headers=headers)
    assert early.status_code == 409
    assert client.get(f"/invoices/{not_due['id']}", headers=headers).json()["status"] == "sent"

    late = client.patch(f"/invoices/{past_due['id']}/status", json={"status": "overdue"}, headers=headers)
    assert late.status_code == 200
    assert late.json()["status"] == "overdue"
    again = client.patch(f"/invoices/{past_due['id']}/status", json={"status": "overdue"}, headers=headers)
    assert again.status_code == 200


def test_item_changes_recompute_total():
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)
    invoice = create_invoice(client, headers, client_id, items=[])
    base = f"/invoices/{invoice['id']}"

    added = client.post(f"{base}/items", json={"description": "Consulting", "quantity": "3", "unit_price": "100"}, headers=headers)
    assert added.status_code == 201
    item_id = added.json()["id"]
    assert Decimal(client.get(base, headers=headers).json()["total_amount"]) == Decimal("300.00")

    updated = client.put(f"{base}/items/{item_id}", json={"quantity": "1.5"}, headers=headers)
    assert Decimal(updated.json()["amount"]) == Decimal("150.00")
    assert Decimal(client.get(base, headers=headers).json()["total_amount"]) == Decimal("150.00")

    assert client.delete(f"{base}/items/{item_id}", headers=headers).status_code == 204
    assert Decimal(client.get(base, headers=headers).json()["total_amount"]) == Decimal("0.00")
    assert client.get(f"{base}/items", headers=headers).json() == []


def test_items_of_other_owners_invoice_are_not_found():
    client = TestClient(app)
    alice = register_and_login(client, "alice@example.com")
    bob = register_and_login(client, "bob@example.com")
    invoice = create_invoice(client, alice, create_client(client, alice))
    item_id = invoice["items"][0]["id"]

    assert client.get(f"/invoices/{invoice['id']}/items", headers=bob).status_code == 404
    assert client.put(f"/invoices/{invoice['id']}/items/{item_id}", json={"quantity": "9"}, headers=bob).status_code == 404
    assert client.delete(f"/invoices/{invoice['id']}/items/{item_id}", headers=bob).status_code == 404


def test_delete_invoice_removes_items():
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    invoice = create_invoice(client, headers, create_client(client, headers))

    assert client.delete(f"/invoices/{invoice['id']}", headers=headers).status_code == 204
    assert client.get(f"/invoices/{invoice['id']}", headers=headers).status_code == 404
    with SessionLocal() as db:
        assert db.query(InvoiceItem).filter(InvoiceItem.invoice_id == invoice["id"]).count() == 0


def test_overdue_sweep_endpoint_marks_own_invoices():
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    invoice = create_invoice(client, headers, create_client(client, headers))
    client.patch(f"/invoices/{invoice['id']}/status", json={"status": "sent"}, headers=headers)

    resp = client.post("/invoices/overdue-sweep", params={"today": "2024-02-15"}, headers=headers)

    assert resp.status_code == 200
    assert [row["id"] for row in resp.json()] == [invoice["id"]]
    assert client.get(f"/invoices/{invoice['id']}", headers=headers).json()["status"] == "overdue"
