"""
Unit tests - HTTP surface: routing, tenant header, error mapping.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from stockledger.domain.entities import Product
from stockledger.infrastructure.database import get_unit_of_work
from stockledger.infrastructure.memory import InMemoryStore, InMemoryUnitOfWork
from stockledger.main import app

TENANT = {"X-Tenant-Id": "acme"}
WAREHOUSE = "00000000-0000-0000-0000-0000000000b2"


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def client(store):
    app.dependency_overrides[get_unit_of_work] = lambda: (lambda: InMemoryUnitOfWork(store))
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def seeded_client(client):
    response = client.post("/api/v1/tenants/seed", headers=TENANT)
    assert response.status_code == 201
    return client


@pytest.fixture
def product_id(store) -> str:
    product = Product(tenant_id="acme", name="Widget", cost=Decimal("30"), price=Decimal("50"))
    with InMemoryUnitOfWork(store) as uow:
        uow.products.add(product)
        uow.commit()
    return str(product.id)


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAccountsApi:

    def test_seed_and_list(self, seeded_client):
        response = seeded_client.get("/api/v1/accounts", headers=TENANT)
        assert response.status_code == 200
        codes = [a["code"] for a in response.json()]
        assert codes[:4] == ["1001", "1002", "1200", "1300"]

    def test_seed_is_idempotent(self, seeded_client):
        seeded_client.post("/api/v1/tenants/seed", headers=TENANT)
        codes = [a["code"] for a in seeded_client.get("/api/v1/accounts", headers=TENANT).json()]
        assert len(codes) == len(set(codes)) == 13

    def test_tenant_header_required(self, client):
        response = client.get("/api/v1/accounts")
        assert response.status_code == 422

    def test_ledger_of_unknown_account(self, seeded_client):
        response = seeded_client.get(f"/api/v1/accounts/{uuid4()}/ledger", headers=TENANT)
        assert response.status_code == 404


class TestJournalEntriesApi:

    def test_post_and_list(self, seeded_client):
        response = seeded_client.post("/api/v1/journal-entries", headers=TENANT, json={
            "description": "Owner capital injection",
            "lines": [
                {"account_code": "1001", "type": "DEBIT", "amount": "1000"},
                {"account_code": "3001", "type": "CREDIT", "amount": "1000"},
            ],
        })
        assert response.status_code == 201
        body = response.json()
        assert Decimal(body["total_debit"]) == Decimal(body["total_credit"]) == Decimal("1000")

        listed = seeded_client.get("/api/v1/journal-entries", headers=TENANT).json()
        assert [e["id"] for e in listed] == [body["id"]]

    def test_imbalanced_entry_is_bad_request(self, seeded_client):
        response = seeded_client.post("/api/v1/journal-entries", headers=TENANT, json={
            "description": "Broken",
            "lines": [
                {"account_code": "1001", "type": "DEBIT", "amount": "100"},
                {"account_code": "4001", "type": "CREDIT", "amount": "90"},
            ],
        })
        assert response.status_code == 400
        assert "imbalanced" in response.json()["detail"]
        assert seeded_client.get("/api/v1/journal-entries", headers=TENANT).json() == []

    def test_unknown_account_is_bad_request(self, seeded_client):
        response = seeded_client.post("/api/v1/journal-entries", headers=TENANT, json={
            "description": "Unknown",
            "lines": [
                {"account_code": "1001", "type": "DEBIT", "amount": "10"},
                {"account_code": "9999", "type": "CREDIT", "amount": "10"},
            ],
        })
        assert response.status_code == 400

    def test_non_positive_amount_is_unprocessable(self, seeded_client):
        response = seeded_client.post("/api/v1/journal-entries", headers=TENANT, json={
            "description": "Zero",
            "lines": [{"account_code": "1001", "type": "DEBIT", "amount": "0"}],
        })
        assert response.status_code == 422


class TestEventsApi:

    def test_purchase_then_sale(self, seeded_client, product_id):
        purchase = seeded_client.post("/api/v1/purchases", headers=TENANT, json={
            "warehouse_id": WAREHOUSE,
            "items": [{"product_id": product_id, "quantity": 10, "cost": "5"}],
        })
        assert purchase.status_code == 201
        assert purchase.json()["supplier"] == "Unknown"

        sale = seeded_client.post("/api/v1/sales", headers=TENANT, json={
            "warehouse_id": WAREHOUSE,
            "items": [{"product_id": product_id, "quantity": 2, "price": "50"}],
            "payment_type": "CASH",
        })
        assert sale.status_code == 201
        body = sale.json()
        assert body["number"] == 1
        assert Decimal(body["total"]) == Decimal("100")
        assert body["invoice_token"].endswith("-0001")

        valuation = seeded_client.get("/api/v1/reports/inventory-valuation", headers=TENANT).json()
        assert valuation["total_items"] == 8
        assert Decimal(valuation["total_value"]) == Decimal("40")

    def test_unknown_product_in_sale_is_not_found(self, seeded_client):
        response = seeded_client.post("/api/v1/sales", headers=TENANT, json={
            "warehouse_id": WAREHOUSE,
            "items": [{"product_id": str(uuid4()), "quantity": 1, "price": "10"}],
        })
        assert response.status_code == 404
        assert "Product" in response.json()["detail"]

    def test_failed_sale_is_opaque_server_error(self, client, product_id):
        """Unseeded tenant: posting fails inside the sale."""
        response = client.post("/api/v1/sales", headers=TENANT, json={
            "warehouse_id": WAREHOUSE,
            "items": [{"product_id": product_id, "quantity": 1, "price": "10"}],
        })
        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to process sale"

    def test_sale_then_return(self, seeded_client, product_id):
        sale = seeded_client.post("/api/v1/sales", headers=TENANT, json={
            "warehouse_id": WAREHOUSE,
            "items": [{"product_id": product_id, "quantity": 2, "price": "50"}],
        }).json()
        assert sale["status"] == "COMPLETED"

        response = seeded_client.post("/api/v1/returns", headers=TENANT, json={
            "sale_id": sale["id"],
            "items": [{"product_id": product_id, "quantity": 1}],
            "reason": "Damaged",
        })
        assert response.status_code == 201
        body = response.json()
        assert body["return_type"] == "PARTIAL"
        assert Decimal(body["refund_amount"]) == Decimal("50")
        assert body["token"].endswith("-0001")

        too_many = seeded_client.post("/api/v1/returns", headers=TENANT, json={
            "sale_id": sale["id"],
            "items": [{"product_id": product_id, "quantity": 5}],
            "reason": "Damaged",
        })
        assert too_many.status_code == 400

    def test_return_of_unknown_sale(self, seeded_client, product_id):
        response = seeded_client.post("/api/v1/returns", headers=TENANT, json={
            "sale_id": str(uuid4()),
            "items": [{"product_id": product_id, "quantity": 1}],
            "reason": "Damaged",
        })
        assert response.status_code == 404

    def test_entry_dates_with_offsets(self, seeded_client):
        lines = [
            {"account_code": "1001", "type": "DEBIT", "amount": "10"},
            {"account_code": "3001", "type": "CREDIT", "amount": "10"},
        ]
        dated = seeded_client.post("/api/v1/journal-entries", headers=TENANT, json={
            "description": "Dated", "date": "2025-01-01T09:00:00+07:00", "lines": lines,
        })
        undated = seeded_client.post("/api/v1/journal-entries", headers=TENANT, json={
            "description": "Undated", "lines": lines,
        })
        assert dated.status_code == undated.status_code == 201

        listed = seeded_client.get("/api/v1/journal-entries", headers=TENANT)
        assert listed.status_code == 200
        assert [e["description"] for e in listed.json()] == ["Undated", "Dated"]
    def test_expense_and_treasury(self, seeded_client):
        expense = seeded_client.post("/api/v1/expenses", headers=TENANT, json={
            "description": "Office rent", "amount": "200", "category": "Rent",
        })
        assert expense.status_code == 201

        deposit = seeded_client.post("/api/v1/treasury", headers=TENANT, json={"type": "DEPOSIT", "amount": "500"})
        assert deposit.status_code == 201
        codes = sorted(l["account_code"] for l in deposit.json()["lines"])
        assert codes == ["1101", "3101"]

    def test_inventory_count_workflow(self, seeded_client, store, product_id):
        seeded_client.post("/api/v1/purchases", headers=TENANT, json={
            "warehouse_id": WAREHOUSE,
            "items": [{"product_id": product_id, "quantity": 50, "cost": "5"}],
        })

        count = seeded_client.post(
            "/api/v1/inventory-counts", headers=TENANT, json={"warehouse_id": WAREHOUSE}
        ).json()
        assert count["status"] == "DRAFT"
        line_id = count["lines"][0]["id"]

        line = seeded_client.patch(
            f"/api/v1/inventory-counts/lines/{line_id}", headers=TENANT, json={"counted_qty": 45}
        )
        assert line.json()["difference"] == -5

        finalized = seeded_client.post(f"/api/v1/inventory-counts/{count['id']}/finalize", headers=TENANT)
        assert finalized.status_code == 200
        assert finalized.json()["status"] == "COMPLETED"

        again = seeded_client.post(f"/api/v1/inventory-counts/{count['id']}/finalize", headers=TENANT)
        assert again.status_code == 409

        missing = seeded_client.post(f"/api/v1/inventory-counts/{uuid4()}/finalize", headers=TENANT)
        assert missing.status_code == 404


class TestReportsApi:

    def test_reports_after_expense(self, seeded_client):
        seeded_client.post("/api/v1/expenses", headers=TENANT, json={
            "description": "Power bill", "amount": "75.25", "category": "Utilities",
        })

        trial = seeded_client.get("/api/v1/reports/trial-balance", headers=TENANT).json()
        assert trial["is_balanced"] is True
        assert Decimal(trial["total_debit"]) == Decimal("75.25")

        pnl = seeded_client.get("/api/v1/reports/profit-and-loss", headers=TENANT).json()
        assert Decimal(pnl["net_income"]) == Decimal("-75.25")

        sheet = seeded_client.get("/api/v1/reports/balance-sheet", headers=TENANT).json()
        assert sheet["is_balanced"] is True
