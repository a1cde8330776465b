#!/usr/bin/env python3
"""
Database Seeding Script - demo tenant for the stock ledger.
Seeds the default chart of accounts, demo products and opening stock.
"""

import csv
import os
import uuid
from decimal import Decimal
from pathlib import Path

DEMO_TENANT = os.getenv("SEED_TENANT_ID", "demo")
DEMO_WAREHOUSE = uuid.UUID("00000000-0000-0000-0000-000000000001")


def read_csv(filepath: str) -> list[dict]:
    """Read a CSV file into a list of rows."""
    if not os.path.exists(filepath):
        return []
    with open(filepath, "r", encoding="utf-8") as f:
        return list(csv.DictReader(f))


def main():
    """Main function."""
    print("=" * 60)
    print(f"Database Seeding - tenant '{DEMO_TENANT}'")
    print("=" * 60)

    from stockledger.application import ChartOfAccounts, EventPoster
    from stockledger.core.config import configure_logging
    from stockledger.domain import Product, PurchaseItemInput
    from stockledger.infrastructure.database import SessionLocal, init_db
    from stockledger.infrastructure.database.unit_of_work import SqlUnitOfWork

    configure_logging()
    init_db()

    def uow_factory():
        return SqlUnitOfWork(SessionLocal)

    with uow_factory() as uow:
        accounts = ChartOfAccounts().seed(uow, DEMO_TENANT)
        uow.commit()
    print(f"✓ Seeded {len(accounts)} accounts")

    products_file = Path(__file__).parent / "seed_data" / "products.csv"
    rows = read_csv(str(products_file))
    print(f"\n📦 Seeding {len(rows)} products...")

    opening = []
    with uow_factory() as uow:
        for row in rows:
            product = Product(
                id=uuid.uuid5(uuid.NAMESPACE_URL, f"stockledger:{DEMO_TENANT}:{row['sku']}"),
                tenant_id=DEMO_TENANT,
                name=row["name"],
                sku=row["sku"],
                price=Decimal(row["price"]),
            )
            if uow.products.get_many(DEMO_TENANT, [product.id]):
                continue
            uow.products.add(product)
            opening.append(PurchaseItemInput(product.id, int(row["quantity"]), Decimal(row["cost"])))
        uow.commit()

    if opening:
        order = EventPoster(uow_factory).record_purchase(
            DEMO_TENANT, DEMO_WAREHOUSE, opening, supplier="Opening stock"
        )
        print(f"✓ Received opening stock: purchase order #{order.number}, total {order.total}")
    else:
        print("✓ Products already exist, opening stock skipped")

    print("\n" + "=" * 60)
    print(f"Warehouse id: {DEMO_WAREHOUSE}")
    print("=" * 60)


if __name__ == "__main__":
    main()
