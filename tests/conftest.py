"""
Pytest configuration and fixtures.

Storage-backed fixtures run every test twice: against the in-memory store
and against an in-memory SQLite database through the SQL repositories.
"""

from decimal import Decimal
from uuid import UUID

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from stockledger.application import ChartOfAccounts, EventPoster, FinancialReports, JournalEngine
from stockledger.domain.entities import Product
from stockledger.infrastructure.database import build_engine, init_db
from stockledger.infrastructure.database.unit_of_work import SqlUnitOfWork
from stockledger.infrastructure.memory import InMemoryStore, InMemoryUnitOfWork


@pytest.fixture(params=["memory", "sqlite"])
def uow_factory(request):
    if request.param == "memory":
        store = InMemoryStore()
        yield lambda: InMemoryUnitOfWork(store)
        return

    engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield lambda: SqlUnitOfWork(session_factory)
    engine.dispose()


@pytest.fixture
def tenant_id() -> str:
    return "tenant-a"


@pytest.fixture
def other_tenant_id() -> str:
    return "tenant-b"


@pytest.fixture
def warehouse_id() -> UUID:
    return UUID("00000000-0000-0000-0000-0000000000a1")


@pytest.fixture
def chart() -> ChartOfAccounts:
    return ChartOfAccounts()


@pytest.fixture
def engine(chart) -> JournalEngine:
    return JournalEngine(chart)


@pytest.fixture
def seeded(uow_factory, chart, tenant_id):
    """Tenant with the default chart of accounts."""
    with uow_factory() as uow:
        chart.seed(uow, tenant_id)
        uow.commit()
    return tenant_id


@pytest.fixture
def add_product(uow_factory, tenant_id):
    def _add(name: str = "Widget", cost: str = "30", price: str = "50", tenant: str | None = None) -> Product:
        product = Product(
            tenant_id=tenant or tenant_id,
            name=name,
            cost=Decimal(cost),
            price=Decimal(price),
        )
        with uow_factory() as uow:
            uow.products.add(product)
            uow.commit()
        return product
    return _add


@pytest.fixture
def product(add_product) -> Product:
    return add_product()


@pytest.fixture
def set_stock(uow_factory, tenant_id, warehouse_id):
    def _set(product_id: UUID, quantity: int) -> None:
        with uow_factory() as uow:
            uow.stock.set_quantity(tenant_id, warehouse_id, product_id, quantity)
            uow.commit()
    return _set


@pytest.fixture
def stock_of(uow_factory, tenant_id, warehouse_id):
    def _get(product_id: UUID) -> int | None:
        with uow_factory() as uow:
            return uow.stock.get_quantity(tenant_id, warehouse_id, product_id)
    return _get


@pytest.fixture
def entries_for(uow_factory, tenant_id):
    """Journal entries of the tenant carrying a reference."""
    def _find(reference) -> list:
        with uow_factory() as uow:
            return uow.journal.find_by_reference(tenant_id, str(reference))
    return _find


@pytest.fixture
def poster(uow_factory, chart, engine) -> EventPoster:
    return EventPoster(uow_factory, chart=chart, engine=engine)


@pytest.fixture
def reports(uow_factory) -> FinancialReports:
    return FinancialReports(uow_factory)

