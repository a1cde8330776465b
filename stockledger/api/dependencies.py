"""
API dependencies - tenant scoping and service wiring.
"""

from collections.abc import Callable

from fastapi import Depends, Header

from stockledger.application.chart_of_accounts import ChartOfAccounts
from stockledger.application.event_poster import EventPoster
from stockledger.application.journal_engine import JournalEngine
from stockledger.application.reports import FinancialReports
from stockledger.core.config import Settings, load_settings
from stockledger.domain.services import IUnitOfWork
from stockledger.infrastructure.database import get_unit_of_work


def get_tenant_id(x_tenant_id: str = Header(..., alias="X-Tenant-Id", min_length=1)) -> str:
    """Every request is scoped to the tenant named in the X-Tenant-Id header."""
    return x_tenant_id


def get_settings() -> Settings:
    return load_settings()


def get_chart() -> ChartOfAccounts:
    return ChartOfAccounts()


def get_journal_engine(chart: ChartOfAccounts = Depends(get_chart)) -> JournalEngine:
    return JournalEngine(chart)


def get_event_poster(
    uow_factory: Callable[[], IUnitOfWork] = Depends(get_unit_of_work),
    settings: Settings = Depends(get_settings),
    chart: ChartOfAccounts = Depends(get_chart),
    engine: JournalEngine = Depends(get_journal_engine)
) -> EventPoster:
    return EventPoster(uow_factory, chart=chart, engine=engine, settings=settings)


def get_reports(uow_factory: Callable[[], IUnitOfWork] = Depends(get_unit_of_work)) -> FinancialReports:
    return FinancialReports(uow_factory)
