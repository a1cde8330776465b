"""
SQL unit of work - one session, one transaction per business event.
"""

import logging
from collections.abc import Callable

from sqlalchemy.orm import Session

from stockledger.domain.services import IUnitOfWork
from stockledger.infrastructure.database.repositories import (
    SqlAccountRepository,
    SqlDocumentRepository,
    SqlInventoryCountRepository,
    SqlJournalEntryRepository,
    SqlProductRepository,
    SqlSequenceRepository,
    SqlStockRepository,
)

logger = logging.getLogger(__name__)


class SqlUnitOfWork(IUnitOfWork):

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory
        self.session: Session | None = None

    def __enter__(self) -> "SqlUnitOfWork":
        self.session = self.session_factory()
        self.accounts = SqlAccountRepository(self.session)
        self.journal = SqlJournalEntryRepository(self.session)
        self.stock = SqlStockRepository(self.session)
        self.products = SqlProductRepository(self.session)
        self.sequences = SqlSequenceRepository(self.session)
        self.documents = SqlDocumentRepository(self.session)
        self.counts = SqlInventoryCountRepository(self.session)
        return super().__enter__()

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            super().__exit__(exc_type, exc, tb)
        finally:
            self.session.close()
            self.session = None

    def _commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
