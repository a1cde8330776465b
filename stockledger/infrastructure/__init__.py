"""Infrastructure layer."""

from stockledger.infrastructure.database import SessionLocal, get_unit_of_work, init_db
from stockledger.infrastructure.database.unit_of_work import SqlUnitOfWork
from stockledger.infrastructure.memory import InMemoryStore, InMemoryUnitOfWork
