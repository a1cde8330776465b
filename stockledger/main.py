"""
Main FastAPI application - multi-tenant stock ledger.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stockledger.api.routers import accounting, events, reports
from stockledger.core.config import configure_logging
from stockledger.domain.exceptions import EntityNotFound, InvalidState, TransactionFailure
from stockledger.infrastructure.database import init_db

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan - startup and shutdown events."""
    init_db()
    yield


app = FastAPI(
    title="Stock Ledger API",
    description="""
## Double-entry bookkeeping for inventory businesses

### Features:
- **Chart of accounts**: default catalog per tenant, accounts created on first use
- **Journal entries**: balanced (Σ Debit = Σ Credit), append-only
- **Business events**: sales, purchases, expenses, treasury movements, stock counts
- **Reports**: Trial Balance, Balance Sheet, Profit & Loss, Inventory Valuation

### Rules:
- Every event moves stock and posts to the ledger as one unit, or not at all
- Every request is scoped to the tenant in the `X-Tenant-Id` header
    """,
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(accounting.router)
app.include_router(events.router)
app.include_router(reports.router)


@app.get("/")
def root():
    return {
        "name": "Stock Ledger API",
        "version": "0.1.0",
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.exception_handler(EntityNotFound)
async def not_found_handler(request: Request, exc: EntityNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidState)
async def invalid_state_handler(request: Request, exc: InvalidState):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(TransactionFailure)
async def transaction_failure_handler(request: Request, exc: TransactionFailure):
    """Storage failures are logged where they happen; the client gets the bare message."""
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle validation errors."""
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc)}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
