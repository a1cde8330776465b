"""Application layer - Use cases and DTOs."""

from stockledger.application.chart_of_accounts import ChartOfAccounts
from stockledger.application.event_poster import EventPoster
from stockledger.application.journal_engine import JournalEngine
from stockledger.application.reports import FinancialReports
