"""Quote persistence and the quote entity service."""

from quote_engine.quotes.schema import init_quotes_db, init_quotes_table
from quote_engine.quotes.service import QuoteService
from quote_engine.quotes.store import QuoteStore

__all__ = [
    "QuoteService",
    "QuoteStore",
    "init_quotes_db",
    "init_quotes_table",
]
