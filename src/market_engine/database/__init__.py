"""Database layer for market_engine storage."""

from .connection import get_connection, init_db, transaction
from .models import row_to_promotion, row_to_selection

__all__ = [
    "get_connection",
    "init_db",
    "transaction",
    "row_to_promotion",
    "row_to_selection",
]
