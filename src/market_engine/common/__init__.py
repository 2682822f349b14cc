"""Common utilities shared across market_engine modules."""

from .config import Config

__all__ = ["Config"]
