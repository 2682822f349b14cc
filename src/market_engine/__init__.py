"""
Market Selection Engine

Modules:
- selection_store: Working selections, versioned snapshots, visibility
- market_cycle: Current trade-market cycle and bulk per-cycle operations
- archival: Cycle-staleness detection and archival of working selections
- promotion_calc: Volume-tier promotion calculator, store and status
- catalog: Catalog lookup collaborator and line pricing
- database: SQLite storage layer
- common: Shared utilities
"""

__version__ = "0.1.0"
