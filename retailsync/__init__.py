"""RetailSync: offline-first sync engine for a retail sales-management API."""

__version__ = "0.1.0"
