"""Storage adapters."""

from rxreminders.adapters.storage.duckdb_store import DuckDBReminderStore

__all__ = ["DuckDBReminderStore"]
