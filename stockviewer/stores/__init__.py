"""Data stores for persistence and caching.

Stores handle:
- SQLite / PostgreSQL: the authoritative catalog behind StockProvider
- Redis: non-authoritative catalog mirror used for seeding

No parsing or change-detection rules in stores - those belong in services.
"""
