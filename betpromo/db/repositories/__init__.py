"""
Per-domain repository modules for database access.

`betpromo.db.crud` is the thin facade that the services and API import.
"""
