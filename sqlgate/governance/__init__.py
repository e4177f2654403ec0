"""Permission engine for the SQL gateway.

Provides the checks applied before any SQL reaches the database:
- Glob allow-list matching for table and database names
- Statement-type classification with multi-statement and read-only gates
- Heuristic table reference extraction from raw query text
"""
