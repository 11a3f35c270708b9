"""
db/ - Database Layer
====================
PostgreSQL connection pooling, column type coercion and schema introspection.
This layer is the lowest in the architecture; it depends only on config,
errors and the logger.
"""
