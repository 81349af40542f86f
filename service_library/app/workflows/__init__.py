"""
Workflows for Library Service.

Each workflow coordinates the PostgreSQL store and the Redis cache for one
aggregate and reports outcomes as Ok/Err results.
"""
