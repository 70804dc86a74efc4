"""
Core infrastructure for the ReelStream backend.

- auth: Bearer token dependencies and Redis-backed sessions
- database: Cached MongoDB connection with the Motor driver
- redis_client: Redis async client for caching and session management
"""
