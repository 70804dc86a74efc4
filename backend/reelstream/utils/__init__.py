"""
Utilities Package for the ReelStream backend.

logger:
    Structured logging setup (JSON or text) with Uvicorn integration.

security:
    Bcrypt password hashing and HS256 access tokens.

validators:
    Registration form rules and password strength scoring.
"""
