"""
ReelStream Backend Application Package

This package contains the ReelStream FastAPI application for short-video
publishing. The platform provides:

- Account registration and credential sign-in
- A process-wide cached MongoDB connection
- Signed direct-upload parameters for the ImageKit media CDN
- A video catalogue recording uploaded media

Package Structure:
- api/: REST API endpoints organized by version (v1)
- core/: Core infrastructure (database, redis, auth)
- models/: Pydantic data models
- services/: Business logic layer
- utils/: Logging, security and form validation helpers
"""

__version__ = "1.0.0"
__app_name__ = "ReelStream"
