"""
ReelStream API Package.

Package Structure:
    - v1/: Version 1 API endpoints
        - auth.py: Registration, sign-in, logout, profile and field validation
        - upload.py: Upload authentication parameters for the media CDN
        - videos.py: Video catalogue endpoints
"""
