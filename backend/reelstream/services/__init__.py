"""
Business logic services for the ReelStream backend.

- user_service: Registration and credential sign-in
- upload_auth_service: Signed direct-upload parameters for the media CDN
- video_service: Video catalogue storage
"""
