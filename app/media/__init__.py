"""
Media app for entitlement-gated access to stored media.

This app provides:
- Signed, short-lived access tokens naming a user and a resource
- A redeem endpoint that re-checks entitlement and redirects to a
  presigned storage URL
"""
