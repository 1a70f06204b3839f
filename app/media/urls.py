"""
URL configuration for media app.

Routes:
    - POST secure/tokens/ - Issue a secure media token
    - GET  secure/<token>/ - Redeem a token

All routes are prefixed with /api/v1/media/ when included in the main URLconf.
"""

from django.urls import path

from media import views

app_name = "media"

urlpatterns = [
    path("secure/tokens/", views.SecureTokenCreateView.as_view(), name="secure_token_create"),
    path("secure/<str:token>/", views.SecureMediaRedirectView.as_view(), name="secure_redirect"),
]
