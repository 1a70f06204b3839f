"""
Project-wide pytest configuration for the apps.

Swaps the Redis-backed cache and channel layer for in-memory backends,
disables throttling and provides fixtures shared by every app.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import pytest


def pytest_configure():
    """Point external services at in-memory backends."""
    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    # Use fast password hasher for tests (PBKDF2 is too slow with 870K iterations)
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]

    settings.CACHES = {
        "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"},
    }
    settings.SESSION_ENGINE = "django.contrib.sessions.backends.db"
    settings.CHANNEL_LAYERS = {
        "default": {"BACKEND": "channels.layers.InMemoryChannelLayer"},
    }
    settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
    settings.ASAAS_API_KEY = "test-asaas-key"
    settings.ASAAS_WEBHOOK_TOKEN = "test-webhook-token"
    settings.SECURE_MEDIA_SIGNING_KEY = "test-media-signing-key"
    settings.PUBLIC_API_URL = "https://api.example.com"


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full purchase journeys)
    - test_views.py, test_tasks.py, test_*_service.py, etc. → integration
    - test_models.py, test_fees.py, test_types.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_webhooks.py",
        "test_handlers.py",
        "_service.py",
        "test_ledger.py",
        "test_secure_access.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_serializers.py",
        "test_fees.py",
        "test_types.py",
        "test_state_transitions.py",
        "test_adapters.py",
        "test_asaas_adapter.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    from rest_framework.test import APIClient

    return APIClient()


# =============================================================================
# Domain Fixtures
# =============================================================================
# Factories are imported inside the fixtures: this conftest is loaded before
# Django is set up.


@pytest.fixture
def user(db):
    """A fan with a CPF on file."""
    from authentication.tests.factories import UserFactory

    return UserFactory()


@pytest.fixture
def creator(db):
    """A creator selling R$ 19,90 subscriptions, with a PIX key."""
    from payments.tests.factories import CreatorProfileFactory

    return CreatorProfileFactory()


@pytest.fixture
def ppv_content(db, creator):
    """A ppv post of ``creator`` priced R$ 15,00, with two media items."""
    from payments.tests.factories import ContentFactory

    return ContentFactory(creator=creator)


@pytest.fixture
def pack(db, creator):
    """An active R$ 29,90 media pack of ``creator``."""
    from payments.tests.factories import MediaPackFactory

    return MediaPackFactory(creator=creator)
