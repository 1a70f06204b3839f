"""
Tests for authentication app.

This package contains test modules for:
- test_models.py: User model and manager
- test_views.py: JWT token endpoints

Usage:
    pytest authentication/tests/
"""
