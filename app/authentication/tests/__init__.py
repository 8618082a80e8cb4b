"""
Tests for authentication app.

This package contains test modules for:
- test_models.py: User roles and Profile
- test_managers.py: UserManager
- test_signals.py: Profile creation on signup
- test_views.py: JWT token endpoints

Usage:
    pytest authentication/tests/
"""
