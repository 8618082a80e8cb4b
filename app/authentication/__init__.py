"""
Authentication application.

User directory for the marketplace: email-based users carrying a client,
provider or admin role, their profiles, and JWT token endpoints.

Usage:
    from authentication.models import User, Profile
"""
