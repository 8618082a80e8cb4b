"""
Tests for payments app.

This package contains test modules for:
- test_models.py: Transaction, Wallet and WebhookEvent
- test_payment_service.py: Payment initiation and completion
- test_settlement_service.py: Crediting, release, refunds, the sweep
- test_wallet_service.py: Withdrawals and Stripe Connect
- test_webhook_handlers.py / test_webhook_views.py: Stripe webhooks
- test_tasks.py: Celery tasks
- test_views.py: API endpoints

Usage:
    pytest payments/tests/
    pytest payments/tests/test_settlement_service.py
"""
