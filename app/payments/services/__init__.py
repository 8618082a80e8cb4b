"""
Payment services.

This module provides:
- PaymentService: Payment initiation and completion (cash and card)
- SettlementService: Wallet crediting, release, refunds and sweeps
- WalletService: Wallets, withdrawals and connected-account status
- ConnectService: Stripe Connect onboarding

Usage:
    from payments.services import PaymentService, SettlementService

    result = PaymentService.initiate_payment(job.id, client, "card")

    result = SettlementService.release_payment(txn.id, operator)
"""

from payments.services.payment_service import PaymentInitiation, PaymentService
from payments.services.settlement_service import SettlementService
from payments.services.wallet_service import (
    ConnectOnboarding,
    ConnectService,
    WalletService,
    WithdrawalResult,
)

__all__ = [
    "ConnectOnboarding",
    "ConnectService",
    "PaymentInitiation",
    "PaymentService",
    "SettlementService",
    "WalletService",
    "WithdrawalResult",
]
