"""
Settlement strategies for crediting providers.

Usage:
    from payments.strategies import get_release_strategy

    strategy = get_release_strategy(transaction, wallet)
"""

from payments.strategies.base import ReleaseStrategy, TransferOutcome
from payments.strategies.release import (
    CashSettlementStrategy,
    DirectTransferStrategy,
    PendingCreditStrategy,
    get_release_strategy,
    transfer_to_provider,
)

__all__ = [
    "CashSettlementStrategy",
    "DirectTransferStrategy",
    "PendingCreditStrategy",
    "ReleaseStrategy",
    "TransferOutcome",
    "get_release_strategy",
    "transfer_to_provider",
]
