"""
Serializers for payments API.

Serializer Hierarchy:
    TransactionSerializer: Transaction read model for payer and provider
    AdminTransactionSerializer: Adds settlement and Stripe details for staff
    WalletSerializer: Provider wallet balances
    InitiatePaymentSerializer / WithdrawalSerializer /
    ReleasePaymentSerializer / RefundSerializer: Action input
"""

from __future__ import annotations

from rest_framework import serializers

from payments.models import Transaction, Wallet
from payments.state_machines import PaymentMethod


class TransactionSerializer(serializers.ModelSerializer):
    is_released = serializers.BooleanField(read_only=True)

    class Meta:
        model = Transaction
        fields = [
            "id",
            "payer",
            "job",
            "quote",
            "amount_cents",
            "commission_percent",
            "platform_commission_cents",
            "provider_amount_cents",
            "refunded_amount_cents",
            "currency",
            "payment_method",
            "status",
            "paid_at",
            "completed_at",
            "failed_at",
            "refunded_at",
            "is_released",
            "created_at",
        ]
        read_only_fields = fields


class AdminTransactionSerializer(TransactionSerializer):
    """Transaction with settlement markers and Stripe ids for operators."""

    class Meta(TransactionSerializer.Meta):
        fields = [
            *TransactionSerializer.Meta.fields,
            "stripe_payment_intent_id",
            "stripe_charge_id",
            "stripe_transfer_id",
            "stripe_refund_id",
            "wallet_credited_at",
            "pending_release_at",
            "released_at",
            "released_by",
            "release_notes",
            "failure_reason",
            "metadata",
            "version",
        ]
        read_only_fields = fields


class WalletSerializer(serializers.ModelSerializer):
    is_verified = serializers.BooleanField(read_only=True)

    class Meta:
        model = Wallet
        fields = [
            "id",
            "provider",
            "total_earned_cents",
            "available_balance_cents",
            "pending_balance_cents",
            "withdrawn_balance_cents",
            "stripe_account_status",
            "is_verified",
            "updated_at",
        ]
        read_only_fields = fields


class InitiatePaymentSerializer(serializers.Serializer):
    job_id = serializers.UUIDField()
    method = serializers.ChoiceField(choices=PaymentMethod.choices)


class WithdrawalSerializer(serializers.Serializer):
    amount_cents = serializers.IntegerField(min_value=1)


class ReleasePaymentSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class RefundSerializer(serializers.Serializer):
    amount_cents = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    reason = serializers.CharField(required=False, allow_blank=True, default="")
