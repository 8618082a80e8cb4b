import django_filters as filters

from payments.models import Transaction, Wallet


class TransactionFilter(filters.FilterSet):
    created_after = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    created_before = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")
    is_released = filters.BooleanFilter(field_name="released_at", lookup_expr="isnull", exclude=True)

    class Meta:
        model = Transaction
        fields = ["status", "payment_method", "created_after", "created_before", "is_released"]


class WalletFilter(filters.FilterSet):
    class Meta:
        model = Wallet
        fields = ["stripe_account_status"]
