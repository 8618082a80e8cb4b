"""
Model mixins providing reusable functionality for Django models.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key
    VersionedMixin: Optimistic-lock version counter bumped on every update

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin

    class Transaction(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
        amount_cents = models.BigIntegerField()

Note:
    - Always list mixins before BaseModel in inheritance
    - Mixins are abstract and don't create database tables
"""

from __future__ import annotations

import uuid

from django.db import models
from django.db.models import F


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Identifiers of jobs, quotes and transactions end up in Stripe metadata
    and idempotency keys, so they must not be guessable or reused.

    Fields:
        id: UUIDField as primary key (auto-generated)

    Note:
        The id can be generated before the insert. PaymentService relies on
        this to derive a Stripe idempotency key for a Transaction that is only
        written after the PaymentIntent exists.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class VersionedMixin(models.Model):
    """
    Optimistic-lock counter incremented on every update.

    The increment is done in the database with F() so two writers that both
    loaded version N cannot both persist N+1 unnoticed. After the update the
    concrete value is reloaded so the instance stays usable.

    Fields:
        version: Number of updates applied to the row
    """

    version = models.PositiveIntegerField(
        default=1,
        help_text="Optimistic locking version - incremented on every update",
    )

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        is_update = self.pk and not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None and "version" not in update_fields:
                kwargs["update_fields"] = [*update_fields, "version"]
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])
