# LarpManager - https://larpmanager.com
# Copyright (C) 2025 Scanagatta Mauro
#
# This file is part of LarpManager and is dual-licensed:
#
# 1. Under the terms of the GNU Affero General Public License (AGPL) version 3,
#    as published by the Free Software Foundation. You may use, modify, and
#    distribute this file under those terms.
#
# 2. Under a commercial license, allowing use in closed-source or proprietary
#    environments without the obligations of the AGPL.
#
# If you have obtained this file under the AGPL, and you make it available over
# a network, you must also make the complete source code available under the same license.
#
# For more information or to purchase a commercial license, contact:
# commercial@larpmanager.com
#
# SPDX-License-Identifier: AGPL-3.0-or-later OR Proprietary
from __future__ import annotations

from decimal import Decimal

from django.conf import settings as conf_settings
from django.db import models
from django.db.models.constraints import UniqueConstraint
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from eventcommerce.models.base import BaseModel
from eventcommerce.models.cohort import Cohort
from eventcommerce.models.event import Event


class BatchCollectionStatus(models.TextChoices):
    ACTIVE = "ACTIVE", _("Active")
    COMPLETED = "COMPLETED", _("Completed")
    CANCELLED = "CANCELLED", _("Cancelled")


class BatchPaymentStatus(models.TextChoices):
    PENDING = "PENDING", _("Pending")
    COMPLETED = "COMPLETED", _("Completed")
    FAILED = "FAILED", _("Failed")


class BatchCollection(BaseModel):
    """Pooled funding campaign of one cohort for one event."""

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="batch_collections")

    cohort = models.ForeignKey(Cohort, on_delete=models.CASCADE, related_name="batch_collections")

    target_amount = models.DecimalField(max_digits=12, decimal_places=2)

    # Only ever moved forward by recorded payments
    collected_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    is_target_met = models.BooleanField(default=False)

    target_met_notified_at = models.DateTimeField(null=True, blank=True)

    is_approved = models.BooleanField(default=False)

    approved_by = models.ForeignKey(
        conf_settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    approved_at = models.DateTimeField(null=True, blank=True)

    status = models.CharField(
        max_length=10,
        choices=BatchCollectionStatus.choices,
        default=BatchCollectionStatus.ACTIVE,
    )

    description = models.CharField(max_length=500, blank=True)

    created_by = models.ForeignKey(
        conf_settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        ordering = ["-created"]
        constraints = [
            UniqueConstraint(fields=["event", "cohort"], name="unique_batch_collection"),
        ]

    def __str__(self) -> str:
        return f"{self.event} - {self.cohort}"

    def remaining_amount(self) -> Decimal:
        return max(Decimal(0), Decimal(self.target_amount) - Decimal(self.collected_amount))

    def progress_percentage(self) -> int:
        """Return the collected share of the target, rounded to the nearest percent."""
        if self.target_amount <= 0:
            return 0
        ratio = Decimal(self.collected_amount) * 100 / Decimal(self.target_amount)
        return int(ratio.quantize(Decimal(1)))


class BatchAdminPayment(BaseModel):
    collection = models.ForeignKey(BatchCollection, on_delete=models.CASCADE, related_name="payments")

    paid_by = models.ForeignKey(
        conf_settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="batch_payments",
    )

    amount = models.DecimalField(max_digits=12, decimal_places=2)

    transaction_id = models.CharField(max_length=100, unique=True)

    payment_status = models.CharField(
        max_length=10,
        choices=BatchPaymentStatus.choices,
        default=BatchPaymentStatus.COMPLETED,
    )

    payment_date = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-payment_date"]

    def __str__(self) -> str:
        return f"{self.collection} - {self.amount} ({self.transaction_id})"
