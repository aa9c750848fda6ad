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

from django.db import models
from django.db.models.constraints import UniqueConstraint
from django.utils.translation import gettext_lazy as _

from eventcommerce.models.base import BaseModel
from eventcommerce.models.event import Event
from eventcommerce.models.registration import Registration


class StockStatus(models.TextChoices):
    AVAILABLE = "AVAILABLE", _("Available")
    INSUFFICIENT = "INSUFFICIENT", _("Insufficient")
    UNLIMITED = "UNLIMITED", _("Unlimited")


class MerchandiseItem(BaseModel):
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="merchandise")

    name = models.CharField(max_length=150, verbose_name=_("Name"))

    description = models.TextField(blank=True)

    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    stock_quantity = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text=_("Items left in stock (empty = unlimited)"),
    )

    is_active = models.BooleanField(default=True)

    sizes = models.JSONField(default=list, blank=True, help_text=_("Optional - Sizes the item comes in"))

    order = models.IntegerField(default=0)

    class Meta:
        ordering = ["order", "name"]

    def has_sizes(self) -> bool:
        return bool(self.sizes)

    def get_stock_status(self, quantity: int) -> str:
        """Classify the current stock against a requested quantity."""
        if self.stock_quantity is None:
            return StockStatus.UNLIMITED
        if self.stock_quantity >= quantity:
            return StockStatus.AVAILABLE
        return StockStatus.INSUFFICIENT


class CartOrder(BaseModel):
    """Cart line of a registration, removed once the cart is checked out."""

    registration = models.ForeignKey(Registration, on_delete=models.CASCADE, related_name="cart_orders")

    item = models.ForeignKey(MerchandiseItem, on_delete=models.CASCADE, related_name="cart_orders")

    selected_size = models.CharField(max_length=20, blank=True, default="")

    quantity = models.PositiveIntegerField(default=1)

    unit_price = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    total_price = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    class Meta:
        ordering = ["created"]
        constraints = [
            UniqueConstraint(fields=["registration", "item", "selected_size"], name="unique_cart_line"),
        ]

    def __str__(self) -> str:
        size = f" ({self.selected_size})" if self.selected_size else ""
        return f"{self.item}{size} x{self.quantity}"
