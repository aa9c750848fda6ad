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
from django.db.models import Q
from django.db.models.constraints import UniqueConstraint
from django.utils.translation import gettext_lazy as _
from phonenumber_field.modelfields import PhoneNumberField

from eventcommerce.models.base import BaseModel
from eventcommerce.models.event import Event


class RegistrationStatus(models.TextChoices):
    CONFIRMED = "CONFIRMED", _("Confirmed")
    CANCELLED = "CANCELLED", _("Cancelled")
    WAITLIST = "WAITLIST", _("Waitlist")


class PaymentStatus(models.TextChoices):
    PENDING = "PENDING", _("Pending")
    COMPLETED = "COMPLETED", _("Completed")
    FAILED = "FAILED", _("Failed")


class RegistrationMode(models.TextChoices):
    INDIVIDUAL = "INDIVIDUAL", _("Individual")
    # Advisory only, never stored on a registration
    BATCH_PENDING = "BATCH_PENDING", _("Batch collection in progress")
    BATCH_AUTO_REGISTERED = "BATCH_AUTO_REGISTERED", _("Registered by batch collection")


class GuestStatus(models.TextChoices):
    ACTIVE = "ACTIVE", _("Active")
    CANCELLED = "CANCELLED", _("Cancelled")


class MealPreference(models.TextChoices):
    VEG = "VEG", _("Vegetarian")
    NON_VEG = "NON_VEG", _("Non vegetarian")


class Registration(BaseModel):
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="registrations")

    user = models.ForeignKey(
        conf_settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="event_registrations",
    )

    status = models.CharField(
        max_length=10,
        choices=RegistrationStatus.choices,
        default=RegistrationStatus.CONFIRMED,
    )

    payment_status = models.CharField(
        max_length=10,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )

    mode = models.CharField(
        max_length=25,
        choices=RegistrationMode.choices,
        default=RegistrationMode.INDIVIDUAL,
    )

    registration_fee_paid = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    guest_fees_paid = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    merchandise_total = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    donation_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    total_guests = models.PositiveIntegerField(default=0)

    active_guests = models.PositiveIntegerField(default=0)

    payment_reference = models.CharField(max_length=100, blank=True, null=True)

    notes = models.TextField(blank=True)

    cancellation_date = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created"]
        indexes = [
            models.Index(fields=["event", "status"], name="reg_event_status"),
        ]
        constraints = [
            UniqueConstraint(fields=["event", "user"], name="unique_event_registration"),
        ]

    def __str__(self) -> str:
        return f"{self.event} - {self.user}"

    def get_components_total(self) -> Decimal:
        """Sum the four monetary components of the registration."""
        return (
            Decimal(self.registration_fee_paid)
            + Decimal(self.guest_fees_paid)
            + Decimal(self.merchandise_total)
            + Decimal(self.donation_amount)
        )

    def recompute_total(self) -> None:
        self.total_amount = self.get_components_total()


class Guest(BaseModel):
    registration = models.ForeignKey(Registration, on_delete=models.CASCADE, related_name="guests")

    name = models.CharField(max_length=150, verbose_name=_("Name"))

    email = models.EmailField(blank=True)

    phone = PhoneNumberField(blank=True, help_text=_("Remember to put the prefix at the beginning!"))

    meal_preference = models.CharField(max_length=10, choices=MealPreference.choices, blank=True)

    status = models.CharField(max_length=10, choices=GuestStatus.choices, default=GuestStatus.ACTIVE)

    fee_paid = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    # transaction that paid the guest fee
    payment_reference = models.CharField(max_length=100, blank=True, default="")

    cancellation_date = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["created"]
        indexes = [
            models.Index(
                fields=["registration"],
                condition=Q(status=GuestStatus.ACTIVE),
                name="guest_reg_active",
            ),
        ]
