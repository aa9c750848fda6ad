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

from datetime import datetime, timedelta

from django.conf import settings as conf_settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from eventcommerce.models.base import BaseModel


class EventStatus(models.TextChoices):
    DRAFT = "DRAFT", _("Draft")
    PUBLISHED = "PUBLISHED", _("Published")
    REGISTRATION_OPEN = "REGISTRATION_OPEN", _("Registration open")
    REGISTRATION_CLOSED = "REGISTRATION_CLOSED", _("Registration closed")
    ONGOING = "ONGOING", _("Ongoing")
    COMPLETED = "COMPLETED", _("Completed")
    CANCELLED = "CANCELLED", _("Cancelled")

    @classmethod
    def get_open_statuses(cls) -> set[str]:
        """Return the statuses in which participants may sign up."""
        return {cls.PUBLISHED, cls.REGISTRATION_OPEN}


def default_modification_hours() -> int:
    return getattr(conf_settings, "EVENTCOMMERCE_DEFAULT_MODIFICATION_HOURS", 24)


class Event(BaseModel):
    name = models.CharField(max_length=150, verbose_name=_("Name"))

    slug = models.SlugField(max_length=100, unique=True, db_index=True)

    status = models.CharField(
        max_length=20,
        choices=EventStatus.choices,
        default=EventStatus.DRAFT,
        verbose_name=_("Status"),
    )

    start = models.DateTimeField(verbose_name=_("Start"), help_text=_("Date and time the event starts"))

    end = models.DateTimeField(null=True, blank=True, verbose_name=_("End"))

    registration_start = models.DateTimeField(
        null=True,
        blank=True,
        help_text=_("Optional - Registrations open from this moment"),
    )

    registration_end = models.DateTimeField(
        null=True,
        blank=True,
        help_text=_("Optional - Registrations close at this moment"),
    )

    capacity = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text=_("Maximum number of confirmed registrations (empty = unlimited)"),
    )

    registration_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    guest_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    has_registration = models.BooleanField(default=True)

    has_external_link = models.BooleanField(default=False)

    external_link = models.URLField(max_length=500, blank=True)

    has_guests = models.BooleanField(default=False)

    has_merchandise = models.BooleanField(default=False)

    allow_form_modification = models.BooleanField(default=True)

    modification_deadline_hours = models.PositiveIntegerField(
        default=default_modification_hours,
        help_text=_("Registrations can be edited until this many hours before the start"),
    )

    class Meta:
        ordering = ["start"]

    def get_modification_deadline(self) -> datetime:
        """Return the moment after which registrations can no longer be edited."""
        return self.start - timedelta(hours=self.modification_deadline_hours)

    def is_unlimited(self) -> bool:
        return self.capacity is None
