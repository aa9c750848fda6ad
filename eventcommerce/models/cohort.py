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
from django.conf import settings as conf_settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from eventcommerce.models.base import BaseModel


class Cohort(BaseModel):
    """Named partition of users (e.g. a graduation year) that can fund a pooled registration."""

    year = models.PositiveIntegerField(unique=True, verbose_name=_("Year"))

    name = models.CharField(max_length=100, verbose_name=_("Name"))

    class Meta:
        ordering = ["-year"]

    def member_count(self) -> int:
        """Return the number of active members of the cohort."""
        return self.memberships.filter(is_active=True).count()


class CohortMembership(BaseModel):
    """Explicit assignment of a user to its cohort; a user belongs to one cohort only."""

    user = models.OneToOneField(
        conf_settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="cohort_membership",
    )

    cohort = models.ForeignKey(Cohort, on_delete=models.CASCADE, related_name="memberships")

    is_active = models.BooleanField(default=True)

    is_admin = models.BooleanField(
        default=False,
        help_text=_("Cohort administrators can contribute to batch collections"),
    )

    class Meta:
        indexes = [
            models.Index(fields=["cohort", "is_active"], name="cohort_member_active"),
        ]

    def __str__(self) -> str:
        return f"{self.cohort} - {self.user}"
