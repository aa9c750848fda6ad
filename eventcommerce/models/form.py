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
from django.db.models import Q
from django.db.models.constraints import UniqueConstraint
from django.utils.translation import gettext_lazy as _

from eventcommerce.models.base import BaseModel
from eventcommerce.models.event import Event
from eventcommerce.models.registration import Guest, Registration


class FormKind(models.TextChoices):
    EVENT = "e", _("Registration")
    GUEST = "g", _("Guest")


class FieldType(models.TextChoices):
    TEXT = "TEXT", _("Single-line text")
    TEXTAREA = "TEXTAREA", _("Multi-line text")
    EMAIL = "EMAIL", _("Email")
    PHONE = "PHONE", _("Phone")
    NUMBER = "NUMBER", _("Number")
    DATE = "DATE", _("Date")
    SELECT = "SELECT", _("Dropdown")
    RADIO = "RADIO", _("Single choice")
    CHECKBOX = "CHECKBOX", _("Multiple choice")

    @staticmethod
    def get_choice_types() -> set[str]:
        return {FieldType.SELECT, FieldType.RADIO, FieldType.CHECKBOX}

    @staticmethod
    def get_text_types() -> set[str]:
        return {FieldType.TEXT, FieldType.TEXTAREA, FieldType.EMAIL, FieldType.PHONE}


class EventForm(BaseModel):
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="forms")

    kind = models.CharField(max_length=1, choices=FormKind.choices, default=FormKind.EVENT)

    name = models.CharField(max_length=100, verbose_name=_("Name"))

    class Meta:
        constraints = [
            UniqueConstraint(fields=["event", "kind"], name="unique_event_form_kind"),
        ]


class FormField(BaseModel):
    form = models.ForeignKey(EventForm, on_delete=models.CASCADE, related_name="fields")

    name = models.SlugField(max_length=100, help_text=_("Internal field name"))

    label = models.CharField(max_length=200, verbose_name=_("Label"))

    typ = models.CharField(max_length=10, choices=FieldType.choices, default=FieldType.TEXT, verbose_name=_("Type"))

    required = models.BooleanField(default=False)

    options = models.JSONField(default=list, blank=True, help_text=_("Allowed values for choice fields"))

    min_length = models.PositiveIntegerField(null=True, blank=True)

    max_length = models.PositiveIntegerField(null=True, blank=True)

    pattern = models.CharField(max_length=255, blank=True, help_text=_("Optional - Regular expression to match"))

    order = models.IntegerField(default=0)

    class Meta:
        ordering = ["order", "id"]

    def __str__(self) -> str:
        return f"{self.form.event} - {self.label[:30]}"


class FormResponse(BaseModel):
    registration = models.ForeignKey(Registration, on_delete=models.CASCADE, related_name="form_responses")

    guest = models.ForeignKey(
        Guest,
        on_delete=models.CASCADE,
        related_name="form_responses",
        null=True,
        blank=True,
    )

    field = models.ForeignKey(FormField, on_delete=models.CASCADE, related_name="responses")

    value = models.TextField(blank=True)

    class Meta:
        constraints = [
            UniqueConstraint(
                fields=["registration", "field"],
                condition=Q(guest=None),
                name="unique_registration_response",
            ),
            UniqueConstraint(
                fields=["guest", "field"],
                condition=Q(guest__isnull=False),
                name="unique_guest_response",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.field.name}: {self.value[:30]}"
