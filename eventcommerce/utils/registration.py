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

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from django.utils import formats, timezone
from django.utils.translation import gettext as _

from eventcommerce.models.event import Event, EventStatus
from eventcommerce.models.registration import Registration, RegistrationStatus

logger = logging.getLogger(__name__)

# Marks an argument the caller did not load, as opposed to an explicit None
NOT_LOADED: Any = object()


@dataclass(frozen=True)
class EligibilityResult:
    allowed: bool
    reason: str

    def __bool__(self) -> bool:
        return self.allowed


def get_confirmed_count(event: Event, using: str = "default") -> int:
    """Count the confirmed registrations of an event.

    Args:
        event: Event to count registrations for
        using: Database alias

    Returns:
        Number of registrations holding a seat

    """
    return Registration.objects.using(using).filter(event_id=event.id, status=RegistrationStatus.CONFIRMED).count()


def check_registration_eligibility(
    event: Event,
    user_id: int,
    *,
    now: datetime | None = None,
    confirmed_count: int | None = None,
    existing: Registration | None = NOT_LOADED,
    using: str = "default",
) -> EligibilityResult:
    """Decide whether a user may register individually for an event right now.

    Rules are checked in a fixed order and the first failing one is reported.
    Nothing is written, so the check can back advisory UI state as well as
    the enforcement done at registration time.

    Args:
        event: Event the user wants to join
        user_id: Id of the requesting user
        now: Current time, defaults to ``timezone.now()``
        confirmed_count: Confirmed registrations already counted by the caller
        existing: Registration of the user already loaded by the caller, or None
        using: Database alias for the lookups not supplied by the caller

    Returns:
        EligibilityResult with a reason suitable for the end user

    """
    now = now or timezone.now()

    if event.status not in EventStatus.get_open_statuses():
        return EligibilityResult(False, _("Event registration is not open"))

    if event.has_external_link:
        return EligibilityResult(False, _("Please use the external registration link for this event"))

    if not event.has_registration:
        return EligibilityResult(False, _("Event does not allow registration"))

    if event.start < now:
        return EligibilityResult(False, _("Cannot register for past events"))

    if event.registration_start and now < event.registration_start:
        return EligibilityResult(
            False,
            _("Registration opens on %(date)s")
            % {"date": formats.date_format(event.registration_start, "DATE_FORMAT")},
        )

    if event.registration_end and now > event.registration_end:
        return EligibilityResult(False, _("Registration period has ended"))

    if not event.is_unlimited():
        if confirmed_count is None:
            confirmed_count = get_confirmed_count(event, using)
        if confirmed_count >= event.capacity:
            return EligibilityResult(False, _("Event is full"))

    if existing is NOT_LOADED:
        existing = Registration.objects.using(using).filter(event_id=event.id, user_id=user_id).first()
    if existing is not None:
        return EligibilityResult(False, _("You are already registered for this event"))

    return EligibilityResult(True, _("Registration allowed"))


def registration_status_text(registration: Registration | None) -> str:
    """Return the display status of a registration."""
    if registration is None:
        return _("Not Registered")

    if registration.status == RegistrationStatus.CONFIRMED:
        texts = {
            "PENDING": _("Registered - Payment Pending"),
            "COMPLETED": _("Registered - Payment Complete"),
        }
        return texts.get(registration.payment_status, _("Registered"))

    if registration.status == RegistrationStatus.CANCELLED:
        return _("Registration Cancelled")

    if registration.status == RegistrationStatus.WAITLIST:
        return _("On Waitlist")

    return _("Registration Status Unknown")
