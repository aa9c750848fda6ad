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

from django.utils import timezone
from django.utils.translation import gettext as _

from eventcommerce.models.event import Event
from eventcommerce.models.registration import Registration, RegistrationStatus
from eventcommerce.utils.exceptions import StateConflictError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModificationCheck:
    allowed: bool
    reason: str
    deadline: datetime | None = None
    hours_remaining: int | None = None

    def __bool__(self) -> bool:
        return self.allowed


def can_modify(
    registration: Registration,
    event: Event | None = None,
    now: datetime | None = None,
) -> ModificationCheck:
    """Check whether a registration can still be edited.

    Guest changes, cart checkout and form edits all go through this check,
    so every feature closes at the same moment.

    Args:
        registration: Registration to edit
        event: Event of the registration, loaded from it when omitted
        now: Current time, defaults to ``timezone.now()``

    Returns:
        ModificationCheck with the deadline and whole hours left when allowed

    """
    event = event or registration.event
    now = now or timezone.now()

    if not event.allow_form_modification:
        return ModificationCheck(False, _("Registration modification is not allowed for this event"))

    if registration.status == RegistrationStatus.CANCELLED:
        return ModificationCheck(False, _("Cannot modify a cancelled registration"))

    deadline = event.get_modification_deadline()
    if now > deadline:
        return ModificationCheck(
            False,
            _("Modification deadline has passed (%(hours)d hours before event)")
            % {"hours": event.modification_deadline_hours},
            deadline=deadline,
        )

    if now > event.start:
        return ModificationCheck(False, _("Cannot modify registration for past events"))

    hours_remaining = int((deadline - now).total_seconds() // 3600)
    return ModificationCheck(True, _("Modification allowed"), deadline=deadline, hours_remaining=hours_remaining)


def check_can_modify(registration: Registration, event: Event | None = None, now: datetime | None = None) -> None:
    """Raise StateConflictError with the display reason when the registration is locked."""
    check = can_modify(registration, event, now)
    if not check.allowed:
        logger.info("Modification refused for registration %s: %s", registration.pk, check.reason)
        raise StateConflictError(check.reason)
