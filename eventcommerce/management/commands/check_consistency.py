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
import logging
from typing import Any

from django.core.management.base import BaseCommand, CommandError

from eventcommerce.accounting.batch import BatchCollectionCoordinator
from eventcommerce.accounting.registration import verify_registration_totals
from eventcommerce.models.batch import BatchCollection
from eventcommerce.models.registration import Registration
from eventcommerce.utils.exceptions import ConsistencyViolation

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Scan stored registrations and batch collections for broken invariants.

    Nothing is corrected: every violation is reported and the command fails
    when at least one is found.
    """

    help = "Check registration totals and batch collection amounts"

    def add_arguments(self, parser) -> None:
        parser.add_argument("--event", type=int, help="Only check the event with this id")
        parser.add_argument("--database", default="default", help="Database alias to check")

    def handle(self, *args: Any, **options: Any) -> None:
        using = options["database"]
        event_id = options.get("event")

        violations = self.check_registrations(using, event_id)
        violations += self.check_collections(using, event_id)

        if violations:
            msg = f"{violations} consistency violations found"
            raise CommandError(msg)

        self.stdout.write(self.style.SUCCESS("No consistency violations found."))

    def _report(self, error: ConsistencyViolation) -> None:
        logger.error("Consistency violation: %s", error.reason)
        self.stderr.write(error.reason)

    def check_registrations(self, using: str, event_id: int | None) -> int:
        que = Registration.objects.using(using).all()
        if event_id:
            que = que.filter(event_id=event_id)

        violations = 0
        for registration in que.iterator():
            try:
                verify_registration_totals(registration, using)
            except ConsistencyViolation as error:
                self._report(error)
                violations += 1
        return violations

    def check_collections(self, using: str, event_id: int | None) -> int:
        coordinator = BatchCollectionCoordinator(using=using)
        que = BatchCollection.objects.using(using).all()
        if event_id:
            que = que.filter(event_id=event_id)

        violations = 0
        for collection in que.iterator():
            try:
                coordinator.verify_collected_amount(collection)
            except ConsistencyViolation as error:
                self._report(error)
                violations += 1
        return violations
