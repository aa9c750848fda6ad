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

from typing import Protocol

from django.contrib.auth import get_user_model

from eventcommerce.models.cohort import CohortMembership


class CohortProvider(Protocol):
    """Source of cohort membership and authorization answers."""

    def active_member_ids(self, cohort_id: int) -> list[int]: ...

    def active_admin_ids(self, cohort_id: int) -> list[int]: ...

    def is_cohort_admin(self, user_id: int, cohort_id: int) -> bool: ...

    def is_approver(self, user_id: int) -> bool: ...

    def cohort_of(self, user_id: int) -> int | None: ...


class ModelCohortProvider:
    """Cohort provider backed by the ``CohortMembership`` table.

    Superusers administer every cohort and are the only approvers.
    """

    def __init__(self, using: str = "default") -> None:
        self.using = using

    def _memberships(self):
        return CohortMembership.objects.using(self.using).filter(is_active=True, user__is_active=True)

    def _superuser_ids(self) -> list[int]:
        user_model = get_user_model()
        return list(
            user_model.objects.using(self.using)
            .filter(is_superuser=True, is_active=True)
            .order_by("pk")
            .values_list("pk", flat=True),
        )

    def active_member_ids(self, cohort_id: int) -> list[int]:
        que = self._memberships().filter(cohort_id=cohort_id).order_by("user_id")
        return list(que.values_list("user_id", flat=True))

    def active_admin_ids(self, cohort_id: int) -> list[int]:
        """Return the users allowed to pay into collections of the cohort."""
        admins = list(
            self._memberships()
            .filter(cohort_id=cohort_id, is_admin=True)
            .order_by("user_id")
            .values_list("user_id", flat=True),
        )
        for user_id in self._superuser_ids():
            if user_id not in admins:
                admins.append(user_id)
        return admins

    def is_cohort_admin(self, user_id: int, cohort_id: int) -> bool:
        if self.is_approver(user_id):
            return True
        return self._memberships().filter(cohort_id=cohort_id, user_id=user_id, is_admin=True).exists()

    def is_approver(self, user_id: int) -> bool:
        user_model = get_user_model()
        return user_model.objects.using(self.using).filter(pk=user_id, is_superuser=True, is_active=True).exists()

    def cohort_of(self, user_id: int) -> int | None:
        """Return the id of the active cohort of a user, if any."""
        return self._memberships().filter(user_id=user_id).values_list("cohort_id", flat=True).first()
