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
from eventcommerce.models.batch import BatchAdminPayment, BatchCollection
from eventcommerce.models.cohort import Cohort, CohortMembership
from eventcommerce.models.event import Event
from eventcommerce.models.form import EventForm, FormField, FormResponse
from eventcommerce.models.merchandise import CartOrder, MerchandiseItem
from eventcommerce.models.registration import Guest, Registration

__all__ = [
    "BatchAdminPayment",
    "BatchCollection",
    "CartOrder",
    "Cohort",
    "CohortMembership",
    "Event",
    "EventForm",
    "FormField",
    "FormResponse",
    "Guest",
    "MerchandiseItem",
    "Registration",
]
