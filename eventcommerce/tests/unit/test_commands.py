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

from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from eventcommerce.models.registration import Registration
from eventcommerce.tests.unit.base import BaseTestCase


class TestCheckConsistencyCommand(TestCase, BaseTestCase):
    """Test the consistency check management command"""

    def test_clean_data(self):
        event = self.create_event()
        self.create_registration(event, self.create_user())
        out = StringIO()

        call_command("check_consistency", stdout=out)

        assert "No consistency violations found." in out.getvalue()

    def test_reports_broken_totals(self):
        event = self.create_event()
        registration = self.create_registration(event, self.create_user())
        self.create_registration(event, self.create_user("second"))
        Registration.objects.filter(pk=registration.pk).update(total_amount=Decimal("1.00"))
        err = StringIO()

        with pytest.raises(CommandError) as exc_info:
            call_command("check_consistency", stderr=err)

        assert str(exc_info.value) == "1 consistency violations found"
        assert f"registration {registration.pk}" in err.getvalue()

    def test_event_filter(self):
        event = self.create_event()
        other = self.create_event()
        registration = self.create_registration(other, self.create_user())
        Registration.objects.filter(pk=registration.pk).update(total_amount=Decimal("1.00"))

        call_command("check_consistency", event=event.pk, stdout=StringIO())
