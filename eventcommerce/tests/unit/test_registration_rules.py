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

from datetime import timedelta

import pytest
from django.test import TestCase
from django.utils import timezone

from eventcommerce.accounting.registration import create_registration
from eventcommerce.models.event import EventStatus
from eventcommerce.models.registration import RegistrationStatus
from eventcommerce.tests.unit.base import BaseTestCase
from eventcommerce.utils.deadlines import can_modify, check_can_modify
from eventcommerce.utils.exceptions import StateConflictError
from eventcommerce.utils.registration import check_registration_eligibility, registration_status_text


class TestRegistrationEligibility(TestCase, BaseTestCase):
    """Test the ordered eligibility rules of individual registration"""

    def test_open_event_allows_registration(self):
        event = self.create_event()
        user = self.create_user()

        result = check_registration_eligibility(event, user.pk)

        assert result.allowed
        assert result.reason == "Registration allowed"

    def test_event_not_open(self):
        event = self.create_event(status=EventStatus.DRAFT)

        result = check_registration_eligibility(event, self.create_user().pk)

        assert not result.allowed
        assert result.reason == "Event registration is not open"

    def test_external_link_and_disabled_registration(self):
        user = self.create_user()
        external = self.create_event(has_external_link=True, external_link="https://example.com/signup")
        disabled = self.create_event(has_registration=False)

        assert (
            check_registration_eligibility(external, user.pk).reason
            == "Please use the external registration link for this event"
        )
        assert check_registration_eligibility(disabled, user.pk).reason == "Event does not allow registration"

    def test_past_event(self):
        event = self.create_event(start=timezone.now() - timedelta(hours=1))

        assert check_registration_eligibility(event, self.create_user().pk).reason == "Cannot register for past events"

    def test_registration_window(self):
        now = timezone.now()
        user = self.create_user()
        not_started = self.create_event(registration_start=now + timedelta(days=2))
        ended = self.create_event(registration_end=now - timedelta(minutes=1))

        assert check_registration_eligibility(not_started, user.pk, now=now).reason.startswith("Registration opens on")
        assert check_registration_eligibility(ended, user.pk, now=now).reason == "Registration period has ended"

    def test_status_is_checked_before_dates(self):
        event = self.create_event(status=EventStatus.COMPLETED, start=timezone.now() - timedelta(days=1))

        assert check_registration_eligibility(event, self.create_user().pk).reason == "Event registration is not open"

    def test_capacity_two_rejects_third_user(self):
        event = self.create_event(capacity=2, registration_fee=0, has_guests=False)
        first = self.create_user("first")
        second = self.create_user("second")
        third = self.create_user("third")

        assert create_registration(event, first).status == RegistrationStatus.CONFIRMED
        assert create_registration(event, second).status == RegistrationStatus.CONFIRMED

        with pytest.raises(StateConflictError) as exc_info:
            create_registration(event, third)

        assert exc_info.value.reason == "Event is full"
        assert event.registrations.count() == 2

    def test_cancelled_registrations_free_capacity(self):
        event = self.create_event(capacity=1)
        self.create_registration(event, self.create_user("gone"), status=RegistrationStatus.CANCELLED)

        assert check_registration_eligibility(event, self.create_user("next").pk).allowed

    def test_already_registered(self):
        event = self.create_event()
        user = self.create_user()
        self.create_registration(event, user)

        result = check_registration_eligibility(event, user.pk)

        assert result.reason == "You are already registered for this event"

    def test_check_has_no_side_effects(self):
        event = self.create_event()
        user = self.create_user()

        for _attempt in range(3):
            assert check_registration_eligibility(event, user.pk).allowed

        assert event.registrations.count() == 0

    def test_caller_supplied_counts(self):
        event = self.create_event(capacity=5)
        user = self.create_user()

        assert check_registration_eligibility(event, user.pk, confirmed_count=5).reason == "Event is full"
        assert check_registration_eligibility(event, user.pk, confirmed_count=0, existing=None).allowed

    def test_status_text(self):
        event = self.create_event()
        registration = self.create_registration(event, self.create_user())

        assert registration_status_text(None) == "Not Registered"
        assert registration_status_text(registration) == "Registered - Payment Complete"
        registration.status = RegistrationStatus.WAITLIST
        assert registration_status_text(registration) == "On Waitlist"


class TestModificationWindow(TestCase, BaseTestCase):
    """Test the single deadline rule shared by guests, cart and form edits"""

    def test_open_window_reports_hours_remaining(self):
        now = timezone.now()
        event = self.create_event(start=now + timedelta(hours=50), modification_deadline_hours=24)
        registration = self.create_registration(event, self.create_user())

        check = can_modify(registration, event, now=now)

        assert check.allowed
        assert check.deadline == event.start - timedelta(hours=24)
        assert check.hours_remaining == 26

    def test_modification_disabled(self):
        event = self.create_event(allow_form_modification=False)
        registration = self.create_registration(event, self.create_user())

        check = can_modify(registration, event)

        assert not check.allowed
        assert check.reason == "Registration modification is not allowed for this event"

    def test_cancelled_registration(self):
        event = self.create_event()
        registration = self.create_registration(event, self.create_user(), status=RegistrationStatus.CANCELLED)

        assert can_modify(registration, event).reason == "Cannot modify a cancelled registration"

    def test_deadline_passed(self):
        now = timezone.now()
        event = self.create_event(start=now + timedelta(hours=12), modification_deadline_hours=24)
        registration = self.create_registration(event, self.create_user())

        check = can_modify(registration, event, now=now)

        assert not check.allowed
        assert check.reason == "Modification deadline has passed (24 hours before event)"
        with pytest.raises(StateConflictError):
            check_can_modify(registration, event, now=now)

    def test_past_event_with_zero_hour_deadline(self):
        now = timezone.now()
        event = self.create_event(start=now - timedelta(minutes=5), modification_deadline_hours=0)
        registration = self.create_registration(event, self.create_user())

        check = can_modify(registration, event, now=now)

        assert not check.allowed
        assert check.reason.startswith("Modification deadline has passed")

    def test_default_deadline_comes_from_settings(self):
        event = self.create_event()

        assert event.modification_deadline_hours == 24
