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
from decimal import Decimal

import pytest
from django.test import TestCase
from django.utils import timezone

from eventcommerce.accounting.batch import BatchCollectionCoordinator
from eventcommerce.accounting.registration import (
    GuestData,
    add_guests,
    cancel_registration,
    confirm_registration_payment,
    create_registration,
    guest_summary,
    remove_guests,
    update_registration_responses,
    verify_registration_totals,
)
from eventcommerce.models.form import FieldType, FormKind, FormResponse
from eventcommerce.models.registration import (
    GuestStatus,
    MealPreference,
    PaymentStatus,
    Registration,
    RegistrationMode,
    RegistrationStatus,
)
from eventcommerce.tests.unit.base import BaseTestCase, RecordingNotifier
from eventcommerce.utils.exceptions import ConsistencyViolation, NotFoundError, StateConflictError, ValidationError


class TestCreateRegistration(TestCase, BaseTestCase):
    """Test individual registration through the lifecycle service"""

    def test_fee_five_hundred_with_two_guests_then_one_removed(self):
        event = self.create_event(registration_fee=Decimal("500"), guest_fee=Decimal("100"))
        user = self.create_user()

        registration = create_registration(
            event,
            user,
            guests=[GuestData(name="Anna"), GuestData(name="Bruno")],
            payment=self.payment("700", payer=user),
        )

        assert registration.total_amount == Decimal("700.00")
        assert registration.guest_fees_paid == Decimal("200.00")
        assert registration.payment_status == PaymentStatus.COMPLETED
        assert registration.active_guests == 2
        assert registration.payment_reference == "txn-1"

        guest = registration.guests.first()
        delta = remove_guests(registration, [guest.pk])
        registration.refresh_from_db()

        assert delta.converted_to_donation == Decimal("100.00")
        assert registration.donation_amount == Decimal("100.00")
        assert registration.total_amount == Decimal("700.00")
        assert registration.active_guests == 1
        assert registration.total_guests == 2
        guest.refresh_from_db()
        assert guest.status == GuestStatus.CANCELLED
        assert guest.cancellation_date is not None
        verify_registration_totals(registration)

    def test_unpaid_registration_stays_pending(self):
        event = self.create_event()

        registration = create_registration(event, self.create_user(), donation_amount=Decimal("25"))

        assert registration.payment_status == PaymentStatus.PENDING
        assert registration.total_amount == Decimal("525.00")
        assert registration.mode == RegistrationMode.INDIVIDUAL

    def test_duplicate_registration_is_refused(self):
        event = self.create_event()
        user = self.create_user()
        create_registration(event, user)

        with pytest.raises(StateConflictError) as exc_info:
            create_registration(event, user)

        assert exc_info.value.reason == "You are already registered for this event"
        assert Registration.objects.filter(event=event, user=user).count() == 1

    def test_guests_on_event_without_guests(self):
        event = self.create_event(has_guests=False)

        with pytest.raises(StateConflictError):
            create_registration(event, self.create_user(), guests=[GuestData(name="Anna")])

    def test_invalid_form_and_guests_report_every_error(self):
        event = self.create_event()
        self.create_field(event, name="city", label="City", required=True)
        self.create_field(event, kind=FormKind.GUEST, name="email", label="Email", typ=FieldType.EMAIL)

        with pytest.raises(ValidationError) as exc_info:
            create_registration(
                event,
                self.create_user(),
                guests=[GuestData(name="", meal_preference="FISH", responses={})],
            )

        fields = [error.field_name for error in exc_info.value.errors]
        assert fields == ["city", "guests[1].name", "guests[1].meal_preference"]
        assert Registration.objects.count() == 0

    def test_guest_contacts_are_validated(self):
        event = self.create_event()

        with pytest.raises(ValidationError) as exc_info:
            create_registration(
                event,
                self.create_user(),
                guests=[GuestData(name="Anna", email="anna@", phone="12")],
            )

        assert [error.field_name for error in exc_info.value.errors] == ["guests[1].email", "guests[1].phone"]

        registration = create_registration(
            event,
            self.create_user("second"),
            guests=[GuestData(name="Anna", email="anna@example.com", phone="+91 98765 43210")],
            payment=self.payment("600", "txn-signup"),
        )
        guest = registration.guests.get()
        assert guest.phone == "+919876543210"
        assert guest.payment_reference == "txn-signup"

    def test_form_responses_are_stored(self):
        event = self.create_event()
        city = self.create_field(event, name="city", label="City", required=True)
        meal = self.create_field(event, kind=FormKind.GUEST, name="allergy", label="Allergy")

        registration = create_registration(
            event,
            self.create_user(),
            responses={city.id: " Pune "},
            guests=[GuestData(name="Anna", meal_preference=MealPreference.VEG, responses={meal.id: "nuts"})],
        )

        assert FormResponse.objects.get(registration=registration, guest=None).value == "Pune"
        guest = registration.guests.get()
        assert FormResponse.objects.get(guest=guest).value == "nuts"

    def test_individual_signup_refused_during_batch_collection(self):
        event = self.create_event()
        cohort = self.create_cohort()
        admin = self.create_user("admin")
        self.add_member(cohort, admin, is_admin=True)
        member = self.create_user("member")
        self.add_member(cohort, member)
        BatchCollectionCoordinator(notifier=RecordingNotifier()).create_collection(event, cohort, Decimal("1000"))

        with pytest.raises(StateConflictError) as exc_info:
            create_registration(event, member)

        assert "Individual registration is not allowed" in exc_info.value.reason
        assert create_registration(event, self.create_user("outsider")).pk


class TestRegistrationChanges(TestCase, BaseTestCase):
    """Test guest, payment and cancellation changes on existing registrations"""

    def register(self, event, user=None, guests=0):
        user = user or self.create_user()
        return create_registration(event, user, guests=[GuestData(name=f"Guest {idx}") for idx in range(guests)])

    def test_adding_guests_requires_covering_payment(self):
        event = self.create_event()
        registration = self.register(event, guests=1)

        with pytest.raises(StateConflictError):
            add_guests(registration, [GuestData(name="Carla")])

        with pytest.raises(StateConflictError):
            add_guests(registration, [GuestData(name="Carla"), GuestData(name="Dario")], payment=self.payment("150"))

        registration.refresh_from_db()
        assert registration.active_guests == 1
        assert registration.guests.count() == 1

        delta = add_guests(registration, [GuestData(name="Carla")], payment=self.payment("100", "txn-guest"))
        registration.refresh_from_db()

        assert delta.additional_amount == Decimal("100.00")
        assert registration.guests.get(name="Carla").payment_reference == "txn-guest"
        assert registration.guests.get(name="Guest 0").payment_reference == ""
        assert registration.active_guests == 2
        assert registration.guest_fees_paid == Decimal("200.00")
        assert registration.total_amount == Decimal("700.00")

    def test_add_then_remove_moves_fees_to_donation(self):
        event = self.create_event()
        registration = self.register(event, guests=1)
        before = registration.total_amount

        add_guests(
            registration,
            [GuestData(name="Carla"), GuestData(name="Dario")],
            payment=self.payment("200", "txn-guest"),
        )
        registration.refresh_from_db()
        after_add = registration.total_amount
        new_ids = list(registration.guests.order_by("-id").values_list("id", flat=True)[:2])

        remove_guests(registration, new_ids)
        registration.refresh_from_db()

        assert registration.active_guests == 1
        assert registration.donation_amount == Decimal("200.00")
        assert registration.total_amount == after_add
        assert registration.total_amount == before + Decimal("200.00")
        verify_registration_totals(registration)

    def test_guest_changes_close_with_the_modification_window(self):
        event = self.create_event(start=timezone.now() + timedelta(days=3))
        registration = self.register(event, guests=1)
        late = timezone.now() + timedelta(days=2, hours=12)

        with pytest.raises(StateConflictError) as exc_info:
            remove_guests(registration, [registration.guests.get().pk], now=late)

        assert exc_info.value.reason.startswith("Modification deadline has passed")

    def test_removing_unknown_or_cancelled_guest(self):
        event = self.create_event()
        registration = self.register(event, guests=1)
        guest = registration.guests.get()
        remove_guests(registration, [guest.pk])

        with pytest.raises(NotFoundError):
            remove_guests(registration, [guest.pk])

    def test_confirm_payment(self):
        event = self.create_event()
        registration = self.register(event)

        with pytest.raises(StateConflictError):
            confirm_registration_payment(registration, self.payment("100"))

        confirmed = confirm_registration_payment(registration, self.payment("500", "txn-full"))

        assert confirmed.payment_status == PaymentStatus.COMPLETED
        assert confirmed.payment_reference == "txn-full"
        with pytest.raises(StateConflictError):
            confirm_registration_payment(registration, self.payment("500", "txn-again"))

    def test_cancel_keeps_amounts_and_frees_the_seat(self):
        event = self.create_event(capacity=1)
        registration = self.register(event, guests=1)
        self.create_item(event)

        cancelled = cancel_registration(registration)

        assert cancelled.status == RegistrationStatus.CANCELLED
        assert cancelled.total_amount == Decimal("600.00")
        assert self.register(event, self.create_user("next")).status == RegistrationStatus.CONFIRMED
        with pytest.raises(StateConflictError):
            cancel_registration(registration)
        with pytest.raises(StateConflictError):
            add_guests(registration, [GuestData(name="Late")], payment=self.payment("100", "txn-late"))

    def test_guest_summary(self):
        event = self.create_event()
        field = self.create_field(event, kind=FormKind.GUEST, name="allergy", label="Allergy")
        registration = create_registration(
            event,
            self.create_user(),
            guests=[
                GuestData(name="Anna", meal_preference=MealPreference.VEG, responses={field.id: "none"}),
                GuestData(name="Bruno", meal_preference=MealPreference.NON_VEG),
                GuestData(name="Carla", meal_preference=MealPreference.VEG),
            ],
        )
        remove_guests(registration, [registration.guests.get(name="Carla").pk])

        summary = guest_summary(registration)

        assert summary["total_guests"] == 3
        assert summary["active_guests"] == 2
        assert summary["cancelled_guests"] == 1
        assert summary["active_fee_total"] == Decimal("200.00")
        assert summary["forms_completed"] == 1
        assert summary["forms_pending"] == 1
        assert summary["meal_preferences"] == {"VEG": 1, "NON_VEG": 1}

    def test_update_responses_within_window(self):
        event = self.create_event()
        field = self.create_field(event, name="city", label="City", required=True)
        registration = create_registration(event, self.create_user(), responses={field.id: "Pune"})

        assert update_registration_responses(registration, {field.id: "Mumbai"}) == 1
        assert FormResponse.objects.get(registration=registration).value == "Mumbai"

        with pytest.raises(ValidationError):
            update_registration_responses(registration, {field.id: ""})


class TestRegistrationConsistency(TestCase, BaseTestCase):
    """Test that broken totals are detected and never stored"""

    def test_saving_a_wrong_total_is_refused(self):
        event = self.create_event()
        registration = self.create_registration(event, self.create_user())
        registration.donation_amount = Decimal("10.00")

        with pytest.raises(ConsistencyViolation):
            registration.save()

    def test_verify_detects_guest_fee_mismatch(self):
        event = self.create_event()
        registration = create_registration(event, self.create_user(), guests=[GuestData(name="Anna")])
        registration.guests.update(fee_paid=Decimal("80.00"))

        with pytest.raises(ConsistencyViolation):
            verify_registration_totals(registration)

    def test_verify_detects_total_mismatch(self):
        event = self.create_event()
        registration = self.create_registration(event, self.create_user())
        Registration.objects.filter(pk=registration.pk).update(total_amount=Decimal("1.00"))
        registration.refresh_from_db()

        with pytest.raises(ConsistencyViolation):
            verify_registration_totals(registration)
