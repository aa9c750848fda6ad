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
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.utils import timezone
from django.utils.translation import gettext as _

from eventcommerce.accounting.base import PaymentConfirmation, check_payment_covers, quantize_amount
from eventcommerce.accounting.fees import GuestDelta, GuestRemovalPolicy, compute_guest_delta, compute_initial_fees
from eventcommerce.cache.batch import get_registration_mode
from eventcommerce.models.event import Event
from eventcommerce.models.form import FormKind, FormResponse
from eventcommerce.models.registration import (
    Guest,
    GuestStatus,
    MealPreference,
    PaymentStatus,
    Registration,
    RegistrationMode,
    RegistrationStatus,
)
from eventcommerce.utils.cohort import CohortProvider, ModelCohortProvider
from eventcommerce.utils.deadlines import check_can_modify
from eventcommerce.utils.exceptions import (
    ConsistencyViolation,
    FieldError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from eventcommerce.utils.form import (
    FieldSpec,
    get_form_specs,
    is_empty,
    is_valid_email,
    is_valid_phone,
    validate_form_responses,
)
from eventcommerce.utils.registration import check_registration_eligibility, registration_status_text

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from django.contrib.auth.models import AbstractBaseUser
    from django.core.cache.backends.base import BaseCache

logger = logging.getLogger(__name__)

__all__ = [
    "GuestData",
    "add_guests",
    "cancel_registration",
    "confirm_registration_payment",
    "create_registration",
    "guest_summary",
    "registration_status_text",
    "remove_guests",
    "update_registration_responses",
    "verify_registration_totals",
]


@dataclass(frozen=True)
class GuestData:
    """Guest details submitted with a registration or a guest addition."""

    name: str
    email: str = ""
    phone: str = ""
    meal_preference: str = ""
    responses: dict = field(default_factory=dict)


def _validate_guests(guests: Iterable[GuestData], specs: list[FieldSpec]) -> list[FieldError]:
    errors = []
    for idx, guest in enumerate(guests, start=1):
        prefix = f"guests[{idx}]"
        if is_empty(guest.name):
            errors.append(FieldError(None, f"{prefix}.name", _("Guest name is required")))

        if guest.meal_preference and guest.meal_preference not in MealPreference.values:
            errors.append(FieldError(None, f"{prefix}.meal_preference", _("Invalid meal preference")))

        if guest.email and not is_valid_email(guest.email):
            errors.append(FieldError(None, f"{prefix}.email", _("Invalid guest email address")))

        if guest.phone and not is_valid_phone(guest.phone):
            errors.append(FieldError(None, f"{prefix}.phone", _("Invalid guest phone number")))

        for error in validate_form_responses(specs, guest.responses):
            errors.append(FieldError(error.field_id, f"{prefix}.{error.field_name}", error.message))
    return errors


def _save_responses(
    registration: Registration,
    specs: list[FieldSpec],
    responses: Mapping[Any, str],
    guest: Guest | None = None,
    using: str = "default",
) -> int:
    """Store the non empty responses of a validated form, replacing previous answers."""
    saved = 0
    for spec in specs:
        value = responses.get(spec.field_id, responses.get(str(spec.field_id)))
        lookup = {"registration": registration, "guest": guest, "field_id": spec.field_id}
        if is_empty(value):
            FormResponse.objects.using(using).filter(**lookup).delete()
            continue
        FormResponse.objects.using(using).update_or_create(**lookup, defaults={"value": str(value).strip()})
        saved += 1
    return saved


def _create_guests(
    registration: Registration,
    guests: Iterable[GuestData],
    fee: Decimal,
    specs: list[FieldSpec],
    using: str,
    payment_reference: str = "",
) -> list[Guest]:
    created = []
    for data in guests:
        guest = Guest(
            registration=registration,
            name=data.name.strip(),
            email=data.email,
            phone=data.phone,
            meal_preference=data.meal_preference,
            fee_paid=fee,
            payment_reference=payment_reference,
        )
        guest.save(using=using)
        _save_responses(registration, specs, data.responses, guest=guest, using=using)
        created.append(guest)
    return created


def _check_registration_mode(
    event: Event,
    user_id: int,
    cohorts: CohortProvider,
    cache_handle: BaseCache | None,
    using: str,
) -> None:
    mode = get_registration_mode(event.id, cohorts.cohort_of(user_id), cache_handle=cache_handle, using=using)
    if mode == RegistrationMode.BATCH_PENDING:
        raise StateConflictError(
            _("Batch collection mode is active for your cohort. Individual registration is not allowed."),
        )
    if mode == RegistrationMode.BATCH_AUTO_REGISTERED:
        raise StateConflictError(_("Your cohort is registered for this event via batch collection"))


def create_registration(
    event: Event,
    user: AbstractBaseUser,
    *,
    guests: Iterable[GuestData] = (),
    donation_amount: Decimal = Decimal(0),
    responses: Mapping[Any, str] | None = None,
    payment: PaymentConfirmation | None = None,
    cohorts: CohortProvider | None = None,
    cache_handle: BaseCache | None = None,
    using: str = "default",
    now: datetime | None = None,
) -> Registration:
    """Register a user individually for an event.

    Input is validated first, then the eligibility check and the insert run in
    one transaction holding a lock on the event row, so two concurrent signups
    cannot both take the last seat.

    Args:
        event: Event to register for
        user: Registering user
        guests: Guests declared at signup
        donation_amount: Voluntary donation
        responses: Answers to the event form, keyed by field id
        payment: Completed payment collected for the registration, if any
        cohorts: Cohort provider used to detect batch collections of the user
        cache_handle: Cache used for the registration mode lookup
        using: Database alias
        now: Current time, defaults to ``timezone.now()``

    Returns:
        The confirmed Registration

    Raises:
        ValidationError: If the form, guests or amounts are invalid
        StateConflictError: If the user cannot register right now

    """
    guests = list(guests)
    responses = responses or {}
    cohorts = cohorts or ModelCohortProvider(using)

    if guests and not event.has_guests:
        raise StateConflictError(_("This event does not allow guests"))

    event_specs = get_form_specs(event, FormKind.EVENT, using)
    guest_specs = get_form_specs(event, FormKind.GUEST, using) if guests else []
    errors = validate_form_responses(event_specs, responses)
    errors.extend(_validate_guests(guests, guest_specs))
    if errors:
        raise ValidationError(errors)

    fees = compute_initial_fees(event.registration_fee, len(guests), event.guest_fee, (), donation_amount)

    _check_registration_mode(event, user.pk, cohorts, cache_handle, using)

    try:
        with transaction.atomic(using=using):
            locked_event = Event.objects.using(using).select_for_update().get(pk=event.pk)
            result = check_registration_eligibility(locked_event, user.pk, now=now, using=using)
            if not result.allowed:
                raise StateConflictError(result.reason)

            paid = fees.total_amount == 0 or (payment is not None and payment.amount >= fees.total_amount)
            registration = Registration(
                event=locked_event,
                user=user,
                status=RegistrationStatus.CONFIRMED,
                payment_status=PaymentStatus.COMPLETED if paid else PaymentStatus.PENDING,
                mode=RegistrationMode.INDIVIDUAL,
                registration_fee_paid=fees.registration_fee,
                guest_fees_paid=fees.guest_fees,
                merchandise_total=fees.merchandise_total,
                donation_amount=fees.donation_amount,
                total_amount=fees.total_amount,
                total_guests=len(guests),
                active_guests=len(guests),
                payment_reference=payment.transaction_id if payment else None,
            )
            registration.save(using=using)

            _save_responses(registration, event_specs, responses, using=using)
            _create_guests(
                registration,
                guests,
                quantize_amount(locked_event.guest_fee),
                guest_specs,
                using,
                payment.transaction_id if payment else "",
            )
    except IntegrityError as err:
        raise StateConflictError(_("You are already registered for this event")) from err

    logger.info(
        "Registration %s created for user %s on event %s, total %s (%s)",
        registration.pk,
        user.pk,
        event.pk,
        registration.total_amount,
        registration.payment_status,
    )
    return registration


def _lock_registration(registration: Registration, using: str) -> Registration:
    try:
        return Registration.objects.using(using).select_for_update().get(pk=registration.pk)
    except Registration.DoesNotExist as err:
        raise NotFoundError(_("Registration not found")) from err


def confirm_registration_payment(
    registration: Registration,
    payment: PaymentConfirmation,
    using: str = "default",
) -> Registration:
    """Mark a pending registration as paid once a covering payment is confirmed.

    Raises:
        StateConflictError: If the registration is cancelled, already paid or the payment is short

    """
    with transaction.atomic(using=using):
        locked = _lock_registration(registration, using)
        if locked.status == RegistrationStatus.CANCELLED:
            raise StateConflictError(_("Cannot pay for a cancelled registration"))
        if locked.payment_status == PaymentStatus.COMPLETED:
            raise StateConflictError(_("Payment already completed for this registration"))

        check_payment_covers(payment, locked.total_amount)
        locked.payment_status = PaymentStatus.COMPLETED
        locked.payment_reference = payment.transaction_id
        locked.save(using=using, update_fields=["payment_status", "payment_reference", "updated"])

    logger.info("Payment %s confirmed for registration %s", payment.transaction_id, locked.pk)
    return locked


def cancel_registration(
    registration: Registration,
    using: str = "default",
    now: datetime | None = None,
) -> Registration:
    """Cancel a registration, releasing its seat. Amounts paid are kept, nothing is refunded."""
    now = now or timezone.now()
    with transaction.atomic(using=using):
        locked = _lock_registration(registration, using)
        if locked.status == RegistrationStatus.CANCELLED:
            raise StateConflictError(_("Registration is already cancelled"))

        locked.status = RegistrationStatus.CANCELLED
        locked.cancellation_date = now
        locked.save(using=using, update_fields=["status", "cancellation_date", "updated"])
        locked.cart_orders.using(using).all().delete()

    logger.info("Registration %s cancelled", locked.pk)
    return locked


def _check_guest_changes_allowed(registration: Registration, event: Event, now: datetime | None) -> None:
    if registration.status != RegistrationStatus.CONFIRMED:
        raise StateConflictError(_("Only confirmed registrations can be modified"))
    check_can_modify(registration, event, now)


def add_guests(
    registration: Registration,
    guests: Iterable[GuestData],
    *,
    payment: PaymentConfirmation | None = None,
    using: str = "default",
    now: datetime | None = None,
) -> GuestDelta:
    """Add guests to a confirmed registration.

    Guests only become active together with the payment covering their fees.

    Args:
        registration: Registration receiving the guests
        guests: Guests to add
        payment: Completed payment for the additional guest fees
        using: Database alias
        now: Current time, defaults to ``timezone.now()``

    Returns:
        GuestDelta applied to the registration

    Raises:
        ValidationError: If guest details or guest form answers are invalid
        StateConflictError: If guests cannot be added or the payment does not cover them

    """
    guests = list(guests)
    if not guests:
        raise ValidationError([FieldError(None, "guests", _("At least one guest is required"))])

    event = Event.objects.using(using).get(pk=registration.event_id)
    if not event.has_guests:
        raise StateConflictError(_("This event does not allow guests"))

    guest_specs = get_form_specs(event, FormKind.GUEST, using)
    errors = _validate_guests(guests, guest_specs)
    if errors:
        raise ValidationError(errors)

    with transaction.atomic(using=using):
        locked = _lock_registration(registration, using)
        _check_guest_changes_allowed(locked, event, now)

        delta = compute_guest_delta(locked, len(guests), event.guest_fee)
        check_payment_covers(payment, delta.additional_amount)

        _create_guests(
            locked,
            guests,
            quantize_amount(event.guest_fee),
            guest_specs,
            using,
            payment.transaction_id if payment else "",
        )

        locked.total_guests += len(guests)
        locked.active_guests = delta.guest_count
        locked.guest_fees_paid = delta.guest_fees
        locked.total_amount = delta.total_amount
        locked.save(
            using=using,
            update_fields=["total_guests", "active_guests", "guest_fees_paid", "total_amount", "updated"],
        )

    logger.info(
        "Added %s guests to registration %s, additional payment %s (%s)",
        len(guests),
        locked.pk,
        delta.additional_amount,
        payment.transaction_id if payment else "-",
    )
    return delta


def remove_guests(
    registration: Registration,
    guest_ids: Iterable[int],
    *,
    policy: GuestRemovalPolicy | None = None,
    using: str = "default",
    now: datetime | None = None,
) -> GuestDelta:
    """Cancel guests of a registration, applying the guest removal policy to their fees.

    With the default policy nothing is refunded: the exact fees the removed
    guests paid move into the donation and the total stays the same.

    Raises:
        NotFoundError: If a guest does not belong to the registration or is already cancelled
        StateConflictError: If the registration can no longer be modified

    """
    guest_ids = set(guest_ids)
    if not guest_ids:
        raise ValidationError([FieldError(None, "guests", _("Select at least one guest to remove"))])

    event = Event.objects.using(using).get(pk=registration.event_id)
    now = now or timezone.now()

    with transaction.atomic(using=using):
        locked = _lock_registration(registration, using)
        _check_guest_changes_allowed(locked, event, now)

        removed = list(
            Guest.objects.using(using)
            .select_for_update()
            .filter(registration=locked, pk__in=guest_ids, status=GuestStatus.ACTIVE),
        )
        if len(removed) != len(guest_ids):
            raise NotFoundError(_("Guest not found or already removed"))

        delta = compute_guest_delta(
            locked,
            -len(removed),
            event.guest_fee,
            removed_guest_fees=[guest.fee_paid for guest in removed],
            policy=policy,
        )

        Guest.objects.using(using).filter(pk__in=[guest.pk for guest in removed]).update(
            status=GuestStatus.CANCELLED,
            cancellation_date=now,
            updated=now,
        )

        locked.active_guests = delta.guest_count
        locked.guest_fees_paid = delta.guest_fees
        locked.donation_amount = delta.donation_amount
        locked.total_amount = delta.total_amount
        locked.save(
            using=using,
            update_fields=["active_guests", "guest_fees_paid", "donation_amount", "total_amount", "updated"],
        )

    logger.info(
        "Removed %s guests from registration %s, %s converted to donation",
        len(removed),
        locked.pk,
        delta.converted_to_donation,
    )
    return delta


def update_registration_responses(
    registration: Registration,
    responses: Mapping[Any, str],
    using: str = "default",
    now: datetime | None = None,
) -> int:
    """Replace the event form answers of a registration while it can still be modified.

    Returns:
        Number of answers stored

    """
    event = Event.objects.using(using).get(pk=registration.event_id)
    specs = get_form_specs(event, FormKind.EVENT, using)
    errors = validate_form_responses(specs, responses)
    if errors:
        raise ValidationError(errors)

    with transaction.atomic(using=using):
        locked = _lock_registration(registration, using)
        check_can_modify(locked, event, now)
        return _save_responses(locked, specs, responses, using=using)


def guest_summary(registration: Registration, using: str = "default") -> dict[str, Any]:
    """Summarize the guests of a registration.

    Returns:
        Dictionary with guest counts, the active fee total, how many active
        guests answered the guest form and the meal preference breakdown

    """
    guests = list(Guest.objects.using(using).filter(registration_id=registration.pk))
    active = [guest for guest in guests if guest.status == GuestStatus.ACTIVE]

    answered = set(
        FormResponse.objects.using(using)
        .filter(registration_id=registration.pk, guest__in=active)
        .values_list("guest_id", flat=True),
    )
    meals = Counter(guest.meal_preference or "UNSPECIFIED" for guest in active)

    return {
        "total_guests": len(guests),
        "active_guests": len(active),
        "cancelled_guests": len(guests) - len(active),
        "active_fee_total": quantize_amount(sum((guest.fee_paid for guest in active), Decimal(0))),
        "forms_completed": len(answered),
        "forms_pending": len(active) - len(answered),
        "meal_preferences": dict(meals),
    }


def verify_registration_totals(registration: Registration, using: str = "default") -> None:
    """Check the stored amounts and guest counters of a registration.

    Raises:
        ConsistencyViolation: On the first broken invariant, data is never corrected

    """
    components = registration.get_components_total()
    if quantize_amount(registration.total_amount) != quantize_amount(components):
        msg = f"registration {registration.pk}: total {registration.total_amount} differs from components {components}"
        raise ConsistencyViolation(msg)

    active = Guest.objects.using(using).filter(registration_id=registration.pk, status=GuestStatus.ACTIVE)
    active_count = active.count()
    if active_count != registration.active_guests:
        msg = f"registration {registration.pk}: {active_count} active guests, counter says {registration.active_guests}"
        raise ConsistencyViolation(msg)

    active_fees = quantize_amount(active.aggregate(total=Sum("fee_paid"))["total"])
    if active_fees != quantize_amount(registration.guest_fees_paid):
        msg = (
            f"registration {registration.pk}: active guest fees {active_fees} "
            f"differ from {registration.guest_fees_paid}"
        )
        raise ConsistencyViolation(msg)


def process_registration_pre_save(instance: Registration) -> None:
    """Refuse to store a registration whose total is not the sum of its components."""
    components = instance.get_components_total()
    if quantize_amount(instance.total_amount) != quantize_amount(components):
        msg = f"registration {instance.pk}: total {instance.total_amount} differs from components {components}"
        raise ConsistencyViolation(msg)
