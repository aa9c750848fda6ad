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
"""Fee computation for registrations, guests, merchandise and donations.

Every amount is a two-decimal ``Decimal``; totals are always the plain sum of
their components, so ``total_amount`` can be re-derived from a breakdown at
any time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.utils.translation import gettext as _

from eventcommerce.accounting.base import format_amount, quantize_amount
from eventcommerce.utils.exceptions import ConsistencyViolation, FieldError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

__all__ = [
    "FeeBreakdown",
    "GuestDelta",
    "GuestRemovalPolicy",
    "NoRefundDonationPolicy",
    "compute_guest_delta",
    "compute_initial_fees",
    "guest_fee_impact",
    "quantize_amount",
]


@dataclass(frozen=True)
class FeeBreakdown:
    """Monetary components of a registration."""

    registration_fee: Decimal
    guest_fees: Decimal
    merchandise_total: Decimal
    donation_amount: Decimal
    guest_count: int = 0

    @property
    def total_amount(self) -> Decimal:
        return self.registration_fee + self.guest_fees + self.merchandise_total + self.donation_amount

    def as_dict(self) -> dict[str, Any]:
        return {
            "registration_fee": self.registration_fee,
            "guest_count": self.guest_count,
            "guest_fees": self.guest_fees,
            "merchandise_total": self.merchandise_total,
            "donation_amount": self.donation_amount,
            "total_amount": self.total_amount,
        }


@dataclass(frozen=True)
class GuestDelta:
    """Outcome of adding or removing guests on an existing registration.

    Attributes:
        guest_count: Active guests after the change
        guest_fees: Guest fees held by the registration after the change
        donation_amount: Donation after the change
        total_amount: Recomputed total
        requires_payment: Whether more money must be collected first
        additional_amount: Amount to collect, zero on removal
        converted_to_donation: Removed guest fees moved into the donation

    """

    guest_count: int
    guest_fees: Decimal
    donation_amount: Decimal
    total_amount: Decimal
    requires_payment: bool
    additional_amount: Decimal
    converted_to_donation: Decimal = Decimal("0.00")


class GuestRemovalPolicy:
    """Decides what happens to the fees of removed guests."""

    def settle(self, removed_fees: Decimal) -> tuple[Decimal, Decimal]:
        """Split removed guest fees into (refund, donation) parts.

        The two parts must add up to ``removed_fees``.
        """
        raise NotImplementedError


class NoRefundDonationPolicy(GuestRemovalPolicy):
    """Removed guest fees are never refunded, they become a goodwill donation."""

    def settle(self, removed_fees: Decimal) -> tuple[Decimal, Decimal]:
        return Decimal("0.00"), quantize_amount(removed_fees)


default_removal_policy = NoRefundDonationPolicy()


def compute_initial_fees(
    registration_fee: Decimal,
    guest_count: int,
    guest_fee: Decimal,
    merchandise_line_totals: Iterable[Decimal] = (),
    donation_amount: Decimal = Decimal(0),
) -> FeeBreakdown:
    """Compute the fee breakdown of a new registration.

    Args:
        registration_fee: Event registration fee
        guest_count: Number of guests declared at signup
        guest_fee: Fee charged per guest
        merchandise_line_totals: Line totals of merchandise bought with the signup
        donation_amount: Voluntary donation

    Returns:
        FeeBreakdown whose ``total_amount`` is the sum of every component

    Raises:
        ValidationError: If a count or amount is negative

    """
    errors = []
    if guest_count < 0:
        errors.append(FieldError(None, "guest_count", _("Guest count cannot be negative")))

    donation = quantize_amount(donation_amount)
    if donation < 0:
        errors.append(FieldError(None, "donation_amount", _("Donation cannot be negative")))

    merchandise = [quantize_amount(line) for line in merchandise_line_totals]
    if any(line < 0 for line in merchandise):
        errors.append(FieldError(None, "merchandise", _("Merchandise totals cannot be negative")))

    if errors:
        raise ValidationError(errors)

    return FeeBreakdown(
        registration_fee=quantize_amount(registration_fee),
        guest_fees=quantize_amount(quantize_amount(guest_fee) * guest_count),
        merchandise_total=quantize_amount(sum(merchandise, Decimal(0))),
        donation_amount=donation,
        guest_count=guest_count,
    )


def compute_guest_delta(
    registration: Any,
    guest_count_change: int,
    guest_fee: Decimal,
    *,
    removed_guest_fees: Iterable[Decimal] | None = None,
    policy: GuestRemovalPolicy | None = None,
) -> GuestDelta:
    """Recompute the fees of a registration after guests are added or removed.

    Adding guests brings the guest fees to ``new_count * guest_fee``; only the part
    above what was already paid is owed. Removing guests hands their fees to the
    removal policy; with the default policy they become donation and the total
    does not change.

    Args:
        registration: Object exposing the registration amounts and ``active_guests``
        guest_count_change: Positive to add guests, negative to remove them
        guest_fee: Fee charged per guest
        removed_guest_fees: Exact fees paid by the removed guests, defaults to
            ``guest_fee`` per removed guest
        policy: Policy applied to removed fees

    Returns:
        GuestDelta describing the new state of the registration

    Raises:
        ValidationError: If more guests are removed than are active
        ConsistencyViolation: If removed fees exceed the guest fees on record

    """
    policy = policy or default_removal_policy
    guest_fee = quantize_amount(guest_fee)
    current_count = registration.active_guests
    current_guest_fees = quantize_amount(registration.guest_fees_paid)
    current_donation = quantize_amount(registration.donation_amount)
    other_components = quantize_amount(registration.registration_fee_paid) + quantize_amount(
        registration.merchandise_total,
    )

    if guest_count_change >= 0:
        new_count = current_count + guest_count_change
        # every new guest pays the current fee, guests already on record keep what they paid
        additional = quantize_amount(guest_fee * guest_count_change)
        new_guest_fees = current_guest_fees + additional
        return GuestDelta(
            guest_count=new_count,
            guest_fees=new_guest_fees,
            donation_amount=current_donation,
            total_amount=other_components + new_guest_fees + current_donation,
            requires_payment=additional > 0,
            additional_amount=additional,
        )

    removed_count = -guest_count_change
    if removed_count > current_count:
        raise ValidationError(
            [
                FieldError(
                    None,
                    "guests",
                    _("Cannot remove %(removed)d guests, only %(active)d active")
                    % {"removed": removed_count, "active": current_count},
                ),
            ],
        )

    if removed_guest_fees is None:
        removed_fees = quantize_amount(guest_fee * removed_count)
    else:
        removed_fees = quantize_amount(sum((quantize_amount(fee) for fee in removed_guest_fees), Decimal(0)))

    if removed_fees > current_guest_fees:
        msg = f"removed guest fees {removed_fees} exceed guest fees on record {current_guest_fees}"
        raise ConsistencyViolation(msg)

    refund, donation_part = policy.settle(removed_fees)
    if refund + donation_part != removed_fees:
        msg = f"removal policy split {removed_fees} into {refund} + {donation_part}"
        raise ConsistencyViolation(msg)

    new_guest_fees = current_guest_fees - removed_fees
    new_donation = current_donation + donation_part
    logger.debug("Removing %s guests: %s refunded, %s to donation", removed_count, refund, donation_part)
    return GuestDelta(
        guest_count=current_count - removed_count,
        guest_fees=new_guest_fees,
        donation_amount=new_donation,
        total_amount=other_components + new_guest_fees + new_donation,
        requires_payment=False,
        additional_amount=Decimal("0.00"),
        converted_to_donation=donation_part,
    )


def guest_fee_impact(
    action: str,
    guest_count: int,
    guest_fee: Decimal,
    policy: GuestRemovalPolicy | None = None,
) -> dict:
    """Describe what adding or removing guests would cost, for display before confirming.

    Args:
        action: Either "add" or "remove"
        guest_count: Number of guests involved
        guest_fee: Fee charged per guest
        policy: Policy applied to removed fees

    Returns:
        Dictionary with fee change, donation change, refund and a display message

    """
    policy = policy or default_removal_policy
    amount = quantize_amount(quantize_amount(guest_fee) * guest_count)

    if action == "remove":
        refund, donation = policy.settle(amount)
        if refund:
            message = _("Guest fee of %(amount)s refunded") % {"amount": format_amount(refund)}
        else:
            message = _("Guest fee of %(amount)s converted to donation as per no-refund policy") % {
                "amount": format_amount(donation),
            }
        return {
            "fee_change": -amount,
            "donation_change": donation,
            "refund_amount": refund,
            "payment_required": False,
            "message": message,
        }

    if action != "add":
        msg = f"unknown guest action {action}"
        raise ValueError(msg)

    return {
        "fee_change": amount,
        "donation_change": Decimal("0.00"),
        "refund_amount": Decimal("0.00"),
        "payment_required": amount > 0,
        "message": _("Additional payment of %(amount)s required for %(count)d guest(s)")
        % {"amount": format_amount(amount), "count": guest_count},
    }
