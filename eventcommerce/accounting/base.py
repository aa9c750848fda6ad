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

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings as conf_settings
from django.utils.translation import gettext as _

from eventcommerce.utils.exceptions import FieldError, StateConflictError, ValidationError

CENT = Decimal("0.01")


def quantize_amount(value: Decimal | int | str | None) -> Decimal:
    """Convert a monetary value to a two-decimal Decimal.

    Floats are refused: they would carry binary rounding drift into totals.
    """
    if value is None:
        return Decimal("0.00")
    if isinstance(value, float):
        msg = "monetary amounts must not be floats"
        raise TypeError(msg)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(value: Decimal) -> str:
    """Format an amount for display, dropping a trailing .00."""
    symbol = getattr(conf_settings, "EVENTCOMMERCE_CURRENCY_SYMBOL", "")
    text = f"{quantize_amount(value):.2f}"
    if text.endswith(".00"):
        text = text[:-3]
    return f"{symbol}{text}"


@dataclass(frozen=True)
class PaymentConfirmation:
    """Already verified payment handed over by the gateway integration."""

    amount: Decimal
    transaction_id: str
    payer_id: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", quantize_amount(self.amount))
        if self.amount <= 0:
            raise ValidationError([FieldError(None, "amount", _("Payment amount must be positive"))])
        if not self.transaction_id:
            raise ValidationError([FieldError(None, "transaction_id", _("Transaction reference is required"))])


def check_payment_covers(payment: PaymentConfirmation | None, amount_due: Decimal) -> None:
    """Ensure a payment confirmation covers the amount owed.

    Raises:
        StateConflictError: If no payment was supplied or it is short of the amount due

    """
    amount_due = quantize_amount(amount_due)
    if amount_due <= 0:
        return

    if payment is None:
        raise StateConflictError(
            _("Additional payment of %(amount)s required") % {"amount": format_amount(amount_due)},
        )

    if payment.amount < amount_due:
        raise StateConflictError(
            _("Payment of %(paid)s does not cover the %(amount)s owed")
            % {"paid": format_amount(payment.amount), "amount": format_amount(amount_due)},
        )
