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
"""Validation of submitted custom form responses.

Each field kind is a small frozen dataclass carrying only what its checks
need; ``validate_form_responses`` runs every field and returns all errors.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Union

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.utils.translation import gettext as _
from phonenumber_field.phonenumber import PhoneNumber
from phonenumbers import NumberParseException

from eventcommerce.models.form import FieldType, FormField
from eventcommerce.utils.exceptions import FieldError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)

PHONE_SEPARATORS_RE = re.compile(r"[\s\-()]")


def is_valid_email(value: str) -> bool:
    try:
        validate_email(value)
    except DjangoValidationError:
        return False
    return True


def is_valid_phone(value: str) -> bool:
    """Check a phone number, read in ``PHONENUMBER_DEFAULT_REGION`` when it has no prefix."""
    try:
        number = PhoneNumber.from_string(PHONE_SEPARATORS_RE.sub("", value))
    except NumberParseException:
        return False
    return number.is_valid()


@dataclass(frozen=True, kw_only=True)
class BaseFieldSpec:
    """Common part of every field: identity, required flag and the custom rules.

    The type check of the subclass runs first, then the length and pattern
    rules, which apply to every field kind.
    """

    field_id: int | str
    name: str
    label: str
    required: bool = False
    min_length: int | None = None
    max_length: int | None = None
    pattern: str = ""

    def error(self, message: str) -> FieldError:
        return FieldError(self.field_id, self.name, message)

    def check_type(self, value: str) -> list[FieldError]:
        return []

    def check_rules(self, value: str) -> list[FieldError]:
        errors = []
        if self.min_length and len(value) < self.min_length:
            errors.append(
                self.error(
                    _("%(label)s must be at least %(count)d characters")
                    % {"label": self.label, "count": self.min_length},
                ),
            )

        if self.max_length and len(value) > self.max_length:
            errors.append(
                self.error(
                    _("%(label)s must be no more than %(count)d characters")
                    % {"label": self.label, "count": self.max_length},
                ),
            )

        if self.pattern and not re.search(self.pattern, value):
            errors.append(self.error(_("%(label)s format is invalid") % {"label": self.label}))

        return errors

    def check(self, value: str) -> list[FieldError]:
        """Return every problem of a non empty value."""
        return self.check_type(value) + self.check_rules(value)


@dataclass(frozen=True, kw_only=True)
class TextFieldSpec(BaseFieldSpec):
    """Free text field, also used for email and phone answers."""

    kind: str = FieldType.TEXT

    def check_type(self, value: str) -> list[FieldError]:
        if self.kind == FieldType.EMAIL and not is_valid_email(value):
            return [self.error(_("%(label)s must be a valid email address") % {"label": self.label})]

        if self.kind == FieldType.PHONE and not is_valid_phone(value):
            return [self.error(_("%(label)s must be a valid phone number") % {"label": self.label})]

        return []


@dataclass(frozen=True, kw_only=True)
class ChoiceFieldSpec(BaseFieldSpec):
    """Select, radio or checkbox field restricted to a set of options.

    Checkbox values are a JSON list of the selected options.
    """

    kind: str = FieldType.SELECT
    options: tuple[str, ...] = field(default_factory=tuple)

    def check_type(self, value: str) -> list[FieldError]:
        if self.kind != FieldType.CHECKBOX:
            if value not in self.options:
                return [self.error(_("%(label)s must be one of the provided options") % {"label": self.label})]
            return []

        try:
            selected = json.loads(value)
        except ValueError:
            selected = None

        if not isinstance(selected, list):
            return [self.error(_("%(label)s must be a valid selection") % {"label": self.label})]

        invalid = [str(option) for option in selected if option not in self.options]
        if invalid:
            return [
                self.error(
                    _("%(label)s contains invalid options: %(options)s")
                    % {"label": self.label, "options": ", ".join(invalid)},
                ),
            ]
        return []


@dataclass(frozen=True, kw_only=True)
class NumberFieldSpec(BaseFieldSpec):
    def check_type(self, value: str) -> list[FieldError]:
        try:
            number = Decimal(value.strip())
        except InvalidOperation:
            number = None
        if number is None or not number.is_finite():
            return [self.error(_("%(label)s must be a number") % {"label": self.label})]
        return []


@dataclass(frozen=True, kw_only=True)
class DateFieldSpec(BaseFieldSpec):
    def check_type(self, value: str) -> list[FieldError]:
        try:
            date.fromisoformat(value.strip())
        except ValueError:
            return [self.error(_("%(label)s must be a valid date (YYYY-MM-DD)") % {"label": self.label})]
        return []


FieldSpec = Union[TextFieldSpec, ChoiceFieldSpec, NumberFieldSpec, DateFieldSpec]


def field_spec_from_model(form_field: FormField) -> FieldSpec:
    """Build the validation spec of a stored form field."""
    common = {
        "field_id": form_field.id,
        "name": form_field.name,
        "label": form_field.label,
        "required": form_field.required,
        "min_length": form_field.min_length,
        "max_length": form_field.max_length,
        "pattern": form_field.pattern or "",
    }

    if form_field.typ in FieldType.get_choice_types():
        return ChoiceFieldSpec(kind=form_field.typ, options=tuple(form_field.options or ()), **common)

    if form_field.typ in FieldType.get_text_types():
        return TextFieldSpec(kind=form_field.typ, **common)

    if form_field.typ == FieldType.NUMBER:
        return NumberFieldSpec(**common)

    if form_field.typ == FieldType.DATE:
        return DateFieldSpec(**common)

    msg = f"unknown form field type {form_field.typ}"
    raise ValueError(msg)


def get_form_specs(event: Any, kind: str, using: str = "default") -> list[FieldSpec]:
    """Load the ordered field specs of an event form, empty if the event has none.

    Args:
        event: Event owning the form
        kind: Form kind, see ``FormKind``
        using: Database alias

    Returns:
        List of field specs in display order

    """
    fields = FormField.objects.using(using).filter(form__event_id=event.id, form__kind=kind).order_by("order", "id")
    return [field_spec_from_model(form_field) for form_field in fields]


def is_empty(value: str | None) -> bool:
    return value is None or not str(value).strip()


def validate_form_responses(specs: Iterable[FieldSpec], responses: Mapping[Any, str]) -> list[FieldError]:
    """Validate submitted responses against a form schema.

    Every field is checked and every problem is reported. Missing optional
    fields are skipped, without any type check on them.

    Args:
        specs: Ordered field specs of the form
        responses: Submitted values, keyed by field id

    Returns:
        List of field errors, empty when the submission is valid

    """
    errors = []
    for spec in specs:
        value = responses.get(spec.field_id)
        if value is None:
            # accept string keys from decoded JSON payloads
            value = responses.get(str(spec.field_id))

        if is_empty(value):
            if spec.required:
                errors.append(spec.error(_("%(label)s is required") % {"label": spec.label}))
            continue

        errors.extend(spec.check(str(value)))

    if errors:
        logger.debug("Form validation found %s errors", len(errors))
    return errors


def check_form_responses(specs: Iterable[FieldSpec], responses: Mapping[Any, str]) -> None:
    """Raise a ValidationError listing every problem of the submitted responses."""
    errors = validate_form_responses(specs, responses)
    if errors:
        raise ValidationError(errors)
