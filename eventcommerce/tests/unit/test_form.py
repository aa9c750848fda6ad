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

import json

import pytest

from eventcommerce.models.form import FieldType, FormKind
from eventcommerce.tests.unit.base import BaseTestCase
from eventcommerce.utils.exceptions import ValidationError
from eventcommerce.utils.form import (
    ChoiceFieldSpec,
    DateFieldSpec,
    NumberFieldSpec,
    TextFieldSpec,
    check_form_responses,
    field_spec_from_model,
    get_form_specs,
    validate_form_responses,
)


def checkbox_spec(**kwargs):
    defaults = {
        "field_id": 1,
        "name": "tracks",
        "label": "Tracks",
        "kind": FieldType.CHECKBOX,
        "options": ("A", "B", "C"),
    }
    defaults.update(kwargs)
    return ChoiceFieldSpec(**defaults)


class TestFormValidation:
    def test_checkbox_with_one_invalid_option_gives_one_error(self):
        errors = validate_form_responses([checkbox_spec()], {1: json.dumps(["A", "D"])})

        assert len(errors) == 1
        assert errors[0].field_id == 1
        assert "D" in errors[0].message
        assert "A" not in errors[0].message.split(":")[-1]

    def test_checkbox_must_be_a_json_list(self):
        errors = validate_form_responses([checkbox_spec()], {1: "A,B"})

        assert [error.message for error in errors] == ["Tracks must be a valid selection"]

    def test_checkbox_valid_selection(self):
        assert validate_form_responses([checkbox_spec()], {1: '["A", "C"]'}) == []

    def test_select_membership(self):
        spec = ChoiceFieldSpec(field_id=2, name="size", label="Size", options=("S", "M"))

        assert validate_form_responses([spec], {2: "M"}) == []
        assert len(validate_form_responses([spec], {2: "XL"})) == 1

    def test_required_and_optional_empty_fields(self):
        specs = [
            TextFieldSpec(field_id=1, name="name", label="Name", required=True),
            TextFieldSpec(field_id=2, name="email", label="Email", kind=FieldType.EMAIL),
        ]

        errors = validate_form_responses(specs, {1: "   ", 2: ""})

        assert [error.message for error in errors] == ["Name is required"]

    def test_email_and_phone_patterns(self):
        specs = [
            TextFieldSpec(field_id=1, name="email", label="Email", kind=FieldType.EMAIL),
            TextFieldSpec(field_id=2, name="phone", label="Phone", kind=FieldType.PHONE),
        ]

        assert validate_form_responses(specs, {1: "someone@example.com", 2: "+91 (98) 765-43210"}) == []

        errors = validate_form_responses(specs, {1: "someone@example", 2: "0123"})
        assert [error.field_name for error in errors] == ["email", "phone"]

    def test_all_errors_are_collected(self):
        specs = [
            TextFieldSpec(field_id=1, name="code", label="Code", min_length=5, max_length=3, pattern=r"^\d+$"),
            TextFieldSpec(field_id=2, name="city", label="City", required=True),
            checkbox_spec(field_id=3),
        ]

        errors = validate_form_responses(specs, {1: "abcd", 3: '["Z"]'})

        messages = [error.message for error in errors]
        assert messages == [
            "Code must be at least 5 characters",
            "Code must be no more than 3 characters",
            "Code format is invalid",
            "City is required",
            "Tracks contains invalid options: Z",
        ]

    def test_string_keys_are_accepted(self):
        spec = TextFieldSpec(field_id=7, name="note", label="Note", required=True)

        assert validate_form_responses([spec], {"7": "hello"}) == []

    def test_number_and_date(self):
        specs = [
            NumberFieldSpec(field_id=1, name="age", label="Age"),
            DateFieldSpec(field_id=2, name="arrival", label="Arrival"),
        ]

        assert validate_form_responses(specs, {1: "42", 2: "2026-03-01"}) == []
        assert len(validate_form_responses(specs, {1: "forty", 2: "01/03/2026"})) == 2

    def test_custom_rules_apply_to_number_and_choice_fields(self):
        specs = [
            NumberFieldSpec(field_id=1, name="pin", label="Pin", pattern=r"^\d{4}$", max_length=4),
            ChoiceFieldSpec(field_id=2, name="size", label="Size", options=("S", "M", "XXXL"), max_length=2),
        ]

        errors = validate_form_responses(specs, {1: "123456", 2: "XXXL"})

        assert [(error.field_name, error.message) for error in errors] == [
            ("pin", "Pin must be no more than 4 characters"),
            ("pin", "Pin format is invalid"),
            ("size", "Size must be no more than 2 characters"),
        ]
        assert validate_form_responses(specs, {1: "1234", 2: "M"}) == []

    def test_custom_rules_run_after_a_failed_type_check(self):
        spec = DateFieldSpec(field_id=1, name="arrival", label="Arrival", min_length=10)

        errors = validate_form_responses([spec], {1: "tomorrow"})

        assert [error.message for error in errors] == [
            "Arrival must be a valid date (YYYY-MM-DD)",
            "Arrival must be at least 10 characters",
        ]

    def test_phone_without_prefix_uses_default_region(self):
        spec = TextFieldSpec(field_id=1, name="phone", label="Phone", kind=FieldType.PHONE)

        assert validate_form_responses([spec], {1: "98765 43210"}) == []
        assert len(validate_form_responses([spec], {1: "12"})) == 1

    def test_check_form_responses_raises_with_every_error(self):
        specs = [
            TextFieldSpec(field_id=1, name="a", label="A", required=True),
            TextFieldSpec(field_id=2, name="b", label="B", required=True),
        ]

        with pytest.raises(ValidationError) as exc_info:
            check_form_responses(specs, {})

        assert len(exc_info.value.errors) == 2
        assert "A is required" in str(exc_info.value)


class TestFormSpecs(BaseTestCase):
    def test_specs_follow_field_order_and_kind(self):
        event = self.create_event()
        self.create_field(event, name="second", label="Second", order=2)
        self.create_field(
            event,
            name="first",
            label="First",
            typ=FieldType.RADIO,
            options=["yes", "no"],
            required=True,
            order=1,
        )
        self.create_field(event, kind=FormKind.GUEST, name="meal", label="Meal")

        specs = get_form_specs(event, FormKind.EVENT)

        assert [spec.name for spec in specs] == ["first", "second"]
        assert isinstance(specs[0], ChoiceFieldSpec)
        assert specs[0].options == ("yes", "no")
        assert specs[0].required
        assert isinstance(specs[1], TextFieldSpec)

    def test_text_rules_are_carried(self):
        event = self.create_event()
        field = self.create_field(event, typ=FieldType.EMAIL, min_length=3, pattern=r"@corp\.com$")

        spec = field_spec_from_model(field)

        assert spec.kind == FieldType.EMAIL
        assert spec.min_length == 3
        assert spec.pattern == r"@corp\.com$"
        assert validate_form_responses([spec], {field.id: "me@other.com"})[0].message == "Field format is invalid"

    def test_rules_of_stored_number_and_select_fields_are_carried(self):
        event = self.create_event()
        pin = self.create_field(event, name="pin", label="Pin", typ=FieldType.NUMBER, pattern=r"^\d{4}$", max_length=4)
        size = self.create_field(
            event,
            name="size",
            label="Size",
            typ=FieldType.SELECT,
            options=["S", "M", "XXXL"],
            max_length=2,
        )

        specs = [field_spec_from_model(pin), field_spec_from_model(size)]

        assert isinstance(specs[0], NumberFieldSpec)
        assert specs[0].max_length == 4
        errors = validate_form_responses(specs, {pin.id: "123456", size.id: "XXXL"})
        assert [error.field_name for error in errors] == ["pin", "pin", "size"]
