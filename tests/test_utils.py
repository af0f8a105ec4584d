"""Unit tests for placeholder rendering, phone normalization and masking."""

import pytest

from notification_engine.utils import (
    mask_address,
    normalize_phone,
    render_template,
)


class TestRenderTemplate:
    """Tests for literal {field} substitution."""

    def test_substitutes_known_fields(self):
        result = render_template(
            "{student_name} was absent on {attendance_date}.",
            {"student_name": "Amani", "attendance_date": "2024-05-06"},
        )
        assert result == "Amani was absent on 2024-05-06."

    def test_missing_field_renders_empty(self):
        assert render_template("Receipt: {receipt_number}.", {"amount": 500}) == "Receipt: ."

    def test_none_value_renders_empty(self):
        assert render_template("Balance: {balance}", {"balance": None}) == "Balance: "

    def test_non_string_values(self):
        assert render_template("Paid {amount}", {"amount": 1500.5}) == "Paid 1500.5"

    def test_unmatched_braces_left_alone(self):
        assert render_template("{ not a field } {x", {"x": 1}) == "{ not a field } {x"

    def test_no_recursive_substitution(self):
        assert render_template("{a}", {"a": "{b}", "b": "nope"}) == "{b}"


class TestNormalizePhone:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("0700000001", "254700000001"),
            ("+254 700 000 001", "254700000001"),
            ("254700000001", "254700000001"),
            ("700000001", "254700000001"),
            ("(0700) 000-001", "254700000001"),
        ],
    )
    def test_normalizes_to_gateway_format(self, raw, expected):
        assert normalize_phone(raw) == expected

    def test_empty_input(self):
        assert normalize_phone("") == ""
        assert normalize_phone("n/a") == ""

    def test_custom_country_code(self):
        assert normalize_phone("0712345678", country_code="256") == "256712345678"


class TestMaskAddress:
    def test_masks_phone(self):
        assert mask_address("254700000001") == "*********001"

    def test_masks_email(self):
        assert mask_address("jane.doe@example.com") == "j***@example.com"

    def test_short_and_empty(self):
        assert mask_address("12") == "**"
        assert mask_address(None) == ""
