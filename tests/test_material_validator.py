"""
tests/test_material_validator.py

Pytest unit tests for MaterialRecordValidator.

Coverage
--------
- Price rounding, sign and ceiling rules
- Required field messages accumulate per record
- Unit normalization and the closed unit list
- String capping, SKU filtering, HTML allow-list
- valid + invalid always accounts for every input record
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from app.validators.material_validator import (
    MaterialRecordValidator,
    sanitize_html,
    sanitize_sku,
)


@pytest.fixture()
def validator() -> MaterialRecordValidator:
    return MaterialRecordValidator()


class TestPriceRules:
    def test_half_up_rounding_to_cents(self, validator, make_record) -> None:
        result = validator.validate([make_record(1, price="10.005")])
        assert result.valid[0].price_per_unit == Decimal("10.01")

    def test_negative_price_rejected(self, validator, make_record) -> None:
        result = validator.validate([make_record(1, price="-5.00")])
        assert not result.valid
        assert result.invalid[0].errors == ["Price must be a positive number"]

    def test_price_above_ceiling_rejected(self, validator, make_record) -> None:
        result = validator.validate([make_record(1, price="1000000.00")])
        assert result.invalid[0].errors == ["Price exceeds maximum allowed value"]

    def test_ceiling_itself_accepted(self, validator, make_record) -> None:
        result = validator.validate([make_record(1, price="999999.99")])
        assert result.valid[0].price_per_unit == Decimal("999999.99")

    def test_rounding_past_ceiling_rejected(self, validator, make_record) -> None:
        result = validator.validate([make_record(1, price="999999.995")])
        assert result.invalid[0].errors == ["Price exceeds maximum allowed value"]

    @pytest.mark.parametrize("price", ["1e30", "123456789012345678901234567890", 1e300])
    def test_huge_price_rejected_without_raising(self, validator, make_record, price) -> None:
        result = validator.validate([make_record(1, price=price)])
        assert not result.valid
        assert result.invalid[0].errors == ["Price exceeds maximum allowed value"]

    def test_zero_price_accepted(self, validator, make_record) -> None:
        result = validator.validate([make_record(1, price=0)])
        assert result.valid[0].price_per_unit == Decimal("0.00")

    def test_price_per_unit_alias(self, validator, make_record) -> None:
        raw = make_record(1)
        del raw["price"]
        raw["price_per_unit"] = 7.2
        result = validator.validate([raw])
        assert result.valid[0].price_per_unit == Decimal("7.20")

    @pytest.mark.parametrize("price", ["abc", "NaN", "Infinity", True])
    def test_non_numeric_price_rejected(self, validator, make_record, price) -> None:
        result = validator.validate([make_record(1, price=price)])
        assert result.invalid[0].errors == ["Price must be a positive number"]

    def test_missing_price_rejected(self, validator, make_record) -> None:
        raw = make_record(1)
        del raw["price"]
        result = validator.validate([raw])
        assert result.invalid[0].errors == ["Price per unit is required"]


class TestRequiredFields:
    def test_all_errors_accumulate(self, validator) -> None:
        result = validator.validate([{"name": 42, "unit": "bucket"}])

        errors = result.invalid[0].errors
        assert "Name is required and must be a string" in errors
        assert "Supplier is required and must be a string" in errors
        assert any(error.startswith("Invalid unit. Must be one of:") for error in errors)
        assert "Price per unit is required" in errors

    def test_whitespace_only_name_rejected(self, validator, make_record) -> None:
        result = validator.validate([make_record(1, name="   ")])
        assert result.invalid[0].errors == ["Name is required and must be a string"]

    def test_missing_unit_message(self, validator, make_record) -> None:
        result = validator.validate([make_record(1, unit=None)])
        assert result.invalid[0].errors == ["Unit is required and must be a string"]

    def test_non_object_record(self, validator) -> None:
        result = validator.validate(["not a record"])
        assert result.invalid[0].errors == ["Record must be an object"]
        assert result.invalid[0].record == {"value": "not a record"}


class TestSanitization:
    def test_unit_normalized_to_upper_case(self, validator, make_record) -> None:
        result = validator.validate([make_record(1, unit=" sqm ")])
        assert result.valid[0].unit == "SQM"

    def test_long_strings_are_capped(self, validator, make_record) -> None:
        result = validator.validate(
            [make_record(1, name="N" * 300, supplier="S" * 150, category="C" * 80, notes="x" * 600)]
        )
        record = result.valid[0]
        assert len(record.name) == 255
        assert len(record.supplier) == 100
        assert len(record.category) == 50
        assert len(record.notes) == 500

    def test_control_characters_stripped(self, validator, make_record) -> None:
        result = validator.validate([make_record(1, name="Pine\x00 board\x07")])
        assert result.valid[0].name == "Pine board"

    def test_sku_filtered(self) -> None:
        assert sanitize_sku("AB 12/x_y-9!") == "AB12x_y-9"
        assert sanitize_sku("!!!") is None
        assert sanitize_sku(None) is None
        assert sanitize_sku("Z" * 150) == "Z" * 100

    def test_description_html_allow_list(self) -> None:
        cleaned = sanitize_html(
            '<p onclick="steal()">Kiln <b>dried</b><script>alert(1)</script> <a href="x">pine</a></p>',
            1000,
        )
        assert cleaned is not None
        assert "<p>" in cleaned
        assert "<b>dried</b>" in cleaned
        assert "onclick" not in cleaned
        assert "<script" not in cleaned
        assert "alert" not in cleaned
        assert "<a" not in cleaned
        assert "pine" in cleaned

    def test_booleans_use_truthiness(self, validator, make_record) -> None:
        result = validator.validate([make_record(1, in_stock=0, gst_inclusive="yes")])
        record = result.valid[0]
        assert record.in_stock is False
        assert record.gst_inclusive is True

    def test_optional_fields_default_to_none(self, validator) -> None:
        result = validator.validate([{"name": "Sand", "supplier": "Boral", "unit": "bag", "price": 9}])
        record = result.valid[0]
        assert record.sku is None
        assert record.category is None
        assert record.description is None
        assert record.notes is None


class TestConservation:
    def test_every_record_lands_in_exactly_one_bucket(self, validator, make_record) -> None:
        records = [make_record(index) for index in range(10)]
        records[2]["price"] = "-1"
        records[5]["unit"] = "crate"
        records[7] = None
        result = validator.validate(records)

        assert len(result.valid) + len(result.invalid) == len(records)
        assert len(result.invalid) == 3

    def test_valid_records_keep_input_order(self, validator, make_record) -> None:
        records = [make_record(index) for index in range(5)]
        result = validator.validate(records)
        assert [record.sku for record in result.valid] == [f"BUN-{index:04d}" for index in range(5)]

    def test_empty_input(self, validator) -> None:
        result = validator.validate([])
        assert result.valid == []
        assert result.invalid == []
