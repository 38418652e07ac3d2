"""
app/validators/material_validator.py

Validation and sanitization of scraped material records before they reach
the catalog.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping

import nh3

from app.domain.material_import import InvalidRecord, SanitizedRecord, ValidationResult
from db.models.material import ALLOWED_UNITS

NAME_MAX_LENGTH = 255
SUPPLIER_MAX_LENGTH = 100
CATEGORY_MAX_LENGTH = 50
NOTES_MAX_LENGTH = 500
DESCRIPTION_MAX_LENGTH = 1000
SKU_MAX_LENGTH = 100

PRICE_CEILING = Decimal("999999.99")
_CENTS = Decimal("0.01")

DESCRIPTION_ALLOWED_TAGS = {"b", "i", "em", "strong", "br", "p"}

_CONTROL_CHARACTERS = re.compile(r"[\x00-\x1f\x7f-\x9f]")
_SKU_DISALLOWED = re.compile(r"[^A-Za-z0-9_-]")


class MaterialRecordValidator:
    """
    Validates raw scraped records and returns sanitized copies.

    Every rule is checked for every record so callers see all problems at
    once; a record with any error is rejected whole.
    """

    def validate(self, records: Iterable[Any]) -> ValidationResult:
        valid: list[SanitizedRecord] = []
        invalid: list[InvalidRecord] = []

        for raw in records:
            sanitized, errors = self.validate_record(raw)
            if sanitized is None:
                invalid.append(InvalidRecord(record=_json_safe(raw), errors=errors))
            else:
                valid.append(sanitized)

        return ValidationResult(valid=valid, invalid=invalid)

    def validate_record(self, raw: Any) -> tuple[SanitizedRecord | None, list[str]]:
        if not isinstance(raw, Mapping):
            return None, ["Record must be an object"]

        errors: list[str] = []

        name = self._required_string(
            raw.get("name"),
            max_length=NAME_MAX_LENGTH,
            message="Name is required and must be a string",
            errors=errors,
        )
        supplier = self._required_string(
            raw.get("supplier"),
            max_length=SUPPLIER_MAX_LENGTH,
            message="Supplier is required and must be a string",
            errors=errors,
        )
        unit = self._parse_unit(raw.get("unit"), errors)
        price = self._parse_price(_first_present(raw, "price", "price_per_unit"), errors)

        if errors:
            return None, errors

        return (
            SanitizedRecord(
                name=name,
                supplier=supplier,
                unit=unit,
                price_per_unit=price,
                sku=sanitize_sku(raw.get("sku")),
                category=_optional_string(raw.get("category"), CATEGORY_MAX_LENGTH),
                description=sanitize_html(raw.get("description"), DESCRIPTION_MAX_LENGTH),
                notes=_optional_string(raw.get("notes"), NOTES_MAX_LENGTH),
                in_stock=bool(raw.get("in_stock")),
                gst_inclusive=bool(raw.get("gst_inclusive")),
            ),
            [],
        )

    @staticmethod
    def _required_string(
        value: Any,
        *,
        max_length: int,
        message: str,
        errors: list[str],
    ) -> str:
        if not isinstance(value, str):
            errors.append(message)
            return ""
        cleaned = sanitize_string(value, max_length)
        if not cleaned:
            errors.append(message)
        return cleaned

    @staticmethod
    def _parse_unit(value: Any, errors: list[str]) -> str:
        if not isinstance(value, str) or not value.strip():
            errors.append("Unit is required and must be a string")
            return ""
        normalized = value.strip().upper()
        if normalized not in ALLOWED_UNITS:
            errors.append(f"Invalid unit. Must be one of: {', '.join(ALLOWED_UNITS)}")
        return normalized

    @staticmethod
    def _parse_price(value: Any, errors: list[str]) -> Decimal:
        if value is None or (isinstance(value, str) and not value.strip()):
            errors.append("Price per unit is required")
            return Decimal("0")
        if isinstance(value, bool):
            errors.append("Price must be a positive number")
            return Decimal("0")

        try:
            price = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            errors.append("Price must be a positive number")
            return Decimal("0")

        if not price.is_finite() or price < 0:
            errors.append("Price must be a positive number")
            return Decimal("0")

        # Compare before quantizing; huge exponents overflow the context precision.
        if price >= PRICE_CEILING + _CENTS:
            errors.append("Price exceeds maximum allowed value")
            return Decimal("0")

        rounded = price.quantize(_CENTS, rounding=ROUND_HALF_UP)
        if rounded > PRICE_CEILING:
            errors.append("Price exceeds maximum allowed value")
            return Decimal("0")
        return rounded


def sanitize_string(value: str, max_length: int) -> str:
    """
    Strip control characters and surrounding whitespace, then cap the length.
    """

    return _CONTROL_CHARACTERS.sub("", value).strip()[:max_length]


def sanitize_html(value: Any, max_length: int) -> str | None:
    """
    Reduce HTML to a small inline allow-list with no attributes.
    """

    if not value or not isinstance(value, str):
        return None
    cleaned = nh3.clean(value, tags=DESCRIPTION_ALLOWED_TAGS, attributes={})
    return sanitize_string(cleaned, max_length) or None


def sanitize_sku(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    cleaned = _SKU_DISALLOWED.sub("", str(value))[:SKU_MAX_LENGTH]
    return cleaned or None


def _optional_string(value: Any, max_length: int) -> str | None:
    if not value or not isinstance(value, str):
        return None
    return sanitize_string(value, max_length) or None


def _first_present(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _json_safe(raw: Any) -> dict[str, Any]:
    # Invalid records are stored in the job payload as given.
    if isinstance(raw, Mapping):
        return json.loads(json.dumps(dict(raw), default=str))
    return {"value": json.loads(json.dumps(raw, default=str))}
