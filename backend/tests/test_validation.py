# Overview: Pytest coverage for payload validation, money and time helpers.

from datetime import datetime

import pytest

from shopledger.models import Product, SellHistory
from shopledger.money import cents_to_etb, etb_to_cents
from shopledger.time_utils import parse_date_range, parse_iso_datetime, to_utc_z
from shopledger.validation import (
    MAX_PRICE_CENTS,
    MAX_QUANTITY,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_product,
    enforce_rules_sale_item,
    enforce_rules_sale_amendment,
    validate_payload,
)

POLICY = ModelValidationPolicy(
    writable_fields={"name", "initial_price_cents", "selling_price_cents", "quantity"},
    required_on_create={"name", "initial_price_cents"},
)


class TestValidatePayload:

    def test_strips_and_coerces(self, app):
        patch = validate_payload(
            model=Product,
            payload={"name": "  Cola ", "initial_price_cents": "250", "quantity": 3.0},
            policy=POLICY,
            partial=False,
        )
        assert patch == {"name": "Cola", "initial_price_cents": 250, "quantity": 3}

    @pytest.mark.parametrize("value", ["1e3", "2.5", 2.5, "", "abc"])
    def test_rejects_non_integers(self, app, value):
        with pytest.raises(ValidationError):
            validate_payload(
                model=Product, payload={"initial_price_cents": value}, policy=POLICY, partial=True,
            )

    def test_blank_and_null_rejected_for_required_columns(self, app):
        with pytest.raises(ValidationError):
            validate_payload(model=Product, payload={"name": "   "}, policy=POLICY, partial=True)
        with pytest.raises(ValidationError):
            validate_payload(model=Product, payload={"name": None}, policy=POLICY, partial=True)

    def test_length_limit(self, app):
        with pytest.raises(ValidationError) as exc:
            validate_payload(model=Product, payload={"name": "x" * 256}, policy=POLICY, partial=True)
        assert "max length 255" in str(exc.value)

    def test_datetime_column(self, app):
        policy = ModelValidationPolicy(writable_fields={"created_at"})
        patch = validate_payload(
            model=SellHistory, payload={"created_at": "2026-05-01T12:00:00+03:00"}, policy=policy, partial=True,
        )
        assert patch["created_at"] == datetime(2026, 5, 1, 9, 0, 0)

    def test_not_a_dict(self, app):
        with pytest.raises(ValidationError):
            validate_payload(model=Product, payload=["name"], policy=POLICY, partial=True)


class TestBusinessRules:

    def test_product_prices(self):
        enforce_rules_product({"initial_price_cents": 1, "selling_price_cents": MAX_PRICE_CENTS})
        with pytest.raises(ValidationError):
            enforce_rules_product({"selling_price_cents": MAX_PRICE_CENTS + 1})
        with pytest.raises(ValidationError):
            enforce_rules_product({"initial_price_cents": 0})
        with pytest.raises(ValidationError):
            enforce_rules_product({"quantity": -1})
        enforce_rules_product({"quantity": MAX_QUANTITY})
        with pytest.raises(ValidationError):
            enforce_rules_product({"quantity": MAX_QUANTITY + 1})

    def test_sale_item_target(self):
        enforce_rules_sale_item({"service_id": 1, "amount": 1, "sold_price_cents": 1})
        with pytest.raises(ValidationError):
            enforce_rules_sale_item({"amount": 1, "sold_price_cents": 1})
        with pytest.raises(ValidationError):
            enforce_rules_sale_item({"product_id": 1, "amount": 0, "sold_price_cents": 1})

    def test_sale_item_size_limits(self):
        enforce_rules_sale_item({"service_id": 1, "amount": 1_000_000, "sold_price_cents": 999_999_999})
        with pytest.raises(ValidationError):
            enforce_rules_sale_item({"service_id": 1, "amount": MAX_QUANTITY + 1, "sold_price_cents": 1})
        with pytest.raises(ValidationError) as exc:
            enforce_rules_sale_item({"service_id": 1, "amount": 10_000_000, "sold_price_cents": 999_999_999})
        assert exc.value.details["amount"] == 10_000_000
        enforce_rules_sale_amendment({"amount": MAX_QUANTITY})


class TestMoneyAndTime:

    @pytest.mark.parametrize("value,cents", [(25, 2500), ("10.5", 1050), (0.1, 10), ("1.005", 101)])
    def test_etb_to_cents(self, value, cents):
        assert etb_to_cents(value) == cents

    @pytest.mark.parametrize("value", ["abc", True, "nan", None])
    def test_etb_to_cents_rejects(self, value):
        with pytest.raises(ValueError):
            etb_to_cents(value)

    def test_cents_to_etb(self):
        assert cents_to_etb(7150) == 71.5
        assert cents_to_etb(None) is None

    def test_bare_end_date_covers_whole_day(self):
        start, end = parse_date_range("2026-01-01", "2026-01-31")
        assert start == datetime(2026, 1, 1)
        assert end == datetime(2026, 1, 31, 23, 59, 59, 999999)

    def test_iso_round_trip(self):
        assert to_utc_z(parse_iso_datetime("2026-01-01T10:00:00Z")) == "2026-01-01T10:00:00Z"
        assert parse_iso_datetime("  ") is None
