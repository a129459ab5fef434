"""
Unit tests for request validation: every violation is reported in one pass.
"""

from datetime import datetime

import pytest

from errors import InvalidInput
from schemas import (
    AariSubmission,
    ClientPriceUpdate,
    CustomerRegistration,
    Page,
    WorkerPriceUpdate,
    phone_variants,
)
from validation import check, validate


class TestAariSubmission:
    def test_valid_submission_coerces_numbers(self, sample_order_fields):
        result = check(AariSubmission, sample_order_fields)

        assert result.ok
        assert result.value.quoted_price == 1500.0
        assert result.value.work_type == "bridal"
        assert result.value.delivery_date == datetime(2024, 5, 10, 10, 0)

    def test_collects_all_violations(self, sample_order_fields):
        fields = dict(sample_order_fields)
        del fields["orderId"]
        fields["phoneNumber"] = "9876543210"
        fields["workType"] = "express"
        fields["quotedPrice"] = "-1"

        result = check(AariSubmission, fields)

        assert not result.ok
        assert result.value is None
        fields_with_errors = {v.split(":")[0] for v in result.violations}
        assert fields_with_errors == {"orderId", "phoneNumber", "workType", "quotedPrice"}

    @pytest.mark.parametrize("delivery", ["2024-04-30T10:00:00", "2024-05-01T10:00:00"])
    def test_delivery_must_follow_submission(self, sample_order_fields, delivery):
        fields = {**sample_order_fields, "deliveryDate": delivery}

        result = check(AariSubmission, fields)

        assert result.violations == ["deliveryDate: Delivery date must be after submission date"]

    def test_date_ordering_reported_with_other_violations(self, sample_order_fields):
        fields = {**sample_order_fields, "deliveryDate": "2024-04-01T00:00:00", "name": ""}

        result = check(AariSubmission, fields)

        assert len(result.violations) == 2
        assert any(v.startswith("name:") for v in result.violations)
        assert "deliveryDate: Delivery date must be after submission date" in result.violations

    def test_timezone_aware_dates_are_normalized_to_utc(self, sample_order_fields):
        fields = {
            **sample_order_fields,
            "submissionDate": "2024-05-01T10:00:00+05:30",
            "deliveryDate": "2024-05-01T05:00:00Z",
        }

        value = validate(AariSubmission, fields)

        assert value.submission_date == datetime(2024, 5, 1, 4, 30)
        assert value.delivery_date.tzinfo is None

    def test_additional_information_is_optional_and_bounded(self, sample_order_fields):
        fields = dict(sample_order_fields)
        del fields["additionalInformation"]
        assert check(AariSubmission, fields).ok

        fields["additionalInformation"] = "x" * 1001
        result = check(AariSubmission, fields)
        assert [v.split(":")[0] for v in result.violations] == ["additionalInformation"]


class TestPrices:
    @pytest.mark.parametrize("price", [10, 10.5])
    def test_positive_numbers_accepted(self, price):
        assert validate(WorkerPriceUpdate, {"workerPrice": price}).worker_price == price

    @pytest.mark.parametrize("price", [0, -5, "100", True, None])
    def test_non_positive_or_non_numeric_rejected(self, price):
        with pytest.raises(InvalidInput) as exc_info:
            validate(ClientPriceUpdate, {"clientPrice": price})

        assert exc_info.value.violations[0].startswith("clientPrice:")


class TestCustomerRegistration:
    def test_defaults_and_bare_prefix_normalization(self, sample_customer_fields):
        value = validate(CustomerRegistration, sample_customer_fields)

        assert value.alternate_number is None
        assert value.district == "Dindigul"
        assert value.state == "Tamil Nadu"
        assert value.customer_id is None

    def test_format_rules(self, sample_customer_fields):
        fields = {
            **sample_customer_fields,
            "customerId": "not-a-token",
            "alternateNumber": "12345",
            "dateOfBirth": "1995-02-14",
            "name": "n" * 101,
        }

        result = check(CustomerRegistration, fields)

        assert {v.split(":")[0] for v in result.violations} == {
            "customerId",
            "alternateNumber",
            "dateOfBirth",
            "name",
        }
        assert "alternateNumber: Alternate number must be in format +91-XXXXXXXXXX" in result.violations


def test_page_bounds():
    assert not check(Page, {"page": 0, "limit": 10}).ok
    assert not check(Page, {"page": 1, "limit": 0}).ok
    assert check(Page, {"page": 3, "limit": 100}).ok


def test_page_limit_is_capped():
    result = check(Page, {"page": 2, "limit": 500})

    assert result.ok
    assert result.value.limit == 100
    assert result.value.skip == 100


def test_validate_raises_aggregated_error():
    with pytest.raises(InvalidInput) as exc_info:
        validate(Page, {"page": -1, "limit": 0})

    assert len(exc_info.value.violations) == 2
    assert exc_info.value.message == ", ".join(exc_info.value.violations)


@pytest.mark.parametrize("phone", ["9876543210", "+919876543210", "+91-9876543210"])
def test_phone_variants(phone):
    assert phone_variants(phone) == ["9876543210", "+919876543210", "+91-9876543210"]
