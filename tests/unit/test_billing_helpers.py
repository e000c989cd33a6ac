"""Unit tests for billing helpers and payment models."""

from datetime import UTC, datetime

import pytest

from menu_catalog_service.exceptions import InvalidInputError
from menu_catalog_service.models.billing_models import PaymentVerification, PlanType, ProfilePatch
from menu_catalog_service.models.catalog_models import parse_input
from menu_catalog_service.services.billing_service import add_months, sign_payment


@pytest.mark.unit
class TestAddMonths:
    """Tests for calendar month arithmetic."""

    @pytest.mark.parametrize(
        "start,months,expected",
        [
            (datetime(2024, 1, 15), 1, datetime(2024, 2, 15)),
            (datetime(2024, 1, 31), 1, datetime(2024, 2, 29)),
            (datetime(2023, 1, 31), 1, datetime(2023, 2, 28)),
            (datetime(2024, 11, 30), 3, datetime(2025, 2, 28)),
            (datetime(2024, 2, 29), 12, datetime(2025, 2, 28)),
            (datetime(2024, 12, 1), 1, datetime(2025, 1, 1)),
        ],
    )
    def test_add_months(self, start: datetime, months: int, expected: datetime) -> None:
        """Test month addition with end-of-month clamping."""
        assert add_months(start, months) == expected

    def test_keeps_time_and_timezone(self) -> None:
        """Test that only the date part moves."""
        start = datetime(2024, 3, 10, 18, 45, tzinfo=UTC)

        assert add_months(start, 1) == datetime(2024, 4, 10, 18, 45, tzinfo=UTC)


@pytest.mark.unit
class TestSignPayment:
    """Tests for gateway signature computation."""

    def test_signature_is_deterministic_hex(self) -> None:
        """Test that the signature depends on ids and secret."""
        signature = sign_payment("order_001", "pay_001", "secret")

        assert len(signature) == 64
        assert signature == sign_payment("order_001", "pay_001", "secret")
        assert signature != sign_payment("order_001", "pay_002", "secret")
        assert signature != sign_payment("order_001", "pay_001", "other-secret")


@pytest.mark.unit
class TestPaymentModels:
    """Tests for billing and profile input models."""

    @pytest.mark.parametrize("raw", ["monthly", "MONTHLY", " Monthly "])
    def test_plan_type_case_insensitive(self, raw: str) -> None:
        """Test that the plan type accepts any case."""
        verification = parse_input(
            PaymentVerification,
            {"order_id": "o", "payment_id": "p", "signature": "s", "plan_type": raw},
        )

        assert verification.plan_type == PlanType.MONTHLY

    def test_missing_signature(self) -> None:
        """Test that all gateway fields are required."""
        with pytest.raises(InvalidInputError) as exc_info:
            parse_input(PaymentVerification, {"order_id": "o", "payment_id": "p", "plan_type": "yearly"})

        assert exc_info.value.field == "signature"

    def test_profile_email_lowercased(self) -> None:
        """Test account email normalisation."""
        assert parse_input(ProfilePatch, {"email": " Owner@Bistro.Example "}).email == "owner@bistro.example"

    def test_profile_rejects_invalid_email(self) -> None:
        """Test account email validation."""
        with pytest.raises(InvalidInputError) as exc_info:
            parse_input(ProfilePatch, {"email": "owner@"})

        assert exc_info.value.message == "Please enter a valid email address"

    def test_profile_rejects_unknown_fields(self) -> None:
        """Test that only name, email and image are writable."""
        with pytest.raises(InvalidInputError):
            parse_input(ProfilePatch, {"email_verified": True})
