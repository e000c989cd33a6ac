"""Component tests for BillingService against an in-memory database."""

from datetime import UTC, datetime

import pytest

from menu_catalog_service.exceptions import ConflictError, InternalError, InvalidInputError, NotFoundError
from menu_catalog_service.models.billing_models import PlanType, SubscriptionStatus
from menu_catalog_service.models.catalog_models import RequestContext
from menu_catalog_service.repositories.database import Database
from menu_catalog_service.services.billing_service import BillingService, sign_payment

KEY_SECRET = "test_key_secret"
NOW = datetime(2024, 1, 31, 9, 30, tzinfo=UTC)


def payment_payload(payment_id: str = "pay_001", plan_type: str = "monthly", order_id: str = "order_001") -> dict:
    """Gateway callback with a valid signature."""
    return {
        "order_id": order_id,
        "payment_id": payment_id,
        "signature": sign_payment(order_id, payment_id, KEY_SECRET),
        "plan_type": plan_type,
    }


@pytest.mark.component
class TestBillingService:
    """Tests for payment verification and subscriptions."""

    @pytest.fixture
    def billing_service(self, database: Database) -> BillingService:
        """Billing service with a fixed clock."""
        return BillingService(database=database, key_secret=KEY_SECRET, clock=lambda: NOW)

    def test_monthly_payment_activates_subscription(
        self, billing_service: BillingService, owner_context: RequestContext
    ) -> None:
        """Test that a verified monthly payment starts a one-month subscription."""
        result = billing_service.verify_payment(owner_context, payment_payload())

        assert result.success is True
        assert result.subscription.subscription_type == PlanType.MONTHLY
        assert result.subscription.subscription_status == SubscriptionStatus.ACTIVE
        assert result.subscription.subscription_start_date == NOW
        assert result.subscription.subscription_end_date == datetime(2024, 2, 29, 9, 30, tzinfo=UTC)
        assert result.payment.amount == 29900
        assert result.payment.currency == "INR"
        assert result.payment.owner_id == owner_context.owner_id

    def test_yearly_payment(self, billing_service: BillingService, owner_context: RequestContext) -> None:
        """Test the yearly plan amount and period."""
        result = billing_service.verify_payment(owner_context, payment_payload(plan_type="YEARLY"))

        assert result.payment.amount == 399900
        assert result.subscription.subscription_end_date == datetime(2025, 1, 31, 9, 30, tzinfo=UTC)

    def test_bad_signature_rejected(self, billing_service: BillingService, owner_context: RequestContext) -> None:
        """Test that a tampered signature is rejected and nothing is recorded."""
        payload = payment_payload()
        payload["signature"] = "0" * 64

        with pytest.raises(InvalidInputError) as exc_info:
            billing_service.verify_payment(owner_context, payload)

        assert exc_info.value.message == "Payment verification failed"
        assert billing_service.get_billing(owner_context).payments == []

    def test_non_ascii_signature_rejected(
        self, billing_service: BillingService, owner_context: RequestContext
    ) -> None:
        """Test that a signature with non-hex characters fails verification instead of crashing."""
        payload = payment_payload()
        payload["signature"] = "é" * 64

        with pytest.raises(InvalidInputError) as exc_info:
            billing_service.verify_payment(owner_context, payload)

        assert exc_info.value.message == "Payment verification failed"

    def test_unknown_plan_rejected(self, billing_service: BillingService, owner_context: RequestContext) -> None:
        """Test plan type validation."""
        with pytest.raises(InvalidInputError):
            billing_service.verify_payment(owner_context, payment_payload(plan_type="weekly"))

    def test_duplicate_payment_conflicts(self, billing_service: BillingService, owner_context: RequestContext) -> None:
        """Test that the same gateway payment cannot be applied twice."""
        billing_service.verify_payment(owner_context, payment_payload())

        with pytest.raises(ConflictError):
            billing_service.verify_payment(owner_context, payment_payload())

        assert len(billing_service.get_billing(owner_context).payments) == 1

    def test_missing_key_secret_is_internal_error(
        self, database: Database, owner_context: RequestContext
    ) -> None:
        """Test that payments cannot be verified without a configured secret."""
        billing_service = BillingService(database=database, key_secret=None)

        with pytest.raises(InternalError):
            billing_service.verify_payment(owner_context, payment_payload())

    def test_billing_lists_latest_ten_payments(
        self, billing_service: BillingService, owner_context: RequestContext
    ) -> None:
        """Test payment history length and order."""
        for n in range(12):
            billing_service.verify_payment(owner_context, payment_payload(payment_id=f"pay_{n:03d}"))

        overview = billing_service.get_billing(owner_context)

        assert len(overview.payments) == 10
        assert overview.payments[0].payment_id == "pay_011"
        assert overview.subscription.subscription_status == SubscriptionStatus.ACTIVE

    def test_billing_without_subscription(self, billing_service: BillingService, owner_context: RequestContext) -> None:
        """Test that a new owner has an empty billing overview."""
        overview = billing_service.get_billing(owner_context)

        assert overview.subscription.subscription_status is None
        assert overview.payments == []

    def test_cancel_keeps_end_date(self, billing_service: BillingService, owner_context: RequestContext) -> None:
        """Test that cancelling only changes the status."""
        billing_service.verify_payment(owner_context, payment_payload())

        subscription = billing_service.cancel_subscription(owner_context)

        assert subscription.subscription_status == SubscriptionStatus.CANCELLED
        assert subscription.subscription_type == PlanType.MONTHLY
        assert subscription.subscription_end_date is not None
        assert subscription.subscription_end_date.date() == datetime(2024, 2, 29).date()

    def test_cancel_without_subscription(self, billing_service: BillingService, owner_context: RequestContext) -> None:
        """Test that there is nothing to cancel for a new owner."""
        with pytest.raises(NotFoundError):
            billing_service.cancel_subscription(owner_context)
