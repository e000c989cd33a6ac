"""Premium subscription billing.

The payment gateway creates orders and collects money; this service only
verifies the gateway's signature on a completed payment, records it, and
keeps the owner's subscription dates.
"""

import calendar
import hashlib
import hmac
import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from menu_catalog_service.exceptions import ConflictError, InternalError, InvalidInputError, NotFoundError
from menu_catalog_service.models.billing_models import (
    PAYMENT_CURRENCY,
    PAYMENT_STATUS_COMPLETED,
    PLAN_AMOUNTS,
    PLAN_MONTHS,
    BillingOverview,
    Payment,
    PaymentResult,
    PaymentVerification,
    Subscription,
    SubscriptionStatus,
)
from menu_catalog_service.models.catalog_models import RequestContext, parse_input
from menu_catalog_service.observability import traced
from menu_catalog_service.observability.metrics import record_payment_verification
from menu_catalog_service.repositories.billing_repositories import PaymentRepository
from menu_catalog_service.repositories.catalog_repositories import OwnerRepository
from menu_catalog_service.repositories.database import Database
from menu_catalog_service.repositories.tables import PaymentRecord, utc_now

logger = logging.getLogger(__name__)

PAYMENT_HISTORY_LIMIT = 10


def add_months(value: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the end of the target month.

    Args:
        value: Start date
        months: Number of months to add

    Returns:
        datetime: e.g. Jan 31 + 1 month = Feb 28 (or 29)
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def sign_payment(order_id: str, payment_id: str, key_secret: str) -> str:
    """Gateway signature: hex HMAC-SHA256 of ``order_id|payment_id``."""
    message = f"{order_id}|{payment_id}".encode()
    return hmac.new(key_secret.encode(), message, hashlib.sha256).hexdigest()


class BillingService:
    """Verifies payments and manages the owner's subscription."""

    def __init__(
        self,
        database: Database,
        key_secret: str | None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the billing service.

        Args:
            database: Database providing one transaction per operation
            key_secret: Gateway key secret used to verify signatures
            clock: Source of the current time
        """
        self.database = database
        self.key_secret = key_secret
        self.clock = clock

    @traced("billing.verify_payment")
    def verify_payment(self, context: RequestContext, data: PaymentVerification | Mapping[str, Any]) -> PaymentResult:
        """Verify a completed payment and activate the subscription.

        Args:
            context: Request context of the caller
            data: Gateway order id, payment id, signature and plan

        Returns:
            PaymentResult: New subscription state and the recorded payment

        Raises:
            InvalidInputError: If the signature does not match
            ConflictError: If the payment was already recorded
            InternalError: If no key secret is configured
        """
        data = parse_input(PaymentVerification, data)

        if not self.key_secret:
            logger.error("PAYMENT_KEY_SECRET is not configured, cannot verify payments")
            raise InternalError()

        expected = sign_payment(data.order_id, data.payment_id, self.key_secret)
        if not hmac.compare_digest(expected.encode(), data.signature.encode()):
            record_payment_verification("rejected", data.plan_type.value)
            logger.warning(f"Payment signature mismatch for order {data.order_id}, owner {context.owner_id}")
            raise InvalidInputError("Payment verification failed", field="signature")

        now = self.clock()
        plan = data.plan_type

        with self.database.transaction(
            "verify_payment", owner_id=context.owner_id, payment_id=data.payment_id
        ) as session:
            owner = OwnerRepository(session).ensure(context.identity)
            payments = PaymentRepository(session)

            if payments.get_by_payment_id(data.payment_id) is not None:
                raise ConflictError("Payment already processed")

            owner.subscription_type = plan.value
            owner.subscription_status = SubscriptionStatus.ACTIVE.value
            owner.subscription_start_date = now
            owner.subscription_end_date = add_months(now, PLAN_MONTHS[plan])
            owner.payment_customer_id = data.payment_id

            record = payments.add(
                PaymentRecord(
                    owner_id=owner.id,
                    amount=PLAN_AMOUNTS[plan],
                    currency=PAYMENT_CURRENCY,
                    status=PAYMENT_STATUS_COMPLETED,
                    order_id=data.order_id,
                    payment_id=data.payment_id,
                    plan_type=plan.value,
                )
            )
            result = PaymentResult(
                subscription=Subscription.model_validate(owner),
                payment=Payment.model_validate(record),
            )

        record_payment_verification("verified", plan.value)
        logger.info(f"Payment {data.payment_id} verified, {plan.value} subscription active for {context.owner_id}")
        return result

    @traced("billing.get_billing")
    def get_billing(self, context: RequestContext) -> BillingOverview:
        """Current subscription and the most recent payments."""
        with self.database.transaction("get_billing", owner_id=context.owner_id) as session:
            owner = OwnerRepository(session).get(context.owner_id)
            subscription = Subscription.model_validate(owner) if owner is not None else Subscription()
            payments = PaymentRepository(session).list_for_owner(context.owner_id, limit=PAYMENT_HISTORY_LIMIT)
            return BillingOverview(
                subscription=subscription,
                payments=[Payment.model_validate(p) for p in payments],
            )

    @traced("billing.cancel_subscription")
    def cancel_subscription(self, context: RequestContext) -> Subscription:
        """Mark the caller's subscription as cancelled.

        The end date is kept, so premium access lasts until the paid period ends.

        Raises:
            NotFoundError: If the caller never subscribed
        """
        with self.database.transaction("cancel_subscription", owner_id=context.owner_id) as session:
            owner = OwnerRepository(session).get(context.owner_id)
            if owner is None or owner.subscription_status is None:
                raise NotFoundError("Subscription not found")

            owner.subscription_status = SubscriptionStatus.CANCELLED.value
            session.flush()
            subscription = Subscription.model_validate(owner)

        logger.info(f"Subscription cancelled for owner {context.owner_id}")
        return subscription
