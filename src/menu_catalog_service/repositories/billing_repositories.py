"""Repository for payment history."""

from sqlalchemy import select

from menu_catalog_service.repositories.catalog_repositories import SessionRepository
from menu_catalog_service.repositories.tables import PaymentRecord


class PaymentRepository(SessionRepository):
    """Completed payments of an owner."""

    def add(self, payment: PaymentRecord) -> PaymentRecord:
        """Insert a payment and flush to assign its id."""
        self.session.add(payment)
        self.session.flush()
        return payment

    def get_by_payment_id(self, payment_id: str) -> PaymentRecord | None:
        """Find a payment by its gateway payment id."""
        stmt = select(PaymentRecord).where(PaymentRecord.payment_id == payment_id)
        return self.session.scalars(stmt).first()

    def list_for_owner(self, owner_id: str, limit: int = 10) -> list[PaymentRecord]:
        """List an owner's most recent payments, newest first.

        Args:
            owner_id: Identity provider user id
            limit: Maximum number of payments to return

        Returns:
            list[PaymentRecord]: Payments ordered by creation time descending
        """
        stmt = (
            select(PaymentRecord)
            .where(PaymentRecord.owner_id == owner_id)
            .order_by(PaymentRecord.created_at.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt))
