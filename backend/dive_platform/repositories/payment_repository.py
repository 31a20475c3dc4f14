from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from dive_platform.db.base import Payment
from dive_platform.domain.enums import PaymentStatus
from dive_platform.domain.interfaces import IPaymentRepository


@dataclass
class PaymentFilters:
    status: Optional[str] = None
    booking_id: Optional[str] = None
    user_id: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


class PaymentRepository(IPaymentRepository):
    """Repository for Payment rows."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, payment_id: str) -> Optional[Payment]:
        return self.db.get(Payment, payment_id)

    def get_by_checkout_id(self, checkout_id: str) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.gateway_checkout_id == checkout_id)
        return self.db.execute(stmt).scalars().unique().first()

    def get_pending_for_booking(self, booking_id: str) -> Optional[Payment]:
        stmt = (
            select(Payment)
            .where(
                Payment.booking_id == booking_id,
                Payment.status == PaymentStatus.PENDING.value,
            )
            .order_by(Payment.created_at.desc())
        )
        return self.db.execute(stmt).scalars().unique().first()

    def list_for_booking(self, booking_id: str) -> List[Payment]:
        stmt = (
            select(Payment)
            .where(Payment.booking_id == booking_id)
            .order_by(Payment.created_at.desc())
        )
        return list(self.db.execute(stmt).scalars().unique().all())

    def search(
        self, filters: PaymentFilters, offset: int, limit: int
    ) -> Tuple[List[Payment], int]:
        conditions = []
        if filters.status:
            conditions.append(Payment.status == filters.status)
        if filters.booking_id:
            conditions.append(Payment.booking_id == filters.booking_id)
        if filters.user_id:
            conditions.append(Payment.user_id == filters.user_id)
        if filters.date_from:
            conditions.append(Payment.created_at >= filters.date_from)
        if filters.date_to:
            conditions.append(Payment.created_at <= filters.date_to)
        total = self.db.execute(
            select(func.count()).select_from(Payment).where(*conditions)
        ).scalar_one()
        stmt = (
            select(Payment)
            .where(*conditions)
            .order_by(Payment.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().unique().all()), total

    def create(self, payment: Payment) -> Payment:
        self.db.add(payment)
        self.db.commit()
        self.db.refresh(payment)
        return payment

    def save(self, payment: Payment, *related) -> Payment:
        """Commit ``payment`` together with related rows (e.g. its booking)."""
        self.db.add(payment)
        for row in related:
            self.db.add(row)
        self.db.commit()
        self.db.refresh(payment)
        return payment
