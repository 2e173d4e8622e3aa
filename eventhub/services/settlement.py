from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
import logging

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from eventhub.config import get_settings
from eventhub.database import atomic
from eventhub.exceptions import (
    CouponAlreadyUsed, EventEnded, EventNotFound, InvalidStateTransition,
    NotAwaitingConfirmation, PaymentDeadlinePassed, PermissionDenied,
    StateError, TicketTierNotFound, TransactionNotFound, UserNotFound,
    ValidationFailed, VoucherExhausted
)
from eventhub.models.coupon import UserCoupon
from eventhub.models.event import Event, TicketTier
from eventhub.models.loyalty import LoyaltyKind
from eventhub.models.transaction import Transaction, TransactionTicket, TransactionStatus
from eventhub.models.user import User, UserRole
from eventhub.models.voucher import Voucher
from eventhub.services.discount import DiscountRequest, DiscountResult, DiscountService
from eventhub.services.inventory import InventoryService
from eventhub.services.loyalty import LoyaltyService, points_expiry
from eventhub.services.transaction_state import TransactionStateMachine

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass
class CheckoutData:
    event_id: int
    ticket_tier_id: int
    quantity: int
    points: int = 0
    user_coupon_id: Optional[int] = None
    voucher_code: Optional[str] = None


@dataclass(frozen=True)
class SettlementNotice:
    """Plain-data summary of a committed settlement, safe to hand to notifiers."""
    transaction_id: int
    status: TransactionStatus
    user_email: str
    user_name: str
    event_title: str
    final_amount: int
    points_awarded: int = 0
    points_restored: int = 0
    reason: Optional[str] = None


@dataclass
class SettlementOutcome:
    transaction: Transaction
    notice: SettlementNotice

    @property
    def points_awarded(self) -> int:
        return self.notice.points_awarded

    @property
    def points_restored(self) -> int:
        return self.notice.points_restored


def reward_points(final_amount: int) -> int:
    return final_amount * settings.reward_rate_percent // 100


def can_settle(actor: User, transaction: Transaction) -> bool:
    if actor.role == UserRole.ADMIN:
        return True
    return actor.role == UserRole.ORGANIZER and transaction.event.organizer_id == actor.id


def can_view(user: User, transaction: Transaction) -> bool:
    return transaction.user_id == user.id or can_settle(user, transaction)


class SettlementService:
    """
    Atomic multi-entity operations on transactions.

    Each public method is one unit of work: either every write it makes is
    committed together, or the session is rolled back and the typed error
    propagates to the caller.
    """

    @staticmethod
    def checkout(db: Session, user: User, data: CheckoutData, now: Optional[datetime] = None) -> Transaction:
        now = now or datetime.utcnow()
        if data.quantity < 1:
            raise ValidationFailed("Quantity must be at least 1")
        if data.points < 0:
            raise ValidationFailed("Points must not be negative")

        with atomic(db):
            event = db.get(Event, data.event_id)
            if not event:
                raise EventNotFound()
            if now > event.end_date:
                raise EventEnded()

            tier = db.query(TicketTier).filter(
                TicketTier.id == data.ticket_tier_id,
                TicketTier.event_id == event.id
            ).first()
            if not tier:
                raise TicketTierNotFound()

            buyer = db.query(User).filter(User.id == user.id).populate_existing().first()
            if not buyer:
                raise UserNotFound()

            InventoryService.reserve(db, tier.id, data.quantity)

            base_amount = tier.price * data.quantity
            discounts = DiscountService.resolve(
                db,
                buyer,
                event.id,
                base_amount,
                DiscountRequest(
                    points=data.points,
                    user_coupon_id=data.user_coupon_id,
                    voucher_code=data.voucher_code
                ),
                now
            )

            transaction = Transaction(
                user_id=buyer.id,
                event_id=event.id,
                total_amount=base_amount,
                discount_amount=discounts.total_discount,
                final_amount=discounts.final_amount,
                points_used=discounts.points_applied,
                user_coupon_id=discounts.user_coupon.id if discounts.user_coupon else None,
                voucher_id=discounts.voucher.id if discounts.voucher else None,
                status=TransactionStatus.WAITING_PAYMENT,
                payment_deadline=now + timedelta(hours=settings.payment_window_hours)
            )
            db.add(transaction)
            db.flush()

            db.add(TransactionTicket(
                transaction_id=transaction.id,
                ticket_tier_id=tier.id,
                quantity=data.quantity,
                unit_price=tier.price
            ))

            SettlementService._spend_instruments(db, transaction, discounts, event, now)

        db.refresh(transaction)
        logger.info(
            f"Checkout created transaction {transaction.id} for user {user.id}: "
            f"total {transaction.total_amount}, final {transaction.final_amount}"
        )
        return transaction

    @staticmethod
    def _spend_instruments(
        db: Session,
        transaction: Transaction,
        discounts: DiscountResult,
        event: Event,
        now: datetime
    ) -> None:
        if discounts.points_applied:
            LoyaltyService.debit(
                db,
                transaction.user_id,
                discounts.points_applied,
                f"Used for ticket purchase - {event.title}",
                transaction_id=transaction.id
            )

        if discounts.user_coupon:
            result = db.execute(
                update(UserCoupon)
                .where(UserCoupon.id == discounts.user_coupon.id, UserCoupon.is_used.is_(False))
                .values(is_used=True, used_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise CouponAlreadyUsed()

        if discounts.voucher:
            result = db.execute(
                update(Voucher)
                .where(
                    Voucher.id == discounts.voucher.id,
                    or_(Voucher.max_uses.is_(None), Voucher.current_uses < Voucher.max_uses)
                )
                .values(current_uses=Voucher.current_uses + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise VoucherExhausted()

    @staticmethod
    def submit_payment_proof(
        db: Session,
        user: User,
        transaction_id: int,
        proof_ref: str,
        now: Optional[datetime] = None
    ) -> Transaction:
        """Record where the uploaded proof was stored and hand the transaction to reviewers."""
        now = now or datetime.utcnow()
        if not proof_ref or not proof_ref.strip():
            raise ValidationFailed("Payment proof reference is required")

        with atomic(db):
            transaction = TransactionStateMachine.load(db, transaction_id, for_update=True)
            if transaction.user_id != user.id:
                raise TransactionNotFound()
            if transaction.status != TransactionStatus.WAITING_PAYMENT:
                raise InvalidStateTransition("Cannot upload payment proof for this transaction status")
            if transaction.payment_deadline < now:
                raise PaymentDeadlinePassed()

            TransactionStateMachine.transition(
                db,
                transaction,
                TransactionStatus.WAITING_CONFIRMATION,
                payment_proof_ref=proof_ref.strip()
            )

        logger.info(f"Payment proof recorded for transaction {transaction_id}")
        return transaction

    @staticmethod
    def confirm(
        db: Session,
        transaction_id: int,
        actor: User,
        now: Optional[datetime] = None
    ) -> SettlementOutcome:
        now = now or datetime.utcnow()

        with atomic(db):
            transaction = TransactionStateMachine.load(db, transaction_id, for_update=True)
            if not can_settle(actor, transaction):
                raise PermissionDenied()
            if transaction.status != TransactionStatus.WAITING_CONFIRMATION:
                raise NotAwaitingConfirmation()

            TransactionStateMachine.transition(
                db,
                transaction,
                TransactionStatus.CONFIRMED,
                guard_error=NotAwaitingConfirmation,
                confirmed_at=now,
                confirmed_by=actor.id,
                settled_at=now
            )

            points = reward_points(transaction.final_amount)
            if points > 0:
                LoyaltyService.grant(
                    db,
                    transaction.user_id,
                    points,
                    LoyaltyKind.PURCHASE_EARNED,
                    f"Points earned from transaction {transaction.id}",
                    expires_at=points_expiry(now),
                    transaction_id=transaction.id
                )

            notice = SettlementService._notice(transaction, points_awarded=points)

        logger.info(f"Transaction {transaction_id} confirmed by user {actor.id}, {points} points awarded")
        return SettlementOutcome(transaction=transaction, notice=notice)

    @staticmethod
    def reject(
        db: Session,
        transaction_id: int,
        actor: User,
        reason: str,
        now: Optional[datetime] = None
    ) -> SettlementOutcome:
        now = now or datetime.utcnow()
        reason = (reason or "").strip()
        if not reason:
            raise ValidationFailed("Rejection reason is required")

        with atomic(db):
            transaction = TransactionStateMachine.load(db, transaction_id, for_update=True)
            if not can_settle(actor, transaction):
                raise PermissionDenied()
            if transaction.status != TransactionStatus.WAITING_CONFIRMATION:
                raise NotAwaitingConfirmation()

            TransactionStateMachine.transition(
                db,
                transaction,
                TransactionStatus.REJECTED,
                guard_error=NotAwaitingConfirmation,
                rejection_reason=reason,
                settled_at=now
            )
            restored = SettlementService._roll_back(db, transaction, now)
            notice = SettlementService._notice(transaction, points_restored=restored, reason=reason)

        logger.info(f"Transaction {transaction_id} rejected by user {actor.id}: {reason}")
        return SettlementOutcome(transaction=transaction, notice=notice)

    @staticmethod
    def cancel(
        db: Session,
        transaction_id: int,
        user: User,
        now: Optional[datetime] = None
    ) -> SettlementOutcome:
        now = now or datetime.utcnow()

        with atomic(db):
            transaction = TransactionStateMachine.load(db, transaction_id, for_update=True)
            if transaction.user_id != user.id:
                raise TransactionNotFound()

            TransactionStateMachine.transition(
                db,
                transaction,
                TransactionStatus.CANCELED,
                settled_at=now
            )
            restored = SettlementService._roll_back(db, transaction, now)
            notice = SettlementService._notice(transaction, points_restored=restored)

        logger.info(f"Transaction {transaction_id} canceled by user {user.id}")
        return SettlementOutcome(transaction=transaction, notice=notice)

    @staticmethod
    def expire(db: Session, transaction_id: int, now: Optional[datetime] = None) -> SettlementOutcome:
        """Expire one unpaid transaction whose payment deadline has passed."""
        now = now or datetime.utcnow()

        with atomic(db):
            transaction = TransactionStateMachine.load(db, transaction_id, for_update=True)
            if transaction.status != TransactionStatus.WAITING_PAYMENT:
                raise InvalidStateTransition(
                    f"Cannot expire a transaction in status {transaction.status.value}"
                )
            if transaction.payment_deadline >= now:
                raise InvalidStateTransition("Payment deadline has not passed yet")

            TransactionStateMachine.transition(
                db,
                transaction,
                TransactionStatus.EXPIRED,
                conditions=(Transaction.payment_deadline < now,),
                settled_at=now
            )
            restored = SettlementService._roll_back(db, transaction, now)
            notice = SettlementService._notice(transaction, points_restored=restored)

        logger.info(f"Transaction {transaction_id} expired")
        return SettlementOutcome(transaction=transaction, notice=notice)

    @staticmethod
    def expire_overdue(db: Session, now: Optional[datetime] = None, limit: int = 100) -> list[SettlementOutcome]:
        """
        Sweep unpaid transactions past their deadline.

        Each one is expired in its own unit of work. A transaction that
        changed state in the meantime (proof uploaded, canceled, expired by
        another sweep) is skipped.
        """
        now = now or datetime.utcnow()
        overdue_ids = [
            row.id for row in db.query(Transaction.id).filter(
                Transaction.status == TransactionStatus.WAITING_PAYMENT,
                Transaction.payment_deadline < now
            ).order_by(Transaction.payment_deadline.asc()).limit(limit).all()
        ]
        db.rollback()

        outcomes = []
        for transaction_id in overdue_ids:
            try:
                outcomes.append(SettlementService.expire(db, transaction_id, now))
            except StateError as e:
                logger.info(f"Skipping expiry of transaction {transaction_id}: {e.message}")

        if outcomes:
            logger.info(f"Expired {len(outcomes)} overdue transactions")
        return outcomes

    @staticmethod
    def _roll_back(db: Session, transaction: Transaction, now: datetime) -> int:
        """Undo what checkout took: spent points and reserved tickets. Coupons and vouchers stay spent."""
        restored = LoyaltyService.restore_for_transaction(db, transaction, now)
        for line in transaction.tickets:
            InventoryService.release(db, line.ticket_tier_id, line.quantity)
        return restored

    @staticmethod
    def _notice(
        transaction: Transaction,
        points_awarded: int = 0,
        points_restored: int = 0,
        reason: Optional[str] = None
    ) -> SettlementNotice:
        return SettlementNotice(
            transaction_id=transaction.id,
            status=transaction.status,
            user_email=transaction.user.email,
            user_name=transaction.user.name,
            event_title=transaction.event.title,
            final_amount=transaction.final_amount,
            points_awarded=points_awarded,
            points_restored=points_restored,
            reason=reason
        )

    @staticmethod
    def get_visible(db: Session, transaction_id: int, user: User) -> Transaction:
        transaction = TransactionStateMachine.load(db, transaction_id)
        if not can_view(user, transaction):
            raise TransactionNotFound()
        return transaction
