from datetime import datetime
from typing import Optional
import logging

from dateutil.relativedelta import relativedelta
from sqlalchemy import func, update
from sqlalchemy.orm import Session

from eventhub.config import get_settings
from eventhub.exceptions import InsufficientPoints, UserNotFound, ValidationFailed
from eventhub.models.loyalty import LoyaltyEntry, LoyaltyKind
from eventhub.models.transaction import Transaction
from eventhub.models.user import User

settings = get_settings()
logger = logging.getLogger(__name__)


def points_expiry(now: datetime) -> datetime:
    return now + relativedelta(months=settings.point_expiry_months)


class LoyaltyService:
    """
    Point ledger operations.

    Entries are only ever appended. Each append moves `User.points` by the
    same amount in the same unit of work; none of these methods commit.
    """

    @staticmethod
    def grant(
        db: Session,
        user_id: int,
        points: int,
        kind: LoyaltyKind,
        description: str,
        expires_at: Optional[datetime] = None,
        transaction_id: Optional[int] = None
    ) -> LoyaltyEntry:
        if points <= 0:
            raise ValidationFailed("Granted points must be positive")

        entry = LoyaltyEntry(
            user_id=user_id,
            points=points,
            kind=kind,
            description=description,
            expires_at=expires_at,
            transaction_id=transaction_id
        )
        db.add(entry)

        result = db.execute(
            update(User)
            .where(User.id == user_id)
            .values(points=User.points + points)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise UserNotFound()

        db.flush()
        return entry

    @staticmethod
    def debit(
        db: Session,
        user_id: int,
        points: int,
        description: str,
        transaction_id: Optional[int] = None
    ) -> LoyaltyEntry:
        """Spend points; fails with InsufficientPoints instead of going negative."""
        if points <= 0:
            raise ValidationFailed("Debited points must be positive")

        result = db.execute(
            update(User)
            .where(User.id == user_id, User.points >= points)
            .values(points=User.points - points)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InsufficientPoints()

        entry = LoyaltyEntry(
            user_id=user_id,
            points=-points,
            kind=LoyaltyKind.PURCHASE_USED,
            description=description,
            transaction_id=transaction_id
        )
        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def points_spent_on(db: Session, transaction_id: int) -> int:
        spent = db.query(func.coalesce(func.sum(LoyaltyEntry.points), 0)).filter(
            LoyaltyEntry.transaction_id == transaction_id,
            LoyaltyEntry.kind == LoyaltyKind.PURCHASE_USED
        ).scalar()
        return -spent

    @staticmethod
    def restore_for_transaction(db: Session, transaction: Transaction, now: datetime) -> int:
        """
        Give back whatever a transaction spent at checkout, as a new entry.

        Returns the number of points restored (0 if none were spent).
        """
        spent = LoyaltyService.points_spent_on(db, transaction.id)
        if spent <= 0:
            return 0

        LoyaltyService.grant(
            db,
            transaction.user_id,
            spent,
            LoyaltyKind.RESTORED,
            f"Points restored from {transaction.status.value} transaction {transaction.id}",
            expires_at=points_expiry(now),
            transaction_id=transaction.id
        )
        return spent

    @staticmethod
    def ledger_balance(db: Session, user_id: int, now: Optional[datetime] = None) -> int:
        """
        Balance recomputed from the ledger.

        Replays entries in the order they were written. Each debit consumes
        the open grants that lapse soonest, falling back to already lapsed
        grants only when the valid ones run out. Only the unspent remainder
        of a grant can lapse; grants without `expires_at` never do.
        """
        now = now or datetime.utcnow()
        entries = db.query(LoyaltyEntry).filter(
            LoyaltyEntry.user_id == user_id
        ).order_by(LoyaltyEntry.id.asc()).all()

        # [remaining, expires_at] per grant
        open_grants = []
        for entry in entries:
            if entry.points > 0:
                open_grants.append([entry.points, entry.expires_at])
                continue

            spent_at = entry.created_at or now
            owed = -entry.points
            open_grants.sort(key=lambda grant: (
                grant[1] is not None and grant[1] <= spent_at,
                grant[1] or datetime.max
            ))
            for grant in open_grants:
                if not owed:
                    break
                taken = min(grant[0], owed)
                grant[0] -= taken
                owed -= taken
            if owed:
                logger.warning(f"Ledger for user {user_id} debits {owed} points more than it granted")
            open_grants = [grant for grant in open_grants if grant[0] > 0]

        return sum(
            remaining for remaining, expires_at in open_grants
            if expires_at is None or expires_at > now
        )

    @staticmethod
    def reconcile(db: Session, user_id: int, now: Optional[datetime] = None) -> int:
        """
        Bring the denormalized balance back in line with the ledger.

        Returns the drift that was corrected (ledger minus stored balance).
        """
        user = db.query(User).filter(User.id == user_id).with_for_update().populate_existing().first()
        if not user:
            raise UserNotFound()

        expected = LoyaltyService.ledger_balance(db, user_id, now)
        drift = expected - user.points
        if drift:
            logger.warning(f"Point balance drift for user {user_id}: stored {user.points}, ledger {expected}")
            user.points = expected
            db.flush()
        return drift

    @staticmethod
    def history(db: Session, user_id: int) -> list[LoyaltyEntry]:
        return db.query(LoyaltyEntry).filter(
            LoyaltyEntry.user_id == user_id
        ).order_by(LoyaltyEntry.created_at.desc(), LoyaltyEntry.id.desc()).all()
