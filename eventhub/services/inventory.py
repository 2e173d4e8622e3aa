import logging
from sqlalchemy import case, update
from sqlalchemy.orm import Session

from eventhub.exceptions import InsufficientInventory, TicketTierNotFound, ValidationFailed
from eventhub.models.event import TicketTier

logger = logging.getLogger(__name__)


class InventoryService:
    @staticmethod
    def reserve(db: Session, tier_id: int, quantity: int) -> None:
        """
        Take `quantity` tickets out of a tier's remaining pool.

        The check and the decrement are a single conditional UPDATE, so two
        concurrent reservations can never both pass on the same last ticket.
        Does not commit; the caller owns the unit of work.
        """
        if quantity < 1:
            raise ValidationFailed("Quantity must be at least 1")

        result = db.execute(
            update(TicketTier)
            .where(TicketTier.id == tier_id, TicketTier.available >= quantity)
            .values(available=TicketTier.available - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            if db.get(TicketTier, tier_id) is None:
                raise TicketTierNotFound()
            logger.warning(f"Reservation of {quantity} on tier {tier_id} rejected: insufficient inventory")
            raise InsufficientInventory()

    @staticmethod
    def release(db: Session, tier_id: int, quantity: int) -> None:
        """Return tickets to the pool, never raising `available` above the tier quantity."""
        tier = db.get(TicketTier, tier_id, populate_existing=True)
        if tier is None:
            raise TicketTierNotFound()

        if tier.available + quantity > tier.quantity:
            logger.warning(
                f"Release of {quantity} on tier {tier_id} would exceed its quantity "
                f"({tier.available}/{tier.quantity}); clamping"
            )

        ceiling_hit = TicketTier.available + quantity > TicketTier.quantity
        db.execute(
            update(TicketTier)
            .where(TicketTier.id == tier_id)
            .values(available=case((ceiling_hit, TicketTier.quantity), else_=TicketTier.available + quantity))
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    def available(db: Session, tier_id: int) -> int:
        tier = db.get(TicketTier, tier_id, populate_existing=True)
        if tier is None:
            raise TicketTierNotFound()
        return tier.available
