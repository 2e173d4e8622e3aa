from eventhub.services.auth import AuthService
from eventhub.services.discount import DiscountService
from eventhub.services.email import EmailService
from eventhub.services.events import EventService
from eventhub.services.inventory import InventoryService
from eventhub.services.loyalty import LoyaltyService
from eventhub.services.referral import ReferralService
from eventhub.services.settlement import SettlementService
from eventhub.services.transaction_state import TransactionStateMachine

__all__ = [
    "AuthService", "DiscountService", "EmailService", "EventService",
    "InventoryService", "LoyaltyService", "ReferralService",
    "SettlementService", "TransactionStateMachine"
]
