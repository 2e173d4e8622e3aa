"""
Typed failures raised by the services.

Every rejected path carries a stable ``code`` and a user-facing ``message``;
the HTTP layer renders both with ``status_code``. Raising any of these inside
an ``atomic`` block rolls the whole unit back.
"""


class EventHubError(Exception):
    code = "error"
    message = "Request failed"
    status_code = 400

    def __init__(self, message: str = None):
        if message:
            self.message = message
        super().__init__(self.message)


class ValidationFailed(EventHubError):
    code = "validation_failed"
    message = "Invalid request"
    status_code = 400


class PermissionDenied(EventHubError):
    code = "permission_denied"
    message = "Not authorized"
    status_code = 403


class NotFoundError(EventHubError):
    code = "not_found"
    message = "Not found"
    status_code = 404


class TransactionNotFound(NotFoundError):
    code = "transaction_not_found"
    message = "Transaction not found"


class EventNotFound(NotFoundError):
    code = "event_not_found"
    message = "Event not found"


class TicketTierNotFound(NotFoundError):
    code = "ticket_tier_not_found"
    message = "Ticket type not found"


class UserNotFound(NotFoundError):
    code = "user_not_found"
    message = "User not found"


class ConflictError(EventHubError):
    code = "conflict"
    message = "Request conflicts with current state"
    status_code = 409


class InsufficientInventory(ConflictError):
    code = "insufficient_inventory"
    message = "Not enough tickets available"


class InsufficientPoints(ConflictError):
    code = "insufficient_points"
    message = "Insufficient points"


class InvalidOrExpiredCoupon(ConflictError):
    code = "invalid_or_expired_coupon"
    message = "Invalid or expired coupon"


class CouponAlreadyUsed(ConflictError):
    code = "coupon_already_used"
    message = "Coupon has already been used"


class InvalidOrExpiredVoucher(ConflictError):
    code = "invalid_or_expired_voucher"
    message = "Invalid or expired voucher"


class VoucherExhausted(ConflictError):
    code = "voucher_exhausted"
    message = "Voucher has reached its usage limit"


class MinimumPurchaseNotMet(ConflictError):
    code = "minimum_purchase_not_met"
    message = "Minimum purchase not met"


class InvalidReferralCode(ConflictError):
    code = "invalid_referral_code"
    message = "Invalid referral code"


class EmailAlreadyRegistered(ConflictError):
    code = "email_already_registered"
    message = "Email already registered"


class StateError(EventHubError):
    code = "invalid_state"
    message = "Operation not allowed in the current state"
    status_code = 400


class NotAwaitingConfirmation(StateError):
    code = "not_awaiting_confirmation"
    message = "Transaction is not waiting for confirmation"


class InvalidStateTransition(StateError):
    code = "invalid_state_transition"
    message = "Invalid transaction status transition"


class EventEnded(StateError):
    code = "event_ended"
    message = "Event has ended"


class PaymentDeadlinePassed(StateError):
    code = "payment_deadline_passed"
    message = "Payment deadline has passed"
