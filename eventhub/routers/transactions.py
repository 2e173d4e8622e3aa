from typing import Optional
from fastapi import APIRouter, Depends, Request, BackgroundTasks
from sqlalchemy.orm import Session

from eventhub.config import get_settings
from eventhub.database import get_db
from eventhub.rate_limit import limiter
from eventhub.services.auth import get_current_user_required
from eventhub.services.email import EmailService
from eventhub.services.settlement import SettlementService, CheckoutData
from eventhub.models.user import User
from eventhub.models.transaction import Transaction, TransactionStatus
from eventhub.schemas.transaction import (
    CheckoutRequest, PaymentProofSubmit, TransactionResponse, TransactionPage, SettlementResponse
)

router = APIRouter(prefix="/transactions", tags=["transactions"])
settings = get_settings()


@router.post("", response_model=TransactionResponse, status_code=201)
@limiter.limit(settings.checkout_rate_limit)
async def checkout(
    request: Request,
    checkout_data: CheckoutRequest,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db)
):
    return SettlementService.checkout(
        db,
        user,
        CheckoutData(
            event_id=checkout_data.event_id,
            ticket_tier_id=checkout_data.ticket_tier_id,
            quantity=checkout_data.quantity,
            points=checkout_data.points_used,
            user_coupon_id=checkout_data.coupon_id,
            voucher_code=checkout_data.voucher_code
        )
    )


@router.get("", response_model=TransactionPage)
async def my_transactions(
    page: int = 1,
    limit: int = 10,
    status: Optional[TransactionStatus] = None,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db)
):
    page = max(page, 1)
    limit = min(max(limit, 1), 100)

    query = db.query(Transaction).filter(Transaction.user_id == user.id)
    if status:
        query = query.filter(Transaction.status == status)

    total = query.count()
    transactions = query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).offset(
        (page - 1) * limit
    ).limit(limit).all()
    total_pages = (total + limit - 1) // limit

    return TransactionPage(
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        page=page,
        total_pages=total_pages,
        total=total
    )


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: int,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db)
):
    return SettlementService.get_visible(db, transaction_id, user)


@router.post("/{transaction_id}/payment-proof", response_model=TransactionResponse)
async def submit_payment_proof(
    transaction_id: int,
    proof: PaymentProofSubmit,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db)
):
    return SettlementService.submit_payment_proof(db, user, transaction_id, proof.payment_proof_ref)


@router.post("/{transaction_id}/cancel", response_model=SettlementResponse)
async def cancel_transaction(
    transaction_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db)
):
    outcome = SettlementService.cancel(db, transaction_id, user)
    background_tasks.add_task(EmailService.notify_settlement, outcome.notice)

    return SettlementResponse(
        transaction=TransactionResponse.model_validate(outcome.transaction),
        points_restored=outcome.points_restored
    )
