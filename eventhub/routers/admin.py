from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, BackgroundTasks
from sqlalchemy.orm import Session
from sqlalchemy import func

from eventhub.database import get_db
from eventhub.services.auth import require_roles
from eventhub.services.email import EmailService
from eventhub.services.settlement import SettlementService
from eventhub.services.scheduler import scheduler
from eventhub.models.user import User, UserRole
from eventhub.models.event import Event
from eventhub.models.transaction import Transaction, TransactionStatus
from eventhub.schemas.transaction import RejectRequest, TransactionResponse, TransactionPage, SettlementResponse

router = APIRouter(prefix="/admin", tags=["admin"])

settlement_staff = require_roles(UserRole.ADMIN, UserRole.ORGANIZER)


@router.get("/status")
async def admin_status(
    user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    counts = dict(
        db.query(Transaction.status, func.count(Transaction.id)).group_by(Transaction.status).all()
    )

    return {
        "timestamp": datetime.utcnow().isoformat(),
        "status": "ok",
        "scheduler_running": scheduler.running,
        "transactions": {s.value: counts.get(s, 0) for s in TransactionStatus}
    }


@router.get("/transactions", response_model=TransactionPage)
async def admin_transactions(
    page: int = 1,
    status: Optional[TransactionStatus] = None,
    user: User = Depends(settlement_staff),
    db: Session = Depends(get_db)
):
    query = db.query(Transaction)

    if user.role == UserRole.ORGANIZER:
        query = query.join(Event).filter(Event.organizer_id == user.id)
    if status:
        query = query.filter(Transaction.status == status)

    page = max(page, 1)
    per_page = 20
    total = query.count()
    transactions = query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).offset(
        (page - 1) * per_page
    ).limit(per_page).all()
    total_pages = (total + per_page - 1) // per_page

    return TransactionPage(
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        page=page,
        total_pages=total_pages,
        total=total
    )


@router.post("/transactions/expire")
async def expire_overdue(
    background_tasks: BackgroundTasks,
    user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    outcomes = SettlementService.expire_overdue(db)
    for outcome in outcomes:
        background_tasks.add_task(EmailService.notify_settlement, outcome.notice)

    return {"expired": [outcome.notice.transaction_id for outcome in outcomes]}


@router.post("/transactions/{transaction_id}/confirm", response_model=SettlementResponse)
async def confirm_transaction(
    transaction_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(settlement_staff),
    db: Session = Depends(get_db)
):
    outcome = SettlementService.confirm(db, transaction_id, user)
    background_tasks.add_task(EmailService.notify_settlement, outcome.notice)

    return SettlementResponse(
        transaction=TransactionResponse.model_validate(outcome.transaction),
        points_awarded=outcome.points_awarded
    )


@router.post("/transactions/{transaction_id}/reject", response_model=SettlementResponse)
async def reject_transaction(
    transaction_id: int,
    rejection: RejectRequest,
    background_tasks: BackgroundTasks,
    user: User = Depends(settlement_staff),
    db: Session = Depends(get_db)
):
    outcome = SettlementService.reject(db, transaction_id, user, rejection.reason)
    background_tasks.add_task(EmailService.notify_settlement, outcome.notice)

    return SettlementResponse(
        transaction=TransactionResponse.model_validate(outcome.transaction),
        points_restored=outcome.points_restored
    )
