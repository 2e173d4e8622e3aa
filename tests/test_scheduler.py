import asyncio
from datetime import timedelta

import pytest

from conftest import NOW
from eventhub.models.transaction import Transaction, TransactionStatus
from eventhub.models.user import User
from eventhub.services import scheduler as scheduler_module
from eventhub.services.settlement import CheckoutData, SettlementService


@pytest.fixture
def job_sessions(monkeypatch, session_factory):
    monkeypatch.setattr(scheduler_module, "SessionLocal", session_factory)
    return session_factory


def test_expiry_job_expires_overdue_transactions(db, job_sessions, customer, tier):
    transaction = SettlementService.checkout(
        db,
        customer,
        CheckoutData(event_id=tier.event_id, ticket_tier_id=tier.id, quantity=2, points=5000),
        NOW
    )
    transaction_id, customer_id = transaction.id, customer.id
    db.close()

    expired = asyncio.run(scheduler_module.expire_overdue_transactions(now=NOW + timedelta(hours=3)))

    assert expired == 1
    assert db.get(Transaction, transaction_id).status == TransactionStatus.EXPIRED
    assert db.get(User, customer_id).points == 25000


def test_expiry_job_with_nothing_due(db, job_sessions, customer, tier):
    SettlementService.checkout(
        db, customer, CheckoutData(event_id=tier.event_id, ticket_tier_id=tier.id, quantity=1), NOW
    )
    db.close()

    assert asyncio.run(scheduler_module.expire_overdue_transactions(now=NOW + timedelta(minutes=5))) == 0


def test_reconcile_job_fixes_drifted_balances(db, job_sessions, customer, organizer):
    customer_id = customer.id
    customer.points = 999
    db.commit()
    db.close()

    assert scheduler_module.reconcile_point_balances(now=NOW) == 1
    assert db.get(User, customer_id).points == 25000
    db.close()

    assert scheduler_module.reconcile_point_balances(now=NOW) == 0
