from typing import Type
from sqlalchemy import update
from sqlalchemy.orm import Session

from eventhub.exceptions import InvalidStateTransition, StateError, TransactionNotFound
from eventhub.models.transaction import Transaction, TransactionStatus, ALLOWED_TRANSITIONS


class TransactionStateMachine:
    @staticmethod
    def load(db: Session, transaction_id: int, for_update: bool = False) -> Transaction:
        """
        Re-read a transaction from the database, bypassing any stale copy
        held by the session. With `for_update` the row stays locked until
        the surrounding unit of work ends (on backends that support it).
        """
        query = db.query(Transaction).filter(Transaction.id == transaction_id).populate_existing()
        if for_update:
            query = query.with_for_update()
        transaction = query.first()
        if not transaction:
            raise TransactionNotFound()
        return transaction

    @staticmethod
    def can_transition(current: TransactionStatus, target: TransactionStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[current]

    @staticmethod
    def ensure_transition(current: TransactionStatus, target: TransactionStatus) -> None:
        if not TransactionStateMachine.can_transition(current, target):
            raise InvalidStateTransition(
                f"Cannot move transaction from {current.value} to {target.value}"
            )

    @staticmethod
    def transition(
        db: Session,
        transaction: Transaction,
        target: TransactionStatus,
        guard_error: Type[StateError] = InvalidStateTransition,
        conditions: tuple = (),
        **values
    ) -> Transaction:
        """
        Compare-and-set the status.

        The UPDATE only matches while the row still has the status this
        session read, plus any extra `conditions`. If another unit of work
        settled it first, nothing is written and `guard_error` is raised.
        """
        source = transaction.status
        TransactionStateMachine.ensure_transition(source, target)

        result = db.execute(
            update(Transaction)
            .where(Transaction.id == transaction.id, Transaction.status == source, *conditions)
            .values(status=target, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise guard_error()

        db.refresh(transaction)
        return transaction
