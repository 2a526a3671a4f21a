"""Optimistic locking across concurrent sessions"""

import uuid
from datetime import date

import pytest

from good4it_gateway.domain import requests as lifecycle
from good4it_gateway.domain import tasks
from good4it_gateway.domain.exceptions import ConcurrencyConflictError
from good4it_gateway.domain.models import (
    EmiDetails,
    MoneyTransaction,
    PaymentType,
    ProofUpload,
    TaskStatus,
    TransactionStatus,
)
from good4it_gateway.domain.transactions import confirm_receipt, forgive
from good4it_gateway.infrastructure.database.repositories import (
    RequestRepository,
    TaskRepository,
    TransactionRepository,
)


@pytest.fixture
def funded(db, users):
    money_request, _ = lifecycle.create_request("bob", "alice", 10_000, are_friends=True)
    upload = ProofUpload(filename="sent.png", mime_type="image/png", content=b"png")
    transaction, _ = lifecycle.approve_and_pay(money_request, "alice", upload)

    RequestRepository(db).add(money_request)
    TransactionRepository(db).add(transaction)
    db.commit()
    return transaction


def test_stale_save_is_rejected(funded, session_factory):
    first, second = session_factory(), session_factory()
    try:
        mine = TransactionRepository(first).get(funded.id)
        theirs = TransactionRepository(second).get(funded.id)

        confirm_receipt(mine, "bob")
        TransactionRepository(first).save(mine)
        first.commit()

        # the second writer acted on the version it read before the first commit
        theirs.status = TransactionStatus.FORGIVEN
        with pytest.raises(ConcurrencyConflictError):
            TransactionRepository(second).save(theirs)
        second.rollback()

        current = TransactionRepository(second).get(funded.id)
        assert current.status == TransactionStatus.MONEY_RECEIVED
    finally:
        first.close()
        second.close()


def test_save_after_reload_succeeds(funded, session_factory):
    first, second = session_factory(), session_factory()
    try:
        mine = TransactionRepository(first).get(funded.id)
        confirm_receipt(mine, "bob")
        TransactionRepository(first).save(mine)
        first.commit()

        reloaded = TransactionRepository(second).get(funded.id)
        forgive(reloaded, "alice")
        TransactionRepository(second).save(reloaded)
        second.commit()

        assert reloaded.version > mine.version
    finally:
        first.close()
        second.close()


def test_request_funded_only_once(funded, session_factory):
    session = session_factory()
    try:
        duplicate = MoneyTransaction(
            request_id=funded.request_id,
            requestor_id="bob",
            lender_id="alice",
            amount_cents=10_000,
            id=uuid.uuid4(),
        )
        with pytest.raises(ConcurrencyConflictError):
            TransactionRepository(session).add(duplicate)
        session.rollback()
    finally:
        session.close()


def _new_task(db, transaction, **overrides):
    money_request = RequestRepository(db).get(transaction.request_id)
    kwargs = dict(
        assigned_by="alice",
        assigned_to="bob",
        title="Wash the car",
        due_date=date(2024, 3, 1),
        are_friends=True,
        has_active_task=TaskRepository(db).has_active_task(transaction.id),
        monetary_value_cents=2_500,
    )
    kwargs.update(overrides)
    task, _ = tasks.create_task(transaction, money_request, **kwargs)
    return task


def test_one_task_per_transaction_under_race(funded, session_factory):
    first, second = session_factory(), session_factory()
    try:
        # both writers see no active task before either commits
        mine = _new_task(first, TransactionRepository(first).get(funded.id))
        theirs_transaction = TransactionRepository(second).get(funded.id)
        theirs = _new_task(second, theirs_transaction)

        TaskRepository(first).add(mine)
        TransactionRepository(first).touch(TransactionRepository(first).get(funded.id))
        first.commit()

        TaskRepository(second).add(theirs)
        with pytest.raises(ConcurrencyConflictError):
            TransactionRepository(second).touch(theirs_transaction)
        second.rollback()

        assert [t.id for t in TaskRepository(second).list_for_transaction(funded.id)] == [mine.id]
    finally:
        first.close()
        second.close()


@pytest.fixture
def emi_task_completed(db, users):
    money_request, _ = lifecycle.create_request(
        "bob",
        "alice",
        100_000,
        are_friends=True,
        payment_type=PaymentType.EMI,
        emi_details=EmiDetails(number_of_installments=10, installment_cents=10_000),
    )
    upload = ProofUpload(filename="sent.png", mime_type="image/png", content=b"png")
    transaction, _ = lifecycle.approve_and_pay(money_request, "alice", upload)
    confirm_receipt(transaction, "bob")
    RequestRepository(db).add(money_request)
    TransactionRepository(db).add(transaction)

    task = _new_task(db, transaction, is_emi_task=True, forgiven_emis=2, monetary_value_cents=0)
    tasks.start(task, "bob")
    tasks.complete(task, "bob")
    TaskRepository(db).add(task)
    db.commit()
    return task


def test_task_confirmation_is_all_or_nothing(emi_task_completed, session_factory):
    first, second = session_factory(), session_factory()
    try:
        task = TaskRepository(second).get(emi_task_completed.id)
        transaction = TransactionRepository(second).get(task.reference_transaction_id)
        money_request = RequestRepository(second).get(transaction.request_id)

        # the transaction changes after the confirming lender read it
        TransactionRepository(first).touch(TransactionRepository(first).get(transaction.id))
        first.commit()

        tasks.confirm(task, transaction, money_request, "alice")
        TaskRepository(second).save(task)
        with pytest.raises(ConcurrencyConflictError):
            TransactionRepository(second).save(transaction)
        second.rollback()

        reloaded_task = TaskRepository(second).get(emi_task_completed.id)
        reloaded_transaction = TransactionRepository(second).get(transaction.id)
        assert reloaded_task.status == TaskStatus.COMPLETED
        assert reloaded_task.amount_repaid_cents == 0
        assert reloaded_transaction.emi_forgiveness == []
        assert reloaded_transaction.total_forgiven_emis == 0
        assert reloaded_transaction.repayment_amount_cents == 0
    finally:
        first.close()
        second.close()
