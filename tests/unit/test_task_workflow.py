"""Unit tests for the task-for-debt workflow"""

from datetime import date, datetime

import pytest

from good4it_gateway.domain import tasks
from good4it_gateway.domain.exceptions import AuthorizationError, StateConflictError, ValidationError
from good4it_gateway.domain.models import (
    EmiDetails,
    EventType,
    MoneyRequest,
    MoneyTransaction,
    PaymentType,
    TaskStatus,
    TransactionStatus,
)
from good4it_gateway.domain.transactions import forgive

NOW = datetime(2024, 2, 10, 9, 0)
DUE = date(2024, 3, 1)


@pytest.fixture
def full_request() -> MoneyRequest:
    return MoneyRequest(requestor_id="bob", lender_id="alice", amount_cents=20_000)


@pytest.fixture
def full_transaction(full_request) -> MoneyTransaction:
    return MoneyTransaction(
        request_id=full_request.id,
        requestor_id="bob",
        lender_id="alice",
        amount_cents=20_000,
        status=TransactionStatus.MONEY_RECEIVED,
        created_at=datetime(2024, 1, 20),
    )


@pytest.fixture
def emi_request() -> MoneyRequest:
    return MoneyRequest(
        requestor_id="bob",
        lender_id="alice",
        amount_cents=50_000,
        payment_type=PaymentType.EMI,
        emi_details=EmiDetails(number_of_installments=5, installment_cents=10_000),
    )


@pytest.fixture
def emi_transaction(emi_request) -> MoneyTransaction:
    return MoneyTransaction(
        request_id=emi_request.id,
        requestor_id="bob",
        lender_id="alice",
        amount_cents=50_000,
        status=TransactionStatus.MONEY_RECEIVED,
        created_at=datetime(2024, 1, 20),
    )


def new_task(transaction, request, **overrides):
    kwargs = dict(
        assigned_by="alice",
        assigned_to="bob",
        title="Walk the dog",
        due_date=DUE,
        are_friends=True,
        has_active_task=False,
        monetary_value_cents=5_000,
        now=NOW,
    )
    kwargs.update(overrides)
    task, _ = tasks.create_task(transaction, request, **kwargs)
    return task


def test_create_task_notifies_borrower(full_transaction, full_request):
    task, outcome = tasks.create_task(
        full_transaction,
        full_request,
        assigned_by="alice",
        assigned_to="bob",
        title="  Walk the dog ",
        due_date=DUE,
        are_friends=True,
        has_active_task=False,
        monetary_value_cents=5_000,
        category="pet_care",
    )

    assert task.status == TaskStatus.PENDING
    assert task.title == "Walk the dog"
    assert task.category.value == "pet_care"
    [event] = outcome.events
    assert event.event_type == EventType.TASK_ASSIGNED
    assert event.recipient_id == "bob"
    assert event.metadata["title"] == "Walk the dog"


@pytest.mark.parametrize(
    "overrides,code",
    [
        ({"title": " "}, "MISSING_TITLE"),
        ({"monetary_value_cents": 0}, "INVALID_MONETARY_VALUE"),
        ({"monetary_value_cents": 1_000_001}, "INVALID_MONETARY_VALUE"),
        ({"is_emi_task": True, "forgiven_emis": 0}, "INVALID_EMI_FORGIVENESS"),
        ({"is_emi_task": True, "forgiven_emis": 2, "start_month": "2024-1"}, "INVALID_MONTH"),
        ({"assigned_to": "mallory"}, "ASSIGNEE_NOT_BORROWER"),
    ],
)
def test_create_task_validation(full_transaction, full_request, overrides, code):
    with pytest.raises(ValidationError) as exc_info:
        new_task(full_transaction, full_request, **overrides)
    assert exc_info.value.code == code


def test_only_lender_creates_task(full_transaction, full_request):
    with pytest.raises(AuthorizationError) as exc_info:
        new_task(full_transaction, full_request, assigned_by="bob", assigned_to="bob")
    assert exc_info.value.code == "NOT_LENDER"


def test_task_requires_friendship(full_transaction, full_request):
    with pytest.raises(AuthorizationError) as exc_info:
        new_task(full_transaction, full_request, are_friends=False)
    assert exc_info.value.code == "NOT_FRIENDS"


def test_one_active_task_per_transaction(full_transaction, full_request):
    with pytest.raises(StateConflictError) as exc_info:
        new_task(full_transaction, full_request, has_active_task=True)
    assert exc_info.value.code == "ACTIVE_TASK_EXISTS"


def test_no_task_on_settled_transaction(full_transaction, full_request):
    full_transaction.status = TransactionStatus.FORGIVEN
    with pytest.raises(StateConflictError) as exc_info:
        new_task(full_transaction, full_request)
    assert exc_info.value.code == "TRANSACTION_SETTLED"


def test_emi_task_needs_emi_loan(full_transaction, full_request):
    with pytest.raises(StateConflictError) as exc_info:
        new_task(full_transaction, full_request, is_emi_task=True, forgiven_emis=1, monetary_value_cents=0)
    assert exc_info.value.code == "NOT_EMI_TRANSACTION"


def test_emi_task_capped_for_small_loan(emi_transaction, emi_request):
    with pytest.raises(ValidationError) as exc_info:
        new_task(emi_transaction, emi_request, is_emi_task=True, forgiven_emis=6, monetary_value_cents=0)
    assert exc_info.value.code == "EMI_LIMIT_EXCEEDED"


def test_emi_task_window_defaults_to_funding_month(emi_transaction, emi_request):
    task = new_task(emi_transaction, emi_request, is_emi_task=True, forgiven_emis=2, monetary_value_cents=0)

    assert task.emi_forgiveness.start_month == "2024-01"
    assert task.emi_forgiveness.end_month == "2024-02"


def test_happy_path_credits_transaction(full_transaction, full_request):
    task = new_task(full_transaction, full_request)

    tasks.accept(task, "bob")
    tasks.start(task, "bob")
    tasks.complete(task, "bob", notes="Done, he was a good boy", now=NOW)
    settled, outcome = tasks.confirm(task, full_transaction, full_request, "alice", now=NOW)

    assert not settled
    assert task.status == TaskStatus.CONFIRMED
    assert task.amount_repaid_cents == 5_000
    assert full_transaction.repayment_amount_cents == 5_000
    assert full_transaction.remaining_balance_cents == 15_000
    [event] = outcome.events
    assert event.event_type == EventType.TASK_CONFIRMED
    assert event.recipient_id == "bob"
    assert event.metadata["credited_cents"] == 5_000
    assert event.metadata["settled"] is False


def test_confirm_settles_when_credit_covers_balance(full_transaction, full_request):
    task = new_task(full_transaction, full_request, monetary_value_cents=20_000)
    tasks.start(task, "bob")
    tasks.complete(task, "bob")

    settled, _ = tasks.confirm(task, full_transaction, full_request, "alice")

    assert settled
    assert full_transaction.status == TransactionStatus.REPAID


def test_confirm_emi_task_forgives_periods(emi_transaction, emi_request):
    task = new_task(
        emi_transaction, emi_request, is_emi_task=True, forgiven_emis=2, start_month="2024-02", monetary_value_cents=0
    )
    tasks.start(task, "bob")
    tasks.complete(task, "bob")

    settled, outcome = tasks.confirm(task, emi_transaction, emi_request, "alice", now=NOW)

    assert not settled
    assert task.amount_repaid_cents == 20_000
    assert emi_transaction.total_forgiven_emis == 2
    assert outcome.events[0].metadata["forgiven_months"] == ["2024-02", "2024-03"]


def test_borrower_cannot_confirm(full_transaction, full_request):
    task = new_task(full_transaction, full_request)
    tasks.start(task, "bob")
    tasks.complete(task, "bob")

    with pytest.raises(AuthorizationError):
        tasks.confirm(task, full_transaction, full_request, "bob")
    assert task.status == TaskStatus.COMPLETED
    assert full_transaction.repayment_amount_cents == 0


def test_complete_requires_in_progress(full_transaction, full_request):
    task = new_task(full_transaction, full_request)
    tasks.accept(task, "bob")

    with pytest.raises(StateConflictError) as exc_info:
        tasks.complete(task, "bob")
    assert exc_info.value.code == "INVALID_TASK_STATE"


def test_confirm_requires_completed(full_transaction, full_request):
    task = new_task(full_transaction, full_request)
    with pytest.raises(StateConflictError):
        tasks.confirm(task, full_transaction, full_request, "alice")


def test_completed_task_confirmable_after_loan_forgiven(full_transaction, full_request):
    task = new_task(full_transaction, full_request)
    tasks.start(task, "bob")
    tasks.complete(task, "bob")
    forgive(full_transaction, "alice", now=NOW)

    settled, outcome = tasks.confirm(task, full_transaction, full_request, "alice", now=NOW)

    assert not settled
    assert task.status == TaskStatus.CONFIRMED
    assert task.amount_repaid_cents == 0
    assert full_transaction.status == TransactionStatus.FORGIVEN
    assert full_transaction.repayment_amount_cents == 0
    assert outcome.events[0].metadata["credited_cents"] == 0


def test_decline_needs_reason(full_transaction, full_request):
    task = new_task(full_transaction, full_request)

    with pytest.raises(ValidationError) as exc_info:
        tasks.decline(task, "bob", "")
    assert exc_info.value.code == "MISSING_REASON"

    outcome = tasks.decline(task, "bob", "Allergic to dogs", now=NOW)
    assert task.status == TaskStatus.DECLINED
    assert task.decline_reason == "Allergic to dogs"
    assert outcome.events[0].recipient_id == "alice"


def test_decline_only_while_pending(full_transaction, full_request):
    task = new_task(full_transaction, full_request)
    tasks.accept(task, "bob")
    with pytest.raises(StateConflictError):
        tasks.decline(task, "bob", "Changed my mind")


def test_only_assignee_accepts(full_transaction, full_request):
    task = new_task(full_transaction, full_request)
    with pytest.raises(AuthorizationError) as exc_info:
        tasks.accept(task, "alice")
    assert exc_info.value.code == "NOT_ASSIGNED_TO"


def test_cancel_by_lender(full_transaction, full_request):
    task = new_task(full_transaction, full_request)
    tasks.start(task, "bob")

    with pytest.raises(AuthorizationError):
        tasks.cancel(task, "bob", "No longer needed")

    outcome = tasks.cancel(task, "alice", "No longer needed", now=NOW)
    assert task.status == TaskStatus.CANCELLED
    assert task.cancellation_reason == "No longer needed"
    assert outcome.events[0].recipient_id == "bob"

    with pytest.raises(StateConflictError):
        tasks.cancel(task, "alice", "Again")
