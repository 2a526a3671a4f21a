"""Unit tests for EMI forgiveness reconciliation"""

from datetime import date, datetime

import pytest

from good4it_gateway.domain.exceptions import StateConflictError
from good4it_gateway.domain.models import (
    EmiDetails,
    EmiFrequency,
    MoneyRequest,
    MoneyTransaction,
    PaymentType,
    RequestStatus,
    Task,
    TaskStatus,
    TransactionStatus,
)
from good4it_gateway.domain.reconciler import (
    apply_task_credit,
    forgiveness_months,
    forgiveness_summary,
    forgiveness_window,
    max_forgivable_emis,
    payment_due_status,
    plan_task_credit,
)

NOW = datetime(2024, 2, 15, 10, 0)


@pytest.fixture
def emi_request() -> MoneyRequest:
    return MoneyRequest(
        requestor_id="bob",
        lender_id="alice",
        amount_cents=120_000,
        payment_type=PaymentType.EMI,
        emi_details=EmiDetails(number_of_installments=12, installment_cents=10_000, frequency=EmiFrequency.MONTHLY),
        status=RequestStatus.APPROVED,
    )


@pytest.fixture
def emi_transaction(emi_request) -> MoneyTransaction:
    return MoneyTransaction(
        request_id=emi_request.id,
        requestor_id="bob",
        lender_id="alice",
        amount_cents=120_000,
        status=TransactionStatus.MONEY_RECEIVED,
        created_at=datetime(2024, 1, 5),
    )


def make_task(transaction: MoneyTransaction, **overrides) -> Task:
    fields = dict(
        assigned_by="alice",
        assigned_to="bob",
        reference_transaction_id=transaction.id,
        title="Paint the fence",
        due_date=date(2024, 3, 1),
        status=TaskStatus.COMPLETED,
    )
    fields.update(overrides)
    return Task(**fields)


def emi_task(transaction: MoneyTransaction, count: int = 3, start_month: str = "2024-01", **overrides) -> Task:
    return make_task(
        transaction, is_emi_task=True, emi_forgiveness=forgiveness_window(start_month, count), **overrides
    )


@pytest.mark.parametrize(
    "loan_cents,expected",
    [
        (5_000, 1),  # $50
        (30_000, 3),
        (50_000, 5),  # $500
        (120_000, 12),
        (500_000, 24),
    ],
)
def test_max_forgivable_emis(loan_cents, expected):
    assert max_forgivable_emis(loan_cents) == expected


def test_forgiveness_window_spans_consecutive_months():
    window = forgiveness_window("2023-11", 3)

    assert window.end_month == "2024-01"
    assert forgiveness_months("2023-11", 3) == ["2023-11", "2023-12", "2024-01"]


def test_plan_non_emi_task_credit(emi_request, emi_transaction):
    task = make_task(emi_transaction, monetary_value_cents=2_500)

    credit = plan_task_credit(task, emi_transaction, emi_request)

    assert credit.amount_cents == 2_500
    assert credit.forgiven_months == []


def test_plan_refuses_repayment_in_flight(emi_request, emi_transaction):
    emi_transaction.status = TransactionStatus.REPAYMENT_SENT
    with pytest.raises(StateConflictError) as exc_info:
        plan_task_credit(emi_task(emi_transaction), emi_transaction, emi_request)
    assert exc_info.value.code == "TRANSACTION_NOT_OPEN"


@pytest.mark.parametrize("status", [TransactionStatus.REPAID, TransactionStatus.FORGIVEN])
def test_settled_transaction_gets_no_credit(emi_request, emi_transaction, status):
    emi_transaction.status = status
    task = emi_task(emi_transaction)

    credit = plan_task_credit(task, emi_transaction, emi_request)

    assert credit.amount_cents == 0
    assert credit.forgiven_months == []
    assert apply_task_credit(emi_transaction, task, credit, NOW) is False
    assert emi_transaction.status == status
    assert emi_transaction.emi_forgiveness == []


def test_emi_task_on_full_payment_loan(emi_request, emi_transaction):
    emi_request.payment_type = PaymentType.FULL_PAYMENT
    emi_request.emi_details = None
    with pytest.raises(StateConflictError) as exc_info:
        plan_task_credit(emi_task(emi_transaction), emi_transaction, emi_request)
    assert exc_info.value.code == "NOT_EMI_TRANSACTION"


def test_apply_emi_credit_records_each_month(emi_request, emi_transaction):
    task = emi_task(emi_transaction)
    credit = plan_task_credit(task, emi_transaction, emi_request)

    settled = apply_task_credit(emi_transaction, task, credit, NOW)

    assert not settled
    assert [entry.month for entry in emi_transaction.emi_forgiveness] == ["2024-01", "2024-02", "2024-03"]
    assert all(entry.amount_cents == 10_000 for entry in emi_transaction.emi_forgiveness)
    assert emi_transaction.total_forgiven_emis == 3
    assert emi_transaction.repayment_amount_cents == 30_000
    assert emi_transaction.remaining_balance_cents == 90_000
    assert emi_transaction.status == TransactionStatus.MONEY_RECEIVED
    # the forgiven periods count as paid through the end of March
    assert emi_transaction.repayment_received_at.month == 3
    assert emi_transaction.repayment_received_at.day == 31
    assert emi_transaction.next_payment_due_at == datetime(2024, 4, 1)


def test_credit_covering_balance_settles(emi_request, emi_transaction):
    emi_transaction.repayment_amount_cents = 110_000
    task = make_task(emi_transaction, monetary_value_cents=10_000)
    credit = plan_task_credit(task, emi_transaction, emi_request)

    assert apply_task_credit(emi_transaction, task, credit, NOW)
    assert emi_transaction.status == TransactionStatus.REPAID
    assert emi_transaction.next_payment_due_at is None


def test_payment_not_due_inside_forgiven_window(emi_request, emi_transaction):
    task = emi_task(emi_transaction)
    apply_task_credit(emi_transaction, task, plan_task_credit(task, emi_transaction, emi_request), NOW)
    task.status = TaskStatus.CONFIRMED

    status = payment_due_status(emi_transaction, emi_request, [task], NOW)

    assert not status.required
    assert status.reason == "forgiven_period"
    assert status.period.key == "2024-02"


def test_unconfirmed_task_does_not_forgive(emi_request, emi_transaction):
    task = emi_task(emi_transaction)

    status = payment_due_status(emi_transaction, emi_request, [task], NOW)

    assert status.required
    assert status.reason == "due"
    assert status.next_due_at == datetime(2024, 2, 1)


def test_payment_due_after_forgiven_window(emi_request, emi_transaction):
    task = emi_task(emi_transaction)
    apply_task_credit(emi_transaction, task, plan_task_credit(task, emi_transaction, emi_request), NOW)
    task.status = TaskStatus.CONFIRMED

    status = payment_due_status(emi_transaction, emi_request, [task], datetime(2024, 4, 10))

    assert status.required
    assert status.reason == "due"


def test_already_paid_this_period(emi_request, emi_transaction):
    emi_transaction.repayment_received_at = datetime(2024, 2, 3)

    status = payment_due_status(emi_transaction, emi_request, [], NOW)

    assert not status.required
    assert status.reason == "already_paid"
    assert status.next_due_at == datetime(2024, 3, 1)


def test_settled_emi_transaction(emi_request, emi_transaction):
    emi_transaction.status = TransactionStatus.FORGIVEN

    status = payment_due_status(emi_transaction, emi_request, [], NOW)

    assert not status.required
    assert status.reason == "settled"


def test_non_emi_transaction(emi_request, emi_transaction):
    emi_request.payment_type = PaymentType.FULL_PAYMENT

    status = payment_due_status(emi_transaction, emi_request, [], NOW)

    assert status.required
    assert status.reason == "not_emi"
    assert status.period is None


def test_forgiveness_summary(emi_request, emi_transaction):
    task = emi_task(emi_transaction, count=2)
    apply_task_credit(emi_transaction, task, plan_task_credit(task, emi_transaction, emi_request), NOW)

    summary = forgiveness_summary(emi_transaction)

    assert summary.max_per_task == 12
    assert summary.total_forgiven_emis == 2
    assert summary.forgiven_amount_cents == 20_000
    assert summary.remaining_balance_cents == 100_000
    assert len(summary.entries) == 2
