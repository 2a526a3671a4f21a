"""EMI / forgiveness reconciliation

Applies the monetary effect of a confirmed task to its transaction and
answers whether a payment is due for the current EMI period.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional

from good4it_gateway.domain.exceptions import StateConflictError, ValidationError
from good4it_gateway.domain.models import (
    EmiForgivenessEntry,
    EmiFrequency,
    MoneyRequest,
    MoneyTransaction,
    PaymentDueStatus,
    Task,
    TaskEmiForgiveness,
    TaskStatus,
    TransactionStatus,
)
from good4it_gateway.domain.periods import (
    add_months,
    last_instant,
    month_end,
    month_start,
    period_covering_month_end,
    period_for,
)

MAX_FORGIVABLE_EMIS = 24
SMALL_LOAN_CENTS = 50_000  # $500
SMALL_LOAN_MAX_EMIS = 5


@dataclass
class TaskCredit:
    """Credit a confirmed task applies to its transaction"""

    amount_cents: int
    forgiven_months: List[str] = field(default_factory=list)
    installment_cents: int = 0
    frequency: Optional[EmiFrequency] = None  # set when the transaction is on an EMI schedule


@dataclass
class ForgivenessSummary:
    max_per_task: int
    total_forgiven_emis: int
    forgiven_amount_cents: int
    remaining_balance_cents: int
    entries: List[EmiForgivenessEntry]


def max_forgivable_emis(loan_amount_cents: int) -> int:
    """
    Maximum EMIs a single task may forgive for a loan.

    Business rule (loan in dollars): ``min(floor(loan / 100), 24)`` with a floor
    of 1, additionally capped at 5 when the loan is $500 or less.

    Example:
        $50 -> 1, $500 -> 5, $1200 -> 12, $5000 -> 24
    """
    limit = max(min(loan_amount_cents // 10_000, MAX_FORGIVABLE_EMIS), 1)
    if loan_amount_cents <= SMALL_LOAN_CENTS:
        limit = min(limit, SMALL_LOAN_MAX_EMIS)
    return limit


def forgiveness_months(start_month: str, count: int) -> List[str]:
    """["2024-01", "2024-02", ...] - ``count`` consecutive months from ``start_month``"""
    return [add_months(start_month, i) for i in range(count)]


def forgiveness_window(start_month: str, count: int) -> TaskEmiForgiveness:
    if count < 1:
        raise ValidationError("Must specify number of EMIs to forgive (minimum 1)", code="INVALID_EMI_FORGIVENESS")
    return TaskEmiForgiveness(
        forgiven_emis=count,
        start_month=start_month,
        end_month=add_months(start_month, count - 1),
    )


def plan_task_credit(task: Task, transaction: MoneyTransaction, request: MoneyRequest) -> TaskCredit:
    """
    Work out what confirming ``task`` does to ``transaction`` without changing either.

    A transaction settled while the task was open yields a zero credit, so the
    task can still be confirmed.

    Raises:
        StateConflictError: NOT_EMI_TRANSACTION for an EMI task on a non-EMI loan,
            TRANSACTION_NOT_OPEN when the transaction is not awaiting repayment
    """
    if task.reference_transaction_id != transaction.id or transaction.request_id != request.id:
        raise ValidationError("Task does not belong to this transaction", code="TASK_TRANSACTION_MISMATCH")
    if transaction.is_settled:
        return TaskCredit(amount_cents=0)
    if transaction.status != TransactionStatus.MONEY_RECEIVED:
        raise StateConflictError(
            "Task credit can only be applied while the transaction is awaiting repayment",
            code="TRANSACTION_NOT_OPEN",
        )

    frequency = request.emi_details.frequency if request.is_emi else None

    if not task.is_emi_task:
        return TaskCredit(amount_cents=task.monetary_value_cents, frequency=frequency)

    if not request.is_emi:
        raise StateConflictError("EMI tasks can only be applied to EMI transactions", code="NOT_EMI_TRANSACTION")
    if task.emi_forgiveness is None:
        raise ValidationError("EMI task has no forgiveness window", code="INVALID_EMI_FORGIVENESS")

    installment = request.emi_details.installment_cents
    count = task.emi_forgiveness.forgiven_emis
    return TaskCredit(
        amount_cents=installment * count,
        forgiven_months=forgiveness_months(task.emi_forgiveness.start_month, count),
        installment_cents=installment,
        frequency=frequency,
    )


def apply_task_credit(transaction: MoneyTransaction, task: Task, credit: TaskCredit, now: datetime) -> bool:
    """
    Merge a task credit into the transaction ledger.

    Forgiven months are recorded one entry each, and the last repayment
    timestamp moves to the end of the last forgiven period so that period
    checks treat the forgiveness as a payment. Returns True when the credit
    settles the transaction.
    """
    if transaction.is_settled:
        return False

    for month in credit.forgiven_months:
        transaction.emi_forgiveness.append(
            EmiForgivenessEntry(month=month, amount_cents=credit.installment_cents, forgiven_at=now, task_id=task.id)
        )

    if credit.forgiven_months:
        transaction.total_forgiven_emis += len(credit.forgiven_months)
        last_period = period_covering_month_end(credit.frequency, credit.forgiven_months[-1])
        transaction.repayment_received_at = last_instant(last_period)
        transaction.next_payment_due_at = last_period.end
    elif credit.frequency is not None and transaction.repayment_received_at is None:
        transaction.repayment_received_at = now

    transaction.repayment_amount_cents += credit.amount_cents

    if transaction.repayment_amount_cents >= transaction.amount_cents:
        transaction.status = TransactionStatus.REPAID
        transaction.repayment_received_at = now
        transaction.next_payment_due_at = None
        return True
    return False


def _forgiveness_covers(task: Task, start: datetime, end: datetime) -> bool:
    if task.status != TaskStatus.CONFIRMED or not task.is_emi_task or task.emi_forgiveness is None:
        return False
    window_start = month_start(task.emi_forgiveness.start_month)
    window_end = month_end(task.emi_forgiveness.end_month)
    return window_start <= start and end <= window_end


def payment_due_status(
    transaction: MoneyTransaction,
    request: MoneyRequest,
    tasks: Iterable[Task],
    now: datetime,
) -> PaymentDueStatus:
    """
    Is a payment required for the period containing ``now``?

    Checked in order, first match wins:
    1. the period lies inside a confirmed task's forgiveness window
    2. a confirmed repayment (or forgiveness) already falls inside the period
    3. the transaction is settled
    """
    last_payment = transaction.repayment_received_at

    if not request.is_emi:
        if transaction.is_settled:
            return PaymentDueStatus(
                required=False, reason="settled", message="This transaction is already completed",
                last_payment_at=last_payment,
            )
        return PaymentDueStatus(
            required=True, reason="not_emi", message="This is not an EMI transaction",
            last_payment_at=last_payment,
        )

    frequency = request.emi_details.frequency
    period = period_for(frequency, now)
    common = dict(frequency=frequency, period=period, last_payment_at=last_payment)

    if any(_forgiveness_covers(task, period.start, period.end) for task in tasks):
        return PaymentDueStatus(
            required=False,
            reason="forgiven_period",
            message=f"EMI for {period.label} was forgiven by a completed task",
            next_due_at=transaction.next_payment_due_at,
            **common,
        )

    if last_payment is not None and period.contains(last_payment):
        return PaymentDueStatus(
            required=False,
            reason="already_paid",
            message=f"EMI payment already made for {period.label}. Next payment can be made from the next period.",
            next_due_at=period.end,
            **common,
        )

    if transaction.is_settled:
        return PaymentDueStatus(
            required=False, reason="settled", message="This transaction is already completed", **common
        )

    return PaymentDueStatus(
        required=True,
        reason="due",
        message=f"EMI payment is due for {period.label}",
        next_due_at=period.start,
        **common,
    )


def forgiveness_summary(transaction: MoneyTransaction) -> ForgivenessSummary:
    return ForgivenessSummary(
        max_per_task=max_forgivable_emis(transaction.amount_cents),
        total_forgiven_emis=transaction.total_forgiven_emis,
        forgiven_amount_cents=sum(entry.amount_cents for entry in transaction.emi_forgiveness),
        remaining_balance_cents=transaction.remaining_balance_cents,
        entries=list(transaction.emi_forgiveness),
    )
