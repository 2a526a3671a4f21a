"""Task-for-debt workflow

    pending --accept--> accepted --start--> in_progress --complete--> completed --confirm--> confirmed
    pending --start--> in_progress
    pending --decline--> declined
    pending | accepted | in_progress --cancel--> cancelled

The borrower (assigned_to) accepts, declines, starts and completes. The lender
(assigned_by) creates, cancels and confirms; confirmation credits the
transaction through the reconciler.
"""

from datetime import date, datetime
from typing import Optional

from good4it_gateway.domain.authorization import Role, require_role
from good4it_gateway.domain.exceptions import AuthorizationError, StateConflictError, ValidationError
from good4it_gateway.domain.models import (
    EventType,
    LifecycleEvent,
    MoneyRequest,
    MoneyTransaction,
    Outcome,
    Task,
    TaskCategory,
    TaskPriority,
    TaskStatus,
)
from good4it_gateway.domain.periods import month_key, parse_month_key
from good4it_gateway.domain.reconciler import (
    apply_task_credit,
    forgiveness_window,
    max_forgivable_emis,
    plan_task_credit,
)
from good4it_gateway.utils.date_utils import utc_now

MAX_TASK_VALUE_CENTS = 1_000_000  # $10,000
MAX_EMIS_PER_TASK = 24


def _task_event(task: Task, event_type: EventType, actor_id: str, recipient_id: str, **metadata) -> LifecycleEvent:
    return LifecycleEvent(
        event_type=event_type,
        actor_id=actor_id,
        recipient_id=recipient_id,
        amount_cents=task.monetary_value_cents,
        transaction_id=task.reference_transaction_id,
        task_id=task.id,
        metadata={"title": task.title, "status": task.status.value, **metadata},
    )


def _require_status(task: Task, allowed: tuple, message: str) -> None:
    if task.status not in allowed:
        raise StateConflictError(message, code="INVALID_TASK_STATE")


def _require_reason(reason: Optional[str], message: str) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError(message, code="MISSING_REASON")
    return reason


def validate_task_input(
    title: str,
    monetary_value_cents: int,
    is_emi_task: bool,
    forgiven_emis: Optional[int],
    start_month: Optional[str],
) -> None:
    """Input checks that run before the transaction is loaded"""
    if not (title or "").strip():
        raise ValidationError("Task title is required", code="MISSING_TITLE")
    if monetary_value_cents is None or monetary_value_cents < 0 or monetary_value_cents > MAX_TASK_VALUE_CENTS:
        raise ValidationError("Monetary value must be between 0 and 10,000", code="INVALID_MONETARY_VALUE")
    if not is_emi_task and monetary_value_cents == 0:
        raise ValidationError(
            "Monetary value must be greater than 0 for non-EMI tasks", code="INVALID_MONETARY_VALUE"
        )
    if is_emi_task:
        if forgiven_emis is None or not 1 <= forgiven_emis <= MAX_EMIS_PER_TASK:
            raise ValidationError(
                "Must specify number of EMIs to forgive (between 1 and 24)", code="INVALID_EMI_FORGIVENESS"
            )
        if start_month is not None:
            parse_month_key(start_month)


def create_task(
    transaction: MoneyTransaction,
    request: MoneyRequest,
    assigned_by: str,
    assigned_to: str,
    title: str,
    due_date: date,
    are_friends: bool,
    has_active_task: bool,
    monetary_value_cents: int = 0,
    is_emi_task: bool = False,
    forgiven_emis: Optional[int] = None,
    start_month: Optional[str] = None,
    description: str = "",
    category: TaskCategory = TaskCategory.OTHER,
    priority: TaskPriority = TaskPriority.MEDIUM,
    location: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[Task, Outcome]:
    """
    Lender assigns a chore to the borrower of ``transaction``.

    Requirements:
    - assigned_by is the transaction's lender, assigned_to its requestor, and they are friends
    - the transaction is not settled
    - no other pending/accepted/in_progress/completed task exists for the transaction
    - EMI tasks only on EMI transactions, forgiving at most ``max_forgivable_emis`` periods,
      starting at ``start_month`` or else the month the loan was funded
    """
    validate_task_input(title, monetary_value_cents, is_emi_task, forgiven_emis, start_month)

    require_role(
        transaction, assigned_by, Role.LENDER, "You can only create tasks for transactions you lent money for"
    )
    if transaction.requestor_id != assigned_to:
        raise ValidationError("Assigned user must be the borrower of this transaction", code="ASSIGNEE_NOT_BORROWER")
    if not are_friends:
        raise AuthorizationError("You can only assign tasks to friends", code="NOT_FRIENDS")
    if transaction.is_settled:
        raise StateConflictError("Transaction is already settled", code="TRANSACTION_SETTLED")

    emi_forgiveness = None
    if is_emi_task:
        if not request.is_emi:
            raise StateConflictError(
                "EMI tasks can only be created for EMI transactions", code="NOT_EMI_TRANSACTION"
            )
        limit = max_forgivable_emis(transaction.amount_cents)
        if forgiven_emis > limit:
            raise ValidationError(
                f"Cannot forgive more than {limit} EMIs for a ${transaction.amount_cents / 100:,.2f} loan",
                code="EMI_LIMIT_EXCEEDED",
            )
        emi_forgiveness = forgiveness_window(start_month or month_key(transaction.created_at), forgiven_emis)

    if has_active_task:
        raise StateConflictError("There is already an active task for this transaction", code="ACTIVE_TASK_EXISTS")

    task = Task(
        assigned_by=assigned_by,
        assigned_to=assigned_to,
        reference_transaction_id=transaction.id,
        title=title.strip(),
        description=(description or "").strip(),
        category=TaskCategory(category),
        priority=TaskPriority(priority),
        location=location,
        due_date=due_date,
        monetary_value_cents=monetary_value_cents,
        is_emi_task=is_emi_task,
        emi_forgiveness=emi_forgiveness,
        created_at=now or utc_now(),
    )
    return task, Outcome(events=[_task_event(task, EventType.TASK_ASSIGNED, assigned_by, assigned_to)])


def accept(task: Task, actor_id: str) -> Outcome:
    require_role(task, actor_id, Role.ASSIGNED_TO, "You can only accept tasks assigned to you")
    _require_status(task, (TaskStatus.PENDING,), "Task cannot be accepted in its current status")

    task.status = TaskStatus.ACCEPTED
    return Outcome(events=[_task_event(task, EventType.TASK_ACCEPTED, actor_id, task.assigned_by)])


def decline(task: Task, actor_id: str, reason: Optional[str], now: Optional[datetime] = None) -> Outcome:
    reason = _require_reason(reason, "A reason is required to decline a task")
    require_role(task, actor_id, Role.ASSIGNED_TO, "You can only decline tasks assigned to you")
    _require_status(task, (TaskStatus.PENDING,), "Task cannot be declined in its current status")

    task.status = TaskStatus.DECLINED
    task.declined_at = now or utc_now()
    task.decline_reason = reason
    return Outcome(events=[_task_event(task, EventType.TASK_DECLINED, actor_id, task.assigned_by, reason=reason)])


def start(task: Task, actor_id: str) -> Outcome:
    require_role(task, actor_id, Role.ASSIGNED_TO, "You can only start tasks assigned to you")
    _require_status(
        task,
        (TaskStatus.PENDING, TaskStatus.ACCEPTED),
        "Task must be in pending or accepted status before starting",
    )

    task.status = TaskStatus.IN_PROGRESS
    return Outcome(events=[_task_event(task, EventType.TASK_STARTED, actor_id, task.assigned_by)])


def complete(task: Task, actor_id: str, notes: Optional[str] = None, now: Optional[datetime] = None) -> Outcome:
    require_role(task, actor_id, Role.ASSIGNED_TO, "You can only complete tasks assigned to you")
    _require_status(task, (TaskStatus.IN_PROGRESS,), "Task must be in progress before it can be completed")

    task.status = TaskStatus.COMPLETED
    task.completed_at = now or utc_now()
    task.completion_notes = (notes or "").strip()
    return Outcome(events=[_task_event(task, EventType.TASK_COMPLETED, actor_id, task.assigned_by)])


def cancel(task: Task, actor_id: str, reason: Optional[str], now: Optional[datetime] = None) -> Outcome:
    reason = _require_reason(reason, "A reason is required to cancel a task")
    require_role(task, actor_id, Role.ASSIGNED_BY, "Only the task creator can cancel this task")
    _require_status(
        task,
        (TaskStatus.PENDING, TaskStatus.ACCEPTED, TaskStatus.IN_PROGRESS),
        "Task cannot be cancelled in its current status",
    )

    task.status = TaskStatus.CANCELLED
    task.cancelled_at = now or utc_now()
    task.cancellation_reason = reason
    return Outcome(events=[_task_event(task, EventType.TASK_CANCELLED, actor_id, task.assigned_to, reason=reason)])


def confirm(
    task: Task,
    transaction: MoneyTransaction,
    request: MoneyRequest,
    actor_id: str,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[bool, Outcome]:
    """
    Lender confirms a completed task and the credit is applied to the transaction.

    Both the task and the transaction are mutated; the caller must persist them
    in one unit of work. If the loan was settled while the task was open, the
    task is confirmed with no credit. Returns (settled, outcome).
    """
    require_role(task, actor_id, Role.ASSIGNED_BY, "Only the task creator can confirm completion")
    _require_status(task, (TaskStatus.COMPLETED,), "Task must be completed before it can be confirmed")
    credit = plan_task_credit(task, transaction, request)

    now = now or utc_now()
    task.status = TaskStatus.CONFIRMED
    task.confirmed_at = now
    task.confirmation_notes = (notes or "").strip()
    task.amount_repaid_cents = credit.amount_cents
    settled = apply_task_credit(transaction, task, credit, now)

    event = _task_event(
        task,
        EventType.TASK_CONFIRMED,
        actor_id,
        task.assigned_to,
        credited_cents=credit.amount_cents,
        forgiven_months=credit.forgiven_months,
        settled=settled,
    )
    event.amount_cents = credit.amount_cents
    return settled, Outcome(events=[event])
