"""/v1/tasks - chores assigned in lieu of repayment"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.orm import Session

from good4it_gateway.api.dependencies import get_current_user_id, get_notification_client, get_request_id
from good4it_gateway.api.v1.effects import commit_transition
from good4it_gateway.api.v1.schemas import (
    CreateTaskBody,
    NotesBody,
    ReasonBody,
    TaskConfirmResponse,
    TaskResponse,
    TransactionResponse,
)
from good4it_gateway.domain import tasks as workflow
from good4it_gateway.domain.authorization import require_party
from good4it_gateway.domain.models import Outcome, Task, TaskStatus
from good4it_gateway.infrastructure.clients.notifications import NotificationClient
from good4it_gateway.infrastructure.database.repositories import (
    RequestRepository,
    TaskRepository,
    TransactionRepository,
    UserRepository,
)
from good4it_gateway.infrastructure.database.session import get_db
from good4it_gateway.infrastructure.observability.logging import log_transition
from good4it_gateway.infrastructure.observability.metrics import record_transition

router = APIRouter()


def _commit(
    db: Session,
    task: Task,
    outcome: Outcome,
    background_tasks: BackgroundTasks,
    notification_client: NotificationClient,
    request: Request,
    action: str,
    user_id: str,
) -> TaskResponse:
    TaskRepository(db).save(task)
    commit_transition(
        db, outcome, background_tasks, notification_client, get_request_id(request),
        "task", task.id, action, user_id, task.status.value,
    )
    return TaskResponse.model_validate(task)


@router.post("/tasks", response_model=TaskResponse, status_code=201)
def create_task(
    body: CreateTaskBody,
    background_tasks: BackgroundTasks,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
):
    """Lender assigns a task to the borrower, crediting money or forgiving EMIs once confirmed"""
    workflow.validate_task_input(
        body.title, body.monetary_value_cents, body.is_emi_task, body.forgiven_emis, body.start_month
    )

    tasks_repo = TaskRepository(db)
    transactions_repo = TransactionRepository(db)
    transaction = transactions_repo.get(body.transaction_id)
    money_request = RequestRepository(db).get(transaction.request_id)
    assigned_to = body.assigned_to or transaction.requestor_id

    task, outcome = workflow.create_task(
        transaction,
        money_request,
        assigned_by=user_id,
        assigned_to=assigned_to,
        title=body.title,
        due_date=body.due_date,
        are_friends=UserRepository(db).are_friends(user_id, assigned_to),
        has_active_task=tasks_repo.has_active_task(transaction.id),
        monetary_value_cents=body.monetary_value_cents,
        is_emi_task=body.is_emi_task,
        forgiven_emis=body.forgiven_emis,
        start_month=body.start_month,
        description=body.description,
        category=body.category,
        priority=body.priority,
        location=body.location,
    )
    tasks_repo.add(task)
    # serializes task creation per transaction
    transactions_repo.touch(transaction)

    commit_transition(
        db, outcome, background_tasks, notification_client, get_request_id(request),
        "task", task.id, "create", user_id, task.status.value,
    )
    return TaskResponse.model_validate(task)


@router.get("/tasks", response_model=List[TaskResponse])
def list_tasks(
    role: str = Query("all", pattern="^(assigned_by|assigned_to|all)$"),
    status: Optional[TaskStatus] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    tasks = TaskRepository(db).list_for_user(user_id, role=role, status=status, limit=limit, offset=offset)
    return [TaskResponse.model_validate(t) for t in tasks]


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    task = TaskRepository(db).get(task_id)
    require_party(task, user_id, "You can only view tasks you assigned or were assigned")
    return TaskResponse.model_validate(task)


@router.post("/tasks/{task_id}/accept", response_model=TaskResponse)
def accept_task(
    task_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
):
    task = TaskRepository(db).get(task_id)
    outcome = workflow.accept(task, user_id)
    return _commit(db, task, outcome, background_tasks, notification_client, request, "accept", user_id)


@router.post("/tasks/{task_id}/decline", response_model=TaskResponse)
def decline_task(
    task_id: uuid.UUID,
    body: ReasonBody,
    background_tasks: BackgroundTasks,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
):
    task = TaskRepository(db).get(task_id)
    outcome = workflow.decline(task, user_id, body.reason)
    return _commit(db, task, outcome, background_tasks, notification_client, request, "decline", user_id)


@router.post("/tasks/{task_id}/start", response_model=TaskResponse)
def start_task(
    task_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
):
    task = TaskRepository(db).get(task_id)
    outcome = workflow.start(task, user_id)
    return _commit(db, task, outcome, background_tasks, notification_client, request, "start", user_id)


@router.post("/tasks/{task_id}/complete", response_model=TaskResponse)
def complete_task(
    task_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    request: Request,
    body: Optional[NotesBody] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
):
    task = TaskRepository(db).get(task_id)
    outcome = workflow.complete(task, user_id, body.notes if body else None)
    return _commit(db, task, outcome, background_tasks, notification_client, request, "complete", user_id)


@router.post("/tasks/{task_id}/cancel", response_model=TaskResponse)
def cancel_task(
    task_id: uuid.UUID,
    body: ReasonBody,
    background_tasks: BackgroundTasks,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
):
    task = TaskRepository(db).get(task_id)
    outcome = workflow.cancel(task, user_id, body.reason)
    return _commit(db, task, outcome, background_tasks, notification_client, request, "cancel", user_id)


@router.post("/tasks/{task_id}/confirm", response_model=TaskConfirmResponse)
def confirm_task(
    task_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    request: Request,
    body: Optional[NotesBody] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
):
    """
    Lender confirms a completed task.

    The task update and the transaction credit are committed together; if
    either row changed concurrently nothing is written.
    """
    tasks_repo = TaskRepository(db)
    transactions_repo = TransactionRepository(db)
    task = tasks_repo.get(task_id)
    transaction = transactions_repo.get(task.reference_transaction_id)
    money_request = RequestRepository(db).get(transaction.request_id)

    settled, outcome = workflow.confirm(task, transaction, money_request, user_id, body.notes if body else None)
    tasks_repo.save(task)
    transactions_repo.save(transaction)

    commit_transition(
        db, outcome, background_tasks, notification_client, get_request_id(request),
        "task", task.id, "confirm", user_id, task.status.value,
    )
    if settled:
        record_transition("transaction", "task_credit", transaction.status.value)
        log_transition(
            get_request_id(request), "transaction", transaction.id, "task_credit", user_id, transaction.status.value
        )
    return TaskConfirmResponse(
        task=TaskResponse.model_validate(task),
        transaction=TransactionResponse.model_validate(transaction),
        settled=settled,
    )
