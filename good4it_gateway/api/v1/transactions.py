"""/v1/transactions - funded loan lifecycle, reminders, proofs and EMI status"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, Request, UploadFile
from sqlalchemy.orm import Session

from good4it_gateway.api.dependencies import (
    get_current_user_id,
    get_notification_client,
    get_proof_storage,
    get_request_id,
    read_proof,
)
from good4it_gateway.api.v1.effects import attach_pending_proof, commit_transition
from good4it_gateway.api.v1.schemas import (
    ForgivenessSummaryResponse,
    PaymentDueResponse,
    ProofResponse,
    RejectRepaymentBody,
    ReminderBody,
    ReminderResponse,
    TransactionResponse,
)
from good4it_gateway.config import settings
from good4it_gateway.domain import transactions as lifecycle
from good4it_gateway.domain.authorization import require_party
from good4it_gateway.domain.models import MoneyTransaction, Outcome, TransactionStatus
from good4it_gateway.domain.reconciler import forgiveness_summary, payment_due_status
from good4it_gateway.infrastructure.clients.notifications import NotificationClient
from good4it_gateway.infrastructure.database.repositories import (
    ProofRepository,
    ReminderRepository,
    RequestRepository,
    TaskRepository,
    TransactionRepository,
)
from good4it_gateway.infrastructure.database.session import get_db
from good4it_gateway.infrastructure.storage.proofs import LocalProofStorage
from good4it_gateway.utils.date_utils import utc_now

router = APIRouter()


def _load_for_party(db: Session, transaction_id: uuid.UUID, user_id: str) -> MoneyTransaction:
    transaction = TransactionRepository(db).get(transaction_id)
    require_party(transaction, user_id, "You can only access your own transactions")
    return transaction


def _commit(
    db: Session,
    transaction: MoneyTransaction,
    outcome: Outcome,
    background_tasks: BackgroundTasks,
    notification_client: NotificationClient,
    request: Request,
    action: str,
    user_id: str,
) -> TransactionResponse:
    TransactionRepository(db).save(transaction)
    commit_transition(
        db, outcome, background_tasks, notification_client, get_request_id(request),
        "transaction", transaction.id, action, user_id, transaction.status.value,
    )
    return TransactionResponse.model_validate(transaction)


@router.get("/transactions", response_model=List[TransactionResponse])
def list_transactions(
    role: str = Query("all", pattern="^(lent|borrowed|all)$"),
    status: Optional[TransactionStatus] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    transactions = TransactionRepository(db).list_for_user(user_id, role=role, status=status, limit=limit, offset=offset)
    return [TransactionResponse.model_validate(t) for t in transactions]


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return TransactionResponse.model_validate(_load_for_party(db, transaction_id, user_id))


@router.post("/transactions/{transaction_id}/confirm-receipt", response_model=TransactionResponse)
async def confirm_receipt(
    transaction_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    request: Request,
    proof: Optional[UploadFile] = File(None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
    storage: LocalProofStorage = Depends(get_proof_storage),
):
    """Borrower confirms the money arrived (proof optional)"""
    upload = await read_proof(proof)

    transaction = TransactionRepository(db).get(transaction_id)
    outcome = lifecycle.confirm_receipt(transaction, user_id, upload)
    attach_pending_proof(db, storage, transaction, user_id, outcome)
    return _commit(db, transaction, outcome, background_tasks, notification_client, request, "confirm_receipt", user_id)


@router.post("/transactions/{transaction_id}/repay", response_model=TransactionResponse)
async def repay(
    transaction_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    request: Request,
    amount_cents: int = Form(...),
    proof: Optional[UploadFile] = File(None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
    storage: LocalProofStorage = Depends(get_proof_storage),
):
    """Borrower submits a (partial) repayment; proof required"""
    lifecycle.validate_repayment_amount(amount_cents)
    upload = await read_proof(proof)

    transaction = TransactionRepository(db).get(transaction_id)
    outcome = lifecycle.repay(transaction, user_id, amount_cents, upload)
    attach_pending_proof(db, storage, transaction, user_id, outcome)
    return _commit(db, transaction, outcome, background_tasks, notification_client, request, "repay", user_id)


@router.post("/transactions/{transaction_id}/confirm-repayment", response_model=TransactionResponse)
async def confirm_repayment(
    transaction_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    request: Request,
    proof: Optional[UploadFile] = File(None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
    storage: LocalProofStorage = Depends(get_proof_storage),
):
    """Lender confirms the submitted repayment; repaid once the full amount is in"""
    upload = await read_proof(proof)

    transaction = TransactionRepository(db).get(transaction_id)
    money_request = RequestRepository(db).get(transaction.request_id)
    outcome = lifecycle.confirm_repayment(
        transaction,
        user_id,
        upload,
        emi_frequency=money_request.emi_details.frequency if money_request.is_emi else None,
        early_hours=settings.early_repayment_hours,
        late_days=settings.late_repayment_days,
    )
    attach_pending_proof(db, storage, transaction, user_id, outcome)
    return _commit(db, transaction, outcome, background_tasks, notification_client, request, "confirm_repayment", user_id)


@router.post("/transactions/{transaction_id}/reject-repayment", response_model=TransactionResponse)
def reject_repayment(
    transaction_id: uuid.UUID,
    body: RejectRepaymentBody,
    background_tasks: BackgroundTasks,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
):
    transaction = TransactionRepository(db).get(transaction_id)
    outcome = lifecycle.reject_repayment(transaction, user_id, body.reason)
    return _commit(db, transaction, outcome, background_tasks, notification_client, request, "reject_repayment", user_id)


@router.post("/transactions/{transaction_id}/forgive", response_model=TransactionResponse)
def forgive(
    transaction_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
):
    """Lender forgives the remaining balance; irreversible"""
    transaction = TransactionRepository(db).get(transaction_id)
    outcome = lifecycle.forgive(transaction, user_id)
    return _commit(db, transaction, outcome, background_tasks, notification_client, request, "forgive", user_id)


@router.post("/transactions/{transaction_id}/reminders", response_model=ReminderResponse, status_code=201)
def send_reminder(
    transaction_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    request: Request,
    body: Optional[ReminderBody] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
):
    transaction = TransactionRepository(db).get(transaction_id)
    reminder, outcome = lifecycle.send_reminder(transaction, user_id, body.message if body else None)
    ReminderRepository(db).add(reminder)

    commit_transition(
        db, outcome, background_tasks, notification_client, get_request_id(request),
        "transaction", transaction.id, "remind", user_id, transaction.status.value,
    )
    return ReminderResponse.model_validate(reminder)


@router.get("/transactions/{transaction_id}/reminders", response_model=List[ReminderResponse])
def list_reminders(
    transaction_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    _load_for_party(db, transaction_id, user_id)
    return [ReminderResponse.model_validate(r) for r in ReminderRepository(db).list_for_transaction(transaction_id)]


@router.get("/transactions/{transaction_id}/payment-due", response_model=PaymentDueResponse)
def get_payment_due(
    transaction_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Is an EMI payment required for the current period?"""
    transaction = _load_for_party(db, transaction_id, user_id)
    money_request = RequestRepository(db).get(transaction.request_id)
    tasks = TaskRepository(db).list_for_transaction(transaction_id)
    return PaymentDueResponse.model_validate(payment_due_status(transaction, money_request, tasks, utc_now()))


@router.get("/transactions/{transaction_id}/emi-forgiveness", response_model=ForgivenessSummaryResponse)
def get_emi_forgiveness(
    transaction_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    transaction = _load_for_party(db, transaction_id, user_id)
    return ForgivenessSummaryResponse.model_validate(forgiveness_summary(transaction))


@router.get("/transactions/{transaction_id}/proofs", response_model=List[ProofResponse])
def list_proofs(
    transaction_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    _load_for_party(db, transaction_id, user_id)
    return [ProofResponse.model_validate(p) for p in ProofRepository(db).list_for_transaction(transaction_id)]
