"""/v1/requests - money request lifecycle endpoints"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Query, Request, UploadFile
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
    ApproveAndPayResponse,
    CreateMoneyRequest,
    DecisionBody,
    MoneyRequestResponse,
    TransactionResponse,
)
from good4it_gateway.domain import requests as lifecycle
from good4it_gateway.domain.authorization import require_party
from good4it_gateway.domain.models import EmiDetails
from good4it_gateway.infrastructure.clients.notifications import NotificationClient
from good4it_gateway.infrastructure.database.repositories import (
    RequestRepository,
    TransactionRepository,
    UserRepository,
)
from good4it_gateway.infrastructure.database.session import get_db
from good4it_gateway.infrastructure.storage.proofs import LocalProofStorage

router = APIRouter()


@router.post("/requests", response_model=MoneyRequestResponse, status_code=201)
def create_money_request(
    body: CreateMoneyRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
):
    """Ask a friend to lend money, in full or on an EMI schedule"""
    emi_details = EmiDetails(**body.emi_details.model_dump()) if body.emi_details else None
    money_request, outcome = lifecycle.create_request(
        requestor_id=user_id,
        lender_id=body.lender_id,
        amount_cents=body.amount_cents,
        are_friends=UserRepository(db).are_friends(user_id, body.lender_id),
        payment_type=body.payment_type,
        emi_details=emi_details,
        description=body.description,
    )
    RequestRepository(db).add(money_request)

    commit_transition(
        db, outcome, background_tasks, notification_client, get_request_id(request),
        "request", money_request.id, "create", user_id, money_request.status.value,
    )
    return MoneyRequestResponse.model_validate(money_request)


@router.get("/requests", response_model=List[MoneyRequestResponse])
def list_money_requests(
    box: str = Query("all", pattern="^(sent|received|rejected|all)$"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    requests = RequestRepository(db).list_for_user(user_id, box=box, limit=limit, offset=offset)
    return [MoneyRequestResponse.model_validate(r) for r in requests]


@router.get("/requests/{request_id}", response_model=MoneyRequestResponse)
def get_money_request(
    request_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    money_request = RequestRepository(db).get(request_id)
    require_party(money_request, user_id, "You can only view your own requests")
    return MoneyRequestResponse.model_validate(money_request)


@router.post("/requests/{request_id}/decision", response_model=MoneyRequestResponse)
def decide_money_request(
    request_id: uuid.UUID,
    body: DecisionBody,
    background_tasks: BackgroundTasks,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
):
    """Approve or reject a pending request (approval here does not fund it)"""
    decision = lifecycle.validate_decision(body.decision, body.rejection_reason)

    repo = RequestRepository(db)
    money_request = repo.get(request_id)
    outcome = lifecycle.decide(money_request, user_id, decision, body.rejection_reason)
    repo.save(money_request)

    commit_transition(
        db, outcome, background_tasks, notification_client, get_request_id(request),
        "request", money_request.id, decision.value, user_id, money_request.status.value,
    )
    return MoneyRequestResponse.model_validate(money_request)


@router.post("/requests/{request_id}/approve-and-pay", response_model=ApproveAndPayResponse, status_code=201)
async def approve_and_pay(
    request_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    request: Request,
    proof: Optional[UploadFile] = File(None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
    storage: LocalProofStorage = Depends(get_proof_storage),
):
    """
    Approve a pending request and record the money as sent, atomically.

    Flow:
    1. Validate the proof image (before anything is loaded)
    2. Approve the request and open a transaction in money_sent
    3. Store the proof, then commit request, transaction and proof together
    4. Score and notify after commit
    """
    upload = await read_proof(proof)

    requests_repo = RequestRepository(db)
    transactions_repo = TransactionRepository(db)
    money_request = requests_repo.get(request_id)
    transaction, outcome = lifecycle.approve_and_pay(money_request, user_id, upload)

    requests_repo.save(money_request)
    transactions_repo.add(transaction)
    attach_pending_proof(db, storage, transaction, user_id, outcome)
    transactions_repo.save(transaction)

    commit_transition(
        db, outcome, background_tasks, notification_client, get_request_id(request),
        "transaction", transaction.id, "approve_and_pay", user_id, transaction.status.value,
    )
    return ApproveAndPayResponse(
        request=MoneyRequestResponse.model_validate(money_request),
        transaction=TransactionResponse.model_validate(transaction),
    )


@router.post("/requests/{request_id}/send-money", response_model=TransactionResponse, status_code=201)
async def send_money(
    request_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    request: Request,
    proof: Optional[UploadFile] = File(None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
    storage: LocalProofStorage = Depends(get_proof_storage),
):
    """Fund a request already approved through /decision (deprecated two-step path)"""
    upload = await read_proof(proof)

    transactions_repo = TransactionRepository(db)
    money_request = RequestRepository(db).get(request_id)
    existing = transactions_repo.get_by_request(request_id)
    transaction, outcome = lifecycle.send_money(money_request, user_id, upload, existing)

    transactions_repo.add(transaction)
    attach_pending_proof(db, storage, transaction, user_id, outcome)
    transactions_repo.save(transaction)

    commit_transition(
        db, outcome, background_tasks, notification_client, get_request_id(request),
        "transaction", transaction.id, "send_money", user_id, transaction.status.value,
    )
    return TransactionResponse.model_validate(transaction)
