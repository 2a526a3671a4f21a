"""/v1/disputes - disputes between the parties of a transaction"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from good4it_gateway.api.dependencies import get_current_user_id, get_notification_client, get_request_id
from good4it_gateway.api.v1.effects import commit_transition
from good4it_gateway.api.v1.schemas import CreateDisputeBody, DisputeResponse, ResolveDisputeBody
from good4it_gateway.config import settings
from good4it_gateway.domain.disputes import open_dispute, resolve_dispute
from good4it_gateway.domain.models import DisputeStatus
from good4it_gateway.infrastructure.clients.notifications import NotificationClient
from good4it_gateway.infrastructure.database.repositories import DisputeRepository, TransactionRepository
from good4it_gateway.infrastructure.database.session import get_db

router = APIRouter()


@router.post("/disputes", response_model=DisputeResponse, status_code=201)
def create_dispute(
    body: CreateDisputeBody,
    background_tasks: BackgroundTasks,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
):
    disputes_repo = DisputeRepository(db)
    transaction = TransactionRepository(db).get(body.transaction_id)
    dispute, outcome = open_dispute(
        transaction,
        user_id,
        body.dispute_type,
        body.description,
        has_pending=disputes_repo.has_pending(transaction.id, user_id),
    )
    disputes_repo.add(dispute)

    commit_transition(
        db, outcome, background_tasks, notification_client, get_request_id(request),
        "dispute", dispute.id, "open", user_id, dispute.status.value,
    )
    return DisputeResponse.model_validate(dispute)


@router.get("/disputes", response_model=List[DisputeResponse])
def list_disputes(
    status: Optional[DisputeStatus] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return [DisputeResponse.model_validate(d) for d in DisputeRepository(db).list_for_user(user_id, status)]


@router.post("/disputes/{dispute_id}/resolve", response_model=DisputeResponse)
def resolve(
    dispute_id: uuid.UUID,
    body: ResolveDisputeBody,
    background_tasks: BackgroundTasks,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
):
    """Resolve a pending dispute; the outcome adjusts both parties' scores"""
    disputes_repo = DisputeRepository(db)
    dispute = disputes_repo.get(dispute_id)
    transaction = TransactionRepository(db).get(dispute.transaction_id)
    outcome = resolve_dispute(
        dispute, transaction, user_id, body.resolution, body.notes, settings.dispute_resolver_ids
    )
    disputes_repo.save(dispute)

    commit_transition(
        db, outcome, background_tasks, notification_client, get_request_id(request),
        "dispute", dispute.id, "resolve", user_id, dispute.status.value,
    )
    return DisputeResponse.model_validate(dispute)
