"""Disputes raised by either party of a transaction

Disputes never move the transaction state machine; they only feed the
reputation ledger once resolved.
"""

from datetime import datetime
from typing import Iterable, Optional

from good4it_gateway.domain.authorization import require_party
from good4it_gateway.domain.exceptions import AuthorizationError, StateConflictError, ValidationError
from good4it_gateway.domain.models import (
    Dispute,
    DisputeResolution,
    DisputeStatus,
    DisputeType,
    EventType,
    LifecycleEvent,
    MoneyTransaction,
    Outcome,
)
from good4it_gateway.utils.date_utils import utc_now


def _other_party(transaction: MoneyTransaction, user_id: str) -> str:
    return transaction.lender_id if user_id == transaction.requestor_id else transaction.requestor_id


def open_dispute(
    transaction: MoneyTransaction,
    actor_id: str,
    dispute_type: DisputeType,
    description: str,
    has_pending: bool,
    now: Optional[datetime] = None,
) -> tuple[Dispute, Outcome]:
    """
    Raise a dispute on ``transaction``.

    Raises:
        ValidationError: Unknown dispute type or empty description
        AuthorizationError: Actor is neither lender nor requestor
        StateConflictError: Actor already has a pending dispute on this transaction
    """
    try:
        dispute_type = DisputeType(dispute_type)
    except ValueError as e:
        raise ValidationError("Invalid dispute type", code="INVALID_DISPUTE_TYPE") from e
    description = (description or "").strip()
    if not description:
        raise ValidationError("Dispute description is required", code="MISSING_DESCRIPTION")

    require_party(transaction, actor_id, "You can only dispute your own transactions")
    if has_pending:
        raise StateConflictError(
            "You already have a pending dispute for this transaction", code="DUPLICATE_DISPUTE"
        )

    dispute = Dispute(
        transaction_id=transaction.id,
        disputer_id=actor_id,
        dispute_type=dispute_type,
        description=description,
        created_at=now or utc_now(),
    )
    event = LifecycleEvent(
        event_type=EventType.DISPUTE_OPENED,
        actor_id=actor_id,
        recipient_id=_other_party(transaction, actor_id),
        amount_cents=transaction.amount_cents,
        transaction_id=transaction.id,
        request_id=transaction.request_id,
        metadata={"dispute_id": str(dispute.id), "dispute_type": dispute_type.value},
    )
    return dispute, Outcome(events=[event])


def resolve_dispute(
    dispute: Dispute,
    transaction: MoneyTransaction,
    actor_id: str,
    resolution: DisputeResolution,
    notes: Optional[str],
    resolver_ids: Iterable[str],
    now: Optional[datetime] = None,
) -> Outcome:
    """Close a pending dispute; only configured resolvers may do this"""
    try:
        resolution = DisputeResolution(resolution)
    except ValueError as e:
        raise ValidationError("Invalid dispute resolution", code="INVALID_RESOLUTION") from e

    if actor_id not in set(resolver_ids):
        raise AuthorizationError("You are not allowed to resolve disputes", code="NOT_A_RESOLVER")
    if dispute.status != DisputeStatus.PENDING:
        raise StateConflictError("Dispute has already been resolved", code="DISPUTE_NOT_PENDING")

    dispute.status = DisputeStatus.RESOLVED
    dispute.resolution = resolution
    dispute.resolution_notes = (notes or "").strip() or None
    dispute.resolved_by = actor_id
    dispute.resolved_at = now or utc_now()

    event = LifecycleEvent(
        event_type=EventType.DISPUTE_RESOLVED,
        actor_id=actor_id,
        recipient_id=dispute.disputer_id,
        amount_cents=transaction.amount_cents,
        transaction_id=transaction.id,
        request_id=transaction.request_id,
        metadata={
            "dispute_id": str(dispute.id),
            "dispute_type": dispute.dispute_type.value,
            "resolution": resolution.value,
            "other_party_id": _other_party(transaction, dispute.disputer_id),
        },
    )
    return Outcome(events=[event])
