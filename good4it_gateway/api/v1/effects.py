"""Commit a transition and fan out its side effects

Order per operation:
1. proof (if any) stored before commit, failure aborts the operation
2. core state committed
3. score deltas applied, each in its own commit, failures logged and counted
4. notices scheduled as background tasks, failures logged and counted
"""

from typing import Iterable, Optional

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from good4it_gateway.config import settings
from good4it_gateway.domain.exceptions import NotificationDeliveryError
from good4it_gateway.domain.models import LifecycleEvent, MoneyTransaction, Notice, Outcome, ProofReference
from good4it_gateway.domain.notices import notice_for
from good4it_gateway.domain.scoring import score_deltas_for
from good4it_gateway.infrastructure.clients.notifications import NotificationClient
from good4it_gateway.infrastructure.database.repositories import ScoreLedgerRepository, UserRepository
from good4it_gateway.infrastructure.observability.logging import log_side_effect_failure, log_transition
from good4it_gateway.infrastructure.observability.metrics import record_transition, side_effect_failure_counter
from good4it_gateway.infrastructure.storage.proofs import LocalProofStorage


def attach_pending_proof(
    db: Session,
    storage: LocalProofStorage,
    transaction: MoneyTransaction,
    actor_id: str,
    outcome: Outcome,
) -> Optional[ProofReference]:
    """Store the outcome's proof and point the transaction's proof slot at it"""
    if outcome.proof is None:
        return None
    reference = storage.store_proof(db, transaction.id, actor_id, outcome.proof)
    transaction.attach_proof(outcome.proof.proof_type, reference.id)
    return reference


def apply_score_deltas(db: Session, events: Iterable[LifecycleEvent], request_id: Optional[str]) -> None:
    ledger = ScoreLedgerRepository(db, settings.score_min, settings.score_max, settings.score_default)
    for event in events:
        for delta in score_deltas_for(event):
            if delta.delta == 0:
                continue
            try:
                ledger.apply_score_delta(delta)
                db.commit()
            except Exception as e:
                db.rollback()
                side_effect_failure_counter.labels(effect="score").inc()
                log_side_effect_failure(
                    request_id, "score", e, user_id=delta.user_id, change_type=delta.change_type
                )


async def deliver_notice(client: NotificationClient, notice: Notice, request_id: Optional[str]) -> None:
    try:
        await client.notify(notice)
    except NotificationDeliveryError as e:
        side_effect_failure_counter.labels(effect="notification").inc()
        log_side_effect_failure(
            request_id, "notification", e, recipient_id=notice.recipient_id, event_type=notice.event_type.value
        )


def schedule_notices(
    db: Session,
    events: Iterable[LifecycleEvent],
    background_tasks: BackgroundTasks,
    client: NotificationClient,
    request_id: Optional[str],
) -> None:
    events = list(events)
    names = UserRepository(db).display_names(event.actor_id for event in events)
    for event in events:
        notice = notice_for(event, names.get(event.actor_id))
        if notice is not None:
            background_tasks.add_task(deliver_notice, client, notice, request_id)


def commit_transition(
    db: Session,
    outcome: Outcome,
    background_tasks: BackgroundTasks,
    client: NotificationClient,
    request_id: Optional[str],
    entity: str,
    entity_id,
    action: str,
    actor_id: str,
    status: str,
) -> None:
    """Commit the unit of work, then run the best-effort side effects of ``outcome``"""
    db.commit()

    record_transition(entity, action, status)
    log_transition(request_id, entity, entity_id, action, actor_id, status)

    try:
        apply_score_deltas(db, outcome.events, request_id)
        schedule_notices(db, outcome.events, background_tasks, client, request_id)
    except Exception as e:
        # the transition is already committed; never fail the response from here
        db.rollback()
        side_effect_failure_counter.labels(effect="dispatch").inc()
        log_side_effect_failure(request_id, "dispatch", e, entity=entity, action=action)
