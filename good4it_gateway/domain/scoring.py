"""Good4It score engine - reputation deltas derived from lifecycle events"""

import math
from typing import Dict, List

from good4it_gateway.domain.models import DisputeResolution, EventType, LifecycleEvent, ScoreDelta

BASE_DELTAS: Dict[str, int] = {
    # Positive
    "transaction_completed": 5,
    "repayment_completed": 3,
    "early_repayment": 2,
    "forgiveness_given": 2,
    "forgiveness_received": 1,
    "dispute_resolved": 3,
    # Negative
    "request_declined": -2,
    "payment_not_received": -3,
    "false_dispute": -5,
    "late_repayment": -1,
    "fraudulent_proof": -10,
}

AMOUNT_BASELINE_DOLLARS = 1000
MAX_AMOUNT_MULTIPLIER = 1.5


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_score_change(change_type: str, amount_cents: int = 0, is_late: bool = False) -> int:
    """
    Signed score change for one reputation event.

    Scoring:
    - base delta per change type (unknown types score 0)
    - scaled by ``min(dollars / 1000, 1.5)`` when an amount is given, rounded half-up
    - an extra -1 for a late ``repayment_completed``

    Example:
        calculate_score_change("transaction_completed", 100_000) -> 5   # $1000
        calculate_score_change("transaction_completed", 10_000)  -> 1   # $100
    """
    change = BASE_DELTAS.get(change_type, 0)
    if amount_cents > 0:
        multiplier = min((amount_cents / 100) / AMOUNT_BASELINE_DOLLARS, MAX_AMOUNT_MULTIPLIER)
        change = _round_half_up(change * multiplier)
    if is_late and change_type == "repayment_completed":
        change -= 1
    return change


def clamp_score(score: int, minimum: int = 0, maximum: int = 100) -> int:
    return max(minimum, min(maximum, score))


def _dollars(amount_cents: int) -> str:
    return f"${amount_cents / 100:,.2f}"


def _delta(
    user_id: str,
    change_type: str,
    event: LifecycleEvent,
    description: str,
    is_late: bool = False,
    scaled: bool = True,
) -> ScoreDelta:
    # a late repayment scores as repayment_completed with the late penalty
    base_type = "repayment_completed" if is_late else change_type
    amount_cents = event.amount_cents if scaled else 0
    return ScoreDelta(
        user_id=user_id,
        change_type=change_type,
        delta=calculate_score_change(base_type, amount_cents, is_late),
        description=description,
        metadata={"amount_cents": event.amount_cents, "event_type": event.event_type.value},
        transaction_id=event.transaction_id,
    )


def _repayment_confirmed(event: LifecycleEvent) -> List[ScoreDelta]:
    borrower = event.recipient_id
    amount = _dollars(event.amount_cents)
    timing = event.metadata.get("timing", "on_time")
    if timing == "early":
        return [_delta(borrower, "early_repayment", event, f"Early repayment of {amount}")]
    if timing == "late":
        return [_delta(borrower, "late_repayment", event, f"Late repayment of {amount}", is_late=True)]
    return [_delta(borrower, "repayment_completed", event, f"Completed repayment of {amount}")]


def _dispute_resolved(event: LifecycleEvent) -> List[ScoreDelta]:
    disputer = event.recipient_id
    other_party = event.metadata.get("other_party_id")
    resolution = event.metadata.get("resolution")

    if resolution == DisputeResolution.IN_FAVOR_OF_DISPUTER.value:
        winner, loser = disputer, other_party
    elif resolution == DisputeResolution.IN_FAVOR_OF_OTHER_PARTY.value:
        winner, loser = other_party, disputer
    else:
        return []

    deltas = [_delta(winner, "dispute_resolved", event, "Dispute resolved in your favor", scaled=False)]
    if loser:
        deltas.append(_delta(loser, "false_dispute", event, "Dispute resolved against you", scaled=False))
    return deltas


def score_deltas_for(event: LifecycleEvent) -> List[ScoreDelta]:
    """
    Reputation deltas an event produces. Events without a reputation effect
    (task progress, reminders, new requests) yield an empty list.
    """
    amount = _dollars(event.amount_cents)
    actor, counterparty = event.actor_id, event.recipient_id

    if event.event_type == EventType.MONEY_SENT:
        return [_delta(actor, "transaction_completed", event, f"Lent {amount}")]
    if event.event_type == EventType.RECEIPT_CONFIRMED:
        return [_delta(actor, "transaction_completed", event, f"Received {amount}")]
    if event.event_type == EventType.REPAYMENT_SENT:
        return [_delta(actor, "repayment_completed", event, f"Sent repayment of {amount}")]
    if event.event_type == EventType.REPAYMENT_CONFIRMED:
        return _repayment_confirmed(event)
    if event.event_type == EventType.REPAYMENT_REJECTED:
        return [_delta(counterparty, "fraudulent_proof", event, "Repayment claim rejected by lender")]
    if event.event_type == EventType.DEBT_FORGIVEN:
        return [
            _delta(actor, "forgiveness_given", event, f"Forgave {amount} debt"),
            _delta(counterparty, "forgiveness_received", event, f"Received forgiveness of {amount} debt"),
        ]
    if event.event_type == EventType.REQUEST_REJECTED:
        return [_delta(actor, "request_declined", event, f"Declined money request of {amount}")]
    if event.event_type == EventType.DISPUTE_RESOLVED:
        return _dispute_resolved(event)
    return []
