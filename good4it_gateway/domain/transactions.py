"""Money transaction lifecycle - the core state machine

    money_sent --confirm_receipt--> money_received
    money_received --repay--> repayment_sent
    repayment_sent --confirm_repayment--> repaid | money_received (partial)
    repayment_sent --reject_repayment--> repayment_rejected
    money_received --forgive--> forgiven

Every function checks the actor's role, then the status guard, and mutates
the transaction only after both pass. repaid and forgiven are terminal.
"""

from datetime import datetime, timedelta
from typing import Optional

from good4it_gateway.domain.authorization import Role, require_role
from good4it_gateway.domain.exceptions import StateConflictError, ValidationError
from good4it_gateway.domain.models import (
    EmiFrequency,
    EventType,
    LifecycleEvent,
    MoneyTransaction,
    Outcome,
    ProofType,
    ProofUpload,
    RepaymentReminder,
    TransactionStatus,
)
from good4it_gateway.domain.periods import next_period, period_for
from good4it_gateway.domain.proofs import optional_proof, require_proof
from good4it_gateway.utils.date_utils import utc_now, whole_days_between

DEFAULT_REMINDER_MESSAGE = "Please repay the money you borrowed."


def _require_status(transaction: MoneyTransaction, expected: TransactionStatus, message: str) -> None:
    if transaction.status != expected:
        raise StateConflictError(message, code="INVALID_TRANSACTION_STATE")


def _event(
    transaction: MoneyTransaction,
    event_type: EventType,
    actor_id: str,
    recipient_id: str,
    amount_cents: int,
    **metadata,
) -> LifecycleEvent:
    return LifecycleEvent(
        event_type=event_type,
        actor_id=actor_id,
        recipient_id=recipient_id,
        amount_cents=amount_cents,
        transaction_id=transaction.id,
        request_id=transaction.request_id,
        metadata=metadata,
    )


def confirm_receipt(
    transaction: MoneyTransaction,
    actor_id: str,
    proof: Optional[ProofUpload] = None,
    now: Optional[datetime] = None,
) -> Outcome:
    """Requestor confirms the lender's money arrived"""
    require_role(transaction, actor_id, Role.REQUESTOR, "Only the requestor can confirm receipt")
    _require_status(
        transaction, TransactionStatus.MONEY_SENT, "Money must be sent first before confirming receipt"
    )
    pending_proof = optional_proof(proof, ProofType.MONEY_RECEIVED)

    transaction.status = TransactionStatus.MONEY_RECEIVED
    transaction.money_received_at = now or utc_now()

    event = _event(
        transaction,
        EventType.RECEIPT_CONFIRMED,
        actor_id,
        transaction.lender_id,
        transaction.amount_cents,
    )
    return Outcome(events=[event], proof=pending_proof)


def validate_repayment_amount(amount_cents: int) -> int:
    if amount_cents is None or amount_cents <= 0:
        raise ValidationError("Repayment amount must be greater than 0", code="INVALID_AMOUNT")
    return amount_cents


def repay(
    transaction: MoneyTransaction,
    actor_id: str,
    amount_cents: int,
    proof: Optional[ProofUpload],
    now: Optional[datetime] = None,
) -> Outcome:
    """
    Requestor submits a (partial) repayment with proof.

    Accumulation: a repayment after a confirmed partial one adds to the running
    total; otherwise the submitted amount becomes the total.
    """
    validate_repayment_amount(amount_cents)
    require_role(transaction, actor_id, Role.REQUESTOR, "Only the borrower can send repayment")
    _require_status(
        transaction, TransactionStatus.MONEY_RECEIVED, "Can only repay after money has been received"
    )
    pending_proof = require_proof(proof, ProofType.REPAYMENT_SENT)

    previous_status = transaction.status
    previous_total = transaction.repayment_amount_cents or 0
    if previous_status == TransactionStatus.MONEY_RECEIVED and previous_total > 0:
        transaction.repayment_amount_cents = previous_total + amount_cents
    else:
        transaction.repayment_amount_cents = amount_cents

    transaction.status = TransactionStatus.REPAYMENT_SENT
    transaction.repayment_sent_at = now or utc_now()

    event = _event(
        transaction,
        EventType.REPAYMENT_SENT,
        actor_id,
        transaction.lender_id,
        amount_cents,
        repayment_total_cents=transaction.repayment_amount_cents,
    )
    return Outcome(events=[event], proof=pending_proof)


def classify_repayment_timing(
    money_received_at: Optional[datetime],
    repayment_received_at: Optional[datetime],
    early_hours: int = 24,
    late_days: int = 7,
) -> str:
    """early (< early_hours after receipt), late (> late_days after receipt) or on_time"""
    if money_received_at is None or repayment_received_at is None:
        return "on_time"
    elapsed = repayment_received_at - money_received_at
    if elapsed < timedelta(hours=early_hours):
        return "early"
    if elapsed > timedelta(days=late_days):
        return "late"
    return "on_time"


def confirm_repayment(
    transaction: MoneyTransaction,
    actor_id: str,
    proof: Optional[ProofUpload] = None,
    emi_frequency: Optional[EmiFrequency] = None,
    now: Optional[datetime] = None,
    early_hours: int = 24,
    late_days: int = 7,
) -> Outcome:
    """
    Lender confirms the submitted repayment.

    The transaction is repaid once the running total reaches the amount;
    otherwise it returns to money_received for further repayments. For EMI
    transactions the next payment falls due at the start of the next period.
    """
    require_role(transaction, actor_id, Role.LENDER, "Only the lender can confirm repayment")
    _require_status(
        transaction, TransactionStatus.REPAYMENT_SENT, "Repayment must be sent first before confirming"
    )
    pending_proof = optional_proof(proof, ProofType.REPAYMENT_RECEIVED)

    now = now or utc_now()
    transaction.repayment_received_at = now
    fully_repaid = transaction.repayment_amount_cents >= transaction.amount_cents
    if fully_repaid:
        transaction.status = TransactionStatus.REPAID
        transaction.next_payment_due_at = None
    else:
        transaction.status = TransactionStatus.MONEY_RECEIVED
        if emi_frequency is not None:
            transaction.next_payment_due_at = next_period(emi_frequency, period_for(emi_frequency, now)).start

    timing = classify_repayment_timing(transaction.money_received_at, now, early_hours, late_days)
    days = whole_days_between(transaction.money_received_at, now) if transaction.money_received_at else 0

    event = _event(
        transaction,
        EventType.REPAYMENT_CONFIRMED,
        actor_id,
        transaction.requestor_id,
        transaction.repayment_amount_cents,
        timing=timing,
        days_since_receipt=days,
        fully_repaid=fully_repaid,
        remaining_balance_cents=transaction.remaining_balance_cents,
    )
    return Outcome(events=[event], proof=pending_proof)


def reject_repayment(
    transaction: MoneyTransaction,
    actor_id: str,
    reason: Optional[str],
    now: Optional[datetime] = None,
) -> Outcome:
    """
    Lender rejects a submitted repayment, e.g. because the proof is fake.

    repayment_rejected has no way back into the normal flow; a dispute is the
    only recourse.
    """
    if not (reason or "").strip():
        raise ValidationError("A reason is required to reject a repayment", code="MISSING_REJECTION_REASON")
    require_role(transaction, actor_id, Role.LENDER, "Only the lender can reject repayment")
    _require_status(
        transaction, TransactionStatus.REPAYMENT_SENT, "Repayment must be sent first before rejecting"
    )

    transaction.status = TransactionStatus.REPAYMENT_REJECTED
    transaction.repayment_rejected_at = now or utc_now()
    transaction.repayment_rejection_reason = reason.strip()

    event = _event(
        transaction,
        EventType.REPAYMENT_REJECTED,
        actor_id,
        transaction.requestor_id,
        transaction.repayment_amount_cents,
        reason=transaction.repayment_rejection_reason,
    )
    return Outcome(events=[event])


def forgive(transaction: MoneyTransaction, actor_id: str, now: Optional[datetime] = None) -> Outcome:
    """Lender irreversibly forgives the remaining balance"""
    require_role(transaction, actor_id, Role.LENDER, "Only the lender can forgive debt")
    _require_status(
        transaction, TransactionStatus.MONEY_RECEIVED, "Debt can only be forgiven after money has been received"
    )
    remaining = transaction.amount_cents - transaction.repayment_amount_cents
    if remaining <= 0:
        raise StateConflictError("No remaining debt to forgive", code="NO_REMAINING_BALANCE")

    transaction.status = TransactionStatus.FORGIVEN
    transaction.forgiven_at = now or utc_now()
    transaction.forgiven_amount_cents = remaining
    transaction.next_payment_due_at = None

    event = _event(transaction, EventType.DEBT_FORGIVEN, actor_id, transaction.requestor_id, remaining)
    return Outcome(events=[event])


def send_reminder(
    transaction: MoneyTransaction,
    actor_id: str,
    message: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[RepaymentReminder, Outcome]:
    """Lender nudges the borrower about the outstanding balance"""
    require_role(transaction, actor_id, Role.LENDER, "Only the lender can send repayment reminders")
    if transaction.status not in (TransactionStatus.MONEY_RECEIVED, TransactionStatus.REPAYMENT_SENT):
        raise StateConflictError(
            "Cannot send reminder for this transaction status", code="INVALID_TRANSACTION_STATE"
        )
    remaining = transaction.remaining_balance_cents
    if remaining <= 0:
        raise StateConflictError("This transaction has been fully repaid", code="NO_REMAINING_BALANCE")

    reminder = RepaymentReminder(
        transaction_id=transaction.id,
        sender_id=actor_id,
        recipient_id=transaction.requestor_id,
        message=(message or "").strip() or DEFAULT_REMINDER_MESSAGE,
        sent_at=now or utc_now(),
    )
    event = _event(
        transaction,
        EventType.REPAYMENT_REMINDER,
        actor_id,
        transaction.requestor_id,
        remaining,
        message=reminder.message,
    )
    return reminder, Outcome(events=[event])
