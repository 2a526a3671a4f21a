"""Money request lifecycle: pending -> approved | rejected

An approved request is funded by exactly one MoneyTransaction. The primary
path is ``approve_and_pay`` (approve + fund atomically); ``decide`` followed by
``send_money`` is the older two-step path and reaches the same end state.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from good4it_gateway.domain.authorization import Role, require_role
from good4it_gateway.domain.exceptions import AuthorizationError, StateConflictError, ValidationError
from good4it_gateway.domain.models import (
    EmiDetails,
    EmiFrequency,
    EventType,
    LifecycleEvent,
    MoneyRequest,
    MoneyTransaction,
    Outcome,
    PaymentType,
    ProofType,
    ProofUpload,
    RequestStatus,
    TransactionStatus,
)
from good4it_gateway.domain.proofs import require_proof
from good4it_gateway.utils.date_utils import utc_now

MAX_REQUEST_AMOUNT_CENTS = 100_000_000  # $1,000,000
MIN_INSTALLMENTS = 1
MAX_INSTALLMENTS = 24


class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


def validate_amount(amount_cents: int) -> int:
    if amount_cents is None or amount_cents <= 0 or amount_cents > MAX_REQUEST_AMOUNT_CENTS:
        raise ValidationError("Amount must be between 1 and 1,000,000", code="INVALID_AMOUNT")
    return amount_cents


def validate_emi_details(payment_type: PaymentType, emi_details: Optional[EmiDetails]) -> Optional[EmiDetails]:
    """
    EMI details are required for EMI requests and dropped for every other type.

    Requirements:
    - 1 to 24 installments
    - installment amount greater than 0
    - frequency weekly, monthly or quarterly
    """
    if payment_type != PaymentType.EMI:
        return None

    if emi_details is None:
        raise ValidationError(
            "EMI details must include number of installments, installment amount, and frequency",
            code="INVALID_EMI_DETAILS",
        )
    if not MIN_INSTALLMENTS <= emi_details.number_of_installments <= MAX_INSTALLMENTS:
        raise ValidationError("Number of installments must be between 1 and 24", code="INVALID_EMI_DETAILS")
    if emi_details.installment_cents <= 0:
        raise ValidationError("Installment amount must be greater than 0", code="INVALID_EMI_DETAILS")
    try:
        frequency = EmiFrequency(emi_details.frequency)
    except ValueError as e:
        raise ValidationError("Frequency must be weekly, monthly, or quarterly", code="INVALID_EMI_DETAILS") from e

    return EmiDetails(
        number_of_installments=emi_details.number_of_installments,
        installment_cents=emi_details.installment_cents,
        frequency=frequency,
    )


def create_request(
    requestor_id: str,
    lender_id: str,
    amount_cents: int,
    are_friends: bool,
    payment_type: PaymentType = PaymentType.FULL_PAYMENT,
    emi_details: Optional[EmiDetails] = None,
    description: str = "",
    now: Optional[datetime] = None,
) -> tuple[MoneyRequest, Outcome]:
    """
    Create a pending request from ``requestor_id`` to borrow from ``lender_id``.

    Raises:
        ValidationError: SELF_REQUEST, INVALID_AMOUNT, INVALID_PAYMENT_TYPE, INVALID_EMI_DETAILS
        AuthorizationError: NOT_FRIENDS
    """
    if requestor_id == lender_id:
        raise ValidationError("Cannot request money from yourself", code="SELF_REQUEST")
    validate_amount(amount_cents)
    try:
        payment_type = PaymentType(payment_type)
    except ValueError as e:
        raise ValidationError("Invalid payment type", code="INVALID_PAYMENT_TYPE") from e
    emi_details = validate_emi_details(payment_type, emi_details)

    if not are_friends:
        raise AuthorizationError("You can only request money from friends", code="NOT_FRIENDS")

    request = MoneyRequest(
        requestor_id=requestor_id,
        lender_id=lender_id,
        amount_cents=amount_cents,
        payment_type=payment_type,
        description=(description or "").strip(),
        emi_details=emi_details,
        created_at=now or utc_now(),
    )
    event = LifecycleEvent(
        event_type=EventType.MONEY_REQUESTED,
        actor_id=requestor_id,
        recipient_id=lender_id,
        amount_cents=amount_cents,
        request_id=request.id,
    )
    return request, Outcome(events=[event])


def validate_decision(decision: Decision, rejection_reason: Optional[str]) -> Decision:
    """Input checks that run before the request is loaded"""
    try:
        decision = Decision(decision)
    except ValueError as e:
        raise ValidationError("Decision must be either approve or reject", code="INVALID_DECISION") from e
    if decision == Decision.REJECT and not (rejection_reason or "").strip():
        raise ValidationError(
            "Rejection reason is required when rejecting a request",
            code="MISSING_REJECTION_REASON",
        )
    return decision


def decide(
    request: MoneyRequest,
    actor_id: str,
    decision: Decision,
    rejection_reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Outcome:
    """Lender approves or rejects a pending request (once)"""
    decision = validate_decision(decision, rejection_reason)
    require_role(request, actor_id, Role.LENDER, "Only the lender can approve or reject this request")
    if request.status != RequestStatus.PENDING:
        raise StateConflictError("Request has already been processed", code="ALREADY_DECIDED")

    now = now or utc_now()
    if decision == Decision.APPROVE:
        request.status = RequestStatus.APPROVED
        request.approved_at = now
        event_type = EventType.REQUEST_APPROVED
    else:
        request.status = RequestStatus.REJECTED
        request.rejection_reason = rejection_reason.strip()
        request.rejected_at = now
        event_type = EventType.REQUEST_REJECTED

    event = LifecycleEvent(
        event_type=event_type,
        actor_id=actor_id,
        recipient_id=request.requestor_id,
        amount_cents=request.amount_cents,
        request_id=request.id,
        metadata={"rejection_reason": request.rejection_reason} if request.rejection_reason else {},
    )
    return Outcome(events=[event])


def _fund(request: MoneyRequest, actor_id: str, proof: ProofUpload, now: datetime) -> tuple[MoneyTransaction, Outcome]:
    pending_proof = require_proof(proof, ProofType.MONEY_SENT)
    transaction = MoneyTransaction(
        request_id=request.id,
        requestor_id=request.requestor_id,
        lender_id=request.lender_id,
        amount_cents=request.amount_cents,
        description=request.description,
        status=TransactionStatus.MONEY_SENT,
        money_sent_at=now,
        created_at=now,
    )
    event = LifecycleEvent(
        event_type=EventType.MONEY_SENT,
        actor_id=actor_id,
        recipient_id=request.requestor_id,
        amount_cents=request.amount_cents,
        transaction_id=transaction.id,
        request_id=request.id,
    )
    return transaction, Outcome(events=[event], proof=pending_proof)


def approve_and_pay(
    request: MoneyRequest,
    actor_id: str,
    proof: Optional[ProofUpload],
    now: Optional[datetime] = None,
) -> tuple[MoneyTransaction, Outcome]:
    """
    Approve a pending request and fund it in one step.

    Returns the new transaction in ``money_sent`` and the outcome carrying the
    money_sent proof that must be stored before commit.
    """
    require_role(request, actor_id, Role.LENDER, "Only the lender can approve and pay this request")
    if request.status != RequestStatus.PENDING:
        raise StateConflictError("Request must be pending to approve and pay", code="REQUEST_NOT_PENDING")
    require_proof(proof, ProofType.MONEY_SENT)

    now = now or utc_now()
    transaction, outcome = _fund(request, actor_id, proof, now)
    request.status = RequestStatus.APPROVED
    request.approved_at = now
    return transaction, outcome


def send_money(
    request: MoneyRequest,
    actor_id: str,
    proof: Optional[ProofUpload],
    existing_transaction: Optional[MoneyTransaction],
    now: Optional[datetime] = None,
) -> tuple[MoneyTransaction, Outcome]:
    """Fund a request approved through ``decide`` (deprecated two-step path)"""
    require_role(request, actor_id, Role.LENDER, "Only the lender can mark money as sent")
    if request.status != RequestStatus.APPROVED:
        raise StateConflictError("Request must be approved to send money", code="REQUEST_NOT_APPROVED")
    if existing_transaction is not None:
        raise StateConflictError("Money has already been sent for this request", code="ALREADY_FUNDED")
    require_proof(proof, ProofType.MONEY_SENT)

    return _fund(request, actor_id, proof, now or utc_now())
