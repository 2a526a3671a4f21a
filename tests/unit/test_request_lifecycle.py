"""Unit tests for the money request lifecycle"""

from datetime import datetime

import pytest

from good4it_gateway.domain.exceptions import AuthorizationError, StateConflictError, ValidationError
from good4it_gateway.domain.models import (
    EmiDetails,
    EmiFrequency,
    EventType,
    PaymentType,
    ProofType,
    ProofUpload,
    RequestStatus,
    TransactionStatus,
)
from good4it_gateway.domain.requests import (
    Decision,
    approve_and_pay,
    create_request,
    decide,
    send_money,
)

NOW = datetime(2024, 1, 15, 12, 0)


@pytest.fixture
def upload() -> ProofUpload:
    return ProofUpload(filename="sent.png", mime_type="image/png", content=b"png-bytes")


@pytest.fixture
def pending_request():
    request, _ = create_request("bob", "alice", 10_000, are_friends=True, now=NOW)
    return request


def test_create_request_notifies_lender():
    request, outcome = create_request("bob", "alice", 10_000, are_friends=True, description=" rent ", now=NOW)

    assert request.status == RequestStatus.PENDING
    assert request.description == "rent"
    assert request.emi_details is None
    [event] = outcome.events
    assert event.event_type == EventType.MONEY_REQUESTED
    assert event.recipient_id == "alice"
    assert event.amount_cents == 10_000


def test_cannot_request_from_self():
    with pytest.raises(ValidationError) as exc_info:
        create_request("bob", "bob", 10_000, are_friends=True)
    assert exc_info.value.code == "SELF_REQUEST"


@pytest.mark.parametrize("amount", [0, -100, 100_000_001])
def test_amount_out_of_range(amount):
    with pytest.raises(ValidationError) as exc_info:
        create_request("bob", "alice", amount, are_friends=True)
    assert exc_info.value.code == "INVALID_AMOUNT"


def test_requires_friendship():
    with pytest.raises(AuthorizationError) as exc_info:
        create_request("bob", "mallory", 10_000, are_friends=False)
    assert exc_info.value.code == "NOT_FRIENDS"


def test_unknown_payment_type():
    with pytest.raises(ValidationError) as exc_info:
        create_request("bob", "alice", 10_000, are_friends=True, payment_type="barter")
    assert exc_info.value.code == "INVALID_PAYMENT_TYPE"


def test_emi_request_requires_details():
    with pytest.raises(ValidationError) as exc_info:
        create_request("bob", "alice", 120_000, are_friends=True, payment_type=PaymentType.EMI)
    assert exc_info.value.code == "INVALID_EMI_DETAILS"


@pytest.mark.parametrize(
    "details",
    [
        EmiDetails(number_of_installments=0, installment_cents=10_000),
        EmiDetails(number_of_installments=25, installment_cents=10_000),
        EmiDetails(number_of_installments=12, installment_cents=0),
        EmiDetails(number_of_installments=12, installment_cents=10_000, frequency="daily"),
    ],
)
def test_emi_details_bounds(details):
    with pytest.raises(ValidationError) as exc_info:
        create_request("bob", "alice", 120_000, are_friends=True, payment_type=PaymentType.EMI, emi_details=details)
    assert exc_info.value.code == "INVALID_EMI_DETAILS"


def test_emi_details_dropped_for_full_payment():
    request, _ = create_request(
        "bob",
        "alice",
        10_000,
        are_friends=True,
        emi_details=EmiDetails(number_of_installments=2, installment_cents=5_000),
    )
    assert request.emi_details is None
    assert not request.is_emi


def test_emi_request_keeps_schedule():
    request, _ = create_request(
        "bob",
        "alice",
        120_000,
        are_friends=True,
        payment_type="emi",
        emi_details=EmiDetails(number_of_installments=12, installment_cents=10_000, frequency="weekly"),
    )
    assert request.is_emi
    assert request.emi_details.frequency == EmiFrequency.WEEKLY


def test_reject_requires_reason(pending_request):
    with pytest.raises(ValidationError) as exc_info:
        decide(pending_request, "alice", Decision.REJECT, rejection_reason="  ")
    assert exc_info.value.code == "MISSING_REJECTION_REASON"
    assert pending_request.status == RequestStatus.PENDING


def test_only_lender_decides(pending_request):
    with pytest.raises(AuthorizationError) as exc_info:
        decide(pending_request, "bob", Decision.APPROVE)
    assert exc_info.value.code == "NOT_LENDER"


def test_reject_then_decide_again(pending_request):
    outcome = decide(pending_request, "alice", "reject", rejection_reason="Not this month", now=NOW)

    assert pending_request.status == RequestStatus.REJECTED
    assert pending_request.rejected_at == NOW
    assert outcome.events[0].event_type == EventType.REQUEST_REJECTED
    assert outcome.events[0].recipient_id == "bob"

    with pytest.raises(StateConflictError) as exc_info:
        decide(pending_request, "alice", Decision.APPROVE)
    assert exc_info.value.code == "ALREADY_DECIDED"


def test_approve_and_pay_opens_transaction(pending_request, upload):
    transaction, outcome = approve_and_pay(pending_request, "alice", upload, now=NOW)

    assert pending_request.status == RequestStatus.APPROVED
    assert transaction.status == TransactionStatus.MONEY_SENT
    assert transaction.request_id == pending_request.id
    assert transaction.amount_cents == 10_000
    assert transaction.money_sent_at == NOW
    assert outcome.proof.proof_type == ProofType.MONEY_SENT
    assert outcome.events[0].event_type == EventType.MONEY_SENT


def test_approve_and_pay_requires_proof(pending_request):
    with pytest.raises(ValidationError) as exc_info:
        approve_and_pay(pending_request, "alice", None)
    assert exc_info.value.code == "PROOF_REQUIRED"
    assert pending_request.status == RequestStatus.PENDING


def test_approve_and_pay_only_when_pending(pending_request, upload):
    decide(pending_request, "alice", Decision.APPROVE)
    with pytest.raises(StateConflictError) as exc_info:
        approve_and_pay(pending_request, "alice", upload)
    assert exc_info.value.code == "REQUEST_NOT_PENDING"


def test_two_step_path_reaches_same_state(pending_request, upload):
    decide(pending_request, "alice", Decision.APPROVE, now=NOW)
    transaction, outcome = send_money(pending_request, "alice", upload, existing_transaction=None, now=NOW)

    assert transaction.status == TransactionStatus.MONEY_SENT
    assert outcome.proof is not None

    with pytest.raises(StateConflictError) as exc_info:
        send_money(pending_request, "alice", upload, existing_transaction=transaction)
    assert exc_info.value.code == "ALREADY_FUNDED"


def test_send_money_requires_approval(pending_request, upload):
    with pytest.raises(StateConflictError) as exc_info:
        send_money(pending_request, "alice", upload, existing_transaction=None)
    assert exc_info.value.code == "REQUEST_NOT_APPROVED"
