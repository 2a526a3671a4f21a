"""Pydantic schemas for API request/response validation

Response models read straight off the domain dataclasses
(``from_attributes``), so properties such as ``remaining_balance_cents`` are
serialized along with the fields.
"""

import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from good4it_gateway.domain.models import (
    DisputeResolution,
    DisputeStatus,
    DisputeType,
    EmiFrequency,
    PaymentType,
    ProofType,
    RequestStatus,
    TaskCategory,
    TaskPriority,
    TaskStatus,
    TransactionStatus,
)


class DomainSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Requests


class EmiDetailsSchema(DomainSchema):
    number_of_installments: int
    installment_cents: int
    frequency: EmiFrequency = EmiFrequency.MONTHLY


class CreateMoneyRequest(BaseModel):
    """Request body for POST /v1/requests"""

    lender_id: str = Field(..., min_length=1, description="Friend being asked for money")
    amount_cents: int = Field(..., description="Requested amount in cents")
    payment_type: str = Field(PaymentType.FULL_PAYMENT.value, description="full_payment | emi | installments | flexible")
    description: str = Field("", max_length=500)
    emi_details: Optional[EmiDetailsSchema] = None


class DecisionBody(BaseModel):
    """Request body for POST /v1/requests/{id}/decision"""

    decision: str = Field(..., description="approve | reject")
    rejection_reason: Optional[str] = Field(None, max_length=500)


class MoneyRequestResponse(DomainSchema):
    id: uuid.UUID
    requestor_id: str
    lender_id: str
    amount_cents: int
    payment_type: PaymentType
    description: str
    emi_details: Optional[EmiDetailsSchema] = None
    status: RequestStatus
    rejection_reason: Optional[str] = None
    rejected_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    created_at: datetime


# Transactions


class EmiForgivenessEntrySchema(DomainSchema):
    month: str
    amount_cents: int
    forgiven_at: datetime
    task_id: uuid.UUID


class TransactionResponse(DomainSchema):
    id: uuid.UUID
    request_id: uuid.UUID
    requestor_id: str
    lender_id: str
    amount_cents: int
    description: str
    status: TransactionStatus
    repayment_amount_cents: int
    remaining_balance_cents: int
    is_settled: bool
    money_sent_at: Optional[datetime] = None
    money_received_at: Optional[datetime] = None
    repayment_sent_at: Optional[datetime] = None
    repayment_received_at: Optional[datetime] = None
    repayment_rejected_at: Optional[datetime] = None
    repayment_rejection_reason: Optional[str] = None
    forgiven_at: Optional[datetime] = None
    forgiven_amount_cents: Optional[int] = None
    next_payment_due_at: Optional[datetime] = None
    money_sent_proof_id: Optional[uuid.UUID] = None
    money_received_proof_id: Optional[uuid.UUID] = None
    repayment_sent_proof_id: Optional[uuid.UUID] = None
    repayment_received_proof_id: Optional[uuid.UUID] = None
    emi_forgiveness: List[EmiForgivenessEntrySchema] = []
    total_forgiven_emis: int = 0
    created_at: datetime


class ApproveAndPayResponse(BaseModel):
    request: MoneyRequestResponse
    transaction: TransactionResponse


class RejectRepaymentBody(BaseModel):
    reason: str = Field(..., max_length=500)


class ReminderBody(BaseModel):
    message: Optional[str] = Field(None, max_length=500)


class ReminderResponse(DomainSchema):
    id: uuid.UUID
    transaction_id: uuid.UUID
    sender_id: str
    recipient_id: str
    message: str
    sent_at: datetime


class ProofResponse(DomainSchema):
    id: uuid.UUID
    transaction_id: uuid.UUID
    uploaded_by: str
    proof_type: ProofType
    file_name: str
    size_bytes: int
    mime_type: str
    uploaded_at: datetime


class PeriodSchema(DomainSchema):
    key: str
    label: str
    start: datetime
    end: datetime


class PaymentDueResponse(DomainSchema):
    required: bool
    reason: str
    message: str
    frequency: Optional[EmiFrequency] = None
    period: Optional[PeriodSchema] = None
    last_payment_at: Optional[datetime] = None
    next_due_at: Optional[datetime] = None


class ForgivenessSummaryResponse(DomainSchema):
    max_per_task: int
    total_forgiven_emis: int
    forgiven_amount_cents: int
    remaining_balance_cents: int
    entries: List[EmiForgivenessEntrySchema]


# Tasks


class CreateTaskBody(BaseModel):
    """Request body for POST /v1/tasks"""

    transaction_id: uuid.UUID
    assigned_to: Optional[str] = Field(None, description="Defaults to the transaction's borrower")
    title: str = Field(..., max_length=100)
    description: str = Field("", max_length=500)
    category: TaskCategory = TaskCategory.OTHER
    priority: TaskPriority = TaskPriority.MEDIUM
    location: Optional[str] = Field(None, max_length=200)
    due_date: date
    monetary_value_cents: int = Field(0, description="Credit in cents for a non-EMI task")
    is_emi_task: bool = False
    forgiven_emis: Optional[int] = None
    start_month: Optional[str] = Field(None, description="YYYY-MM; defaults to the loan's month")


class ReasonBody(BaseModel):
    reason: str = Field(..., max_length=500)


class NotesBody(BaseModel):
    notes: Optional[str] = Field(None, max_length=500)


class TaskEmiForgivenessSchema(DomainSchema):
    forgiven_emis: int
    start_month: str
    end_month: str


class TaskResponse(DomainSchema):
    id: uuid.UUID
    assigned_by: str
    assigned_to: str
    reference_transaction_id: uuid.UUID
    title: str
    description: str
    category: TaskCategory
    priority: TaskPriority
    location: Optional[str] = None
    due_date: date
    monetary_value_cents: int
    status: TaskStatus
    is_emi_task: bool
    emi_forgiveness: Optional[TaskEmiForgivenessSchema] = None
    completed_at: Optional[datetime] = None
    completion_notes: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    confirmation_notes: Optional[str] = None
    amount_repaid_cents: int
    declined_at: Optional[datetime] = None
    decline_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime


class TaskConfirmResponse(BaseModel):
    task: TaskResponse
    transaction: TransactionResponse
    settled: bool


# Disputes


class CreateDisputeBody(BaseModel):
    transaction_id: uuid.UUID
    dispute_type: DisputeType
    description: str = Field(..., max_length=1000)


class ResolveDisputeBody(BaseModel):
    resolution: DisputeResolution
    notes: Optional[str] = Field(None, max_length=1000)


class DisputeResponse(DomainSchema):
    id: uuid.UUID
    transaction_id: uuid.UUID
    disputer_id: str
    dispute_type: DisputeType
    description: str
    status: DisputeStatus
    resolution: Optional[DisputeResolution] = None
    resolution_notes: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime


# Scores


class ScoreResponse(BaseModel):
    user_id: str
    score: int
    min_score: int
    max_score: int


class ScoreHistoryItem(DomainSchema):
    id: uuid.UUID
    change_type: str
    delta: int
    previous_score: int
    new_score: int
    description: str
    details: Optional[Dict[str, Any]] = None
    transaction_id: Optional[uuid.UUID] = None
    created_at: datetime


class ScoreHistoryResponse(BaseModel):
    user_id: str
    history: List[ScoreHistoryItem]
