"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from good4it_gateway.utils.date_utils import utc_now


class PaymentType(str, Enum):
    FULL_PAYMENT = "full_payment"
    EMI = "emi"
    INSTALLMENTS = "installments"
    FLEXIBLE = "flexible"


class EmiFrequency(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TransactionStatus(str, Enum):
    MONEY_SENT = "money_sent"
    MONEY_RECEIVED = "money_received"
    REPAYMENT_SENT = "repayment_sent"
    REPAID = "repaid"
    FORGIVEN = "forgiven"
    REPAYMENT_REJECTED = "repayment_rejected"


SETTLED_STATUSES = frozenset({TransactionStatus.REPAID, TransactionStatus.FORGIVEN})


class ProofType(str, Enum):
    MONEY_SENT = "money_sent"
    MONEY_RECEIVED = "money_received"
    REPAYMENT_SENT = "repayment_sent"
    REPAYMENT_RECEIVED = "repayment_received"


class TaskStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    CANCELLED = "cancelled"


# At most one task per transaction may sit in one of these
ACTIVE_TASK_STATUSES = frozenset(
    {TaskStatus.PENDING, TaskStatus.ACCEPTED, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED}
)


class TaskCategory(str, Enum):
    HOUSEHOLD = "household"
    MAINTENANCE = "maintenance"
    CLEANING = "cleaning"
    COOKING = "cooking"
    SHOPPING = "shopping"
    TRANSPORTATION = "transportation"
    PERSONAL_CARE = "personal_care"
    PET_CARE = "pet_care"
    GARDEN = "garden"
    OTHER = "other"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class DisputeType(str, Enum):
    PAYMENT_NOT_RECEIVED = "payment_not_received"
    PAYMENT_NOT_SENT = "payment_not_sent"
    INCORRECT_AMOUNT = "incorrect_amount"
    FRAUDULENT_PROOF = "fraudulent_proof"


class DisputeStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"


class DisputeResolution(str, Enum):
    IN_FAVOR_OF_DISPUTER = "in_favor_of_disputer"
    IN_FAVOR_OF_OTHER_PARTY = "in_favor_of_other_party"
    NO_FAULT = "no_fault"


class EventType(str, Enum):
    """Lifecycle events that fan out to notifications and score deltas"""

    MONEY_REQUESTED = "money_request"
    REQUEST_APPROVED = "money_request_approved"
    REQUEST_REJECTED = "money_request_rejected"
    MONEY_SENT = "money_sent"
    RECEIPT_CONFIRMED = "money_receipt_confirmed"
    REPAYMENT_SENT = "repayment_received"
    REPAYMENT_CONFIRMED = "repayment_confirmed"
    REPAYMENT_REJECTED = "repayment_rejected"
    DEBT_FORGIVEN = "debt_forgiven"
    REPAYMENT_REMINDER = "repayment_reminder"
    TASK_ASSIGNED = "task_assignment"
    TASK_ACCEPTED = "task_accepted"
    TASK_DECLINED = "task_declined"
    TASK_STARTED = "task_started"
    TASK_COMPLETED = "task_completed"
    TASK_CONFIRMED = "task_confirmed"
    TASK_CANCELLED = "task_cancelled"
    DISPUTE_OPENED = "dispute_opened"
    DISPUTE_RESOLVED = "dispute_resolved"


@dataclass
class EmiDetails:
    """Instalment schedule attached to an EMI money request"""

    number_of_installments: int
    installment_cents: int
    frequency: EmiFrequency = EmiFrequency.MONTHLY


@dataclass
class MoneyRequest:
    """Request by a borrower (requestor) to borrow money from a friend (lender)"""

    requestor_id: str
    lender_id: str
    amount_cents: int
    payment_type: PaymentType = PaymentType.FULL_PAYMENT
    description: str = ""
    emi_details: Optional[EmiDetails] = None
    status: RequestStatus = RequestStatus.PENDING
    rejection_reason: Optional[str] = None
    rejected_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=utc_now)
    version: int = 0

    @property
    def is_emi(self) -> bool:
        return self.payment_type == PaymentType.EMI and self.emi_details is not None


@dataclass
class EmiForgivenessEntry:
    """One EMI period forgiven by a confirmed task"""

    month: str  # "YYYY-MM"
    amount_cents: int
    forgiven_at: datetime
    task_id: uuid.UUID


@dataclass
class MoneyTransaction:
    """Funded loan between requestor and lender; the audit trail of the debt"""

    request_id: uuid.UUID
    requestor_id: str
    lender_id: str
    amount_cents: int
    description: str = ""
    status: TransactionStatus = TransactionStatus.MONEY_SENT
    repayment_amount_cents: int = 0

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

    emi_forgiveness: List[EmiForgivenessEntry] = field(default_factory=list)
    total_forgiven_emis: int = 0

    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=utc_now)
    version: int = 0

    @property
    def is_settled(self) -> bool:
        return self.status in SETTLED_STATUSES

    @property
    def remaining_balance_cents(self) -> int:
        if self.is_settled:
            return 0
        return max(self.amount_cents - self.repayment_amount_cents, 0)

    def attach_proof(self, proof_type: ProofType, proof_id: uuid.UUID) -> None:
        """Point the lifecycle step's proof slot at a stored artifact"""
        setattr(self, f"{proof_type.value}_proof_id", proof_id)


@dataclass
class ProofUpload:
    """Proof image received from the client, not yet stored"""

    filename: str
    mime_type: str
    content: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.content)


@dataclass
class PendingProof:
    """Proof a transition accepted and that must be stored before commit"""

    proof_type: ProofType
    upload: ProofUpload


@dataclass
class ProofReference:
    """Immutable reference to a stored proof artifact"""

    id: uuid.UUID
    transaction_id: uuid.UUID
    uploaded_by: str
    proof_type: ProofType
    file_name: str
    size_bytes: int
    mime_type: str
    uploaded_at: datetime


@dataclass
class TaskEmiForgiveness:
    """EMI periods a task forgives, as an inclusive month range"""

    forgiven_emis: int
    start_month: str  # "YYYY-MM"
    end_month: str  # "YYYY-MM"


@dataclass
class Task:
    """Chore assigned by a lender to a borrower in lieu of (partial) repayment"""

    assigned_by: str
    assigned_to: str
    reference_transaction_id: uuid.UUID
    title: str
    due_date: date
    monetary_value_cents: int = 0
    description: str = ""
    category: TaskCategory = TaskCategory.OTHER
    priority: TaskPriority = TaskPriority.MEDIUM
    location: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    is_emi_task: bool = False
    emi_forgiveness: Optional[TaskEmiForgiveness] = None

    completed_at: Optional[datetime] = None
    completion_notes: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    confirmation_notes: Optional[str] = None
    amount_repaid_cents: int = 0
    declined_at: Optional[datetime] = None
    decline_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=utc_now)
    version: int = 0

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_TASK_STATUSES


@dataclass
class RepaymentReminder:
    transaction_id: uuid.UUID
    sender_id: str
    recipient_id: str
    message: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    sent_at: datetime = field(default_factory=utc_now)


@dataclass
class Dispute:
    """Claim by one party that the other misbehaved on a transaction"""

    transaction_id: uuid.UUID
    disputer_id: str
    dispute_type: DisputeType
    description: str
    status: DisputeStatus = DisputeStatus.PENDING
    resolution: Optional[DisputeResolution] = None
    resolution_notes: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class LifecycleEvent:
    """Something that happened to a request, transaction, task or dispute"""

    event_type: EventType
    actor_id: str
    recipient_id: str  # counterparty
    amount_cents: int = 0
    transaction_id: Optional[uuid.UUID] = None
    request_id: Optional[uuid.UUID] = None
    task_id: Optional[uuid.UUID] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Outcome:
    """Side effects produced by a state transition"""

    events: List[LifecycleEvent] = field(default_factory=list)
    proof: Optional[PendingProof] = None


@dataclass
class Notice:
    """Notification to deliver to a user"""

    recipient_id: str
    sender_id: str
    event_type: EventType
    title: str
    body: str
    amount_cents: int = 0
    related_transaction_id: Optional[uuid.UUID] = None
    related_request_id: Optional[uuid.UUID] = None
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ScoreDelta:
    """Signed adjustment to a user's Good4It score"""

    user_id: str
    change_type: str
    delta: int
    description: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    transaction_id: Optional[uuid.UUID] = None


@dataclass
class ScoreChange:
    previous_score: int
    new_score: int
    delta: int


@dataclass
class Period:
    """Half-open [start, end) interval of an EMI schedule"""

    key: str
    label: str
    start: datetime
    end: datetime

    def contains(self, at: datetime) -> bool:
        return self.start <= at < self.end


@dataclass
class PaymentDueStatus:
    """Answer to "does the borrower owe a payment in the current period?" """

    required: bool
    reason: str  # forgiven_period | already_paid | settled | due | not_emi
    message: str
    frequency: Optional[EmiFrequency] = None
    period: Optional[Period] = None
    last_payment_at: Optional[datetime] = None
    next_due_at: Optional[datetime] = None
