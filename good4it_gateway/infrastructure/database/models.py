"""SQLAlchemy ORM models for requests, transactions, tasks and the score ledger

Timestamps are stored as naive UTC. Rows that go through lifecycle
transitions carry a ``version`` column used for optimistic locking.
"""

import uuid
from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship

from good4it_gateway.utils.date_utils import utc_now

Base = declarative_base()


class UserAccount(Base):
    """User profile as far as lending cares: display name and Good4It score"""

    __tablename__ = "user_account"

    id = Column(Text, primary_key=True)
    full_name = Column(Text, nullable=False)
    good4it_score = Column(Integer, nullable=False, default=50)
    created_at = Column(DateTime, nullable=False, default=utc_now)


class Friendship(Base):
    """Accepted friendship; one row per pair, read in both directions"""

    __tablename__ = "friendship"
    __table_args__ = (UniqueConstraint("user_id", "friend_id", name="uq_friendship_pair"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    friend_id = Column(Text, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)


class MoneyRequestRecord(Base):
    __tablename__ = "money_request"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    requestor_id = Column(Text, nullable=False, index=True)
    lender_id = Column(Text, nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    payment_type = Column(String(32), nullable=False, default="full_payment")
    description = Column(Text, nullable=False, default="")

    # EMI schedule, only set when payment_type == "emi"
    emi_installments = Column(Integer, nullable=True)
    emi_installment_cents = Column(BigInteger, nullable=True)
    emi_frequency = Column(String(16), nullable=True)

    status = Column(String(16), nullable=False, default="pending", index=True)
    rejection_reason = Column(Text, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class MoneyTransactionRecord(Base):
    __tablename__ = "money_transaction"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # unique: a request is funded by at most one transaction
    request_id = Column(Uuid, ForeignKey("money_request.id"), nullable=False, unique=True)
    requestor_id = Column(Text, nullable=False, index=True)
    lender_id = Column(Text, nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String(32), nullable=False, default="money_sent", index=True)
    repayment_amount_cents = Column(BigInteger, nullable=False, default=0)

    money_sent_at = Column(DateTime, nullable=True)
    money_received_at = Column(DateTime, nullable=True)
    repayment_sent_at = Column(DateTime, nullable=True)
    repayment_received_at = Column(DateTime, nullable=True)
    repayment_rejected_at = Column(DateTime, nullable=True)
    repayment_rejection_reason = Column(Text, nullable=True)
    forgiven_at = Column(DateTime, nullable=True)
    forgiven_amount_cents = Column(BigInteger, nullable=True)
    next_payment_due_at = Column(DateTime, nullable=True)

    money_sent_proof_id = Column(Uuid, nullable=True)
    money_received_proof_id = Column(Uuid, nullable=True)
    repayment_sent_proof_id = Column(Uuid, nullable=True)
    repayment_received_proof_id = Column(Uuid, nullable=True)

    total_forgiven_emis = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    version = Column(Integer, nullable=False)

    emi_forgiveness = relationship(
        "EmiForgivenessRecord",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="EmiForgivenessRecord.month",
    )

    __mapper_args__ = {"version_id_col": version}


class EmiForgivenessRecord(Base):
    """One forgiven EMI period, appended when an EMI task is confirmed"""

    __tablename__ = "emi_forgiveness"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    transaction_id = Column(Uuid, ForeignKey("money_transaction.id", ondelete="CASCADE"), nullable=False)
    month = Column(String(7), nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    forgiven_at = Column(DateTime, nullable=False)
    task_id = Column(Uuid, nullable=False)

    transaction = relationship("MoneyTransactionRecord", back_populates="emi_forgiveness")


class TransactionProofRecord(Base):
    """Stored proof image; immutable once written"""

    __tablename__ = "transaction_proof"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    transaction_id = Column(Uuid, ForeignKey("money_transaction.id"), nullable=False, index=True)
    uploaded_by = Column(Text, nullable=False)
    proof_type = Column(String(32), nullable=False)
    file_name = Column(Text, nullable=False)
    file_path = Column(Text, nullable=False)
    size_bytes = Column(Integer, nullable=False)
    mime_type = Column(String(64), nullable=False)
    uploaded_at = Column(DateTime, nullable=False, default=utc_now)


class TaskRecord(Base):
    __tablename__ = "task"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    assigned_by = Column(Text, nullable=False, index=True)
    assigned_to = Column(Text, nullable=False, index=True)
    reference_transaction_id = Column(Uuid, ForeignKey("money_transaction.id"), nullable=False, index=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String(32), nullable=False, default="other")
    priority = Column(String(16), nullable=False, default="medium")
    location = Column(Text, nullable=True)
    due_date = Column(Date, nullable=False)
    monetary_value_cents = Column(BigInteger, nullable=False, default=0)
    status = Column(String(16), nullable=False, default="pending", index=True)

    is_emi_task = Column(Boolean, nullable=False, default=False)
    emi_forgiven_emis = Column(Integer, nullable=True)
    emi_start_month = Column(String(7), nullable=True)
    emi_end_month = Column(String(7), nullable=True)

    completed_at = Column(DateTime, nullable=True)
    completion_notes = Column(Text, nullable=True)
    confirmed_at = Column(DateTime, nullable=True)
    confirmation_notes = Column(Text, nullable=True)
    amount_repaid_cents = Column(BigInteger, nullable=False, default=0)
    declined_at = Column(DateTime, nullable=True)
    decline_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class RepaymentReminderRecord(Base):
    __tablename__ = "repayment_reminder"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    transaction_id = Column(Uuid, ForeignKey("money_transaction.id"), nullable=False, index=True)
    sender_id = Column(Text, nullable=False)
    recipient_id = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    sent_at = Column(DateTime, nullable=False, default=utc_now)


class DisputeRecord(Base):
    __tablename__ = "dispute"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    transaction_id = Column(Uuid, ForeignKey("money_transaction.id"), nullable=False, index=True)
    disputer_id = Column(Text, nullable=False, index=True)
    dispute_type = Column(String(32), nullable=False)
    description = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    resolution = Column(String(32), nullable=True)
    resolution_notes = Column(Text, nullable=True)
    resolved_by = Column(Text, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class ScoreHistoryRecord(Base):
    """Append-only audit of every Good4It score change"""

    __tablename__ = "score_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    change_type = Column(String(32), nullable=False)
    delta = Column(Integer, nullable=False)
    previous_score = Column(Integer, nullable=False)
    new_score = Column(Integer, nullable=False)
    description = Column(Text, nullable=False, default="")
    details = Column("metadata", JSON, nullable=True)
    transaction_id = Column(Uuid, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
