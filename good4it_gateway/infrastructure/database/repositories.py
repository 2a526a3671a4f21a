"""Data access layer - maps ORM rows to domain aggregates and back

Repositories flush but never commit; the route handler owns the unit of work.
A flush that hits a row changed by another session raises
ConcurrencyConflictError.
"""

import uuid
from typing import Dict, Iterable, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from good4it_gateway.domain.exceptions import ConcurrencyConflictError, NotFoundError
from good4it_gateway.domain.models import (
    ACTIVE_TASK_STATUSES,
    Dispute,
    DisputeResolution,
    DisputeStatus,
    DisputeType,
    EmiDetails,
    EmiForgivenessEntry,
    EmiFrequency,
    MoneyRequest,
    MoneyTransaction,
    PaymentType,
    ProofReference,
    ProofType,
    RepaymentReminder,
    RequestStatus,
    ScoreChange,
    ScoreDelta,
    Task,
    TaskCategory,
    TaskEmiForgiveness,
    TaskPriority,
    TaskStatus,
    TransactionStatus,
)
from good4it_gateway.domain.scoring import clamp_score
from good4it_gateway.infrastructure.database.models import (
    DisputeRecord,
    EmiForgivenessRecord,
    Friendship,
    MoneyRequestRecord,
    MoneyTransactionRecord,
    RepaymentReminderRecord,
    ScoreHistoryRecord,
    TaskRecord,
    TransactionProofRecord,
    UserAccount,
)


class _Repository:
    entity_name = "Entity"

    def __init__(self, db: Session):
        self.db = db

    def _flush(self) -> None:
        try:
            self.db.flush()
        except StaleDataError as e:
            raise ConcurrencyConflictError(
                f"{self.entity_name} was modified by another operation, reload and retry"
            ) from e
        except IntegrityError as e:
            raise ConcurrencyConflictError(
                f"{self.entity_name} conflicts with a concurrent change, reload and retry"
            ) from e

    def _check_version(self, record, entity) -> None:
        if record.version != entity.version:
            raise ConcurrencyConflictError(
                f"{self.entity_name} was modified by another operation, reload and retry"
            )


class RequestRepository(_Repository):
    """Repository for money requests"""

    entity_name = "Money request"

    @staticmethod
    def _to_domain(record: MoneyRequestRecord) -> MoneyRequest:
        emi_details = None
        if record.emi_installments is not None:
            emi_details = EmiDetails(
                number_of_installments=record.emi_installments,
                installment_cents=record.emi_installment_cents,
                frequency=EmiFrequency(record.emi_frequency),
            )
        return MoneyRequest(
            id=record.id,
            requestor_id=record.requestor_id,
            lender_id=record.lender_id,
            amount_cents=record.amount_cents,
            payment_type=PaymentType(record.payment_type),
            description=record.description,
            emi_details=emi_details,
            status=RequestStatus(record.status),
            rejection_reason=record.rejection_reason,
            rejected_at=record.rejected_at,
            approved_at=record.approved_at,
            created_at=record.created_at,
            version=record.version,
        )

    @staticmethod
    def _apply(record: MoneyRequestRecord, request: MoneyRequest) -> None:
        record.status = request.status.value
        record.rejection_reason = request.rejection_reason
        record.rejected_at = request.rejected_at
        record.approved_at = request.approved_at

    def add(self, request: MoneyRequest) -> MoneyRequest:
        emi = request.emi_details
        record = MoneyRequestRecord(
            id=request.id,
            requestor_id=request.requestor_id,
            lender_id=request.lender_id,
            amount_cents=request.amount_cents,
            payment_type=request.payment_type.value,
            description=request.description,
            emi_installments=emi.number_of_installments if emi else None,
            emi_installment_cents=emi.installment_cents if emi else None,
            emi_frequency=emi.frequency.value if emi else None,
            created_at=request.created_at,
        )
        self._apply(record, request)
        self.db.add(record)
        self._flush()
        request.version = record.version
        return request

    def get(self, request_id: uuid.UUID) -> MoneyRequest:
        record = self.db.get(MoneyRequestRecord, request_id)
        if record is None:
            raise NotFoundError("Money request not found", code="REQUEST_NOT_FOUND")
        return self._to_domain(record)

    def save(self, request: MoneyRequest) -> MoneyRequest:
        record = self.db.get(MoneyRequestRecord, request.id)
        self._check_version(record, request)
        self._apply(record, request)
        self._flush()
        request.version = record.version
        return request

    def list_for_user(self, user_id: str, box: str = "all", limit: int = 50, offset: int = 0) -> List[MoneyRequest]:
        """
        box:
        - sent: requests the user made
        - received: pending requests waiting on the user as lender
        - rejected: the user's requests that were declined
        - all: every request the user is a party to
        """
        query = self.db.query(MoneyRequestRecord)
        if box == "sent":
            query = query.filter(MoneyRequestRecord.requestor_id == user_id)
        elif box == "received":
            query = query.filter(
                MoneyRequestRecord.lender_id == user_id,
                MoneyRequestRecord.status == RequestStatus.PENDING.value,
            )
        elif box == "rejected":
            query = query.filter(
                MoneyRequestRecord.requestor_id == user_id,
                MoneyRequestRecord.status == RequestStatus.REJECTED.value,
            )
        else:
            query = query.filter(
                or_(MoneyRequestRecord.requestor_id == user_id, MoneyRequestRecord.lender_id == user_id)
            )
        records = query.order_by(MoneyRequestRecord.created_at.desc()).offset(offset).limit(limit).all()
        return [self._to_domain(r) for r in records]


class TransactionRepository(_Repository):
    """Repository for money transactions and their EMI forgiveness entries"""

    entity_name = "Transaction"

    @staticmethod
    def _to_domain(record: MoneyTransactionRecord) -> MoneyTransaction:
        return MoneyTransaction(
            id=record.id,
            request_id=record.request_id,
            requestor_id=record.requestor_id,
            lender_id=record.lender_id,
            amount_cents=record.amount_cents,
            description=record.description,
            status=TransactionStatus(record.status),
            repayment_amount_cents=record.repayment_amount_cents,
            money_sent_at=record.money_sent_at,
            money_received_at=record.money_received_at,
            repayment_sent_at=record.repayment_sent_at,
            repayment_received_at=record.repayment_received_at,
            repayment_rejected_at=record.repayment_rejected_at,
            repayment_rejection_reason=record.repayment_rejection_reason,
            forgiven_at=record.forgiven_at,
            forgiven_amount_cents=record.forgiven_amount_cents,
            next_payment_due_at=record.next_payment_due_at,
            money_sent_proof_id=record.money_sent_proof_id,
            money_received_proof_id=record.money_received_proof_id,
            repayment_sent_proof_id=record.repayment_sent_proof_id,
            repayment_received_proof_id=record.repayment_received_proof_id,
            emi_forgiveness=[
                EmiForgivenessEntry(
                    month=entry.month,
                    amount_cents=entry.amount_cents,
                    forgiven_at=entry.forgiven_at,
                    task_id=entry.task_id,
                )
                for entry in record.emi_forgiveness
            ],
            total_forgiven_emis=record.total_forgiven_emis,
            created_at=record.created_at,
            version=record.version,
        )

    @staticmethod
    def _apply(record: MoneyTransactionRecord, transaction: MoneyTransaction) -> None:
        for name in (
            "repayment_amount_cents",
            "money_sent_at",
            "money_received_at",
            "repayment_sent_at",
            "repayment_received_at",
            "repayment_rejected_at",
            "repayment_rejection_reason",
            "forgiven_at",
            "forgiven_amount_cents",
            "next_payment_due_at",
            "money_sent_proof_id",
            "money_received_proof_id",
            "repayment_sent_proof_id",
            "repayment_received_proof_id",
            "total_forgiven_emis",
        ):
            setattr(record, name, getattr(transaction, name))
        record.status = transaction.status.value

        # entries are append-only
        for entry in transaction.emi_forgiveness[len(record.emi_forgiveness):]:
            record.emi_forgiveness.append(
                EmiForgivenessRecord(
                    month=entry.month,
                    amount_cents=entry.amount_cents,
                    forgiven_at=entry.forgiven_at,
                    task_id=entry.task_id,
                )
            )

    def add(self, transaction: MoneyTransaction) -> MoneyTransaction:
        record = MoneyTransactionRecord(
            id=transaction.id,
            request_id=transaction.request_id,
            requestor_id=transaction.requestor_id,
            lender_id=transaction.lender_id,
            amount_cents=transaction.amount_cents,
            description=transaction.description,
            created_at=transaction.created_at,
        )
        self._apply(record, transaction)
        self.db.add(record)
        self._flush()
        transaction.version = record.version
        return transaction

    def get(self, transaction_id: uuid.UUID) -> MoneyTransaction:
        record = self.db.get(MoneyTransactionRecord, transaction_id)
        if record is None:
            raise NotFoundError("Transaction not found", code="TRANSACTION_NOT_FOUND")
        return self._to_domain(record)

    def get_by_request(self, request_id: uuid.UUID) -> Optional[MoneyTransaction]:
        record = (
            self.db.query(MoneyTransactionRecord)
            .filter(MoneyTransactionRecord.request_id == request_id)
            .first()
        )
        return self._to_domain(record) if record else None

    def save(self, transaction: MoneyTransaction) -> MoneyTransaction:
        record = self.db.get(MoneyTransactionRecord, transaction.id)
        self._check_version(record, transaction)
        self._apply(record, transaction)
        self._flush()
        transaction.version = record.version
        return transaction

    def touch(self, transaction: MoneyTransaction) -> MoneyTransaction:
        """
        Bump the version without changing any field.

        Writes that depend on the transaction (a new task) call this in the same
        unit of work, so two of them racing on one transaction conflict.
        """
        record = self.db.get(MoneyTransactionRecord, transaction.id)
        self._check_version(record, transaction)
        flag_modified(record, "status")
        self._flush()
        transaction.version = record.version
        return transaction

    def list_for_user(
        self,
        user_id: str,
        role: str = "all",
        status: Optional[TransactionStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[MoneyTransaction]:
        """role: lent | borrowed | all"""
        query = self.db.query(MoneyTransactionRecord)
        if role == "lent":
            query = query.filter(MoneyTransactionRecord.lender_id == user_id)
        elif role == "borrowed":
            query = query.filter(MoneyTransactionRecord.requestor_id == user_id)
        else:
            query = query.filter(
                or_(MoneyTransactionRecord.lender_id == user_id, MoneyTransactionRecord.requestor_id == user_id)
            )
        if status is not None:
            query = query.filter(MoneyTransactionRecord.status == TransactionStatus(status).value)
        records = query.order_by(MoneyTransactionRecord.created_at.desc()).offset(offset).limit(limit).all()
        return [self._to_domain(r) for r in records]


class TaskRepository(_Repository):
    """Repository for task-for-debt assignments"""

    entity_name = "Task"

    @staticmethod
    def _to_domain(record: TaskRecord) -> Task:
        emi_forgiveness = None
        if record.is_emi_task and record.emi_forgiven_emis is not None:
            emi_forgiveness = TaskEmiForgiveness(
                forgiven_emis=record.emi_forgiven_emis,
                start_month=record.emi_start_month,
                end_month=record.emi_end_month,
            )
        return Task(
            id=record.id,
            assigned_by=record.assigned_by,
            assigned_to=record.assigned_to,
            reference_transaction_id=record.reference_transaction_id,
            title=record.title,
            description=record.description,
            category=TaskCategory(record.category),
            priority=TaskPriority(record.priority),
            location=record.location,
            due_date=record.due_date,
            monetary_value_cents=record.monetary_value_cents,
            status=TaskStatus(record.status),
            is_emi_task=record.is_emi_task,
            emi_forgiveness=emi_forgiveness,
            completed_at=record.completed_at,
            completion_notes=record.completion_notes,
            confirmed_at=record.confirmed_at,
            confirmation_notes=record.confirmation_notes,
            amount_repaid_cents=record.amount_repaid_cents,
            declined_at=record.declined_at,
            decline_reason=record.decline_reason,
            cancelled_at=record.cancelled_at,
            cancellation_reason=record.cancellation_reason,
            created_at=record.created_at,
            version=record.version,
        )

    @staticmethod
    def _apply(record: TaskRecord, task: Task) -> None:
        for name in (
            "completed_at",
            "completion_notes",
            "confirmed_at",
            "confirmation_notes",
            "amount_repaid_cents",
            "declined_at",
            "decline_reason",
            "cancelled_at",
            "cancellation_reason",
        ):
            setattr(record, name, getattr(task, name))
        record.status = task.status.value

    def add(self, task: Task) -> Task:
        window = task.emi_forgiveness
        record = TaskRecord(
            id=task.id,
            assigned_by=task.assigned_by,
            assigned_to=task.assigned_to,
            reference_transaction_id=task.reference_transaction_id,
            title=task.title,
            description=task.description,
            category=task.category.value,
            priority=task.priority.value,
            location=task.location,
            due_date=task.due_date,
            monetary_value_cents=task.monetary_value_cents,
            is_emi_task=task.is_emi_task,
            emi_forgiven_emis=window.forgiven_emis if window else None,
            emi_start_month=window.start_month if window else None,
            emi_end_month=window.end_month if window else None,
            created_at=task.created_at,
        )
        self._apply(record, task)
        self.db.add(record)
        self._flush()
        task.version = record.version
        return task

    def get(self, task_id: uuid.UUID) -> Task:
        record = self.db.get(TaskRecord, task_id)
        if record is None:
            raise NotFoundError("Task not found", code="TASK_NOT_FOUND")
        return self._to_domain(record)

    def save(self, task: Task) -> Task:
        record = self.db.get(TaskRecord, task.id)
        self._check_version(record, task)
        self._apply(record, task)
        self._flush()
        task.version = record.version
        return task

    def has_active_task(self, transaction_id: uuid.UUID) -> bool:
        return (
            self.db.query(TaskRecord.id)
            .filter(
                TaskRecord.reference_transaction_id == transaction_id,
                TaskRecord.status.in_([s.value for s in ACTIVE_TASK_STATUSES]),
            )
            .first()
            is not None
        )

    def list_for_transaction(self, transaction_id: uuid.UUID) -> List[Task]:
        records = (
            self.db.query(TaskRecord)
            .filter(TaskRecord.reference_transaction_id == transaction_id)
            .order_by(TaskRecord.created_at.asc())
            .all()
        )
        return [self._to_domain(r) for r in records]

    def list_for_user(
        self,
        user_id: str,
        role: str = "all",
        status: Optional[TaskStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Task]:
        """role: assigned_by | assigned_to | all"""
        query = self.db.query(TaskRecord)
        if role == "assigned_by":
            query = query.filter(TaskRecord.assigned_by == user_id)
        elif role == "assigned_to":
            query = query.filter(TaskRecord.assigned_to == user_id)
        else:
            query = query.filter(or_(TaskRecord.assigned_by == user_id, TaskRecord.assigned_to == user_id))
        if status is not None:
            query = query.filter(TaskRecord.status == TaskStatus(status).value)
        records = query.order_by(TaskRecord.created_at.desc()).offset(offset).limit(limit).all()
        return [self._to_domain(r) for r in records]


class ProofRepository(_Repository):
    """Repository for stored proof metadata"""

    entity_name = "Proof"

    @staticmethod
    def _to_domain(record: TransactionProofRecord) -> ProofReference:
        return ProofReference(
            id=record.id,
            transaction_id=record.transaction_id,
            uploaded_by=record.uploaded_by,
            proof_type=ProofType(record.proof_type),
            file_name=record.file_name,
            size_bytes=record.size_bytes,
            mime_type=record.mime_type,
            uploaded_at=record.uploaded_at,
        )

    def add(self, reference: ProofReference, file_path: str) -> ProofReference:
        self.db.add(
            TransactionProofRecord(
                id=reference.id,
                transaction_id=reference.transaction_id,
                uploaded_by=reference.uploaded_by,
                proof_type=reference.proof_type.value,
                file_name=reference.file_name,
                file_path=file_path,
                size_bytes=reference.size_bytes,
                mime_type=reference.mime_type,
                uploaded_at=reference.uploaded_at,
            )
        )
        self._flush()
        return reference

    def list_for_transaction(self, transaction_id: uuid.UUID) -> List[ProofReference]:
        records = (
            self.db.query(TransactionProofRecord)
            .filter(TransactionProofRecord.transaction_id == transaction_id)
            .order_by(TransactionProofRecord.uploaded_at.asc())
            .all()
        )
        return [self._to_domain(r) for r in records]


class ReminderRepository(_Repository):
    entity_name = "Reminder"

    def add(self, reminder: RepaymentReminder) -> RepaymentReminder:
        self.db.add(
            RepaymentReminderRecord(
                id=reminder.id,
                transaction_id=reminder.transaction_id,
                sender_id=reminder.sender_id,
                recipient_id=reminder.recipient_id,
                message=reminder.message,
                sent_at=reminder.sent_at,
            )
        )
        self._flush()
        return reminder

    def list_for_transaction(self, transaction_id: uuid.UUID) -> List[RepaymentReminder]:
        records = (
            self.db.query(RepaymentReminderRecord)
            .filter(RepaymentReminderRecord.transaction_id == transaction_id)
            .order_by(RepaymentReminderRecord.sent_at.desc())
            .all()
        )
        return [
            RepaymentReminder(
                id=r.id,
                transaction_id=r.transaction_id,
                sender_id=r.sender_id,
                recipient_id=r.recipient_id,
                message=r.message,
                sent_at=r.sent_at,
            )
            for r in records
        ]


class DisputeRepository(_Repository):
    entity_name = "Dispute"

    @staticmethod
    def _to_domain(record: DisputeRecord) -> Dispute:
        return Dispute(
            id=record.id,
            transaction_id=record.transaction_id,
            disputer_id=record.disputer_id,
            dispute_type=DisputeType(record.dispute_type),
            description=record.description,
            status=DisputeStatus(record.status),
            resolution=DisputeResolution(record.resolution) if record.resolution else None,
            resolution_notes=record.resolution_notes,
            resolved_by=record.resolved_by,
            resolved_at=record.resolved_at,
            created_at=record.created_at,
        )

    def add(self, dispute: Dispute) -> Dispute:
        self.db.add(
            DisputeRecord(
                id=dispute.id,
                transaction_id=dispute.transaction_id,
                disputer_id=dispute.disputer_id,
                dispute_type=dispute.dispute_type.value,
                description=dispute.description,
                status=dispute.status.value,
                created_at=dispute.created_at,
            )
        )
        self._flush()
        return dispute

    def get(self, dispute_id: uuid.UUID) -> Dispute:
        record = self.db.get(DisputeRecord, dispute_id)
        if record is None:
            raise NotFoundError("Dispute not found", code="DISPUTE_NOT_FOUND")
        return self._to_domain(record)

    def save(self, dispute: Dispute) -> Dispute:
        record = self.db.get(DisputeRecord, dispute.id)
        record.status = dispute.status.value
        record.resolution = dispute.resolution.value if dispute.resolution else None
        record.resolution_notes = dispute.resolution_notes
        record.resolved_by = dispute.resolved_by
        record.resolved_at = dispute.resolved_at
        self._flush()
        return dispute

    def has_pending(self, transaction_id: uuid.UUID, disputer_id: str) -> bool:
        return (
            self.db.query(DisputeRecord.id)
            .filter(
                DisputeRecord.transaction_id == transaction_id,
                DisputeRecord.disputer_id == disputer_id,
                DisputeRecord.status == DisputeStatus.PENDING.value,
            )
            .first()
            is not None
        )

    def list_for_user(self, user_id: str, status: Optional[DisputeStatus] = None) -> List[Dispute]:
        """Disputes the user raised or that were raised on their transactions"""
        query = self.db.query(DisputeRecord).join(
            MoneyTransactionRecord, MoneyTransactionRecord.id == DisputeRecord.transaction_id
        ).filter(
            or_(
                DisputeRecord.disputer_id == user_id,
                MoneyTransactionRecord.lender_id == user_id,
                MoneyTransactionRecord.requestor_id == user_id,
            )
        )
        if status is not None:
            query = query.filter(DisputeRecord.status == DisputeStatus(status).value)
        return [self._to_domain(r) for r in query.order_by(DisputeRecord.created_at.desc()).all()]


class UserRepository(_Repository):
    """Read-only view of users and friendships"""

    entity_name = "User"

    def are_friends(self, user_id: str, other_id: str) -> bool:
        return (
            self.db.query(Friendship.id)
            .filter(
                or_(
                    and_(Friendship.user_id == user_id, Friendship.friend_id == other_id),
                    and_(Friendship.user_id == other_id, Friendship.friend_id == user_id),
                )
            )
            .first()
            is not None
        )

    def display_names(self, user_ids: Iterable[str]) -> Dict[str, str]:
        ids = set(user_ids)
        if not ids:
            return {}
        rows = self.db.query(UserAccount.id, UserAccount.full_name).filter(UserAccount.id.in_(ids)).all()
        return {user_id: full_name for user_id, full_name in rows}


class ScoreLedgerRepository(_Repository):
    """Good4It score and its append-only history"""

    entity_name = "Score"

    def __init__(self, db: Session, minimum: int = 0, maximum: int = 100, default: int = 50):
        super().__init__(db)
        self.minimum = minimum
        self.maximum = maximum
        self.default = default

    def _account(self, user_id: str) -> UserAccount:
        account = self.db.get(UserAccount, user_id)
        if account is None:
            account = UserAccount(id=user_id, full_name=user_id, good4it_score=self.default)
            self.db.add(account)
        return account

    def get_score(self, user_id: str) -> int:
        account = self.db.get(UserAccount, user_id)
        return account.good4it_score if account else self.default

    def apply_score_delta(self, delta: ScoreDelta) -> ScoreChange:
        """Move the user's score by ``delta`` (clamped) and append a history row"""
        account = self._account(delta.user_id)
        previous = account.good4it_score if account.good4it_score is not None else self.default
        new_score = clamp_score(previous + delta.delta, self.minimum, self.maximum)
        account.good4it_score = new_score

        self.db.add(
            ScoreHistoryRecord(
                user_id=delta.user_id,
                change_type=delta.change_type,
                delta=new_score - previous,
                previous_score=previous,
                new_score=new_score,
                description=delta.description,
                details=delta.metadata,
                transaction_id=delta.transaction_id,
            )
        )
        self._flush()
        return ScoreChange(previous_score=previous, new_score=new_score, delta=new_score - previous)

    def history(self, user_id: str, limit: int = 20, offset: int = 0) -> List[ScoreHistoryRecord]:
        return (
            self.db.query(ScoreHistoryRecord)
            .filter(ScoreHistoryRecord.user_id == user_id)
            .order_by(ScoreHistoryRecord.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
