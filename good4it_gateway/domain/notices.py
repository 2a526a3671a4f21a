"""Notification templates - what the counterparty is told about each event"""

from typing import Dict, Optional, Tuple

from good4it_gateway.domain.models import EventType, LifecycleEvent, Notice

# event type -> (title, body); bodies are formatted with actor, amount, title, reason, message
TEMPLATES: Dict[EventType, Tuple[str, str]] = {
    EventType.MONEY_REQUESTED: ("New Money Request", "{actor} wants to borrow {amount} from you"),
    EventType.REQUEST_APPROVED: (
        "Request Approved",
        "{actor} approved your money request for {amount}. The money is on its way.",
    ),
    EventType.REQUEST_REJECTED: (
        "Request Declined",
        "{actor} declined your money request for {amount}. You can try asking someone else.",
    ),
    EventType.MONEY_SENT: (
        "Payment Claimed",
        "{actor} has claimed to send you {amount}. Confirm when received.",
    ),
    EventType.RECEIPT_CONFIRMED: (
        "Receipt Confirmed",
        "{actor} confirmed receiving {amount}. Transaction completed successfully.",
    ),
    EventType.REPAYMENT_SENT: (
        "Repayment Received",
        "{actor} sent a repayment of {amount}. Confirm to complete.",
    ),
    EventType.REPAYMENT_CONFIRMED: (
        "Repayment Confirmed",
        "{actor} confirmed your repayment of {amount}.",
    ),
    EventType.REPAYMENT_REJECTED: (
        "Repayment Rejected",
        "{actor} rejected your repayment confirmation{reason_suffix}. Please verify your payment proof.",
    ),
    EventType.DEBT_FORGIVEN: (
        "Debt Forgiven",
        "{actor} has forgiven your debt of {amount}. No repayment needed!",
    ),
    EventType.REPAYMENT_REMINDER: (
        "Repayment Reminder",
        "{actor} is reminding you to repay {amount}. {message}",
    ),
    EventType.TASK_ASSIGNED: ("New Task Assigned", '{actor} assigned you a task: "{title}"'),
    EventType.TASK_ACCEPTED: ("Task Accepted", "{actor} accepted your task"),
    EventType.TASK_DECLINED: ("Task Declined", "{actor} declined your task{reason_suffix}"),
    EventType.TASK_STARTED: ("Task Started", "{actor} started working on your task"),
    EventType.TASK_COMPLETED: ("Task Completed", "{actor} completed your task"),
    EventType.TASK_CONFIRMED: (
        "Task Confirmed",
        '{actor} confirmed "{title}" and credited {amount} to your loan',
    ),
    EventType.TASK_CANCELLED: ("Task Cancelled", '{actor} cancelled the task "{title}"{reason_suffix}'),
    EventType.DISPUTE_OPENED: ("Dispute Opened", "{actor} opened a dispute on your transaction of {amount}"),
    EventType.DISPUTE_RESOLVED: ("Dispute Resolved", "Your dispute on a transaction of {amount} has been resolved"),
}


def format_amount(amount_cents: int) -> str:
    return f"${amount_cents / 100:,.2f}"


def notice_for(event: LifecycleEvent, actor_name: Optional[str] = None) -> Optional[Notice]:
    """Build the notice for ``event``, or None when the event type is not announced"""
    template = TEMPLATES.get(event.event_type)
    if template is None:
        return None

    reason = event.metadata.get("reason") or event.metadata.get("rejection_reason")
    title, body = template
    body = body.format(
        actor=actor_name or "Your friend",
        amount=format_amount(event.amount_cents),
        title=event.metadata.get("title", ""),
        reason_suffix=f": {reason}" if reason else "",
        message=event.metadata.get("message", ""),
    ).strip()

    data = {"amount_cents": event.amount_cents}
    if event.task_id is not None:
        data["task_id"] = str(event.task_id)
    return Notice(
        recipient_id=event.recipient_id,
        sender_id=event.actor_id,
        event_type=event.event_type,
        title=title,
        body=body,
        amount_cents=event.amount_cents,
        related_transaction_id=event.transaction_id,
        related_request_id=event.request_id,
        data=data,
    )
