import enum
import logging
from datetime import datetime, timezone
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from dinelink.core.errors import NotFound, storage_errors
from dinelink.core.utils import format_amount
from dinelink.db.session import unit_of_work
from dinelink.models.bill import Bill
from dinelink.models.bill_item import BillItem
from dinelink.models.event import DiningEvent
from dinelink.models.item_assignment import ItemAssignment
from dinelink.models.notification import Notification
from dinelink.models.payment import Payment
from dinelink.models.user import User

logger = logging.getLogger(__name__)

class NotificationType(str, enum.Enum):
    EVENT_INVITATION = "event_invitation"
    EVENT_UPDATE = "event_update"
    PAYMENT_REQUEST = "payment_request"
    PAYMENT_RECEIVED = "payment_received"
    BILL_SPLIT = "bill_split"

async def create_notification(
    db: AsyncSession,
    user_id: int,
    notification_type: NotificationType,
    title: str,
    body: str,
    data: dict | None = None
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=NotificationType(notification_type).value,
        title=title,
        body=body,
        data=data or {},
        is_read=False
    )

    async with unit_of_work(db, "create notification"):
        db.add(notification)

    with storage_errors("create notification"):
        await db.refresh(notification)

    return notification

async def get_user_notifications(db: AsyncSession, user_id: int, limit: int = 20):
    q = (
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.sent_at.desc(), Notification.id.desc())
        .limit(limit)
    )

    with storage_errors("get notifications"):
        res = await db.execute(q)
        return res.scalars().all()

async def mark_as_read(db: AsyncSession, notification_id: int, user_id: int) -> Notification:
    with storage_errors("load notification"):
        res = await db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id
            )
        )
        notification = res.scalar_one_or_none()

    if not notification:
        raise NotFound("Notification not found")

    async with unit_of_work(db, "mark notification as read"):
        notification.is_read = True
        notification.read_at = datetime.now(timezone.utc)

    return notification

async def mark_all_as_read(db: AsyncSession, user_id: int) -> int:
    with storage_errors("load notifications"):
        res = await db.execute(
            select(Notification).where(
                Notification.user_id == user_id,
                Notification.is_read == False
            )
        )
        unread = res.scalars().all()

    now = datetime.now(timezone.utc)
    async with unit_of_work(db, "mark all notifications as read"):
        for notification in unread:
            notification.is_read = True
            notification.read_at = now

    return len(unread)

async def get_unread_count(db: AsyncSession, user_id: int) -> int:
    q = select(func.count(Notification.id)).where(
        Notification.user_id == user_id,
        Notification.is_read == False
    )

    with storage_errors("count notifications"):
        res = await db.execute(q)
        return res.scalar() or 0

async def _event_name(db: AsyncSession, bill_id: int) -> str | None:
    res = await db.execute(
        select(DiningEvent.name)
        .join(Bill, Bill.event_id == DiningEvent.id)
        .where(Bill.id == bill_id)
    )
    return res.scalar_one_or_none()

async def _user_name(db: AsyncSession, user_id: int) -> str | None:
    res = await db.execute(select(User.name).where(User.id == user_id))
    return res.scalar_one_or_none()

async def notify_payment_request(db: AsyncSession, payment: Payment, requester_id: int):
    with storage_errors("load payment request details"):
        requester_name = await _user_name(db, requester_id)
        event_name = await _event_name(db, payment.bill_id)

    if not requester_name or not event_name:
        logger.warning("Skipping payment request notification for payment %s", payment.id)
        return None

    return await create_notification(
        db,
        payment.payer_id,
        NotificationType.PAYMENT_REQUEST,
        "Payment Request",
        f'{requester_name} is requesting {payment.currency}${payment.amount} for "{event_name}"',
        {
            "amount": str(payment.amount),
            "currency": payment.currency,
            "event_name": event_name,
            "requester_id": requester_id,
            "requester_name": requester_name,
            "bill_id": payment.bill_id,
            "payment_id": payment.id
        }
    )

async def notify_payment_received(db: AsyncSession, payment: Payment):
    with storage_errors("load payment details"):
        payer_name = await _user_name(db, payment.payer_id)
        event_name = await _event_name(db, payment.bill_id)

    if not payer_name or not event_name:
        logger.warning("Skipping payment received notification for payment %s", payment.id)
        return None

    return await create_notification(
        db,
        payment.recipient_id,
        NotificationType.PAYMENT_RECEIVED,
        "Payment Received",
        f'{payer_name} paid {format_amount(payment.amount, payment.currency)} for "{event_name}"',
        {
            "amount": str(payment.amount),
            "currency": payment.currency,
            "payer_id": payment.payer_id,
            "bill_id": payment.bill_id,
            "payment_id": payment.id
        }
    )

async def notify_bill_finalized(db: AsyncSession, bill: Bill, finalized_by: int):
    """Tell every member holding a share of the bill what they owe."""
    q = (
        select(ItemAssignment.user_id, func.sum(ItemAssignment.amount))
        .join(BillItem, BillItem.id == ItemAssignment.bill_item_id)
        .where(BillItem.bill_id == bill.id)
        .group_by(ItemAssignment.user_id)
    )

    with storage_errors("load bill shares"):
        res = await db.execute(q)
        shares = res.all()
        event_name = await _event_name(db, bill.id)

    sent = []
    for user_id, share in shares:
        if user_id == finalized_by:
            continue

        sent.append(await create_notification(
            db,
            user_id,
            NotificationType.BILL_SPLIT,
            "Bill Finalized",
            f'Your share of "{event_name}" is {format_amount(share, bill.currency)}',
            {
                "bill_id": bill.id,
                "amount": str(share),
                "currency": bill.currency,
                "event_name": event_name
            }
        ))

    return sent
