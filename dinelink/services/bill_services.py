import logging
from datetime import datetime, timezone
from typing import Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from dinelink.core.config import settings
from dinelink.core.errors import InvalidInput, InvalidState, NotFound, Unauthorized, storage_errors
from dinelink.core.permissions import (
    BillAction,
    check_event_permission,
    ensure_draft,
    ensure_event_participants,
    get_bill_for_action,
    get_event_access,
    is_allowed,
)
from dinelink.core.utils import qround
from dinelink.db.session import unit_of_work
from dinelink.models.bill import Bill, BillStatus
from dinelink.models.bill_item import BillItem
from dinelink.models.payment import Payment, PaymentStatus
from dinelink.schemas.bill import BillCreate, BillItemCreate
from dinelink.schemas.payment import PaymentCreate, PaymentMethod
from dinelink.services.allocation_services import calculate_totals
from dinelink.services.notification_services import (
    notify_bill_finalized,
    notify_payment_received,
    notify_payment_request,
)

logger = logging.getLogger(__name__)

PAYMENT_METHOD_LABELS = {
    PaymentMethod.BANK_TRANSFER: {"en": "Bank Transfer", "zh": "銀行轉帳"},
    PaymentMethod.FPS: {"en": "FPS (Fast Payment System)", "zh": "轉數快"},
    PaymentMethod.PAYME: {"en": "PayMe", "zh": "PayMe"},
    PaymentMethod.ALIPAY_HK: {"en": "AlipayHK", "zh": "支付寶香港"},
    PaymentMethod.WECHAT_PAY_HK: {"en": "WeChat Pay HK", "zh": "微信支付香港"},
    PaymentMethod.CASH: {"en": "Cash", "zh": "現金"},
}

def get_payment_methods(language: str = "en"):
    if language not in ("en", "zh"):
        raise InvalidInput("Language must be 'en' or 'zh'")

    return [
        {"value": method.value, "label": labels[language]}
        for method, labels in PAYMENT_METHOD_LABELS.items()
    ]

async def _send_quietly(what: str, send, db: AsyncSession, obj, *args):
    # notifications never undo the write that triggered them
    try:
        await send(db, obj, *args)
    except Exception as e:
        logger.warning("Could not send %s notification: %s", what, e)
        # a failed notification write rolls the session back and expires obj
        with storage_errors("reload after failed notification"):
            await db.rollback()
            await db.refresh(obj)

async def create_bill(db: AsyncSession, data: BillCreate, creator_id: int) -> Bill:
    if data.subtotal is None or data.subtotal <= 0:
        raise InvalidInput("Please enter a valid subtotal")

    if data.tip_amount < 0:
        raise InvalidInput("Tip amount cannot be negative")

    await check_event_permission(db, data.event_id, creator_id, BillAction.EDIT)

    totals = calculate_totals(data.subtotal, data.service_charge_rate, data.tax_rate)
    service_charge = totals.service_charge if data.service_charge is None else data.service_charge
    tax_amount = totals.tax_amount if data.tax_amount is None else data.tax_amount
    total_amount = data.subtotal + service_charge + tax_amount + data.tip_amount

    if data.total_amount is not None and qround(data.total_amount) != qround(total_amount):
        raise InvalidInput("Total amount must equal subtotal + service charge + tax + tip")

    bill = Bill(
        event_id=data.event_id,
        restaurant_id=data.restaurant_id,
        subtotal=data.subtotal,
        service_charge=service_charge,
        tax_amount=tax_amount,
        tip_amount=data.tip_amount,
        total_amount=total_amount,
        currency=data.currency or settings.DEFAULT_CURRENCY,
        status=BillStatus.DRAFT.value,
        receipt_image_url=data.receipt_image_url,
        created_by=creator_id
    )

    async with unit_of_work(db, "create bill"):
        db.add(bill)

    with storage_errors("create bill"):
        await db.refresh(bill)

    logger.info("Bill %s created for event %s by user %s", bill.id, bill.event_id, creator_id)
    return bill

async def add_bill_items(
    db: AsyncSession,
    bill_id: int,
    items: Sequence[BillItemCreate],
    user_id: int
) -> list[BillItem]:
    if not items:
        raise InvalidInput("Please add at least one item")

    for item in items:
        if not item.name or not item.name.strip():
            raise InvalidInput("Every item needs a name")
        if item.price < 0:
            raise InvalidInput("Item price cannot be negative")
        if item.quantity is not None and item.quantity < 1:
            raise InvalidInput("Item quantity must be at least 1")

    bill = await get_bill_for_action(db, bill_id, user_id, BillAction.EDIT)
    ensure_draft(bill)

    rows = [
        BillItem(
            bill_id=bill.id,
            name=item.name.strip(),
            name_chinese=item.name_chinese,
            price=item.price,
            quantity=item.quantity if item.quantity is not None else 1,
            category=item.category,
            is_shared=item.is_shared
        )
        for item in items
    ]

    async with unit_of_work(db, "add bill items"):
        db.add_all(rows)

    return rows

async def finalize_bill(db: AsyncSession, bill_id: int, user_id: int, notifier=notify_bill_finalized) -> Bill:
    bill = await get_bill_for_action(db, bill_id, user_id, BillAction.FINALIZE)

    if bill.is_finalized:
        raise InvalidState("Bill is already finalized")

    async with unit_of_work(db, "finalize bill"):
        bill.status = BillStatus.FINALIZED.value

    with storage_errors("finalize bill"):
        await db.refresh(bill)

    logger.info("Bill %s finalized by user %s", bill.id, user_id)
    await _send_quietly("bill finalized", notifier, db, bill, user_id)
    return bill

async def create_payment_request(
    db: AsyncSession,
    bill_id: int,
    data: PaymentCreate,
    requester_id: int,
    notifier=notify_payment_request
) -> Payment:
    if data.amount <= 0:
        raise InvalidInput("Payment amount must be positive")

    if data.payer_id == data.recipient_id:
        raise InvalidInput("Payer and recipient must be different users")

    bill = await get_bill_for_action(db, bill_id, requester_id, BillAction.EDIT)

    if not bill.is_finalized:
        raise InvalidState("Bill must be finalized before requesting payments")

    await ensure_event_participants(
        db,
        bill.event_id,
        [data.payer_id, data.recipient_id],
        "Payer and recipient must belong to the event"
    )

    payment = Payment(
        bill_id=bill.id,
        payer_id=data.payer_id,
        recipient_id=data.recipient_id,
        amount=qround(data.amount),
        currency=bill.currency,
        payment_method=PaymentMethod(data.payment_method).value,
        status=PaymentStatus.PENDING.value
    )

    async with unit_of_work(db, "create payment request"):
        db.add(payment)

    with storage_errors("create payment request"):
        await db.refresh(payment)

    logger.info("Payment %s requested from user %s on bill %s", payment.id, payment.payer_id, bill.id)
    await _send_quietly("payment request", notifier, db, payment, requester_id)
    return payment

async def complete_payment(
    db: AsyncSession,
    payment_id: int,
    user_id: int,
    transaction_id: str | None = None,
    payment_proof_url: str | None = None,
    notifier=notify_payment_received
) -> Payment:
    with storage_errors("load payment"):
        res = await db.execute(select(Payment).where(Payment.id == payment_id))
        payment = res.scalar_one_or_none()

    if not payment:
        raise NotFound("Payment not found")

    if payment.payer_id != user_id:
        raise Unauthorized("Unauthorized to complete this payment")

    async with unit_of_work(db, "complete payment"):
        payment.status = PaymentStatus.COMPLETED.value
        payment.transaction_id = transaction_id
        payment.payment_proof_url = payment_proof_url
        payment.completed_at = datetime.now(timezone.utc)

    logger.info("Payment %s completed by user %s", payment.id, user_id)
    await _send_quietly("payment received", notifier, db, payment)
    return payment

async def list_event_bills(db: AsyncSession, event_id: int, user_id: int):
    access = await get_event_access(db, event_id, user_id)

    if access is None or not is_allowed(access, user_id, BillAction.VIEW):
        return []

    q = (
        select(Bill)
        .where(Bill.event_id == event_id)
        .order_by(Bill.created_at.desc(), Bill.id.desc())
    )

    with storage_errors("get event bills"):
        res = await db.execute(q)
        return res.scalars().all()
