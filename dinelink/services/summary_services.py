from decimal import Decimal
from typing import Dict
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from dinelink.core.errors import storage_errors
from dinelink.core.permissions import BillAction, get_bill_for_action
from dinelink.core.utils import to_decimal
from dinelink.models.bill import Bill
from dinelink.models.bill_item import BillItem
from dinelink.models.item_assignment import ItemAssignment
from dinelink.models.payment import Payment, PaymentStatus
from dinelink.schemas.bill import BillDetailOut, BillSummary, UserTotal

async def load_bill_tree(db: AsyncSession, bill_id: int) -> Bill:
    q = (
        select(Bill)
        .where(Bill.id == bill_id)
        .options(
            selectinload(Bill.items)
            .selectinload(BillItem.assignments)
            .selectinload(ItemAssignment.user)
        )
        .execution_options(populate_existing=True)
    )

    with storage_errors("get bill details"):
        res = await db.execute(q)
        return res.scalar_one()

async def get_bill_details(db: AsyncSession, bill_id: int, user_id: int) -> Bill:
    bill = await get_bill_for_action(db, bill_id, user_id, BillAction.VIEW)
    return await load_bill_tree(db, bill.id)

async def list_bill_payments(db: AsyncSession, bill_id: int, user_id: int):
    bill = await get_bill_for_action(db, bill_id, user_id, BillAction.VIEW)

    q = (
        select(Payment)
        .where(Payment.bill_id == bill.id)
        .order_by(Payment.created_at, Payment.id)
    )

    with storage_errors("load payments"):
        res = await db.execute(q)
        return res.scalars().all()

def payment_status(paid: Decimal, total: Decimal) -> str:
    if paid >= total:
        return "paid"
    if paid > 0:
        return "partial"
    return "pending"

async def get_bill_summary(db: AsyncSession, bill_id: int, user_id: int) -> BillSummary:
    """
    Per-user balances for a bill, rebuilt from assignments and payments.

    Only users holding at least one assignment are listed. Completed payments
    from anyone else are left out of every total.
    """
    bill = await get_bill_details(db, bill_id, user_id)

    with storage_errors("load payments"):
        res = await db.execute(select(Payment).where(Payment.bill_id == bill.id).order_by(Payment.id))
        payments = res.scalars().all()

    totals: Dict[int, dict] = {}

    for item in bill.items:
        for assignment in item.assignments:
            row = totals.setdefault(assignment.user_id, {
                "user_id": assignment.user_id,
                "user_name": assignment.user.name,
                "user_phone": assignment.user.phone,
                "total_amount": Decimal("0"),
                "paid_amount": Decimal("0")
            })
            row["total_amount"] += to_decimal(assignment.amount)

    for payment in payments:
        if payment.status == PaymentStatus.COMPLETED.value and payment.payer_id in totals:
            totals[payment.payer_id]["paid_amount"] += to_decimal(payment.amount)

    user_totals = [
        UserTotal(
            **row,
            pending_amount=max(Decimal("0"), row["total_amount"] - row["paid_amount"]),
            payment_status=payment_status(row["paid_amount"], row["total_amount"])
        )
        for row in totals.values()
    ]

    return BillSummary(
        bill=BillDetailOut.model_validate(bill),
        user_totals=user_totals,
        total_paid=sum((u.paid_amount for u in user_totals), Decimal("0")),
        total_pending=sum((u.pending_amount for u in user_totals), Decimal("0"))
    )
