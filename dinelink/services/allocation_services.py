import logging
from decimal import Decimal, ROUND_DOWN
from typing import Dict, List, Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from dinelink.core.config import settings
from dinelink.core.errors import InvalidInput, InvalidState, NotFound, storage_errors
from dinelink.core.permissions import BillAction, ensure_draft, ensure_event_participants, get_bill_for_action
from dinelink.core.utils import CENTS, equal_portion, qround, to_decimal
from dinelink.db.session import unit_of_work
from dinelink.models.bill_item import BillItem
from dinelink.models.item_assignment import ItemAssignment
from dinelink.schemas.bill import AssignmentInput, BillTotals

logger = logging.getLogger(__name__)

def calculate_totals(subtotal, service_charge_rate=None, tax_rate=None) -> BillTotals:
    """
    Service charge and tax are rounded to cents on their own, then added to
    the subtotal as they are. Tip is not part of this total.
    """
    if service_charge_rate is None:
        service_charge_rate = settings.DEFAULT_SERVICE_CHARGE_RATE
    if tax_rate is None:
        tax_rate = settings.DEFAULT_TAX_RATE

    subtotal = to_decimal(subtotal)
    service_charge = qround(subtotal * to_decimal(service_charge_rate))
    tax_amount = qround(subtotal * to_decimal(tax_rate))

    return BillTotals(
        subtotal=subtotal,
        service_charge=service_charge,
        tax_amount=tax_amount,
        total_amount=subtotal + service_charge + tax_amount
    )

def allocate_amounts(total: Decimal, portions: Sequence[Decimal]) -> List[Decimal]:
    """
    Split `total` by `portions` into cent amounts that add up to `total`.

    Portions are weighted by their sum, so 1/3 rounded to 8 places still
    covers the whole item. Every share is rounded down first; the cents still
    missing go one at a time to the largest remainders, earlier entries
    winning ties.
    """
    total = to_decimal(total)
    weights = [to_decimal(p) for p in portions]
    weight_sum = sum(weights, Decimal("0"))
    if weight_sum <= 0:
        return [Decimal("0") for _ in weights]

    raw = [total * w / weight_sum for w in weights]
    amounts = [r.quantize(CENTS, rounding=ROUND_DOWN) for r in raw]

    target = qround(total)
    leftover = int((target - sum(amounts, Decimal("0"))) / CENTS)

    by_remainder = sorted(range(len(raw)), key=lambda i: raw[i] - amounts[i], reverse=True)
    for i in by_remainder[:leftover]:
        amounts[i] += CENTS

    return amounts

def validate_portions(assignments: Sequence[AssignmentInput]):
    if not assignments:
        raise InvalidInput("At least one assignment is required")

    user_ids = [a.user_id for a in assignments]
    if len(user_ids) != len(set(user_ids)):
        raise InvalidInput("Duplicate users found in assignments")

    if any(a.portion < 0 or a.portion > 1 for a in assignments):
        raise InvalidInput("Portions must be between 0 and 1")

    total = sum((a.portion for a in assignments), Decimal("0"))
    if abs(total - 1) > settings.PORTION_SUM_TOLERANCE:
        raise InvalidInput("Portions for an item must add up to 1")

async def _replace_assignments(
    db: AsyncSession,
    item: BillItem,
    assignments: Sequence[AssignmentInput]
) -> List[ItemAssignment]:
    old = await db.execute(select(ItemAssignment).where(ItemAssignment.bill_item_id == item.id))
    for a in old.scalars().all():
        await db.delete(a)

    item_total = to_decimal(item.price) * (item.quantity or 1)
    amounts = allocate_amounts(item_total, [a.portion for a in assignments])

    created = []
    for a, amount in zip(assignments, amounts):
        row = ItemAssignment(
            bill_item_id=item.id,
            user_id=a.user_id,
            portion=a.portion,
            amount=amount
        )
        db.add(row)
        created.append(row)

    return created

async def load_item_with_assignments(db: AsyncSession, item_id: int) -> BillItem:
    q = (
        select(BillItem)
        .where(BillItem.id == item_id)
        .options(selectinload(BillItem.assignments).selectinload(ItemAssignment.user))
        .execution_options(populate_existing=True)
    )

    with storage_errors("load bill item"):
        res = await db.execute(q)
        return res.scalar_one()

async def assign_item_to_users(
    db: AsyncSession,
    item_id: int,
    assignments: Sequence[AssignmentInput],
    user_id: int
) -> BillItem:
    with storage_errors("load bill item"):
        res = await db.execute(select(BillItem).where(BillItem.id == item_id))
        item = res.scalar_one_or_none()

    if not item:
        raise NotFound("Bill item not found")

    bill = await get_bill_for_action(db, item.bill_id, user_id, BillAction.EDIT)
    ensure_draft(bill)
    validate_portions(assignments)

    await ensure_event_participants(
        db,
        bill.event_id,
        [a.user_id for a in assignments],
        "Some assigned users are not event members"
    )

    async with unit_of_work(db, "assign item"):
        await _replace_assignments(db, item, assignments)

    logger.info("Item %s of bill %s assigned to %d users", item.id, bill.id, len(assignments))
    return await load_item_with_assignments(db, item.id)

async def auto_split_bill(
    db: AsyncSession,
    bill_id: int,
    member_ids: Sequence[int],
    user_id: int,
    owners: Dict[int, int] | None = None
) -> Dict[int, List[ItemAssignment]]:
    """
    Shared items are split equally across `member_ids`. A personal item goes
    to its entry in `owners`, or to the first member when it has none.
    """
    bill = await get_bill_for_action(db, bill_id, user_id, BillAction.EDIT)
    ensure_draft(bill)

    if not member_ids:
        raise InvalidState("Cannot split a bill without members")

    if len(member_ids) != len(set(member_ids)):
        raise InvalidInput("Duplicate users found in members")

    owners = owners or {}

    await ensure_event_participants(
        db,
        bill.event_id,
        list(member_ids) + list(owners.values()),
        "Some members are not part of this event"
    )

    with storage_errors("load bill items"):
        res = await db.execute(
            select(BillItem).where(BillItem.bill_id == bill.id).order_by(BillItem.id)
        )
        items = res.scalars().all()

    unknown = set(owners) - {item.id for item in items}
    if unknown:
        raise InvalidInput("Owners given for items that are not on this bill")

    portion = equal_portion(len(member_ids))
    result: Dict[int, List[ItemAssignment]] = {}

    async with unit_of_work(db, "auto-split bill"):
        for item in items:
            if item.is_shared:
                split = [AssignmentInput(user_id=m, portion=portion) for m in member_ids]
            else:
                owner = owners.get(item.id, member_ids[0])
                split = [AssignmentInput(user_id=owner, portion=Decimal("1"))]

            result[item.id] = await _replace_assignments(db, item, split)

    logger.info("Bill %s auto-split across %d members", bill.id, len(member_ids))
    return result
