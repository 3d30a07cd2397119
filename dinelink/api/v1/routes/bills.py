from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from dinelink.db.session import get_db
from dinelink.core.dependencies import get_current_user
from dinelink.schemas.bill import (
    AssignItemRequest,
    AutoSplitRequest,
    BillCreate,
    BillDetailOut,
    BillItemCreate,
    BillItemDetail,
    BillItemOut,
    BillOut,
    BillSummary,
    BillTotals,
    BillTotalsRequest,
    PaymentMethodOut,
)
from dinelink.schemas.payment import PaymentCreate, PaymentOut
from dinelink.services.allocation_services import assign_item_to_users, auto_split_bill, calculate_totals
from dinelink.services.bill_services import (
    add_bill_items,
    create_bill,
    create_payment_request,
    finalize_bill,
    get_payment_methods,
    list_event_bills,
)
from dinelink.services.summary_services import get_bill_details, get_bill_summary, list_bill_payments

router = APIRouter()

@router.post("/calculate", response_model=BillTotals, description="service charge and tax for a subtotal")
async def calculate(data: BillTotalsRequest):
    return calculate_totals(data.subtotal, data.service_charge_rate, data.tax_rate)

@router.get("/payment-methods", response_model=list[PaymentMethodOut])
async def payment_methods(language: str = "en"):
    return get_payment_methods(language)

@router.post("/", response_model=BillOut, description="create a draft bill for an event")
async def new_bill(
    data: BillCreate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await create_bill(db, data, current_user.id)

@router.get("/event/{event_id}", response_model=list[BillOut])
async def event_bills(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await list_event_bills(db, event_id, current_user.id)

@router.put("/items/{item_id}/assignments", response_model=BillItemDetail)
async def assign_item(
    item_id: int,
    data: AssignItemRequest,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await assign_item_to_users(db, item_id, data.assignments, current_user.id)

@router.get("/{bill_id}", response_model=BillDetailOut)
async def bill_details(
    bill_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await get_bill_details(db, bill_id, current_user.id)

@router.post("/{bill_id}/items", response_model=list[BillItemOut])
async def add_items(
    bill_id: int,
    items: List[BillItemCreate],
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await add_bill_items(db, bill_id, items, current_user.id)

@router.post("/{bill_id}/auto-split", response_model=BillSummary, description="split shared items equally")
async def auto_split(
    bill_id: int,
    data: AutoSplitRequest,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    await auto_split_bill(db, bill_id, data.member_ids, current_user.id, owners=data.owners)
    return await get_bill_summary(db, bill_id, current_user.id)

@router.get("/{bill_id}/summary", response_model=BillSummary)
async def summary(
    bill_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await get_bill_summary(db, bill_id, current_user.id)

@router.post("/{bill_id}/finalize", response_model=BillOut)
async def finalize(
    bill_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await finalize_bill(db, bill_id, current_user.id)

@router.get("/{bill_id}/payments", response_model=list[PaymentOut])
async def bill_payments(
    bill_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await list_bill_payments(db, bill_id, current_user.id)

@router.post("/{bill_id}/payments", response_model=PaymentOut, description="request a payment from a member")
async def request_payment(
    bill_id: int,
    data: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await create_payment_request(db, bill_id, data, current_user.id)
