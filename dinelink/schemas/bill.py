from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Literal
from pydantic import BaseModel, ConfigDict

class BillTotalsRequest(BaseModel):
    subtotal: Decimal
    service_charge_rate: Decimal | None = None
    tax_rate: Decimal | None = None

class BillTotals(BaseModel):
    subtotal: Decimal
    service_charge: Decimal
    tax_amount: Decimal
    total_amount: Decimal

class BillCreate(BaseModel):
    event_id: int
    restaurant_id: int | None = None
    subtotal: Decimal
    service_charge_rate: Decimal | None = None
    tax_rate: Decimal | None = None
    # explicit amounts win over the rates above
    service_charge: Decimal | None = None
    tax_amount: Decimal | None = None
    tip_amount: Decimal = Decimal("0")
    total_amount: Decimal | None = None
    currency: str | None = None
    receipt_image_url: str | None = None

class BillItemCreate(BaseModel):
    name: str
    name_chinese: str | None = None
    price: Decimal
    quantity: int | None = 1
    category: str | None = None
    is_shared: bool = True

class AssignmentInput(BaseModel):
    user_id: int
    portion: Decimal

class AssignItemRequest(BaseModel):
    assignments: List[AssignmentInput]

class AutoSplitRequest(BaseModel):
    member_ids: List[int]
    # bill_item_id -> user_id for personal (not shared) items
    owners: Dict[int, int] | None = None

class AssignedUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    phone: str

class AssignmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    bill_item_id: int
    user_id: int
    portion: Decimal
    amount: Decimal
    user: AssignedUser

class BillItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    bill_id: int
    name: str
    name_chinese: str | None = None
    price: Decimal
    quantity: int
    category: str | None = None
    is_shared: bool

class BillItemDetail(BillItemOut):
    assignments: List[AssignmentOut] = []

class BillOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: int
    restaurant_id: int | None = None
    subtotal: Decimal
    service_charge: Decimal
    tax_amount: Decimal
    tip_amount: Decimal
    total_amount: Decimal
    currency: str
    status: str
    receipt_image_url: str | None = None
    created_by: int
    created_at: datetime | None = None

class BillDetailOut(BillOut):
    items: List[BillItemDetail] = []

class UserTotal(BaseModel):
    user_id: int
    user_name: str
    user_phone: str
    total_amount: Decimal
    paid_amount: Decimal
    pending_amount: Decimal
    payment_status: Literal["paid", "partial", "pending"]

class BillSummary(BaseModel):
    bill: BillDetailOut
    user_totals: List[UserTotal]
    total_paid: Decimal
    total_pending: Decimal

class PaymentMethodOut(BaseModel):
    value: str
    label: str
