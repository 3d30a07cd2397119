import enum
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict

class PaymentMethod(str, enum.Enum):
    BANK_TRANSFER = "bank_transfer"
    FPS = "fps"
    PAYME = "payme"
    ALIPAY_HK = "alipay_hk"
    WECHAT_PAY_HK = "wechat_pay_hk"
    CASH = "cash"

class PaymentCreate(BaseModel):
    payer_id: int
    recipient_id: int
    amount: Decimal
    payment_method: PaymentMethod

class PaymentComplete(BaseModel):
    transaction_id: str | None = None
    payment_proof_url: str | None = None

class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    bill_id: int
    payer_id: int
    recipient_id: int
    amount: Decimal
    currency: str
    payment_method: str
    status: str
    transaction_id: str | None = None
    payment_proof_url: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None
