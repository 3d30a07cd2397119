from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from dinelink.db.session import get_db
from dinelink.core.dependencies import get_current_user
from dinelink.schemas.payment import PaymentComplete, PaymentOut
from dinelink.services.bill_services import complete_payment

router = APIRouter()

@router.post("/{payment_id}/complete", response_model=PaymentOut)
async def complete(
    payment_id: int,
    data: PaymentComplete,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await complete_payment(
        db,
        payment_id,
        current_user.id,
        transaction_id=data.transaction_id,
        payment_proof_url=data.payment_proof_url
    )
