from fastapi import FastAPI
import dinelink.db.base  # noqa: F401
from dinelink.core.log import setup_logging
from dinelink.api.v1.routes.bills import router as bills_router
from dinelink.api.v1.routes.payments import router as payments_router
from dinelink.api.v1.routes.notifications import router as notifications_router

setup_logging()

app = FastAPI(title="DineLink Bills")

@app.get("/")
async def root():
    return {"message": "DineLink Bills is live"}

app.include_router(bills_router, prefix="/api/v1/bills", tags=["bills"])
app.include_router(payments_router, prefix="/api/v1/payments", tags=["payments"])
app.include_router(notifications_router, prefix="/api/v1/notifications", tags=["notifications"])
