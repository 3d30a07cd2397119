import enum
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Numeric
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from dinelink.db.session import Base

class BillStatus(str, enum.Enum):
    DRAFT = "draft"
    FINALIZED = "finalized"

class Bill(Base):
    __tablename__ = "bills"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("dining_events.id"), nullable=False, index=True)
    restaurant_id = Column(Integer, nullable=True)
    subtotal = Column(Numeric(10, 2), nullable=False)
    service_charge = Column(Numeric(10, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0)
    tip_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="HKD")
    status = Column(String, nullable=False, default=BillStatus.DRAFT.value)
    receipt_image_url = Column(String, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    event = relationship("DiningEvent")
    items = relationship(
        "BillItem",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="BillItem.id",
    )
    payments = relationship("Payment", back_populates="bill", order_by="Payment.id")

    @property
    def is_finalized(self) -> bool:
        return self.status == BillStatus.FINALIZED.value
