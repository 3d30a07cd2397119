from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Boolean
from sqlalchemy.orm import relationship
from dinelink.db.session import Base

class BillItem(Base):
    __tablename__ = "bill_items"

    id = Column(Integer, primary_key=True, index=True)
    bill_id = Column(Integer, ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    name_chinese = Column(String, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    category = Column(String, nullable=True)
    is_shared = Column(Boolean, nullable=False, default=True)

    bill = relationship("Bill", back_populates="items")
    assignments = relationship(
        "ItemAssignment",
        back_populates="bill_item",
        cascade="all, delete-orphan",
        order_by="ItemAssignment.id",
    )
